from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from buildops.common.enums import ChangeOrderStatus
from buildops.common.exceptions import BadRequestError
from buildops.common.logging import get_logger
from buildops.core.change_orders.impact import (
    APPLY_STATUSES,
    REVERT_STATUSES,
    apply_change_order_impact,
    revert_change_order_impact,
)
from buildops.core.change_orders.schemas import ChangeOrderItemCreate, TransitionResult
from buildops.db.models.change_order import ChangeOrder, ChangeOrderItem

logger = get_logger("change_orders.workflow")

VALID_TRANSITIONS = {
    ChangeOrderStatus.DRAFT: [ChangeOrderStatus.SUBMITTED, ChangeOrderStatus.CANCELLED],
    ChangeOrderStatus.SUBMITTED: [
        ChangeOrderStatus.REVIEW,
        ChangeOrderStatus.APPROVED,
        ChangeOrderStatus.REJECTED,
        ChangeOrderStatus.CANCELLED,
    ],
    ChangeOrderStatus.REVIEW: [
        ChangeOrderStatus.APPROVED,
        ChangeOrderStatus.REJECTED,
        ChangeOrderStatus.CANCELLED,
    ],
    ChangeOrderStatus.APPROVED: [ChangeOrderStatus.IMPLEMENTED, ChangeOrderStatus.CANCELLED],
    ChangeOrderStatus.REJECTED: [],
    ChangeOrderStatus.IMPLEMENTED: [],
    ChangeOrderStatus.CANCELLED: [],
}

EDITABLE_STATUSES = {
    ChangeOrderStatus.DRAFT.value,
    ChangeOrderStatus.SUBMITTED.value,
    ChangeOrderStatus.REVIEW.value,
}

CENTS = Decimal("0.01")


def can_transition(current: str, new: str) -> bool:
    return ChangeOrderStatus(new) in VALID_TRANSITIONS.get(ChangeOrderStatus(current), [])


async def transition_change_order(
    db: AsyncSession,
    change_order: ChangeOrder,
    new_status: ChangeOrderStatus,
    actor: str | None = None,
    notes: str | None = None,
) -> TransitionResult:
    """Persist a status change, then push or pull the change order's impact.

    The impact is applied only when first entering an applied status
    (APPROVED -> IMPLEMENTED does not apply twice) and reverted only when
    leaving one, so a change order rejected before approval touches nothing.
    A change order whose apply failed has nothing to revert.
    """
    old_status = change_order.status
    new_value = ChangeOrderStatus(new_status).value

    if not can_transition(old_status, new_value):
        raise BadRequestError(f"Cannot transition from '{old_status}' to '{new_value}'")

    change_order.status = new_value
    history = list(change_order.status_history or [])
    history.append({
        "from": old_status,
        "to": new_value,
        "by": actor,
        "notes": notes,
        "at": datetime.now(timezone.utc).isoformat(),
    })
    change_order.status_history = history
    if notes:
        change_order.approval_notes = notes
    await db.flush()

    logger.info("Change order %s: %s -> %s", change_order.id, old_status, new_value)

    impact_action = None
    impact_succeeded = True
    if new_value in APPLY_STATUSES and old_status not in APPLY_STATUSES:
        impact_action = "applied"
        impact_succeeded = await apply_change_order_impact(db, change_order)
    elif new_value in REVERT_STATUSES and old_status in APPLY_STATUSES:
        if change_order.impact_applied:
            impact_action = "reverted"
            impact_succeeded = await revert_change_order_impact(db, change_order)
        else:
            logger.info("Change order %s was never applied, nothing to revert", change_order.id)

    if impact_action:
        # A rolled-back savepoint leaves the change order expired
        await db.refresh(change_order)

    return TransitionResult(
        previous_status=old_status,
        status=new_value,
        impact_action=impact_action,
        impact_succeeded=impact_succeeded,
    )


def recalculate_totals(change_order: ChangeOrder) -> None:
    """Refresh ``total_amount`` from the items and raise ``impact_days`` to the longest item."""
    items = list(change_order.items or [])
    change_order.total_amount = sum(
        (Decimal(str(item.total_price or 0)) for item in items), Decimal("0.00")
    )
    longest = max((item.impact_days or 0 for item in items), default=0)
    if longest > (change_order.impact_days or 0):
        change_order.impact_days = longest


def build_item(body: ChangeOrderItemCreate, order_index: int = 0) -> ChangeOrderItem:
    """Price defaults to quantity x unit price when not given explicitly."""
    total_price = body.total_price
    if total_price is None:
        total_price = (body.quantity * body.unit_price).quantize(CENTS)
    return ChangeOrderItem(
        description=body.description,
        item_type=body.item_type,
        quantity=body.quantity,
        unit_price=body.unit_price,
        total_price=total_price,
        impact_days=body.impact_days,
        order_index=order_index,
    )


async def add_item(
    db: AsyncSession, change_order: ChangeOrder, body: ChangeOrderItemCreate
) -> ChangeOrderItem:
    if change_order.status not in EDITABLE_STATUSES:
        raise BadRequestError(f"Items cannot be changed once a change order is {change_order.status}")

    await db.refresh(change_order, attribute_names=["items"])
    item = build_item(body, order_index=len(change_order.items))
    change_order.items.append(item)
    recalculate_totals(change_order)
    await db.flush()

    logger.info(
        "Added item to change order %s: %s (%s)", change_order.id, body.description, item.total_price
    )
    return item
