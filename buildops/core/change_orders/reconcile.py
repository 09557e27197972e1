from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from buildops.common.enums import ChangeOrderEntityType
from buildops.common.logging import get_logger
from buildops.core.change_orders.impact import (
    APPLY_STATUSES,
    REVERT_STATUSES,
    ChangeOrderImpactApplier,
)
from buildops.db.models.change_order import ChangeOrder
from buildops.db.models.project import Project
from buildops.db.models.work_order import WorkOrder

logger = get_logger("change_orders.reconcile")

PARENT_MODELS = {
    ChangeOrderEntityType.PROJECT.value: Project,
    ChangeOrderEntityType.WORK_ORDER.value: WorkOrder,
}


async def find_unapplied_change_orders(db: AsyncSession) -> list[ChangeOrder]:
    """Approved or implemented change orders whose impact never landed."""
    result = await db.execute(
        select(ChangeOrder)
        .where(
            ChangeOrder.status.in_(APPLY_STATUSES),
            ChangeOrder.impact_applied.is_(False),
            ChangeOrder.live(),
        )
        .order_by(ChangeOrder.created_at.asc())
    )
    return list(result.scalars().all())


async def find_unreverted_change_orders(db: AsyncSession) -> list[ChangeOrder]:
    """Rejected or cancelled change orders whose impact is still folded in."""
    result = await db.execute(
        select(ChangeOrder)
        .where(
            ChangeOrder.status.in_(REVERT_STATUSES),
            ChangeOrder.impact_applied.is_(True),
            ChangeOrder.live(),
        )
        .order_by(ChangeOrder.created_at.asc())
    )
    return list(result.scalars().all())


async def parent_exists(db: AsyncSession, change_order: ChangeOrder) -> bool:
    model = PARENT_MODELS.get(change_order.entity_type)
    if model is None:
        return False
    result = await db.execute(
        select(model.id).where(model.id == change_order.entity_id, model.live())
    )
    return result.scalar_one_or_none() is not None


async def reconcile_change_order_impacts(db: AsyncSession) -> list[str]:
    """Retry applies and reverts that a failure left undone.

    Each retry runs in the applier's own savepoint; one that fails again keeps
    its flag and is picked up on the next run. Change orders whose parent is
    gone cannot succeed, so they are skipped with a warning instead of raising
    another error notification every run.
    """
    applier = ChangeOrderImpactApplier(db)
    pending = [
        (change_order, "apply", applier.apply)
        for change_order in await find_unapplied_change_orders(db)
    ] + [
        (change_order, "revert", applier.revert)
        for change_order in await find_unreverted_change_orders(db)
    ]
    if not pending:
        return []

    repaired = []
    for change_order, action, run in pending:
        # An earlier rolled-back retry may have expired it
        await db.refresh(change_order)
        change_order_id = str(change_order.id)
        if not await parent_exists(db, change_order):
            logger.warning(
                "Skipping %s of change order %s: %s %s not found",
                action, change_order_id, change_order.entity_type, change_order.entity_id,
            )
            continue

        if await run(change_order):
            repaired.append(change_order_id)
        else:
            logger.warning("Change order %s still could not %s", change_order_id, action)

    logger.info("Reconciled %d of %d change orders", len(repaired), len(pending))
    return repaired
