"""Apply and revert the financial and schedule impact of change orders.

A change order targets either a project or a work order. Approving (or
implementing) it pushes its deltas onto the parent; rejecting or cancelling it
pulls them back out. For projects the cost impact is also spread over derived
budget items tagged with the change order id so they can be removed again.

Financial fields are written as relative increments and each operation runs in
a single savepoint, so a failure part-way through leaves nothing behind. The
same savepoint sets or clears `ChangeOrder.impact_applied`.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from buildops.common.enums import (
    ChangeOrderEntityType,
    ChangeOrderStatus,
    NotificationSeverity,
)
from buildops.common.exceptions import (
    BuildOpsException,
    NotFoundError,
    UnsupportedEntityError,
    WriteError,
)
from buildops.common.logging import get_logger
from buildops.config import settings
from buildops.core.notifications.service import notify
from buildops.db.models.budget_item import ProjectBudgetItem
from buildops.db.models.change_order import ChangeOrder, ChangeOrderItem
from buildops.db.models.project import Project
from buildops.db.models.work_order import WorkOrder

logger = get_logger("change_orders.impact")

APPLY_STATUSES = {ChangeOrderStatus.APPROVED.value, ChangeOrderStatus.IMPLEMENTED.value}
REVERT_STATUSES = {ChangeOrderStatus.REJECTED.value, ChangeOrderStatus.CANCELLED.value}

GENERAL_ADJUSTMENT = "General Adjustment"
CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def _decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _value(value) -> str:
    return value.value if isinstance(value, enum.Enum) else str(value)


def shift_date(current: date | None, impact_days: int | None) -> date | None:
    """Push a date out by ``impact_days`` calendar days.

    Only positive impacts move the date; a missing date or a zero/negative
    impact returns ``current`` unchanged.
    """
    if current is None or not impact_days or impact_days <= 0:
        return current
    return current + timedelta(days=impact_days)


def allocate_cost_impact(
    cost_impact: Decimal, total_amount: Decimal, items: list[ChangeOrderItem]
) -> list[Decimal]:
    """Split ``cost_impact`` across items in proportion to their selling price.

    Items without a positive price, or every item when the change order total
    is not positive, get the equal share ``cost_impact / len(items)``. Shares
    are rounded to cents and the remainder is not redistributed.
    """
    if not items:
        return []

    cost_impact = _decimal(cost_impact)
    total_amount = _decimal(total_amount)
    equal_share = cost_impact / len(items)

    shares = []
    for item in items:
        price = _decimal(item.total_price)
        if total_amount > 0 and price > 0:
            share = cost_impact * price / total_amount
        else:
            share = equal_share
        shares.append(share.quantize(CENTS, rounding=ROUND_HALF_UP))
    return shares


def build_budget_items(change_order: ChangeOrder, project_id: uuid.UUID) -> list[ProjectBudgetItem]:
    """Derive the budget items representing a change order's cost portion."""
    cost_impact = _decimal(change_order.cost_impact)
    if cost_impact == 0:
        return []

    prefix = settings.BUDGET_ITEM_CATEGORY_PREFIX
    items = list(change_order.items or [])

    if not items:
        return [
            ProjectBudgetItem(
                project_id=project_id,
                category=f"{prefix}{GENERAL_ADJUSTMENT}",
                description=f"{change_order.title}: cost adjustment",
                estimated_amount=cost_impact,
                actual_amount=ZERO,
                change_order_id=change_order.id,
                is_contingency=False,
            )
        ]

    shares = allocate_cost_impact(cost_impact, change_order.total_amount, items)
    return [
        ProjectBudgetItem(
            project_id=project_id,
            category=f"{prefix}{item.item_type or 'General'}",
            description=f"{change_order.title}: {item.description}",
            estimated_amount=share,
            actual_amount=ZERO,
            change_order_id=change_order.id,
            is_contingency=False,
        )
        for item, share in zip(items, shares)
    ]


class ChangeOrderImpactApplier:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ---------- Public ----------

    async def apply(self, change_order: ChangeOrder) -> bool:
        status = _value(change_order.status)
        if status not in APPLY_STATUSES:
            logger.info(
                "Change order %s is %s, skipping impact application", change_order.id, status
            )
            return True

        return await self._run(
            change_order,
            "apply",
            project_step=self._apply_to_project,
            work_order_step=self._apply_to_work_order,
            success_title="Change order impact applied",
        )

    async def revert(self, change_order: ChangeOrder) -> bool:
        status = _value(change_order.status)
        if status not in REVERT_STATUSES:
            logger.info(
                "Change order %s is %s, skipping impact reversal", change_order.id, status
            )
            return True

        return await self._run(
            change_order,
            "revert",
            project_step=self._revert_project,
            work_order_step=self._revert_work_order,
            success_title="Change order impact reverted",
        )

    async def materialize_budget_items(
        self, change_order: ChangeOrder, project_id: uuid.UUID
    ) -> list[ProjectBudgetItem]:
        await self.db.refresh(change_order, attribute_names=["items"])
        budget_items = build_budget_items(change_order, project_id)
        if not budget_items:
            return []
        try:
            self.db.add_all(budget_items)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise WriteError("create change order budget items", str(e)) from e

        logger.info(
            "Created %d budget items for change order %s", len(budget_items), change_order.id
        )
        return budget_items

    # ---------- Project ----------

    async def _apply_to_project(self, change_order: ChangeOrder) -> str:
        project = await self._get_project(change_order.entity_id)
        project_id = project.id
        end_date = project.target_end_date

        cost_impact = _decimal(change_order.cost_impact)
        revenue_impact = _decimal(change_order.revenue_impact)
        new_end_date = shift_date(end_date, change_order.impact_days)

        await self._write(
            "update project with change order impact",
            update(Project)
            .where(Project.id == project_id)
            .values(
                total_budget=Project.total_budget + cost_impact,
                contract_value=Project.contract_value + revenue_impact,
                target_end_date=new_end_date,
                updated_at=datetime.now(timezone.utc),
            ),
        )
        logger.info(
            "Applied change order %s to project %s: budget %+s, contract %+s, end date %s -> %s",
            change_order.id, project_id, cost_impact, revenue_impact, end_date, new_end_date,
        )

        await self.materialize_budget_items(change_order, project_id)
        return "Project budget and schedule have been updated."

    async def _revert_project(self, change_order: ChangeOrder) -> str:
        project = await self._get_project(change_order.entity_id)
        project_id = project.id

        cost_impact = _decimal(change_order.cost_impact)
        revenue_impact = _decimal(change_order.revenue_impact)

        # Financials only; the schedule shift stays in place
        await self._write(
            "revert project change order impact",
            update(Project)
            .where(Project.id == project_id)
            .values(
                total_budget=Project.total_budget - cost_impact,
                contract_value=Project.contract_value - revenue_impact,
                updated_at=datetime.now(timezone.utc),
            ),
        )

        result = await self._write(
            "remove change order budget items",
            delete(ProjectBudgetItem).where(
                ProjectBudgetItem.change_order_id == change_order.id
            ),
        )
        logger.info(
            "Reverted change order %s on project %s: budget %+s, contract %+s, %d budget items removed",
            change_order.id, project_id, -cost_impact, -revenue_impact, result.rowcount,
        )
        return "The effects of this change order have been removed."

    # ---------- Work order ----------

    async def _apply_to_work_order(self, change_order: ChangeOrder) -> str:
        work_order = await self._get_work_order(change_order.entity_id)
        work_order_id = work_order.id
        due_date = work_order.due_by_date
        new_due_date = shift_date(due_date, change_order.impact_days)

        # Cost and revenue stay with the work order's change order; no project roll-up
        await self._write(
            "update work order with change order impact",
            update(WorkOrder)
            .where(WorkOrder.id == work_order_id)
            .values(due_by_date=new_due_date, updated_at=datetime.now(timezone.utc)),
        )
        logger.info(
            "Applied change order %s to work order %s: due date %s -> %s",
            change_order.id, work_order_id, due_date, new_due_date,
        )
        return "Work order schedule has been updated."

    async def _revert_work_order(self, change_order: ChangeOrder) -> str:
        # Schedule reversal for work orders is not implemented; nothing is written
        logger.info(
            "Change order %s targets work order %s, no reversal performed",
            change_order.id, change_order.entity_id,
        )
        return "No work order changes were reverted."

    # ---------- Helpers ----------

    @staticmethod
    def _entity_type(change_order: ChangeOrder) -> ChangeOrderEntityType:
        try:
            return ChangeOrderEntityType(change_order.entity_type)
        except ValueError:
            raise UnsupportedEntityError(str(change_order.entity_type))

    async def _get_project(self, project_id: uuid.UUID) -> Project:
        result = await self.db.execute(
            select(Project)
            .where(Project.id == project_id, Project.live())
            .with_for_update()
        )
        project = result.scalar_one_or_none()
        if not project:
            raise NotFoundError("Project", str(project_id))
        return project

    async def _get_work_order(self, work_order_id: uuid.UUID) -> WorkOrder:
        result = await self.db.execute(
            select(WorkOrder)
            .where(WorkOrder.id == work_order_id, WorkOrder.live())
            .with_for_update()
        )
        work_order = result.scalar_one_or_none()
        if not work_order:
            raise NotFoundError("Work order", str(work_order_id))
        return work_order

    async def _write(self, operation: str, statement):
        try:
            return await self.db.execute(
                statement.execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            raise WriteError(operation, str(e)) from e

    async def _run(
        self,
        change_order: ChangeOrder,
        action: str,
        project_step: Callable[[ChangeOrder], Awaitable[str]],
        work_order_step: Callable[[ChangeOrder], Awaitable[str]],
        success_title: str,
    ) -> bool:
        # Captured up front: a rolled-back savepoint expires what it touched
        change_order_pk = change_order.id
        change_order_id = str(change_order_pk)
        reference = {
            "entity_type": _value(change_order.entity_type),
            "entity_id": change_order.entity_id,
            "metadata": {"change_order_id": change_order_id},
        }

        try:
            entity_type = self._entity_type(change_order)
            step = (
                project_step if entity_type == ChangeOrderEntityType.PROJECT else work_order_step
            )
            async with self.db.begin_nested():
                description = await step(change_order)
                await self._write(
                    "record change order impact state",
                    update(ChangeOrder)
                    .where(ChangeOrder.id == change_order_pk)
                    .values(impact_applied=action == "apply"),
                )
        except BuildOpsException as e:
            logger.error("Failed to %s change order %s: %s", action, change_order_id, e.detail)
            reason = e.detail
        except Exception as e:
            logger.exception("Unexpected error during %s of change order %s", action, change_order_id)
            reason = str(e)
        else:
            await notify(self.db, title=success_title, description=description, **reference)
            return True

        await notify(
            self.db,
            title="Error",
            description=f"Failed to {action} change order impact: {reason}",
            severity=NotificationSeverity.ERROR.value,
            **reference,
        )
        return False


async def apply_change_order_impact(db: AsyncSession, change_order: ChangeOrder) -> bool:
    """Push an approved/implemented change order's deltas onto its parent."""
    return await ChangeOrderImpactApplier(db).apply(change_order)


async def revert_change_order_impact(db: AsyncSession, change_order: ChangeOrder) -> bool:
    """Pull a rejected/cancelled change order's deltas back out of its parent."""
    return await ChangeOrderImpactApplier(db).revert(change_order)
