"""Roll-ups of approved change orders for project financial and schedule views."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from buildops.common.enums import ChangeOrderEntityType
from buildops.common.logging import get_logger
from buildops.core.change_orders.impact import shift_date
from buildops.core.change_orders.schemas import ChangeOrderImpactSummary, ImpactTimelineEntry
from buildops.db.models.change_order import ChangeOrder
from buildops.db.models.project import Project

logger = get_logger("change_orders.summary")

ZERO = Decimal("0.00")


def _schedule_days(change_order: ChangeOrder) -> int:
    # Only delays move the end date
    return max(change_order.impact_days or 0, 0)


async def get_applied_change_orders(db: AsyncSession, project_id) -> list[ChangeOrder]:
    result = await db.execute(
        select(ChangeOrder)
        .where(
            ChangeOrder.entity_type == ChangeOrderEntityType.PROJECT.value,
            ChangeOrder.entity_id == project_id,
            # Folded into the stored figures, whatever the status says
            ChangeOrder.impact_applied.is_(True),
            ChangeOrder.live(),
        )
        .order_by(ChangeOrder.created_at.asc())
    )
    return list(result.scalars().all())


async def get_project_impact_summary(db: AsyncSession, project: Project) -> ChangeOrderImpactSummary:
    change_orders = await get_applied_change_orders(db, project.id)

    total_cost = sum((co.cost_impact or ZERO for co in change_orders), ZERO)
    total_revenue = sum((co.revenue_impact or ZERO for co in change_orders), ZERO)
    total_days = sum(_schedule_days(co) for co in change_orders)

    current_budget = project.total_budget or ZERO
    current_contract = project.contract_value or ZERO
    # Applied change orders are already folded into the stored figures
    original_budget = current_budget - total_cost
    original_contract = current_contract - total_revenue

    timeline = []
    cumulative_cost = ZERO
    cumulative_revenue = ZERO
    cumulative_days = 0
    for co in change_orders:
        cumulative_cost += co.cost_impact or ZERO
        cumulative_revenue += co.revenue_impact or ZERO
        cumulative_days += _schedule_days(co)
        timeline.append(
            ImpactTimelineEntry(
                change_order_id=str(co.id),
                title=co.title,
                created_at=co.created_at.isoformat(),
                cost_impact=co.cost_impact or ZERO,
                revenue_impact=co.revenue_impact or ZERO,
                impact_days=co.impact_days or 0,
                cumulative_cost=cumulative_cost,
                cumulative_revenue=cumulative_revenue,
                cumulative_days=cumulative_days,
                budget_with_changes=original_budget + cumulative_cost,
            )
        )

    logger.debug("Project %s has %d applied change orders", project.id, len(change_orders))

    return ChangeOrderImpactSummary(
        project_id=str(project.id),
        change_order_count=len(change_orders),
        total_cost_impact=total_cost,
        total_revenue_impact=total_revenue,
        total_impact_days=total_days,
        current_budget=current_budget,
        current_contract_value=current_contract,
        original_budget=original_budget,
        original_contract_value=original_contract,
        original_gross_profit=original_contract - original_budget,
        current_gross_profit=current_contract - current_budget,
        target_end_date=project.target_end_date,
        timeline=timeline,
    )


def projected_end_date(current: date | None, impact_days: int | None) -> date | None:
    """Where a pending change order would move a due date if approved."""
    return shift_date(current, impact_days)
