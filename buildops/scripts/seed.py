"""
Seed script for the BuildOps back-office.

Populates the database with a demo project, a work order, and change orders in
several states. Approved change orders go through the regular workflow so the
project budget and derived budget items reflect them.

Usage:
    python -m buildops.scripts.seed
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select

from buildops.common.enums import (
    ChangeOrderEntityType,
    ChangeOrderReason,
    ChangeOrderStatus,
    ProjectStatus,
    WorkOrderStatus,
)
from buildops.common.logging import get_logger, setup_logging
from buildops.core.change_orders.schemas import ChangeOrderItemCreate
from buildops.core.change_orders.workflow import build_item, recalculate_totals, transition_change_order
from buildops.db.models import ChangeOrder, Project, WorkOrder
from buildops.db.session import async_session_factory

logger = get_logger("scripts.seed")

DEMO_PROJECT = "Riverside Kitchen Remodel"


def _change_order(entity_type, entity_id, title, reason, cost, revenue, days, items=()):
    co = ChangeOrder(
        entity_type=entity_type.value,
        entity_id=entity_id,
        title=title,
        description=title,
        reason=reason.value,
        requested_by="Site Supervisor",
        status=ChangeOrderStatus.DRAFT.value,
        cost_impact=Decimal(cost),
        revenue_impact=Decimal(revenue),
        impact_days=days,
        status_history=[],
        items=[build_item(item, order_index=i) for i, item in enumerate(items)],
    )
    recalculate_totals(co)
    return co


async def main() -> None:
    setup_logging()
    async with async_session_factory() as session:
        # Skip if already seeded
        existing = await session.execute(select(Project).where(Project.name == DEMO_PROJECT))
        if existing.scalar_one_or_none():
            logger.info("Demo data already present, nothing to do")
            return

        today = date.today()
        project = Project(
            name=DEMO_PROJECT,
            customer_name="Dana Whitfield",
            site_address="41 Riverside Dr, Portland, OR",
            status=ProjectStatus.ACTIVE.value,
            total_budget=Decimal("100000.00"),
            contract_value=Decimal("150000.00"),
            start_date=today,
            target_end_date=today + timedelta(days=90),
        )
        work_order = WorkOrder(
            title="Replace water heater",
            status=WorkOrderStatus.SCHEDULED.value,
            scheduled_date=today + timedelta(days=3),
            due_by_date=today + timedelta(days=10),
        )
        session.add_all([project, work_order])
        await session.flush()

        island = _change_order(
            ChangeOrderEntityType.PROJECT, project.id, "Add kitchen island",
            ChangeOrderReason.CLIENT_REQUEST, "5000", "8000", 4,
            items=[
                ChangeOrderItemCreate(description="Cabinet base", item_type="material",
                                      quantity=Decimal("1"), unit_price=Decimal("600")),
                ChangeOrderItemCreate(description="Install labor", item_type="labor",
                                      quantity=Decimal("8"), unit_price=Decimal("50")),
            ],
        )
        wiring = _change_order(
            ChangeOrderEntityType.PROJECT, project.id, "Replace knob-and-tube wiring",
            ChangeOrderReason.UNFORESEEN, "3200", "4100", 2,
        )
        tile = _change_order(
            ChangeOrderEntityType.PROJECT, project.id, "Upgrade backsplash tile",
            ChangeOrderReason.CLIENT_REQUEST, "900", "1400", 0,
        )
        heater = _change_order(
            ChangeOrderEntityType.WORK_ORDER, work_order.id, "Tankless unit instead of tank",
            ChangeOrderReason.SCOPE_CHANGE, "1100", "1500", 2,
        )
        session.add_all([island, wiring, tile, heater])
        await session.flush()

        for co in (island, wiring, heater):
            await transition_change_order(session, co, ChangeOrderStatus.SUBMITTED, actor="seed")
            await transition_change_order(session, co, ChangeOrderStatus.APPROVED, actor="seed")
        await transition_change_order(session, tile, ChangeOrderStatus.SUBMITTED, actor="seed")

        await session.commit()
        logger.info("Seeded project %s and work order %s", project.id, work_order.id)


if __name__ == "__main__":
    asyncio.run(main())
