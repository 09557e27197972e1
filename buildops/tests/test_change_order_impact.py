import uuid
import warnings
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import select

from buildops.common.exceptions import UnsupportedEntityError
from buildops.core.change_orders.impact import (
    allocate_cost_impact,
    apply_change_order_impact,
    revert_change_order_impact,
    shift_date,
)
from buildops.db.models.budget_item import ProjectBudgetItem
from buildops.db.models.change_order import ChangeOrderItem
from buildops.db.models.notification import Notification


async def _budget_items(db_session, change_order_id):
    result = await db_session.execute(
        select(ProjectBudgetItem)
        .where(ProjectBudgetItem.change_order_id == change_order_id)
        .order_by(ProjectBudgetItem.estimated_amount.desc())
    )
    return result.scalars().all()


async def _notifications(db_session, entity_id):
    result = await db_session.execute(
        select(Notification).where(Notification.entity_id == entity_id)
    )
    return result.scalars().all()


# ---------- Pure helpers ----------


def test_shift_date_only_moves_forward():
    assert shift_date(date(2026, 3, 1), 4) == date(2026, 3, 5)
    assert shift_date(date(2026, 3, 1), -3) == date(2026, 3, 1)
    assert shift_date(date(2026, 3, 1), 0) == date(2026, 3, 1)
    assert shift_date(None, 10) is None


def test_shift_date_crosses_month_end():
    assert shift_date(date(2026, 2, 26), 5) == date(2026, 3, 3)


def test_allocate_mixes_proportional_and_equal_shares():
    items = [
        ChangeOrderItem(description="Cabinets", total_price=Decimal("800")),
        ChangeOrderItem(description="Haul-away", total_price=Decimal("0")),
    ]
    shares = allocate_cost_impact(Decimal("500"), Decimal("800"), items)
    assert shares == [Decimal("500.00"), Decimal("250.00")]


def test_allocate_rounds_to_cents_without_remainder_fix():
    items = [ChangeOrderItem(description=f"Line {i}", total_price=Decimal("1")) for i in range(3)]
    shares = allocate_cost_impact(Decimal("100"), Decimal("3"), items)
    assert shares == [Decimal("33.33")] * 3
    assert sum(shares) == Decimal("99.99")


# ---------- Status guards ----------


@pytest.mark.asyncio
async def test_apply_skips_unapproved_change_order(db_session, make_project, make_change_order):
    project = await make_project()
    co = await make_change_order(
        project.id, status="SUBMITTED", cost_impact="5000", revenue_impact="8000", impact_days=4
    )

    assert await apply_change_order_impact(db_session, co) is True

    await db_session.refresh(project)
    assert project.total_budget == Decimal("100000.00")
    assert project.contract_value == Decimal("150000.00")
    assert project.target_end_date == date(2026, 3, 1)
    assert await _budget_items(db_session, co.id) == []


@pytest.mark.asyncio
async def test_revert_skips_change_order_not_rejected_or_cancelled(
    db_session, make_project, make_change_order
):
    project = await make_project()
    co = await make_change_order(project.id, status="APPROVED", cost_impact="5000", revenue_impact="8000")

    assert await revert_change_order_impact(db_session, co) is True

    await db_session.refresh(project)
    assert project.total_budget == Decimal("100000.00")
    assert project.contract_value == Decimal("150000.00")


# ---------- Project financials and schedule ----------


@pytest.mark.asyncio
async def test_apply_adds_cost_and_revenue_impact(db_session, make_project, make_change_order):
    project = await make_project(total_budget="100000", contract_value="150000")
    co = await make_change_order(project.id, cost_impact="5000", revenue_impact="8000")

    assert await apply_change_order_impact(db_session, co) is True

    await db_session.refresh(project)
    assert project.total_budget == Decimal("105000.00")
    assert project.contract_value == Decimal("158000.00")


@pytest.mark.asyncio
async def test_implemented_status_also_applies(db_session, make_project, make_change_order):
    project = await make_project()
    co = await make_change_order(project.id, status="IMPLEMENTED", cost_impact="-2500")

    assert await apply_change_order_impact(db_session, co) is True

    await db_session.refresh(project)
    assert project.total_budget == Decimal("97500.00")


@pytest.mark.asyncio
async def test_apply_then_revert_restores_financials(db_session, make_project, make_change_order):
    project = await make_project()
    co = await make_change_order(
        project.id, cost_impact="5000", revenue_impact="8000", impact_days=4,
        items=[("Cabinet base", "600"), ("Install labor", "400")],
    )

    assert await apply_change_order_impact(db_session, co) is True
    co.status = "CANCELLED"
    await db_session.flush()
    assert await revert_change_order_impact(db_session, co) is True

    await db_session.refresh(project)
    assert project.total_budget == Decimal("100000.00")
    assert project.contract_value == Decimal("150000.00")
    # Schedule shift is not reverted
    assert project.target_end_date == date(2026, 3, 5)
    assert await _budget_items(db_session, co.id) == []


@pytest.mark.asyncio
async def test_negative_impact_days_leave_end_date(db_session, make_project, make_change_order):
    project = await make_project(target_end_date=date(2026, 3, 1))
    co = await make_change_order(project.id, impact_days=-3)

    assert await apply_change_order_impact(db_session, co) is True

    await db_session.refresh(project)
    assert project.target_end_date == date(2026, 3, 1)


@pytest.mark.asyncio
async def test_positive_impact_days_advance_end_date(db_session, make_project, make_change_order):
    project = await make_project(target_end_date=date(2026, 3, 1))
    co = await make_change_order(project.id, impact_days=4)

    assert await apply_change_order_impact(db_session, co) is True

    await db_session.refresh(project)
    assert project.target_end_date == date(2026, 3, 5)


@pytest.mark.asyncio
async def test_missing_end_date_stays_missing(db_session, make_project, make_change_order):
    project = await make_project(target_end_date=None)
    co = await make_change_order(project.id, impact_days=7, cost_impact="100")

    assert await apply_change_order_impact(db_session, co) is True

    await db_session.refresh(project)
    assert project.target_end_date is None
    assert project.total_budget == Decimal("100100.00")


# ---------- Derived budget items ----------


@pytest.mark.asyncio
async def test_cost_impact_split_in_proportion_to_item_prices(
    db_session, make_project, make_change_order
):
    project = await make_project()
    co = await make_change_order(
        project.id, cost_impact="500", items=[("Cabinet base", "600"), ("Countertop", "400")]
    )
    assert co.total_amount == Decimal("1000.00")

    assert await apply_change_order_impact(db_session, co) is True

    items = await _budget_items(db_session, co.id)
    assert [i.estimated_amount for i in items] == [Decimal("300.00"), Decimal("200.00")]
    assert {i.category for i in items} == {"CO: material"}
    assert {i.description for i in items} == {
        "Add kitchen island: Cabinet base",
        "Add kitchen island: Countertop",
    }
    assert all(i.project_id == project.id for i in items)
    assert all(i.is_contingency is False for i in items)
    assert all(i.actual_amount == Decimal("0.00") for i in items)


@pytest.mark.asyncio
async def test_zero_priced_items_get_equal_split(db_session, make_project, make_change_order):
    project = await make_project()
    co = await make_change_order(
        project.id, cost_impact="500", items=[("Demo", "0"), ("Cleanup", "0")]
    )

    assert await apply_change_order_impact(db_session, co) is True

    items = await _budget_items(db_session, co.id)
    assert [i.estimated_amount for i in items] == [Decimal("250.00"), Decimal("250.00")]


@pytest.mark.asyncio
async def test_no_items_creates_general_adjustment(db_session, make_project, make_change_order):
    project = await make_project()
    co = await make_change_order(project.id, cost_impact="500")

    assert await apply_change_order_impact(db_session, co) is True

    items = await _budget_items(db_session, co.id)
    assert len(items) == 1
    assert items[0].category == "CO: General Adjustment"
    assert items[0].estimated_amount == Decimal("500.00")


@pytest.mark.asyncio
async def test_zero_cost_impact_creates_no_items(db_session, make_project, make_change_order):
    project = await make_project()
    co = await make_change_order(
        project.id, cost_impact="0", revenue_impact="1200",
        items=[("Cabinet base", "600"), ("Countertop", "400")],
    )

    assert await apply_change_order_impact(db_session, co) is True

    assert await _budget_items(db_session, co.id) == []
    await db_session.refresh(project)
    assert project.contract_value == Decimal("151200.00")


@pytest.mark.asyncio
async def test_revert_deletes_only_this_change_orders_items(
    db_session, make_project, make_change_order
):
    project = await make_project()
    co = await make_change_order(
        project.id, cost_impact="500", items=[("Cabinet base", "600"), ("Countertop", "400")]
    )
    other = await make_change_order(project.id, cost_impact="750", title="Extra outlets")
    manual = ProjectBudgetItem(
        project_id=project.id, category="Framing", estimated_amount=Decimal("12000")
    )
    db_session.add(manual)
    await db_session.flush()

    assert await apply_change_order_impact(db_session, co) is True
    assert await apply_change_order_impact(db_session, other) is True
    assert len(await _budget_items(db_session, co.id)) == 2

    co.status = "REJECTED"
    await db_session.flush()
    assert await revert_change_order_impact(db_session, co) is True

    assert await _budget_items(db_session, co.id) == []
    assert len(await _budget_items(db_session, other.id)) == 1
    result = await db_session.execute(
        select(ProjectBudgetItem).where(ProjectBudgetItem.id == manual.id)
    )
    assert result.scalar_one_or_none() is not None

    await db_session.refresh(project)
    assert project.total_budget == Decimal("100750.00")


# ---------- Failures ----------


def test_unsupported_entity_error_is_unprocessable_without_warnings():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        error = UnsupportedEntityError("CUSTOMER")

    assert error.status_code == 422
    assert error.entity_type == "CUSTOMER"


@pytest.mark.asyncio
async def test_unsupported_entity_type_fails_without_writes(
    db_session, make_project, make_change_order
):
    project = await make_project()
    co = await make_change_order(
        project.id, entity_type="CUSTOMER", cost_impact="500", revenue_impact="900", impact_days=3
    )

    assert await apply_change_order_impact(db_session, co) is False

    await db_session.refresh(project)
    assert project.total_budget == Decimal("100000.00")
    assert project.contract_value == Decimal("150000.00")
    assert project.target_end_date == date(2026, 3, 1)
    assert await _budget_items(db_session, co.id) == []

    co.status = "CANCELLED"
    await db_session.flush()
    assert await revert_change_order_impact(db_session, co) is False

    notes = await _notifications(db_session, project.id)
    assert len(notes) == 2
    assert all(n.severity == "error" for n in notes)
    assert all("Unsupported change order entity type" in n.body for n in notes)


@pytest.mark.asyncio
async def test_missing_project_fails_with_not_found(db_session, make_change_order):
    missing_id = uuid.uuid4()
    co = await make_change_order(missing_id, cost_impact="500")
    co_id = co.id

    assert await apply_change_order_impact(db_session, co) is False

    assert await _budget_items(db_session, co_id) == []
    notes = await _notifications(db_session, missing_id)
    assert len(notes) == 1
    assert notes[0].severity == "error"
    assert f"Project '{missing_id}' not found" in notes[0].body


@pytest.mark.asyncio
async def test_failed_budget_item_insert_rolls_back_project_update(
    db_session, make_project, make_change_order
):
    project = await make_project()
    project_id = project.id
    co = await make_change_order(project_id, cost_impact="500", revenue_impact="800", impact_days=2)
    co_id = co.id

    def broken_items(change_order, project_id):
        # category is NOT NULL
        return [ProjectBudgetItem(project_id=project_id, category=None, change_order_id=change_order.id)]

    with patch("buildops.core.change_orders.impact.build_budget_items", side_effect=broken_items):
        assert await apply_change_order_impact(db_session, co) is False

    await db_session.refresh(project)
    assert project.total_budget == Decimal("100000.00")
    assert project.contract_value == Decimal("150000.00")
    assert project.target_end_date == date(2026, 3, 1)
    assert await _budget_items(db_session, co_id) == []

    notes = await _notifications(db_session, project_id)
    assert [n.severity for n in notes] == ["error"]
    assert "Failed to create change order budget items" in notes[0].body


@pytest.mark.asyncio
async def test_success_is_reported_as_info_notification(db_session, make_project, make_change_order):
    project = await make_project()
    co = await make_change_order(project.id, cost_impact="500")

    assert await apply_change_order_impact(db_session, co) is True

    notes = await _notifications(db_session, project.id)
    assert len(notes) == 1
    assert notes[0].severity == "info"
    assert notes[0].title == "Change order impact applied"
    assert notes[0].metadata_ == {"change_order_id": str(co.id)}


# ---------- Work orders ----------


@pytest.mark.asyncio
async def test_work_order_due_date_advanced(db_session, make_work_order, make_change_order):
    work_order = await make_work_order(due_by_date=date(2026, 5, 10))
    co = await make_change_order(
        work_order.id, entity_type="WORK_ORDER", cost_impact="900", revenue_impact="1200", impact_days=3
    )

    assert await apply_change_order_impact(db_session, co) is True

    await db_session.refresh(work_order)
    assert work_order.due_by_date == date(2026, 5, 13)
    # Work order change orders never create project budget items
    assert await _budget_items(db_session, co.id) == []


@pytest.mark.asyncio
async def test_work_order_negative_impact_leaves_due_date(db_session, make_work_order, make_change_order):
    work_order = await make_work_order(due_by_date=date(2026, 5, 10))
    co = await make_change_order(work_order.id, entity_type="WORK_ORDER", impact_days=-2)

    assert await apply_change_order_impact(db_session, co) is True

    await db_session.refresh(work_order)
    assert work_order.due_by_date == date(2026, 5, 10)


@pytest.mark.asyncio
async def test_work_order_revert_leaves_due_date(db_session, make_work_order, make_change_order):
    work_order = await make_work_order(due_by_date=date(2026, 5, 10))
    co = await make_change_order(work_order.id, entity_type="WORK_ORDER", impact_days=3)

    assert await apply_change_order_impact(db_session, co) is True
    co.status = "CANCELLED"
    await db_session.flush()
    assert await revert_change_order_impact(db_session, co) is True

    await db_session.refresh(work_order)
    assert work_order.due_by_date == date(2026, 5, 13)


@pytest.mark.asyncio
async def test_missing_work_order_fails(db_session, make_change_order):
    co = await make_change_order(uuid.uuid4(), entity_type="WORK_ORDER", impact_days=3)

    assert await apply_change_order_impact(db_session, co) is False
