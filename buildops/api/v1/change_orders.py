"""Change order management for projects and work orders."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from buildops.api.deps import get_db
from buildops.common.enums import (
    ChangeOrderEntityType,
    ChangeOrderReason,
    ChangeOrderStatus,
)
from buildops.common.exceptions import NotFoundError
from buildops.common.pagination import PaginatedResponse, PaginationParams, paginate
from buildops.core.change_orders.schemas import ChangeOrderItemCreate
from buildops.core.change_orders.summary import projected_end_date
from buildops.core.change_orders.workflow import (
    add_item,
    build_item,
    recalculate_totals,
    transition_change_order,
)
from buildops.db.models.change_order import ChangeOrder
from buildops.db.models.project import Project
from buildops.db.models.work_order import WorkOrder

router = APIRouter(prefix="/change-orders", tags=["Change Orders"])


# ---------- Schemas ----------

class ChangeOrderCreate(BaseModel):
    entity_type: ChangeOrderEntityType
    entity_id: uuid.UUID
    title: str
    description: str | None = None
    reason: ChangeOrderReason | None = None
    requested_by: str | None = None
    cost_impact: Decimal = Decimal("0.00")
    revenue_impact: Decimal = Decimal("0.00")
    impact_days: int = 0
    items: list[ChangeOrderItemCreate] = Field(default_factory=list)


class ChangeOrderStatusUpdate(BaseModel):
    status: ChangeOrderStatus
    actor: str | None = None
    notes: str | None = None


class ChangeOrderItemResponse(BaseModel):
    id: uuid.UUID
    description: str
    item_type: str | None
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    impact_days: int
    model_config = {"from_attributes": True}


class ChangeOrderResponse(BaseModel):
    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    title: str
    description: str | None
    reason: str | None
    requested_by: str | None
    status: str
    cost_impact: Decimal
    revenue_impact: Decimal
    impact_days: int
    total_amount: Decimal
    approval_notes: str | None
    status_history: list | None
    impact_applied: bool
    items: list[ChangeOrderItemResponse]
    created_at: str


class ChangeOrderStatusResponse(BaseModel):
    change_order: ChangeOrderResponse
    previous_status: str
    impact_action: str | None
    impact_succeeded: bool


class ScheduleImpactResponse(BaseModel):
    change_order_id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    impact_days: int
    current_date: date | None
    projected_date: date | None


class ChangeOrderListResponse(PaginatedResponse[ChangeOrderResponse]):
    pass


# ---------- Endpoints ----------

@router.post("", response_model=ChangeOrderResponse, status_code=201)
async def create_change_order(
    body: ChangeOrderCreate,
    db: AsyncSession = Depends(get_db),
):
    await _get_parent(body.entity_type.value, body.entity_id, db)

    co = ChangeOrder(
        entity_type=body.entity_type.value,
        entity_id=body.entity_id,
        title=body.title,
        description=body.description,
        reason=body.reason.value if body.reason else None,
        requested_by=body.requested_by,
        status=ChangeOrderStatus.DRAFT.value,
        cost_impact=body.cost_impact,
        revenue_impact=body.revenue_impact,
        impact_days=body.impact_days,
        status_history=[{"from": None, "to": ChangeOrderStatus.DRAFT.value, "by": body.requested_by}],
        items=[build_item(item, order_index=index) for index, item in enumerate(body.items)],
    )
    recalculate_totals(co)
    db.add(co)
    await db.flush()
    await db.refresh(co)

    return _co_response(co)


@router.get("", response_model=ChangeOrderListResponse)
async def list_change_orders(
    entity_type: ChangeOrderEntityType | None = None,
    entity_id: uuid.UUID | None = None,
    status: ChangeOrderStatus | None = None,
    db: AsyncSession = Depends(get_db),
    params: PaginationParams = Depends(),
):
    query = select(ChangeOrder).where(ChangeOrder.live())
    if entity_type:
        query = query.where(ChangeOrder.entity_type == entity_type.value)
    if entity_id:
        query = query.where(ChangeOrder.entity_id == entity_id)
    if status:
        query = query.where(ChangeOrder.status == status.value)
    if params.search:
        query = query.where(ChangeOrder.title.ilike(f"%{params.search}%"))
    if not params.sort_by:
        query = query.order_by(ChangeOrder.created_at.desc())

    items, total = await paginate(db, query, params, ChangeOrder)
    total_pages = params.total_pages(total)
    return ChangeOrderListResponse(
        items=[_co_response(c) for c in items],
        total=total, page=params.page, page_size=params.page_size, total_pages=total_pages,
    )


@router.get("/{co_id}", response_model=ChangeOrderResponse)
async def get_change_order(
    co_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    co = await _get_change_order(co_id, db)
    return _co_response(co)


@router.post("/{co_id}/items", response_model=ChangeOrderResponse, status_code=201)
async def add_change_order_item(
    co_id: uuid.UUID,
    body: ChangeOrderItemCreate,
    db: AsyncSession = Depends(get_db),
):
    co = await _get_change_order(co_id, db)
    await add_item(db, co, body)
    await db.refresh(co)
    return _co_response(co)


@router.post("/{co_id}/status", response_model=ChangeOrderStatusResponse)
async def update_change_order_status(
    co_id: uuid.UUID,
    body: ChangeOrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    co = await _get_change_order(co_id, db)
    result = await transition_change_order(db, co, body.status, actor=body.actor, notes=body.notes)
    await db.refresh(co)

    return ChangeOrderStatusResponse(
        change_order=_co_response(co),
        previous_status=result.previous_status,
        impact_action=result.impact_action,
        impact_succeeded=result.impact_succeeded,
    )


@router.get("/{co_id}/schedule-impact", response_model=ScheduleImpactResponse)
async def get_schedule_impact(
    co_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    co = await _get_change_order(co_id, db)
    parent = await _get_parent(co.entity_type, co.entity_id, db)
    current = (
        parent.target_end_date if isinstance(parent, Project) else parent.due_by_date
    )
    return ScheduleImpactResponse(
        change_order_id=co.id,
        entity_type=co.entity_type,
        entity_id=co.entity_id,
        impact_days=co.impact_days,
        current_date=current,
        projected_date=projected_end_date(current, co.impact_days),
    )


def _co_response(co: ChangeOrder) -> ChangeOrderResponse:
    return ChangeOrderResponse(
        id=co.id, entity_type=co.entity_type, entity_id=co.entity_id,
        title=co.title, description=co.description, reason=co.reason,
        requested_by=co.requested_by, status=co.status,
        cost_impact=co.cost_impact, revenue_impact=co.revenue_impact,
        impact_days=co.impact_days, total_amount=co.total_amount,
        approval_notes=co.approval_notes, status_history=co.status_history,
        impact_applied=co.impact_applied,
        items=[ChangeOrderItemResponse.model_validate(i) for i in co.items],
        created_at=co.created_at.isoformat(),
    )


async def _get_change_order(co_id: uuid.UUID, db: AsyncSession) -> ChangeOrder:
    result = await db.execute(
        select(ChangeOrder).where(ChangeOrder.id == co_id, ChangeOrder.live())
    )
    co = result.scalar_one_or_none()
    if not co:
        raise NotFoundError("Change order", str(co_id))
    return co


async def _get_parent(entity_type: str, entity_id: uuid.UUID, db: AsyncSession) -> Project | WorkOrder:
    if entity_type == ChangeOrderEntityType.PROJECT.value:
        model, label = Project, "Project"
    else:
        model, label = WorkOrder, "Work order"
    result = await db.execute(
        select(model).where(model.id == entity_id, model.live())
    )
    parent = result.scalar_one_or_none()
    if not parent:
        raise NotFoundError(label, str(entity_id))
    return parent
