import uuid
from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from buildops.api.deps import get_db
from buildops.common.enums import WorkOrderStatus
from buildops.common.exceptions import NotFoundError
from buildops.db.models.work_order import WorkOrder

router = APIRouter(prefix="/work-orders", tags=["Work Orders"])


# ---------- Schemas ----------


class WorkOrderCreateRequest(BaseModel):
    title: str
    description: str | None = None
    scheduled_date: date | None = None
    due_by_date: date | None = None


class WorkOrderResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None
    status: str
    scheduled_date: date | None
    due_by_date: date | None
    created_at: str

    model_config = {"from_attributes": True}


# ---------- Endpoints ----------


@router.post("", response_model=WorkOrderResponse, status_code=201)
async def create_work_order(
    body: WorkOrderCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    work_order = WorkOrder(
        title=body.title,
        description=body.description,
        scheduled_date=body.scheduled_date,
        due_by_date=body.due_by_date,
        status=WorkOrderStatus.NEW.value,
    )
    db.add(work_order)
    await db.flush()
    await db.refresh(work_order)
    return _wo_response(work_order)


@router.get("/{work_order_id}", response_model=WorkOrderResponse)
async def get_work_order(
    work_order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(WorkOrder)
        .where(WorkOrder.id == work_order_id, WorkOrder.live())
        .execution_options(populate_existing=True)
    )
    work_order = result.scalar_one_or_none()
    if not work_order:
        raise NotFoundError("Work order", str(work_order_id))
    return _wo_response(work_order)


def _wo_response(work_order: WorkOrder) -> WorkOrderResponse:
    return WorkOrderResponse(
        id=work_order.id,
        title=work_order.title,
        description=work_order.description,
        status=work_order.status,
        scheduled_date=work_order.scheduled_date,
        due_by_date=work_order.due_by_date,
        created_at=work_order.created_at.isoformat(),
    )
