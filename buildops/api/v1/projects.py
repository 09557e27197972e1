import uuid
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from buildops.api.deps import get_db
from buildops.common.enums import ProjectStatus
from buildops.common.exceptions import NotFoundError
from buildops.core.change_orders.schemas import ChangeOrderImpactSummary
from buildops.core.change_orders.summary import get_project_impact_summary
from buildops.db.models.budget_item import ProjectBudgetItem
from buildops.db.models.project import Project

router = APIRouter(prefix="/projects", tags=["Projects"])


# ---------- Schemas ----------


class ProjectCreateRequest(BaseModel):
    name: str
    customer_name: str | None = None
    site_address: str | None = None
    description: str | None = None
    total_budget: Decimal = Decimal("0.00")
    contract_value: Decimal = Decimal("0.00")
    start_date: date | None = None
    target_end_date: date | None = None


class ProjectResponse(BaseModel):
    id: uuid.UUID
    name: str
    customer_name: str | None
    site_address: str | None
    status: str
    total_budget: Decimal
    contract_value: Decimal
    start_date: date | None
    target_end_date: date | None
    created_at: str

    model_config = {"from_attributes": True}

    @classmethod
    def from_orm_instance(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            customer_name=project.customer_name,
            site_address=project.site_address,
            status=project.status,
            total_budget=project.total_budget,
            contract_value=project.contract_value,
            start_date=project.start_date,
            target_end_date=project.target_end_date,
            created_at=project.created_at.isoformat(),
        )


class BudgetItemResponse(BaseModel):
    id: uuid.UUID
    category: str
    description: str | None
    estimated_amount: Decimal
    actual_amount: Decimal
    is_contingency: bool
    change_order_id: uuid.UUID | None

    model_config = {"from_attributes": True}


class BudgetItemListResponse(BaseModel):
    items: list[BudgetItemResponse]
    total: int
    total_estimated: Decimal


# ---------- Endpoints ----------


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    body: ProjectCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    project = Project(
        name=body.name,
        customer_name=body.customer_name,
        site_address=body.site_address,
        description=body.description,
        total_budget=body.total_budget,
        contract_value=body.contract_value,
        start_date=body.start_date,
        target_end_date=body.target_end_date,
        status=ProjectStatus.ACTIVE.value,
    )
    db.add(project)
    await db.flush()
    await db.refresh(project)
    return ProjectResponse.from_orm_instance(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    project = await _get_project(project_id, db)
    return ProjectResponse.from_orm_instance(project)


@router.get("/{project_id}/budget-items", response_model=BudgetItemListResponse)
async def list_budget_items(
    project_id: uuid.UUID,
    change_order_id: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
):
    await _get_project(project_id, db)

    query = select(ProjectBudgetItem).where(
        ProjectBudgetItem.project_id == project_id,
        ProjectBudgetItem.live(),
    )
    if change_order_id:
        query = query.where(ProjectBudgetItem.change_order_id == change_order_id)
    result = await db.execute(query.order_by(ProjectBudgetItem.created_at.asc()))
    items = result.scalars().all()

    return BudgetItemListResponse(
        items=[BudgetItemResponse.model_validate(i) for i in items],
        total=len(items),
        total_estimated=sum((i.estimated_amount for i in items), Decimal("0.00")),
    )


@router.get("/{project_id}/change-order-impact", response_model=ChangeOrderImpactSummary)
async def get_change_order_impact(
    project_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    project = await _get_project(project_id, db)
    return await get_project_impact_summary(db, project)


async def _get_project(project_id: uuid.UUID, db: AsyncSession) -> Project:
    result = await db.execute(
        select(Project)
        .where(Project.id == project_id, Project.live())
        .execution_options(populate_existing=True)
    )
    project = result.scalar_one_or_none()
    if not project:
        raise NotFoundError("Project", str(project_id))
    return project
