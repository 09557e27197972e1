from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class ChangeOrderItemCreate(BaseModel):
    description: str
    item_type: str | None = None  # labor, material, equipment, subcontract
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    total_price: Decimal | None = None
    impact_days: int = Field(default=0, ge=0)


class TransitionResult(BaseModel):
    previous_status: str
    status: str
    impact_action: str | None = None  # "applied", "reverted"
    impact_succeeded: bool = True


class ImpactTimelineEntry(BaseModel):
    change_order_id: str
    title: str
    created_at: str
    cost_impact: Decimal
    revenue_impact: Decimal
    impact_days: int
    cumulative_cost: Decimal
    cumulative_revenue: Decimal
    cumulative_days: int
    budget_with_changes: Decimal


class ChangeOrderImpactSummary(BaseModel):
    project_id: str
    change_order_count: int
    total_cost_impact: Decimal
    total_revenue_impact: Decimal
    total_impact_days: int
    current_budget: Decimal
    current_contract_value: Decimal
    original_budget: Decimal
    original_contract_value: Decimal
    original_gross_profit: Decimal
    current_gross_profit: Decimal
    target_end_date: date | None
    timeline: list[ImpactTimelineEntry]
