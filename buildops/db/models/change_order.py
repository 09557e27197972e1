import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildops.common.enums import ChangeOrderStatus
from buildops.db.base import BaseModel


class ChangeOrder(BaseModel):
    __tablename__ = "change_orders"

    # PROJECT or WORK_ORDER; entity_id points into the matching table
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    requested_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChangeOrderStatus.DRAFT.value
    )
    cost_impact: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    revenue_impact: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    impact_days: Mapped[int] = mapped_column(default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status_history: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=list)
    # Set while the deltas are folded into the parent; cleared on revert
    impact_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    items = relationship(
        "ChangeOrderItem",
        back_populates="change_order",
        lazy="selectin",
        order_by="ChangeOrderItem.order_index",
        cascade="all, delete-orphan",
    )


class ChangeOrderItem(BaseModel):
    __tablename__ = "change_order_items"

    change_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("change_orders.id"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    item_type: Mapped[str | None] = mapped_column(String(50), nullable=True)  # labor, material, equipment, subcontract
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("1.00"))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    impact_days: Mapped[int] = mapped_column(default=0)
    order_index: Mapped[int] = mapped_column(default=0)

    # Relationships
    change_order = relationship("ChangeOrder", back_populates="items")
