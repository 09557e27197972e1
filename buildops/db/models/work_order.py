from datetime import date

from sqlalchemy import Date, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from buildops.common.enums import WorkOrderStatus
from buildops.db.base import BaseModel


class WorkOrder(BaseModel):
    __tablename__ = "work_orders"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[WorkOrderStatus] = mapped_column(
        String(20), nullable=False, default=WorkOrderStatus.NEW
    )
    scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_by_date: Mapped[date | None] = mapped_column(Date, nullable=True)
