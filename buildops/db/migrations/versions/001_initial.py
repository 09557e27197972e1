"""Initial schema - projects, work orders, change orders and derived budget items

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _common_columns() -> list[sa.Column]:
    return [
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # Projects
    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("site_address", sa.String(500), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("total_budget", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("contract_value", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("start_date", sa.Date, nullable=True),
        sa.Column("target_end_date", sa.Date, nullable=True),
        *_common_columns(),
    )

    # Work orders
    op.create_table(
        "work_orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("scheduled_date", sa.Date, nullable=True),
        sa.Column("due_by_date", sa.Date, nullable=True),
        *_common_columns(),
    )

    # Change orders
    op.create_table(
        "change_orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("entity_type", sa.String(20), nullable=False, index=True),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("reason", sa.String(50), nullable=True),
        sa.Column("requested_by", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("cost_impact", sa.Numeric(14, 2), server_default="0"),
        sa.Column("revenue_impact", sa.Numeric(14, 2), server_default="0"),
        sa.Column("impact_days", sa.Integer, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(14, 2), server_default="0"),
        sa.Column("approval_notes", sa.Text, nullable=True),
        sa.Column("status_history", postgresql.JSONB, nullable=True),
        sa.Column("impact_applied", sa.Boolean, nullable=False, server_default=sa.text("false")),
        *_common_columns(),
    )

    op.create_table(
        "change_order_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "change_order_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("change_orders.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("item_type", sa.String(50), nullable=True),
        sa.Column("quantity", sa.Numeric(12, 2), server_default="1"),
        sa.Column("unit_price", sa.Numeric(14, 2), server_default="0"),
        sa.Column("total_price", sa.Numeric(14, 2), server_default="0"),
        sa.Column("impact_days", sa.Integer, server_default=sa.text("0")),
        sa.Column("order_index", sa.Integer, server_default=sa.text("0")),
        *_common_columns(),
    )

    # Budget lines, including those derived from change orders
    op.create_table(
        "project_budget_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("projects.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("category", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("estimated_amount", sa.Numeric(14, 2), server_default="0"),
        sa.Column("actual_amount", sa.Numeric(14, 2), server_default="0"),
        sa.Column("is_contingency", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column(
            "change_order_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("change_orders.id"),
            nullable=True,
            index=True,
        ),
        *_common_columns(),
    )

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False, server_default="info"),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("entity_type", sa.String(20), nullable=True),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("is_read", sa.Boolean, server_default=sa.text("false")),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        *_common_columns(),
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("project_budget_items")
    op.drop_table("change_order_items")
    op.drop_table("change_orders")
    op.drop_table("work_orders")
    op.drop_table("projects")
