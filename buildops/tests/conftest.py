import uuid
from collections.abc import AsyncGenerator
from datetime import date
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import JSON, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from buildops.common.enums import ChangeOrderEntityType, ChangeOrderStatus
from buildops.core.change_orders.workflow import recalculate_totals
from buildops.db.base import Base
from buildops.db.models import *  # noqa: F401,F403 - ensure all models loaded
from buildops.db.models import ChangeOrder, ChangeOrderItem, Project, WorkOrder

# Use SQLite for testing - remap JSONB to JSON
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"


# Make JSONB render as JSON for SQLite
@event.listens_for(Base.metadata, "before_create")
def _remap_jsonb(target, connection, **kw):
    if connection.dialect.name == "sqlite":
        for table in target.tables.values():
            for column in table.columns:
                if isinstance(column.type, JSONB):
                    column.type = JSON()


@pytest.fixture(scope="session")
async def test_engine():
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    # SQLite driver transaction handling breaks SAVEPOINTs; issue BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session):
    from buildops.api.deps import get_db
    from buildops.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_project(db_session):
    async def _make(
        total_budget="100000.00",
        contract_value="150000.00",
        target_end_date: date | None = date(2026, 3, 1),
        name="Test Project",
    ) -> Project:
        project = Project(
            name=name,
            total_budget=Decimal(total_budget),
            contract_value=Decimal(contract_value),
            target_end_date=target_end_date,
        )
        db_session.add(project)
        await db_session.flush()
        await db_session.refresh(project)
        return project

    return _make


@pytest.fixture
def make_work_order(db_session):
    async def _make(due_by_date: date | None = date(2026, 5, 10)) -> WorkOrder:
        work_order = WorkOrder(title="Test Work Order", due_by_date=due_by_date)
        db_session.add(work_order)
        await db_session.flush()
        await db_session.refresh(work_order)
        return work_order

    return _make


@pytest.fixture
def make_change_order(db_session):
    """Build a change order; ``items`` is a list of (description, total_price) pairs."""

    async def _make(
        entity_id: uuid.UUID,
        entity_type: str = ChangeOrderEntityType.PROJECT.value,
        status: str = ChangeOrderStatus.APPROVED.value,
        cost_impact="0.00",
        revenue_impact="0.00",
        impact_days: int = 0,
        items: list[tuple[str, str]] | None = None,
        title: str = "Add kitchen island",
    ) -> ChangeOrder:
        co = ChangeOrder(
            entity_type=entity_type,
            entity_id=entity_id,
            title=title,
            status=status,
            cost_impact=Decimal(cost_impact),
            revenue_impact=Decimal(revenue_impact),
            impact_days=impact_days,
            status_history=[],
            items=[
                ChangeOrderItem(
                    description=description,
                    item_type="material",
                    quantity=Decimal("1"),
                    unit_price=Decimal(price),
                    total_price=Decimal(price),
                    order_index=index,
                )
                for index, (description, price) in enumerate(items or [])
            ],
        )
        recalculate_totals(co)
        db_session.add(co)
        await db_session.flush()
        await db_session.refresh(co)
        return co

    return _make
