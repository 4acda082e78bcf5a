from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from helpdesk_sla.config import Settings
from helpdesk_sla.infrastructure.database import Base, enable_sqlite_savepoints, get_session
from helpdesk_sla.sla.domain import TicketSnapshot
from helpdesk_sla.sla.infrastructure import models  # noqa: F401
from helpdesk_sla.sla.infrastructure import sla_services_for_session

TENANT = "tenant-1"
OTHER_TENANT = "tenant-2"
CREATED_AT = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)  # a Monday

ADMIN_HEADERS = {"X-User-ID": "user-1", "X-Tenant-ID": TENANT, "X-User-Role": "tenant_admin"}
AGENT_HEADERS = {"X-User-ID": "user-2", "X-Tenant-ID": TENANT, "X-User-Role": "agent"}


@pytest.fixture
def settings():
    return Settings(environment="test", sla_default_timezone="UTC")


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def services(session, settings):
    return sla_services_for_session(session, settings)


@pytest.fixture
def ticket():
    def make(ticket_id="TICKET-001", priority="high", category_id=None,
             created_at=CREATED_AT, tenant_id=TENANT):
        return TicketSnapshot(
            id=ticket_id,
            tenant_id=tenant_id,
            priority=priority,
            created_at=created_at,
            category_id=category_id,
        )
    return make


@pytest.fixture
async def high_config(services):
    """Tenant-wide fallback for high priority: 60 min response, 480 min resolution."""
    return await services.configs.create(
        tenant_id=TENANT,
        priority="high",
        first_response_minutes=60,
        resolution_minutes=480,
        user_id="user-1",
    )


@pytest.fixture
async def client(session_maker):
    """API client with the session dependency bound to the test database."""
    from helpdesk_sla.main import app

    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()
