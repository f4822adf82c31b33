"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from datetime import time
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinicslots.api.deps import get_clock, get_notifier, get_rules_provider, get_schedule_cache
from clinicslots.booking.rules import BookingRules, BookingRulesProvider
from clinicslots.db.base import Base
from clinicslots.db.session import get_db
from clinicslots.main import app
from clinicslots.models.client import Client
from clinicslots.models.department import Department
from clinicslots.services.notifications import NotificationSender
from clinicslots.services.scheduling import SchedulingFacade
from tests.helpers import auth_headers, fixed_clock, permissive_rules

# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def department(async_session: AsyncSession) -> Department:
    """Weekday department with four slots: 08:00, 10:00, 12:00, 14:00."""
    department = Department(
        name="General Practice",
        slots_per_day=4,
        working_days=["monday", "tuesday", "wednesday", "thursday", "friday"],
        working_hours_start=time(8, 0),
        working_hours_end=time(16, 0),
        is_active=True,
    )
    async_session.add(department)
    await async_session.commit()
    await async_session.refresh(department)
    return department


@pytest.fixture
async def second_department(async_session: AsyncSession) -> Department:
    department = Department(
        name="Dental",
        slots_per_day=4,
        working_days=["monday", "tuesday", "wednesday", "thursday", "friday"],
        working_hours_start=time(8, 0),
        working_hours_end=time(16, 0),
        is_active=True,
    )
    async_session.add(department)
    await async_session.commit()
    await async_session.refresh(department)
    return department


@pytest.fixture
async def test_client_record(async_session: AsyncSession) -> Client:
    """Create a test client."""
    client = Client(
        name="Amina Yusuf",
        phone="+254700000001",
        x_number="X1001",
        is_active=True,
    )
    async_session.add(client)
    await async_session.commit()
    await async_session.refresh(client)
    return client


@pytest.fixture
async def other_client_record(async_session: AsyncSession) -> Client:
    client = Client(
        name="Brian Otieno",
        phone="+254700000002",
        x_number="X1002",
        is_active=True,
    )
    async_session.add(client)
    await async_session.commit()
    await async_session.refresh(client)
    return client


@pytest.fixture
def notifier() -> AsyncMock:
    sender = AsyncMock(spec=NotificationSender)
    sender.send.return_value = True
    return sender


@pytest.fixture
def facade(async_session: AsyncSession, notifier: AsyncMock) -> SchedulingFacade:
    """Scheduling facade with default rules and a fixed clock."""
    return SchedulingFacade(
        async_session,
        BookingRules(),
        notifier=notifier,
        clock=fixed_clock,
    )


@pytest.fixture
def permissive_facade(async_session: AsyncSession, notifier: AsyncMock) -> SchedulingFacade:
    return SchedulingFacade(
        async_session,
        permissive_rules(),
        notifier=notifier,
        clock=fixed_clock,
    )


@pytest.fixture
def rules_provider() -> BookingRulesProvider:
    return BookingRulesProvider()


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    rules_provider: BookingRulesProvider,
    notifier: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create API test client with overridden dependencies.

    Every request gets its own session on the shared test engine.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    app.dependency_overrides[get_rules_provider] = lambda: rules_provider
    app.dependency_overrides[get_schedule_cache] = lambda: None
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def staff_headers() -> dict[str, str]:
    return auth_headers("staff-0001", "staff")


@pytest.fixture
def client_headers(test_client_record: Client) -> dict[str, str]:
    return auth_headers(test_client_record.id, "client")
