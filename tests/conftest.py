"""Pytest configuration and fixtures for OnSchedule tests."""

from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from onschedule.main import app
from onschedule.models.base import Base
# Import all models to ensure they're registered with Base.metadata
from onschedule.models import (
    Asset,
    Client,
    EmailTemplate,
    Employee,
    SMSTemplate,
)
from onschedule.core.deps import get_db
from onschedule.services.inspection_service import InspectionService
from onschedule.services.job_scheduler import JobScheduler
from onschedule.services.notification_service import NotificationService

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine with shared connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine, as the services receive it."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def http_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database override."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================
# Scheduling core
# ===========================

@pytest_asyncio.fixture
async def scheduler() -> AsyncGenerator[JobScheduler, None]:
    """Job scheduler, shut down after the test so no timers leak."""
    job_scheduler = JobScheduler()
    yield job_scheduler
    await job_scheduler.shutdown()


@pytest.fixture
def mock_dispatcher() -> MagicMock:
    """Dispatcher stand-in whose sends are recorded, not performed."""
    dispatcher = MagicMock(spec=NotificationService)
    dispatcher.dispatch = AsyncMock(return_value=None)
    return dispatcher


@pytest.fixture
def binder(session_factory, scheduler, mock_dispatcher) -> InspectionService:
    return InspectionService(session_factory, scheduler, mock_dispatcher)


# ===========================
# Directory records
# ===========================

@pytest_asyncio.fixture
async def test_client_org(db_session: AsyncSession) -> Client:
    """Create a test client company."""
    client = Client(
        id=uuid.uuid4(),
        company="Northwind Lifting",
        name="Dana Reyes",
        email="ops@northwind.example",
        phone="+15145550100",
    )
    db_session.add(client)
    await db_session.commit()
    await db_session.refresh(client)
    return client


@pytest_asyncio.fixture
async def test_asset(db_session: AsyncSession, test_client_org: Client) -> Asset:
    """Create a test asset owned by the test client."""
    asset = Asset(
        id=uuid.uuid4(),
        client_id=test_client_org.id,
        name="Overhead Crane 3",
        serial_no="OC-3-2291",
        location="Bay 4, Plant 2",
    )
    db_session.add(asset)
    await db_session.commit()
    await db_session.refresh(asset)
    return asset


@pytest_asyncio.fixture
async def test_inspectors(db_session: AsyncSession) -> list[Employee]:
    """Create two inspectors with email and phone."""
    employees = [
        Employee(
            id=uuid.uuid4(),
            first_name="Sam",
            last_name="Okafor",
            email="sam.okafor@onschedule.example",
            phone="514-555-0111",
        ),
        Employee(
            id=uuid.uuid4(),
            first_name="Lee",
            last_name="Tremblay",
            email="lee.tremblay@onschedule.example",
            phone="(514) 555-0122",
        ),
    ]
    db_session.add_all(employees)
    await db_session.commit()
    return employees


@pytest_asyncio.fixture
async def test_email_template(db_session: AsyncSession) -> EmailTemplate:
    template = EmailTemplate(
        id=uuid.uuid4(),
        name="Standard reminder",
        subject="Inspection Reminder - {{companyName}}",
        provider_template_id="d-1234567890abcdef",
    )
    db_session.add(template)
    await db_session.commit()
    await db_session.refresh(template)
    return template


@pytest_asyncio.fixture
async def test_sms_template(db_session: AsyncSession) -> SMSTemplate:
    template = SMSTemplate(
        id=uuid.uuid4(),
        name="Standard SMS reminder",
        body="Inspection on {{inspectionDate}}",
    )
    db_session.add(template)
    await db_session.commit()
    await db_session.refresh(template)
    return template
