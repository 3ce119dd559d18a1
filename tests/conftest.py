"""
tests/conftest.py

Test fixtures for API integration and unit tests.
Includes async clients, fake users, a temporary SQLite database with seeded
marketplace data, and dependency overrides.
"""
import os
import sys
import tempfile
from pathlib import Path

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Settings are read at import time; configure them before the app is imported.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="craftconnect-logs-"))
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# --- Imports ---
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from main import app
from app.applications.models import JobApplication
from app.core.dependencies import get_current_user
from app.core.tokens import create_access_token
from app.database.base import Base
from app.database.enums import ApplicationStatus, JobStatus, JobUrgency, UserRole
from app.database.models import User
from app.database.session import get_db, get_session_factory
from app.jobs.models import Job
from app.messaging.realtime import RealtimeBridge


# --- Core Test Fixtures ---


@pytest.fixture(scope="session")
def transport() -> ASGITransport:
    """Fixture for ASGI transport."""
    return ASGITransport(app=app)


@pytest_asyncio.fixture(scope="function")
async def async_client(transport: ASGITransport) -> AsyncGenerator[AsyncClient, None]:
    """Fixture for HTTP async client."""
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def bridge() -> RealtimeBridge:
    """A fresh in-process realtime bridge (no Redis relay)."""
    return RealtimeBridge()


def auth_headers(user: User) -> dict[str, str]:
    """Authorization header carrying a valid access token for the user."""
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


# --- Fake User Fixtures (not persisted) ---


def _fake_user(role: UserRole, first_name: str, last_name: str, **extra: object) -> User:
    return User(
        id=uuid4(),
        email=f"{first_name.lower()}.{last_name.lower()}@example.com",
        role=role,
        first_name=first_name,
        last_name=last_name,
        categories=[],
        profile_completed=False,
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
        **extra,
    )


@pytest.fixture
def fake_customer_user() -> User:
    """Fixture for a fake customer user."""
    return _fake_user(UserRole.CUSTOMER, "Clara", "Kunde")


@pytest.fixture
def fake_craftsman_user() -> User:
    """Fixture for a fake craftsman user."""
    return _fake_user(UserRole.CRAFTSMAN, "Hans", "Werker", company_name="Werker Elektro GmbH")


# --- Dependency Override Fixtures ---


@pytest_asyncio.fixture
async def override_get_db() -> AsyncGenerator[None, None]:
    """Override for the database dependency."""

    async def _override() -> AsyncGenerator[AsyncMock, None]:
        yield AsyncMock()

    app.dependency_overrides[get_db] = _override
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def mock_current_customer_user(fake_customer_user: User) -> AsyncGenerator[User, None]:
    """Mock the current user as a customer."""
    app.dependency_overrides[get_current_user] = lambda: fake_customer_user
    yield fake_customer_user
    app.dependency_overrides.pop(get_current_user, None)


@pytest_asyncio.fixture
async def mock_current_craftsman_user(fake_craftsman_user: User) -> AsyncGenerator[User, None]:
    """Mock the current user as a craftsman."""
    app.dependency_overrides[get_current_user] = lambda: fake_craftsman_user
    yield fake_craftsman_user
    app.dependency_overrides.pop(get_current_user, None)


# --- Database Fixtures ---


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory bound to a fresh SQLite database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def use_test_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[None, None]:
    """Route the app's database dependencies to the test database."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_session_factory, None)


# --- Seeded Marketplace Data ---


async def create_user(
    session: AsyncSession,
    role: UserRole,
    first_name: str,
    last_name: str,
    **extra: object,
) -> User:
    user = User(
        email=f"{first_name.lower()}.{last_name.lower()}.{uuid4().hex[:6]}@example.com",
        role=role,
        first_name=first_name,
        last_name=last_name,
        **extra,
    )
    session.add(user)
    await session.commit()
    return user


async def create_job(
    session: AsyncSession,
    customer: User,
    title: str = "Küche renovieren",
    category: str = "Bau",
    status: JobStatus = JobStatus.OPEN,
    urgency: JobUrgency = JobUrgency.MEDIUM,
    description: str | None = None,
) -> Job:
    job = Job(
        customer_id=customer.id,
        title=title,
        description=description
        or "Die komplette Küche soll renoviert werden, inklusive Fliesen und Elektrik.",
        category=category,
        location={"street": "Hauptstraße 1", "postal_code": "10115", "city": "Berlin"},
        budget_min=Decimal("1000"),
        budget_max=Decimal("5000"),
        urgency=urgency,
        status=status,
    )
    session.add(job)
    await session.commit()
    return job


async def create_application(
    session: AsyncSession,
    job: Job,
    craftsman: User,
    status: ApplicationStatus = ApplicationStatus.PENDING,
    **extra: object,
) -> JobApplication:
    application = JobApplication(
        job_id=job.id,
        craftsman_id=craftsman.id,
        message="Ich übernehme den Auftrag gerne.",
        status=status,
        **extra,
    )
    session.add(application)
    await session.commit()
    return application


@dataclass
class Marketplace:
    customer: User
    craftsman: User
    other_craftsman: User
    outsider: User
    job: Job


@pytest_asyncio.fixture
async def marketplace(db_session: AsyncSession) -> Marketplace:
    """
    Customer C posts "Küche renovieren"; craftsmen H and H2 apply;
    craftsman O has no application on it.
    """
    customer = await create_user(db_session, UserRole.CUSTOMER, "Clara", "Kunde")
    craftsman = await create_user(
        db_session, UserRole.CRAFTSMAN, "Hans", "Werker", company_name="Werker Bau GmbH"
    )
    other_craftsman = await create_user(db_session, UserRole.CRAFTSMAN, "Helga", "Maler")
    outsider = await create_user(db_session, UserRole.CRAFTSMAN, "Otto", "Fremd")
    job = await create_job(db_session, customer)
    await create_application(db_session, job, craftsman)
    await create_application(db_session, job, other_craftsman)
    return Marketplace(customer, craftsman, other_craftsman, outsider, job)
