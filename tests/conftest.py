import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

# Settings are read at import time, so defaults must exist before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./physiobook_dev.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_FORMAT", "console")

# Combine all metadata
from sqlalchemy import MetaData, insert

from physiobook.config import settings
from physiobook.core.events import EventBus, get_event_bus
from physiobook.core.security import create_access_token
from physiobook.core.telegram import TelegramClient
from physiobook.database import get_db
from physiobook.main import app
from physiobook.models.appointments import metadata as appointments_metadata
from physiobook.models.notifications import metadata as notifications_metadata
from physiobook.models.profiles import metadata as profiles_metadata
from physiobook.models.profiles import profiles
from physiobook.services.notification_service import NotificationListener

metadata = MetaData()
for table in profiles_metadata.tables.values():
    table.to_metadata(metadata)
for table in appointments_metadata.tables.values():
    table.to_metadata(metadata)
for table in notifications_metadata.tables.values():
    table.to_metadata(metadata)

# Test database URL - MUST be different from the application database
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_physiobook.db")

if settings.database_url == TEST_DATABASE_URL:
    raise pytest.UsageError(
        "TEST_DATABASE_URL is the application database; tests would drop its tables"
    )

if TEST_DATABASE_URL.startswith("postgresql://"):
    TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

# Use NullPool to avoid event loop issues between tests
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on freshly created tables."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def telegram_client() -> TelegramClient:
    """Telegram client without credentials; delivery is skipped."""
    return TelegramClient(bot_token="", chat_id="")


@pytest.fixture
def events(telegram_client: TelegramClient) -> EventBus:
    """Event bus wired to the notification listener on the test database."""
    bus = EventBus()
    bus.subscribe(NotificationListener(TestSessionLocal, telegram=telegram_client))
    return bus


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, events: EventBus) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_bus] = lambda: events

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def future_slot(days: int = 2) -> datetime:
    """A start time comfortably inside the booking window."""
    return (datetime.now(UTC) + timedelta(days=days)).replace(microsecond=0)


@pytest.fixture
def sample_appointment_data() -> dict:
    """Sample appointment data for testing."""
    return {
        "service_type": "Physical Therapy",
        "scheduled_at": future_slot().isoformat(),
        "notes": "Lower back pain after running",
    }


async def _create_profile(db_session: AsyncSession, **values) -> dict:
    from uuid import uuid4

    profile = {"id": uuid4(), "role": "patient", **values}
    await db_session.execute(insert(profiles).values(**profile))
    await db_session.commit()
    return profile


def _headers_for(profile: dict) -> dict:
    token = create_access_token(
        data={"sub": str(profile["id"]), "email": profile.get("email")},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> dict:
    """Create a patient profile in the database."""
    return await _create_profile(
        db_session,
        first_name="Ana",
        last_name="Silva",
        email="ana@example.com",
        sex="female",
        age=34,
        phone_number="+351912345678",
        clinical_notes="Previous ACL surgery",
        role="patient",
    )


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> dict:
    """Create a second patient profile."""
    return await _create_profile(
        db_session,
        first_name="Rui",
        last_name="Costa",
        email="rui@example.com",
        role="patient",
    )


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession) -> dict:
    """Create a clinic staff profile."""
    return await _create_profile(
        db_session,
        first_name="Marta",
        last_name="Reis",
        email="reception@physioclinic.example",
        role="staff",
    )


@pytest.fixture
def auth_headers(test_user: dict) -> dict:
    """Authentication headers for the test patient."""
    return _headers_for(test_user)


@pytest.fixture
def other_headers(other_user: dict) -> dict:
    """Authentication headers for the second patient."""
    return _headers_for(other_user)


@pytest.fixture
def staff_headers(staff_user: dict) -> dict:
    """Authentication headers for the staff member."""
    return _headers_for(staff_user)
