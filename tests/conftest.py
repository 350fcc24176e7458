import os
from collections.abc import AsyncGenerator, Callable
from datetime import date, datetime, timedelta
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables from .env file, then fill in what tests need
load_dotenv()
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./cabinet_scheduler.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_FORMAT", "console")

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from cabinet_scheduler.core.locks import ActorLockRegistry
from cabinet_scheduler.core.redis_client import CacheManager
from cabinet_scheduler.core.security import create_access_token
from cabinet_scheduler.database import get_db
from cabinet_scheduler.dependencies import get_cache_manager, get_clock
from cabinet_scheduler.main import app
from cabinet_scheduler.models import metadata
from cabinet_scheduler.services.appointment_service import AppointmentService

# Friday; the scenario day below is the following Wednesday
FIXED_NOW = datetime(2024, 12, 20, 8, 0)
SCENARIO_DAY = date(2024, 12, 25)

DOCTOR_ID = 456
PATIENT_ID = 123
OTHER_PATIENT_ID = 789


def at(hour: int, minute: int = 0, day: date = SCENARIO_DAY) -> datetime:
    """Clinic time on the scenario day."""
    return datetime(day.year, day.month, day.day, hour, minute)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite database file private to one test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'scheduler.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def lock_registry() -> ActorLockRegistry:
    return ActorLockRegistry()


@pytest.fixture
def make_service(
    lock_registry: ActorLockRegistry,
) -> Callable[..., AppointmentService]:
    """Build appointment services sharing one lock registry and a fixed clock."""

    def factory(session: AsyncSession, **kwargs) -> AppointmentService:
        kwargs.setdefault("clock", fixed_clock)
        kwargs.setdefault("locks", lock_registry)
        return AppointmentService(session, **kwargs)

    return factory


@pytest.fixture
def service(db_session: AsyncSession, make_service) -> AppointmentService:
    return make_service(db_session)


@pytest.fixture
def mock_redis() -> MagicMock:
    redis_client = MagicMock()
    redis_client.get.return_value = None
    return redis_client


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    app.dependency_overrides[get_cache_manager] = lambda: CacheManager(mock_redis)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth_headers(user_id: int, role: str) -> dict:
    """Bearer header for a caller."""
    token = create_access_token(
        data={"sub": str(user_id), "role": role},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient_headers() -> dict:
    return auth_headers(PATIENT_ID, "patient")


@pytest.fixture
def doctor_headers() -> dict:
    return auth_headers(DOCTOR_ID, "doctor")


@pytest.fixture
def assistant_headers() -> dict:
    return auth_headers(1, "assistant")
