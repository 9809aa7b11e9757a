"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. Mocks all external services.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB

from slotwise.database import Base
import slotwise.models  # noqa: F401  (register all tables)
from slotwise.models.service import Service
from slotwise.models.user import User
from slotwise.services.notifier import Notifier


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def db():
    """In-memory SQLite database for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def sent_notifications():
    """Sender stand-in for SendGrid; records every delivered Notification."""
    return AsyncMock(return_value={"message_id": "msg_test", "status": "sent", "error": None})


@pytest.fixture(autouse=True)
def notifier(sent_notifications):
    """Fresh process-wide notifier per test, never talking to SendGrid."""
    test_notifier = Notifier(maxsize=100, sender=sent_notifications)
    with patch("slotwise.services.notifier._notifier", test_notifier):
        yield test_notifier


@pytest.fixture
def mock_redis():
    """Mock for async Redis - prevents real Redis calls in tests."""
    with patch("slotwise.utils.redis_client.get_redis", new_callable=AsyncMock) as mock:
        redis_mock = AsyncMock()
        redis_mock.set = AsyncMock(return_value=True)
        redis_mock.get = AsyncMock(return_value=None)
        redis_mock.ping = AsyncMock(return_value=True)
        mock.return_value = redis_mock
        yield redis_mock


@pytest.fixture
async def customer(db):
    user = User(
        id=uuid.uuid4(), name="Regular User", email="user@example.com",
        phone="555-123-4567", role="user",
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def business(db):
    user = User(
        id=uuid.uuid4(), name="Hair & Style Salon", email="salon@example.com",
        phone="555-987-6543", role="business", is_demo=False,
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def service(db, business):
    """30-minute service, matching the slot grid."""
    svc = Service(
        id=uuid.uuid4(), business_id=business.id, name="Haircut",
        description="Professional haircut", duration=30, price=35.0, active=True,
    )
    db.add(svc)
    await db.commit()
    return svc
