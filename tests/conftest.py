"""
Pytest configuration for RenderLab metering tests.

Each test gets its own on-disk SQLite database so concurrent sessions really
contend for the same rows. Outbound email and Stripe API calls are replaced
with mocks; nothing here touches the network.
"""

import os

# Keep the app from picking up real credentials - must be set before any imports
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = ""
os.environ["SENDGRID_API_KEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_KEY"] = ""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from renderlab.models import Base
from renderlab.services.metering_service import MeteringService
from renderlab.services.subscription_service import SubscriptionService

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine(tmp_path):
    db_path = tmp_path / "metering.db"
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        connect_args={"timeout": 30},
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.send_usage_alert.return_value = True
    return mock


@pytest.fixture
def metering(notifier, clock):
    return MeteringService(notifier=notifier, clock=clock)


@pytest.fixture
def stripe_mock():
    """StripeService stand-in whose parse_event returns whatever the test queues"""
    return AsyncMock()


@pytest.fixture
def subscriptions(stripe_mock, clock):
    return SubscriptionService(stripe=stripe_mock, clock=clock)
