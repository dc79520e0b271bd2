import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from .config import settings

logger = logging.getLogger(__name__)

# Schema is owned by the alembic migrations; the engine only exists when DATABASE_URL is set
engine: Optional[object] = None
if settings.database_url:
    engine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_recycle=300,
    )

AsyncSessionLocal: Optional[async_sessionmaker] = None
if engine:
    AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; anything left uncommitted by a failed request is rolled back"""
    if not AsyncSessionLocal:
        raise RuntimeError("Metering database not configured. Set DATABASE_URL to the PostgreSQL connection string.")
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            logger.warning("Rolling back metering session after request failure")
            await session.rollback()
            raise
