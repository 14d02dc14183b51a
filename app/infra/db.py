"""
Database infrastructure configuration

SQLAlchemy async engine and session management.
"""

from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def build_engine(url: str = settings.database_url) -> AsyncEngine:
    """Pooled engine for server databases; SQLite keeps the dialect default pool"""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.db_echo)
    return create_async_engine(
        url,
        echo=settings.db_echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        poolclass=AsyncAdaptedQueuePool,
        pool_pre_ping=True,  # Automatically detect and disconnect invalid connections
    )


engine = build_engine()

# Also handed to the realtime gateway, which opens one session per socket event
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database session.
    Yields a session and closes it after use.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_tables() -> None:
    """Create missing tables; used for local development and SQLite runs"""
    from app.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_database(session: AsyncSession) -> bool:
    try:
        await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def close_db_connection():
    """Close database connection pool"""
    await engine.dispose()
