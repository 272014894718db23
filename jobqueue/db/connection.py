"""
Database connection management.
Handles async SQLAlchemy engine and session creation.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from jobqueue.config import get_settings

logger = logging.getLogger(__name__)

# Global engine instance
_engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Get or create the async database engine.

    Returns:
        AsyncEngine: The SQLAlchemy async engine instance.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        options: dict[str, Any] = {
            "echo": settings.log_level == "DEBUG",
            "pool_pre_ping": True,
        }
        if not settings.database_url.startswith("sqlite"):
            options["pool_size"] = settings.database_pool_size
            options["max_overflow"] = settings.database_max_overflow
        _engine = create_async_engine(settings.database_url, **options)
    return _engine


def get_test_engine(database_url: str) -> AsyncEngine:
    """
    Create a test database engine with NullPool.

    Args:
        database_url: The database URL for testing.

    Returns:
        AsyncEngine: The test SQLAlchemy async engine instance.
    """
    return create_async_engine(
        database_url,
        poolclass=NullPool,
        echo=False,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory used by workers for the given engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db() -> None:
    """
    Initialize the database connection and session factory.
    Should be called on process startup, and again in a forked child.
    """
    global AsyncSessionLocal
    AsyncSessionLocal = create_session_factory(get_engine())
    logger.info("Database connection initialized")


async def close_db() -> None:
    """
    Close the database connection.
    Should be called on shutdown, and in a parent before it forks.
    """
    global _engine, AsyncSessionLocal
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        AsyncSessionLocal = None
        logger.info("Database connection closed")


@asynccontextmanager
async def get_session_context(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession]:
    """
    Context manager for getting async database sessions.

    Args:
        session_factory: Factory to use instead of the global one.

    Yields:
        AsyncSession: An async database session, committed on success and
        rolled back on error.
    """
    factory = session_factory or AsyncSessionLocal
    if factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
