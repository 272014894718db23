"""
Pytest configuration and shared fixtures.
"""

import os
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from jobqueue.db.connection import create_session_factory, get_test_engine
from jobqueue.db.memory import InMemoryJobStore
from jobqueue.db.models import Base

# Point at PostgreSQL to run the integration tests there, otherwise each test
# gets its own SQLite file
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

# 09:30 on a Friday, a fixed instant for clock-sensitive tests
FIXED_NOW = datetime(2024, 5, 17, 9, 30, 0)


@pytest.fixture
def database_url(tmp_path) -> str:
    """Get the test database URL."""
    return TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}"


@pytest_asyncio.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async database engine with a fresh schema."""
    engine = get_test_engine(database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(async_engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create a database session for tests."""
    async with session_factory() as session:
        yield session

        # Rollback any uncommitted changes
        await session.rollback()


@pytest.fixture
def fixed_now() -> datetime:
    """The instant the in-memory store's clock is frozen at."""
    return FIXED_NOW


@pytest.fixture
def memory_store(fixed_now: datetime) -> InMemoryJobStore:
    """In-memory job store with a frozen clock."""
    return InMemoryJobStore(clock=lambda: fixed_now)
