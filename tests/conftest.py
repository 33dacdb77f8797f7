"""
Shared test fixtures and configuration for entire test suite.

Provides: In-memory database, change feed, callers, S3 stub
Dependencies: pytest, sqlalchemy, aiosqlite
System role: Test infrastructure and fixture management
"""

from unittest.mock import MagicMock

import pytest

from livedesk.boundary.realtime.change_feed import ChangeFeed
from livedesk.core.session import SessionRole
from livedesk.models.user import CurrentUser


@pytest.fixture
async def test_async_db():
    """
    Create in-memory SQLite async database for testing.

    Yields:
        AsyncSession: Test database session with cleanup (lazy imported to avoid settings issues)
    """
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from sqlalchemy.pool import StaticPool

    from livedesk.boundary.db import models  # noqa: F401
    from livedesk.boundary.db.base import Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def feed() -> ChangeFeed:
    """Fresh change feed per test."""
    return ChangeFeed(max_queue_size=64)


@pytest.fixture
def student() -> CurrentUser:
    return CurrentUser(id="student-1", role=SessionRole.STUDENT)


@pytest.fixture
def other_student() -> CurrentUser:
    return CurrentUser(id="student-2", role=SessionRole.STUDENT)


@pytest.fixture
def admin() -> CurrentUser:
    return CurrentUser(id="admin-1", role=SessionRole.ADMIN)


@pytest.fixture
def other_admin() -> CurrentUser:
    return CurrentUser(id="admin-2", role=SessionRole.ADMIN)


@pytest.fixture
def mock_boto_s3() -> MagicMock:
    """
    Stub boto3 S3 client.

    Returns:
        MagicMock: put_object succeeds, presigned URLs are deterministic
    """
    client = MagicMock()
    client.put_object = MagicMock(return_value={})
    client.generate_presigned_url = MagicMock(
        side_effect=lambda ClientMethod, Params, ExpiresIn: (
            f"https://signed.example/{Params['Key']}?expires={ExpiresIn}"
        )
    )
    return client
