"""Service test fixtures — async DB, wired BookmarkService and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use the test DB session factory
    - app.state notifier and clock swapped for recording/stepping doubles, restored after
    - The lock registry is fresh per test so no channel section leaks between tests

Design Decisions:
    - SQLite in-memory: fast, no external dependency; FOR UPDATE renders as nothing there,
      so cross-task serialization is covered by ChannelLockRegistry tests instead
    - db_manager patched: the readiness probe reads it directly
"""

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from channel_bookmarks.db.base import Base
from channel_bookmarks.infrastructure.database import get_db, DatabaseSessionManager
import channel_bookmarks.infrastructure.database as db_module
import channel_bookmarks.models  # noqa: F401  (registers tables on Base.metadata)
from channel_bookmarks.main import app
from channel_bookmarks.services.bookmark_events import InMemoryNotifier
from channel_bookmarks.services.bookmark_repository import SqlBookmarkRepository
from channel_bookmarks.services.bookmark_service import BookmarkService
from channel_bookmarks.services.channel_locks import ChannelLockRegistry
from tests.factories import StepClock


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    return InMemoryNotifier()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def locks():
    return ChannelLockRegistry(timeout_seconds=1.0)


@pytest.fixture
def repository(test_db):
    return SqlBookmarkRepository(test_db)


@pytest.fixture
def service(repository, locks, notifier, clock):
    return BookmarkService(repository, locks, notifier, clock)


@pytest.fixture
async def client(test_engine, test_session_factory, locks, notifier, clock):
    """FastAPI test client with DB dependency and app.state collaborators overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    originals = (
        app.state.channel_locks, app.state.bookmark_notifier, app.state.clock,
    )
    app.state.channel_locks = locks
    app.state.bookmark_notifier = notifier
    app.state.clock = clock

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
    (
        app.state.channel_locks, app.state.bookmark_notifier, app.state.clock,
    ) = originals
