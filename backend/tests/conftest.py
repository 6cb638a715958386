"""Shared test fixtures - uses async SQLite for isolated testing."""

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from postscore.core.locks import LocalUserLocks
from postscore.db.database import Base, get_db
from postscore.models import PublishEvent, User
from postscore.services.scoring_service import ScoringService

# In-memory SQLite for tests (no Docker needed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///file::memory:?cache=shared&uri=true"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


# Let SQLAlchemy emit BEGIN itself so SAVEPOINTs behave on SQLite
@event.listens_for(test_engine.sync_engine, "connect")
def _disable_driver_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(test_engine.sync_engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


# Monday 2 March 2026, 09:00 UTC - "day 1" in scenario tests
DAY_1 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


async def _override_get_db():
    async with test_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after."""
    # Import all models so Base.metadata knows about them
    import postscore.models  # noqa: F401

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db():
    """Direct async DB session for service-level tests."""
    async with test_session_factory() as session:
        yield session
        await session.commit()


@pytest.fixture
def scoring():
    """Scoring service with its own in-process lock registry."""
    return ScoringService(locks=LocalUserLocks(blocking_timeout=5))


@pytest.fixture
def make_user(db):
    async def _make_user(username: str = "alice") -> User:
        user = User(username=username)
        db.add(user)
        await db.flush()
        return user

    return _make_user


@pytest.fixture
def publish(db):
    """Record a publish event the way the posting subsystem would."""
    async def _publish(user_id: int, post_id: int, published_at: datetime = DAY_1) -> PublishEvent:
        publish_event = PublishEvent(user_id=user_id, post_id=post_id, published_at=published_at)
        db.add(publish_event)
        await db.flush()
        return publish_event

    return _publish


@pytest.fixture
async def client():
    """Async HTTP test client with test DB override."""
    from postscore.main import app

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def session_factory():
    """Factory for extra sessions, e.g. to simulate concurrent requests."""
    return test_session_factory
