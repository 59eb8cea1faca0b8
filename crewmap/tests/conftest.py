"""
Centralized Test Configuration.
"""

import asyncio
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from crewmap.app.main import app
from crewmap.app.db.session import get_db, Base
from crewmap.app.core.redis_client import get_redis
from crewmap.app.models.crew import Crew
from crewmap.app.models.driver import Driver
import crewmap.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class MockPubSub:
    """In-process stand-in for redis.asyncio.client.PubSub."""

    def __init__(self, redis):
        self.redis = redis
        self.channels = set()
        self.queue = asyncio.Queue()

    async def subscribe(self, *channels):
        for channel in channels:
            self.channels.add(channel)
            self.redis.subscribers.setdefault(channel, []).append(self)
            await self.queue.put({"type": "subscribe", "channel": channel, "data": 1})

    async def unsubscribe(self, *channels):
        for channel in channels or list(self.channels):
            self.channels.discard(channel)
            subscribers = self.redis.subscribers.get(channel, [])
            if self in subscribers:
                subscribers.remove(self)

    async def listen(self):
        while True:
            yield await self.queue.get()

    async def aclose(self):
        await self.unsubscribe()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.published = []
        self.subscribers = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def publish(self, channel, message):
        self.published.append((channel, message))
        receivers = self.subscribers.get(channel, [])
        for pubsub in receivers:
            await pubsub.queue.put({"type": "message", "channel": channel, "data": message})
        return len(receivers)

    def pubsub(self):
        return MockPubSub(self)

    async def flushdb(self):
        self.published = []
        self.subscribers = {}

    async def aclose(self):
        self._closed = True


# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session

@pytest.fixture
def mock_redis(redis_client_session):
    return redis_client_session

@pytest.fixture
async def crew1():
    """
    Crew "CREW1" with drivers Bob and Alice, plus an unrelated crew "CREW2"
    that also has a Bob.
    """
    async with TestingSessionLocal() as session:
        crew = Crew(code="CREW1", name="Test Convoy")
        other = Crew(code="CREW2")
        session.add_all([crew, other])
        await session.flush()

        bob = Driver(crew_id=crew.id, nickname="Bob", color="#FF6B6B")
        alice = Driver(crew_id=crew.id, nickname="Alice", color="#4ECDC4")
        other_bob = Driver(crew_id=other.id, nickname="Bob", color="#45B7D1")
        session.add_all([bob, alice, other_bob])
        await session.commit()

    return {
        "crew_id": crew.id,
        "code": crew.code,
        "bob": bob.id,
        "alice": alice.id,
        "other_crew_id": other.id,
        "other_bob": other_bob.id,
    }
