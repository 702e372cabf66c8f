"""Shared fixtures for moderation tests.

Each test gets its own in-memory SQLite database and an in-process Redis
stand-in that understands the handful of commands the cache layer issues.
"""

import asyncio
import fnmatch
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.modules.moderation import models  # noqa: F401
from app.modules.moderation.cache import FastLockCache
from app.modules.moderation.engine import ModerationEngine
from app.modules.moderation.events import ModerationEventPublisher
from app.modules.moderation.repository import StudentRepository

EVENTS_CHANNEL = "moderation-events"


# ==================== Fakes ====================

class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePipeline:
    """Queues sorted-set commands and applies them on ``execute``."""

    def __init__(self, redis: "FakeRedis"):
        self.redis = redis
        self.commands: list[tuple[Callable, tuple, dict]] = []

    def zremrangebyscore(self, key, min_score, max_score):
        self.commands.append((self.redis._zremrangebyscore, (key, min_score, max_score), {}))
        return self

    def zcard(self, key):
        self.commands.append((self.redis._zcard, (key,), {}))
        return self

    def zrange(self, key, start, end, withscores=False):
        self.commands.append((self.redis._zrange, (key, start, end), {"withscores": withscores}))
        return self

    def zadd(self, key, mapping):
        self.commands.append((self.redis._zadd, (key, mapping), {}))
        return self

    def expire(self, key, seconds):
        self.commands.append((self.redis._expire, (key, seconds), {}))
        return self

    async def execute(self):
        # A round trip to the server lets other tasks run
        await asyncio.sleep(0)
        results = [command(*args, **kwargs) for command, args, kwargs in self.commands]
        self.commands = []
        return results


class FakeRedis:
    """In-process stand-in for ``redis.asyncio.Redis``."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.values: dict[str, tuple[str, Optional[float]]] = {}
        self.sorted_sets: dict[str, dict[str, float]] = {}
        self.published: list[tuple[str, str]] = []

    def _live_value(self, key: str) -> Optional[str]:
        entry = self.values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self.clock():
            del self.values[key]
            return None
        return value

    def ttl(self, key: str) -> Optional[float]:
        """Seconds left on a key, or None if absent or persistent."""
        if self._live_value(key) is None:
            return None
        expires_at = self.values[key][1]
        return None if expires_at is None else expires_at - self.clock()

    async def get(self, key: str) -> Optional[str]:
        return self._live_value(key)

    async def set(self, key: str, value, ex: Optional[int] = None) -> bool:
        expires_at = self.clock() + ex if ex else None
        self.values[key] = (str(value), expires_at)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.values.pop(key, None) is not None:
                removed += 1
            if self.sorted_sets.pop(key, None) is not None:
                removed += 1
        return removed

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1

    async def zrem(self, key: str, *members: str) -> int:
        await asyncio.sleep(0)
        sorted_set = self.sorted_sets.get(key, {})
        return len([m for m in members if sorted_set.pop(m, None) is not None])

    async def scan_iter(self, match: Optional[str] = None):
        for key in list(self.values) + list(self.sorted_sets):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    # Sorted-set commands, applied by FakePipeline.execute

    def _zremrangebyscore(self, key, min_score, max_score) -> int:
        members = self.sorted_sets.get(key, {})
        stale = [m for m, score in members.items() if min_score <= score <= max_score]
        for member in stale:
            del members[member]
        return len(stale)

    def _zcard(self, key) -> int:
        return len(self.sorted_sets.get(key, {}))

    def _zrange(self, key, start, end, withscores=False):
        ordered = sorted(self.sorted_sets.get(key, {}).items(), key=lambda item: item[1])
        stop = None if end == -1 else end + 1
        selected = ordered[start:stop]
        if withscores:
            return selected
        return [member for member, _ in selected]

    def _zadd(self, key, mapping) -> int:
        members = self.sorted_sets.setdefault(key, {})
        added = len([m for m in mapping if m not in members])
        members.update(mapping)
        return added

    def _expire(self, key, seconds) -> bool:
        return key in self.sorted_sets or key in self.values


class FailingRedis:
    """Redis stand-in whose every call fails as if the server were down."""

    def __init__(self):
        self.calls = 0

    def _fail(self):
        self.calls += 1
        raise RedisConnectionError("Connection refused")

    async def get(self, *args, **kwargs):
        self._fail()

    async def set(self, *args, **kwargs):
        self._fail()

    async def delete(self, *args, **kwargs):
        self._fail()

    async def publish(self, *args, **kwargs):
        self._fail()

    async def zrem(self, *args, **kwargs):
        self._fail()

    async def scan_iter(self, *args, **kwargs):
        self._fail()
        yield

    def pipeline(self, *args, **kwargs):
        self._fail()


# ==================== Database ====================

@asynccontextmanager
async def open_database():
    """Fresh in-memory database with all moderation tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


async def create_student(session: AsyncSession, roll: str, role: str = "student"):
    student = await StudentRepository(session).create(roll=roll, role=role)
    await session.commit()
    return student


# ==================== Fixtures ====================

@pytest.fixture(scope="session")
def database_factory():
    """``open_database`` for tests that need a database per Hypothesis example."""
    return open_database


@pytest.fixture(scope="session")
def student_factory():
    return create_student


@pytest.fixture(scope="session")
def redis_factory():
    return FakeRedis


@pytest.fixture(scope="session")
def clock_factory():
    return FakeClock


@pytest_asyncio.fixture
async def session_maker():
    async with open_database() as maker:
        yield maker


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def failing_redis():
    return FailingRedis()


@pytest.fixture
def cache(fake_redis):
    return FastLockCache(fake_redis)


@pytest.fixture
def events(fake_redis):
    return ModerationEventPublisher(fake_redis, EVENTS_CHANNEL)


@pytest.fixture
def moderation_engine(session, cache, events):
    return ModerationEngine(session, cache, events)
