"""
Shared test fixtures.

- Database: in-memory SQLite (StaticPool keeps the single connection alive)
- Cache: MemoryCache driven by a fake monotonic clock
- DNS: stub resolvers, so no test touches the network
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from safelink.db.cache import MemoryCache
from safelink.db.session import create_session_maker
from safelink.db.sqlite_adapter import SQLiteAdapter
from safelink.services.link_store import SQLLinkStore

PUBLIC_IP = "93.184.216.34"


class FakeClock:
    """Wall clock for stores and services; advance() moves it forward."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Monotonic seconds for MemoryCache deadlines."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_resolver(mapping=None, default=(PUBLIC_IP,)):
    """Async resolver answering from a dict, falling back to a public address."""
    mapping = mapping or {}

    async def resolver(host: str):
        return list(mapping.get(host, default))

    return resolver


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def cache(monotonic):
    return MemoryCache(clock=monotonic)


@pytest.fixture
def public_resolver():
    return make_resolver()


@pytest.fixture
def adapter():
    return SQLiteAdapter()


@pytest_asyncio.fixture
async def engine(adapter):
    engine = adapter.create_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def sql_store(session_maker, cache, adapter, clock):
    return SQLLinkStore(
        session_maker=session_maker,
        cache=cache,
        adapter=adapter,
        cache_ttl=3600,
        timeout=5.0,
        clock=clock,
    )
