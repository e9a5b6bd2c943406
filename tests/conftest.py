"""
Shared fixtures: a controllable clock, a recording sleep and a wired
registry/orchestrator pair.
"""

from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from tripcache.datastore.engine import CacheDatabase
from tripcache.services.cache import CacheNamespaceConfig
from tripcache.services.events import EventBus
from tripcache.services.orchestrator import RequestOrchestrator
from tripcache.services.persistence import CachePersistence
from tripcache.services.registry import CacheRegistry
from tripcache.services.retry import RetryExecutor, RetryOptions


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def registry(clock, events):
    registry = CacheRegistry(events=events, clock=clock)
    registry.register_namespace(
        CacheNamespaceConfig(
            name="places",
            ttl=timedelta(seconds=60),
            stale_ttl=timedelta(seconds=120),
            max_size=3,
        )
    )
    registry.register_namespace(
        CacheNamespaceConfig(
            name="reviews",
            ttl=timedelta(seconds=60),
            stale_ttl=timedelta(seconds=120),
            max_size=10,
            user_scoped=True,
        )
    )
    return registry


@pytest_asyncio.fixture
async def orchestrator(registry, sleep):
    orchestrator = RequestOrchestrator(
        registry,
        retry=RetryExecutor(RetryOptions(max_retries=3), sleep=sleep),
    )
    yield orchestrator
    await orchestrator.close()


@pytest_asyncio.fixture
async def database(tmp_path):
    database = CacheDatabase(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    await database.init()
    yield database
    await database.close()


@pytest.fixture
def persistence(database):
    return CachePersistence(database)
