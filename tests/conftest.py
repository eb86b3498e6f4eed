"""Shared fixtures: an in-memory async Redis double and a small catalog."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fnmatch import fnmatchcase

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from locator.services.catalog import CatalogHolder, CatalogSnapshot, StoreRecord
from locator.stores.redis import CacheStore


class FakePipeline:
    """Non-transactional pipeline: queues hgetall calls, runs them on one connection."""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._queued: list[str] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc) -> None:
        self._queued.clear()

    def hgetall(self, name: str) -> "FakePipeline":
        self._queued.append(name)
        return self

    async def execute(self) -> list[dict[str, str]]:
        async with self._redis.connection():
            return [dict(self._redis.data.get(name, {})) for name in self._queued]


class FakeRedis:
    """Hash subset of redis.asyncio.Redis kept in a dict.

    Like a real pool, each command in flight holds a connection, and more than
    max_connections at once fails with "Too many connections".
    """

    def __init__(self, max_connections: int = 100):
        self.data: dict[str, dict[str, str]] = {}
        self.closed = False
        self.max_connections = max_connections
        self.in_use = 0
        self.peak_connections = 0

    @asynccontextmanager
    async def connection(self):
        if self.in_use >= self.max_connections:
            raise RedisConnectionError("Too many connections")
        self.in_use += 1
        self.peak_connections = max(self.peak_connections, self.in_use)
        try:
            await asyncio.sleep(0)
            yield
        finally:
            self.in_use -= 1

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True

    async def hset(self, name: str, mapping: dict[str, str]) -> int:
        record = self.data.setdefault(name, {})
        added = len(set(mapping) - set(record))
        record.update({k: str(v) for k, v in mapping.items()})
        return added

    async def hgetall(self, name: str) -> dict[str, str]:
        async with self.connection():
            return dict(self.data.get(name, {}))

    async def scan_iter(self, match: str = "*", count: int | None = None):
        for key in list(self.data):
            if fnmatchcase(key, match):
                yield key


class BrokenRedis(FakeRedis):
    """Every call fails like a dropped connection."""

    async def ping(self) -> bool:
        raise RedisConnectionError("Connection refused")

    async def hset(self, name: str, mapping: dict[str, str]) -> int:
        raise RedisConnectionError("Connection refused")

    async def hgetall(self, name: str) -> dict[str, str]:
        raise RedisConnectionError("Connection refused")

    @asynccontextmanager
    async def connection(self):
        raise RedisConnectionError("Connection refused")
        yield  # pragma: no cover

    async def scan_iter(self, match: str = "*", count: int | None = None):
        raise RedisConnectionError("Connection refused")
        yield  # pragma: no cover


def _make_store(store_num: str, lat: float, long: float, zip_code: str, **extra: str) -> StoreRecord:
    fields = {"lat": str(lat), "long": str(long), "zip": zip_code, **extra}
    return StoreRecord(store_num=store_num, lat=lat, long=long, zip=zip_code, fields=fields)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def small_pool_redis() -> FakeRedis:
    """A Redis double whose pool only has two connections."""
    return FakeRedis(max_connections=2)


@pytest.fixture
def cache(fake_redis: FakeRedis) -> CacheStore:
    return CacheStore(fake_redis)


@pytest.fixture
def broken_cache() -> CacheStore:
    return CacheStore(BrokenRedis())


@pytest.fixture
def stores() -> list[StoreRecord]:
    """Three stores around Joplin, MO."""
    return [
        _make_store("1001", 37.0634, -94.5133, "64804", name="Joplin Main St"),
        _make_store("1002", 37.1765, -94.3102, "64836", name="Carthage"),
        _make_store("1003", 36.8501, -94.3830, "64850", name="Neosho"),
    ]


@pytest.fixture
def catalog(cache: CacheStore, stores: list[StoreRecord]) -> CatalogHolder:
    snapshot = CatalogSnapshot(stores=tuple(stores), loaded_at=datetime.now(timezone.utc))
    return CatalogHolder(cache, snapshot)


@pytest.fixture
def make_store():
    """Factory for StoreRecord values with consistent raw fields."""
    return _make_store
