"""Redis store for the store catalog and postal-code coordinates.

Key schema (one hash per record):
- store:<storeNum> -> {lat, long, zip, address fields...}
- zip:<code>       -> {lat, long}

Every transport failure is raised as CacheUnavailable. Callers must never
read an empty result as "no data" when the backend is down.
"""

import logging
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from locator.errors import CacheUnavailable
from locator.settings import get_settings

# Key prefixes
PREFIX_STORE = "store:"
PREFIX_ZIP = "zip:"

# Keys per pipeline round trip in get_many
BULK_READ_CHUNK = 500

logger = logging.getLogger("uvicorn.error")


class CacheStore:
    """Field-map operations over a redis.asyncio client."""

    def __init__(self, client: Any):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "CacheStore":
        """Build a store with decoded responses and short socket timeouts."""
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return cls(client)

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"Redis ping failed: {e}") from e

    async def close(self) -> None:
        """Release the underlying connection pool."""
        await self._client.aclose()

    async def put_fields(self, key: str, fields: dict[str, str]) -> None:
        """Set (or overwrite) the given fields of a hash.

        Args:
            key: Record key, e.g. "store:1001".
            fields: Field -> value mapping.
        """
        if not fields:
            return
        try:
            await self._client.hset(key, mapping=fields)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"Redis write failed for {key}: {e}") from e

    async def get_fields(self, key: str) -> dict[str, str] | None:
        """Read all fields of a hash.

        Returns:
            Field map, or None if the key does not exist.
        """
        try:
            fields = await self._client.hgetall(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"Redis read failed for {key}: {e}") from e
        return fields or None

    async def get_many(self, keys: list[str]) -> list[dict[str, str] | None]:
        """Read several hashes, preserving key order.

        Reads go through a non-transactional pipeline on one connection, in
        chunks of BULK_READ_CHUNK keys.
        """
        results: list[dict[str, str] | None] = []
        for start in range(0, len(keys), BULK_READ_CHUNK):
            chunk = keys[start:start + BULK_READ_CHUNK]
            try:
                async with self._client.pipeline(transaction=False) as pipe:
                    for key in chunk:
                        pipe.hgetall(key)
                    replies = await pipe.execute()
            except (RedisError, OSError) as e:
                raise CacheUnavailable(f"Redis bulk read failed at {chunk[0]}: {e}") from e
            results.extend(reply or None for reply in replies)
        return results

    async def list_keys(self, pattern: str) -> set[str]:
        """Enumerate keys matching a glob pattern with SCAN (never KEYS)."""
        try:
            return {key async for key in self._client.scan_iter(match=pattern, count=500)}
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"Redis scan failed for {pattern}: {e}") from e


# Process-wide store (initialized on startup)
_store: CacheStore | None = None


async def init_redis() -> CacheStore:
    """Initialize the Redis connection used by the web app."""
    global _store
    settings = get_settings()
    store = CacheStore.from_url(settings.redis_url)
    await store.ping()
    _store = store
    logger.info("Redis connected")
    return store


async def close_redis() -> None:
    """Close Redis connection."""
    global _store
    if _store:
        await _store.close()
        _store = None


def get_cache_store() -> CacheStore:
    """Get the process-wide CacheStore."""
    if _store is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _store
