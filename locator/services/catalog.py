"""In-memory store catalog.

The lookup path never scans Redis per request. A CatalogSnapshot is built
once from every store:* hash and shared read-only across requests.
CatalogHolder owns the current snapshot and swaps it on reload; a request
takes the reference once and keeps using it even if a reload lands mid-way.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import math

from locator.errors import CacheUnavailable, EmptyCatalog
from locator.services.geo import Coordinate, is_postal_code
from locator.stores.redis import PREFIX_STORE, CacheStore

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class StoreRecord:
    store_num: str
    lat: float
    long: float
    zip: str
    fields: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, long=self.long)

    @classmethod
    def from_fields(cls, store_num: str, fields: dict[str, str]) -> "StoreRecord":
        """Build a record from a store hash.

        Raises:
            ValueError: If lat/long are not finite numbers or zip is not numeric.
        """
        lat = float(fields["lat"]) if "lat" in fields else math.nan
        long = float(fields["long"]) if "long" in fields else math.nan
        if not (math.isfinite(lat) and math.isfinite(long)):
            raise ValueError(f"store {store_num} has no valid lat/long")

        zip_code = (fields.get("zip") or "").strip()
        if not is_postal_code(zip_code):
            raise ValueError(f"store {store_num} has no valid zip")

        return cls(store_num=store_num, lat=lat, long=long, zip=zip_code, fields=dict(fields))


@dataclass(frozen=True)
class CatalogSnapshot:
    stores: tuple[StoreRecord, ...]
    loaded_at: datetime

    def __len__(self) -> int:
        return len(self.stores)


async def load_catalog(cache: CacheStore) -> CatalogSnapshot:
    """Read every store:* hash from Redis into a snapshot.

    Raises:
        CacheUnavailable: If Redis cannot be reached.
        EmptyCatalog: If no usable store record exists.
    """
    keys = sorted(await cache.list_keys(f"{PREFIX_STORE}*"))
    if not keys:
        raise EmptyCatalog("no store locations found")

    records: list[StoreRecord] = []
    for key, fields in zip(keys, await cache.get_many(keys)):
        if not fields:
            continue
        store_num = key[len(PREFIX_STORE):]
        try:
            records.append(StoreRecord.from_fields(store_num, fields))
        except ValueError as e:
            logger.warning(f"Skipping malformed catalog record {key}: {e}")

    if not records:
        raise EmptyCatalog("no store locations found")

    logger.info(f"Catalog loaded: {len(records)} stores")
    return CatalogSnapshot(stores=tuple(records), loaded_at=datetime.now(timezone.utc))


class CatalogHolder:
    """Owns the current snapshot and replaces it on reload."""

    def __init__(self, cache: CacheStore, snapshot: CatalogSnapshot | None = None):
        self._cache = cache
        self._snapshot = snapshot

    @property
    def current(self) -> CatalogSnapshot:
        if self._snapshot is None:
            raise EmptyCatalog("catalog not loaded")
        return self._snapshot

    async def reload(self) -> CatalogSnapshot:
        """Build a fresh snapshot and swap it in.

        On failure the previous snapshot stays in place and the error propagates.
        """
        snapshot = await load_catalog(self._cache)
        self._snapshot = snapshot
        return snapshot

    async def run_periodic_refresh(self, interval_seconds: float) -> None:
        """Reload every interval until cancelled. Failed reloads keep the old snapshot."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.reload()
            except (CacheUnavailable, EmptyCatalog) as e:
                logger.error(f"Catalog refresh failed, keeping previous snapshot: {e}")
            except Exception:
                logger.exception("Unexpected catalog refresh error, keeping previous snapshot")
