"""Nearest-store resolution.

Flow:
1. Origin: a coordinate, or a postal code resolved through zip:<code>
2. Coarse filter: great-circle (coordinates) or postal numeric distance (zip)
3. Refinement: road distance for the shortlist only
4. Directions link from origin to the chosen store

Every lookup runs under a deadline; the only awaits are Redis and the
distance matrix call.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Protocol

from locator.errors import LookupTimeout, PostalNotFound
from locator.services.candidates import by_coordinate, by_postal
from locator.services.catalog import CatalogHolder, StoreRecord
from locator.services.geo import Coordinate, is_postal_code
from locator.stores.redis import PREFIX_ZIP, CacheStore

logger = logging.getLogger("uvicorn.error")

DEFAULT_MAPS_URL = "https://www.google.com/maps/dir/?api=1"


class Refiner(Protocol):
    async def refine(self, origin: Coordinate, candidates: list[StoreRecord]) -> StoreRecord: ...


@dataclass(frozen=True)
class Resolution:
    origin: Coordinate
    store: StoreRecord
    directions_url: str


def directions_url(base_url: str, origin: Coordinate, store: StoreRecord) -> str:
    """Google Maps directions link from origin to store."""
    return f"{base_url}&origin={origin}&destination={store.coordinate}"


class Resolver:
    """Resolves an origin to the nearest store and a directions link."""

    def __init__(
        self,
        catalog: CatalogHolder,
        cache: CacheStore,
        refiner: Refiner,
        *,
        candidate_count: int = 3,
        maps_url: str = DEFAULT_MAPS_URL,
        deadline_seconds: float = 15.0,
    ):
        self.catalog = catalog
        self.cache = cache
        self.refiner = refiner
        self.candidate_count = candidate_count
        self.maps_url = maps_url
        self.deadline_seconds = deadline_seconds

    async def resolve_coordinates(self, origin: Coordinate, *, n: int | None = None) -> Resolution:
        """Nearest store to a coordinate origin."""
        return await self._with_deadline(self._resolve_coordinates(origin, n or self.candidate_count))

    async def resolve_postal(self, code: str, *, n: int | None = None) -> Resolution:
        """Nearest store to a postal code origin.

        Raises:
            PostalNotFound: Code unknown, non-numeric, or its hash lacks lat/long.
        """
        return await self._with_deadline(self._resolve_postal(code, n or self.candidate_count))

    async def postal_coordinate(self, code: str) -> Coordinate:
        """Look up zip:<code> and return its coordinate."""
        code = (code or "").strip()
        if not is_postal_code(code):
            raise PostalNotFound(f"zip not found: {code}")

        fields = await self.cache.get_fields(f"{PREFIX_ZIP}{code}")
        if not fields or not fields.get("lat") or not fields.get("long"):
            raise PostalNotFound(f"zip not found: {code}")
        try:
            return Coordinate(lat=float(fields["lat"]), long=float(fields["long"]))
        except ValueError:
            raise PostalNotFound(f"zip not found: {code}") from None

    async def _resolve_coordinates(self, origin: Coordinate, n: int) -> Resolution:
        logger.info(f"Resolving nearest store for coordinates {origin} (n={n})")
        candidates = by_coordinate(origin, self.catalog.current.stores, n)
        return await self._refine(origin, candidates)

    async def _resolve_postal(self, code: str, n: int) -> Resolution:
        logger.info(f"Resolving nearest store for zip {code} (n={n})")
        origin = await self.postal_coordinate(code)
        candidates = by_postal(code.strip(), self.catalog.current.stores, n)
        return await self._refine(origin, candidates)

    async def _refine(self, origin: Coordinate, candidates: list[StoreRecord]) -> Resolution:
        store = await self.refiner.refine(origin, candidates)
        return Resolution(
            origin=origin,
            store=store,
            directions_url=directions_url(self.maps_url, origin, store),
        )

    async def _with_deadline(self, lookup) -> Resolution:
        try:
            return await asyncio.wait_for(lookup, timeout=self.deadline_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Lookup exceeded deadline of {self.deadline_seconds}s")
            raise LookupTimeout(f"lookup timed out after {self.deadline_seconds}s") from None
