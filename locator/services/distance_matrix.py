"""Google Distance Matrix client for the refinement step.

One request per refinement: the origin as the single source, every
shortlisted store as a destination. The store with the smallest reported
road distance wins.

Cost control:
- Only the coarse-filter shortlist (default 3 stores) is ever sent
- Single attempt by default; retries are opt-in via RetryPolicy
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any

import httpx

from locator.errors import NoRoute, RefinementUnavailable
from locator.services.catalog import StoreRecord
from locator.services.geo import Coordinate
from locator.settings import get_settings

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class RetryPolicy:
    """How often a failed distance-matrix call is retried.

    attempts counts the first call, so 1 means no retry. Retry N waits
    backoff_seconds * N. Only RefinementUnavailable is retried; NoRoute is an
    answer, not a failure.
    """

    attempts: int = 1
    backoff_seconds: float = 0.0


class DistanceMatrixClient:
    """Client for the Google Distance Matrix API."""

    BASE_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float = 10.0,
        retry: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else get_settings().google_maps_api_key
        self.base_url = base_url or self.BASE_URL
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def refine(self, origin: Coordinate, candidates: list[StoreRecord]) -> StoreRecord:
        """Pick the candidate with the shortest road distance from origin.

        Raises:
            RefinementUnavailable: Transport error, timeout, non-200 or non-OK status.
            NoRoute: No candidate had a usable distance element.
        """
        if not candidates:
            raise NoRoute("no candidate stores to rank")

        attempt = 1
        while True:
            try:
                data = await self._fetch(origin, candidates)
                break
            except RefinementUnavailable as e:
                if attempt >= self.retry.attempts:
                    raise
                delay = self.retry.backoff_seconds * attempt
                logger.warning(
                    f"Distance matrix attempt {attempt}/{self.retry.attempts} failed ({e}), "
                    f"retrying in {delay:.1f}s"
                )
                attempt += 1
                await asyncio.sleep(delay)

        index = _select_nearest(data, len(candidates))
        return candidates[index]

    async def _fetch(self, origin: Coordinate, candidates: list[StoreRecord]) -> dict[str, Any]:
        if not self.api_key:
            logger.error("GOOGLE_MAPS_API_KEY is not set - cannot call distance matrix")
            raise RefinementUnavailable("distance matrix API key is not configured")

        params = {
            "origins": str(origin),
            "destinations": "|".join(str(s.coordinate) for s in candidates),
            "units": "imperial",
            "key": self.api_key,
        }

        client = await self._get_client()
        try:
            response = await client.get(self.base_url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Distance matrix request failed: {e!r}")
            raise RefinementUnavailable(f"distance matrix request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Distance matrix API error: {response.status_code} - {response.text[:200]}")
            raise RefinementUnavailable(
                f"invalid return status on distance matrix call: {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RefinementUnavailable("distance matrix returned invalid JSON") from e

        if not isinstance(data, dict) or data.get("status") != "OK":
            status = data.get("status") if isinstance(data, dict) else None
            logger.error(f"Distance matrix status not OK: {status}")
            raise RefinementUnavailable(f"invalid return status on distance matrix call: {status}")
        return data


def _select_nearest(data: dict[str, Any], count: int) -> int:
    """Index of the destination with the smallest usable distance.

    Elements with a non-OK status or no numeric distance.value are skipped.
    Ties go to the earlier destination.
    """
    rows = data.get("rows") or []
    elements = rows[0].get("elements", []) if rows and isinstance(rows[0], dict) else []

    best_index: int | None = None
    best_value: float | None = None
    for i, element in enumerate(elements[:count]):
        if not isinstance(element, dict) or element.get("status", "OK") != "OK":
            continue
        value = (element.get("distance") or {}).get("value")
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            continue
        if best_value is None or value < best_value:
            best_index, best_value = i, value

    if best_index is None:
        raise NoRoute("no route to any candidate store")
    return best_index
