"""Coarse candidate filter.

Ranks the whole snapshot by a cheap distance and keeps the top N for the
road-distance refinement. sorted() is stable, so ties keep catalog order.
"""

from collections.abc import Sequence

from locator.services.catalog import StoreRecord
from locator.services.geo import Coordinate, great_circle_distance, postal_distance


def by_coordinate(origin: Coordinate, stores: Sequence[StoreRecord], n: int) -> list[StoreRecord]:
    """Return the n stores closest to origin by great-circle distance."""
    if n <= 0:
        return []
    ranked = sorted(stores, key=lambda s: great_circle_distance(origin, s.coordinate))
    return ranked[:n]


def by_postal(origin_code: str, stores: Sequence[StoreRecord], n: int) -> list[StoreRecord]:
    """Return the n stores whose zip is numerically closest to origin_code."""
    if n <= 0:
        return []
    ranked = sorted(stores, key=lambda s: postal_distance(origin_code, s.zip))
    return ranked[:n]
