"""Geo math for the coarse filter.

Both distances are deliberately cheap:
- great_circle_distance: haversine in miles
- postal_distance: absolute difference of the codes as integers. This is a
  crude proximity proxy (ZIP codes are not contiguous), kept as-is because
  postal lookups are ranked by it.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import re

from locator.errors import InvalidCoordinate

EARTH_RADIUS_MILES = 3961.0


@dataclass(frozen=True)
class Coordinate:
    lat: float
    long: float

    def __str__(self) -> str:
        return f"{self.lat},{self.long}"


def great_circle_distance(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance in miles between two decimal-degree coordinates."""
    d_lat = math.radians(b.lat - a.lat)
    d_long = math.radians(b.long - a.long)
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)

    h = math.sin(d_lat / 2) ** 2 + math.sin(d_long / 2) ** 2 * math.cos(lat1) * math.cos(lat2)
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def postal_distance(code_a: str, code_b: str) -> int:
    return abs(int(code_a) - int(code_b))


def is_postal_code(code: str) -> bool:
    """True for ASCII-digit codes, the only ones postal_distance can rank."""
    return re.fullmatch(r"[0-9]+", code or "") is not None


def parse_coordinates(raw: str) -> Coordinate:
    """Parse a "lat,long" query value.

    Raises:
        InvalidCoordinate: If the value is not two finite, in-range numbers.
    """
    parts = [p.strip() for p in (raw or "").split(",")]
    if len(parts) != 2:
        raise InvalidCoordinate(f"invalid coordinates: {raw!r}")
    try:
        lat, long = float(parts[0]), float(parts[1])
    except ValueError:
        raise InvalidCoordinate(f"invalid coordinates: {raw!r}") from None

    if not (math.isfinite(lat) and math.isfinite(long)):
        raise InvalidCoordinate(f"invalid coordinates: {raw!r}")
    if abs(lat) > 90 or abs(long) > 180:
        raise InvalidCoordinate(f"coordinates out of range: {raw!r}")
    return Coordinate(lat=lat, long=long)
