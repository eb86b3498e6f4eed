"""Locator endpoints.

GET /locator/coordinates?coordinates=lat,long -> directions URL (text/plain)
GET /locator/zip?zip=code                     -> directions URL (text/plain)

Any locator failure (unknown zip, bad coordinates, Redis or distance matrix
error) is a 404 with the error message as the body.

Routers are thin: call services for business logic.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from locator.errors import LocatorError
from locator.services.geo import parse_coordinates
from locator.services.resolver import Resolver

router = APIRouter()


def get_resolver(request: Request) -> Resolver:
    """Resolver built in the app lifespan."""
    resolver = getattr(request.app.state, "resolver", None)
    if resolver is None:
        raise RuntimeError("Resolver not initialized")
    return resolver


@router.get("/coordinates", response_class=PlainTextResponse)
async def locate_by_coordinates(
    coordinates: str = Query(
        description="Origin as 'lat,long' in decimal degrees",
        examples=["37.1464,-94.4630"],
    ),
    n: int | None = Query(
        default=None,
        ge=1,
        le=25,
        description="Stores shortlisted before road-distance ranking",
    ),
    resolver: Resolver = Depends(get_resolver),
) -> PlainTextResponse:
    """Directions to the store nearest to a coordinate."""
    try:
        origin = parse_coordinates(coordinates)
        resolution = await resolver.resolve_coordinates(origin, n=n)
    except LocatorError as e:
        return PlainTextResponse(str(e), status_code=404)
    return PlainTextResponse(resolution.directions_url, status_code=200)


@router.get("/zip", response_class=PlainTextResponse)
async def locate_by_zip(
    zip: str = Query(
        description="Origin ZIP code",
        min_length=1,
        max_length=10,
        examples=["64804"],
    ),
    n: int | None = Query(
        default=None,
        ge=1,
        le=25,
        description="Stores shortlisted before road-distance ranking",
    ),
    resolver: Resolver = Depends(get_resolver),
) -> PlainTextResponse:
    """Directions to the store nearest to a ZIP code."""
    try:
        resolution = await resolver.resolve_postal(zip, n=n)
    except LocatorError as e:
        return PlainTextResponse(str(e), status_code=404)
    return PlainTextResponse(resolution.directions_url, status_code=200)


@router.get("/test", response_class=PlainTextResponse)
async def locator_test() -> str:
    """Liveness endpoint kept for existing API gateway checks."""
    return "successful test"
