"""FastAPI application entry point.

Store Locator API - nearest store and directions by coordinates or ZIP code.
"""

import asyncio
from contextlib import asynccontextmanager, suppress
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from locator.routes import api_router
from locator.schemas import ErrorDetail, ErrorResponse
from locator.services.catalog import CatalogHolder
from locator.services.distance_matrix import DistanceMatrixClient, RetryPolicy
from locator.services.resolver import Resolver
from locator.settings import get_settings
from locator.stores.redis import close_redis, init_redis

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup fails (and the process exits) if Redis is unreachable or the
    catalog is empty: the service never serves without stores.
    """
    settings = get_settings()

    cache = await init_redis()
    catalog = CatalogHolder(cache)
    try:
        await catalog.reload()
    except Exception:
        logger.exception("Catalog load failed, refusing to start")
        await close_redis()
        raise

    refiner = DistanceMatrixClient(
        settings.google_maps_api_key,
        base_url=settings.distance_matrix_url,
        timeout=settings.distance_matrix_timeout,
        retry=RetryPolicy(
            attempts=settings.distance_matrix_attempts,
            backoff_seconds=settings.distance_matrix_backoff,
        ),
    )
    app.state.catalog = catalog
    app.state.resolver = Resolver(
        catalog,
        cache,
        refiner,
        candidate_count=settings.candidate_count,
        maps_url=settings.maps_url,
        deadline_seconds=settings.lookup_deadline_seconds,
    )

    refresh_task: asyncio.Task | None = None
    if settings.catalog_refresh_seconds > 0:
        refresh_task = asyncio.create_task(catalog.run_periodic_refresh(settings.catalog_refresh_seconds))
        logger.info(f"Catalog refresh every {settings.catalog_refresh_seconds}s")
    app.state.refresh_task = refresh_task

    logger.info(f"Locator service started with {len(catalog.current)} stores")

    yield

    # Shutdown
    if refresh_task:
        refresh_task.cancel()
        with suppress(asyncio.CancelledError):
            await refresh_task
    await refiner.close()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Nearest store lookup with driving directions",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"Unhandled error on {request.url.path}")
        error = ErrorDetail(
            code="INTERNAL_ERROR",
            message=str(exc) if settings.debug else "Internal server error",
        )
        return JSONResponse(status_code=500, content=ErrorResponse(error=error).model_dump())

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check(request: Request) -> dict[str, bool | int]:
        """Health check endpoint."""
        catalog = getattr(request.app.state, "catalog", None)
        stores = len(catalog.current) if catalog is not None else 0
        return {"ok": True, "stores": stores}

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "locator.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
