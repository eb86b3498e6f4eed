"""Admin endpoints for catalog management.

POST /v1/admin/catalog/reload - rebuild the in-memory snapshot from Redis
POST /v1/admin/ingest         - file-change hook, loads a CSV into Redis

In production, put these behind the gateway's authentication.
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from locator.errors import CacheUnavailable, EmptyCatalog, SourceFileError
from locator.schemas import IngestRequest, IngestResponse, ReloadResponse
from locator.services.catalog import CatalogHolder
from locator.services.ingestion import handle_file_change

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


def _catalog(request: Request) -> CatalogHolder:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise HTTPException(status_code=503, detail="Catalog not initialized")
    return catalog


@router.post("/catalog/reload", response_model=ReloadResponse)
async def reload_catalog(request: Request) -> ReloadResponse:
    """Reload the store catalog from Redis and swap the snapshot.

    The previous snapshot keeps serving if the reload fails.
    """
    catalog = _catalog(request)
    try:
        snapshot = await catalog.reload()
    except (CacheUnavailable, EmptyCatalog) as e:
        logger.error(f"Catalog reload failed: {e}")
        raise HTTPException(status_code=503, detail=f"Catalog reload failed: {e}")
    return ReloadResponse(stores=len(snapshot), loaded_at=snapshot.loaded_at)


@router.post("/ingest", response_model=IngestResponse)
async def trigger_ingestion(body: IngestRequest) -> IngestResponse:
    """Ingest a changed source file into Redis.

    Names other than the configured store and ZIP files are ignored.
    The live snapshot is not touched; call /catalog/reload afterwards.
    """
    try:
        stats = await handle_file_change(body.file_name)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Source file not found: {body.file_name}")
    except SourceFileError as e:
        raise HTTPException(status_code=422, detail=f"Ingestion of {body.file_name} failed: {e}")

    if stats is None:
        return IngestResponse(ignored=True)
    if stats.written == 0 and stats.errors > 0:
        # Every write failed: Redis is down, not a data problem.
        raise HTTPException(
            status_code=503,
            detail=f"Ingestion of {body.file_name} failed: {stats.errors} records could not be written",
        )
    return IngestResponse(
        source=stats.source,
        rows=stats.rows,
        records=stats.records,
        written=stats.written,
        rejected=stats.rejected,
        orphans=stats.orphans,
        errors=stats.errors,
    )
