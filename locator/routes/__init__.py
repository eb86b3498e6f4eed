"""API routes."""

from fastapi import APIRouter

from locator.routes import admin, locator

api_router = APIRouter()

# Lookup endpoints
api_router.include_router(locator.router, prefix="/locator", tags=["locator"])

# Admin endpoints (ingestion, catalog reload)
api_router.include_router(admin.router, prefix="/v1/admin", tags=["admin"])
