"""Pydantic schemas for API request/response validation."""

from locator.schemas.admin import IngestRequest, IngestResponse, ReloadResponse
from locator.schemas.common import ErrorDetail, ErrorResponse

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "IngestRequest",
    "IngestResponse",
    "ReloadResponse",
]
