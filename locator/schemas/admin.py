"""Schemas for the admin endpoints (/v1/admin/*)."""

from datetime import datetime

from pydantic import BaseModel, Field


class IngestRequest(BaseModel):
    """A changed source file, as reported by the bucket monitor."""

    file_name: str = Field(alias="fileName", min_length=1, max_length=255)

    model_config = {"populate_by_name": True}


class IngestResponse(BaseModel):
    """Result of an ingestion run."""

    ignored: bool = False
    source: str | None = None
    rows: int = 0
    records: int = 0
    written: int = 0
    rejected: int = 0
    orphans: int = 0
    errors: int = 0


class ReloadResponse(BaseModel):
    """Catalog snapshot after a reload."""

    stores: int
    loaded_at: datetime = Field(alias="loadedAt")

    model_config = {"populate_by_name": True}
