"""Application settings via Pydantic Settings."""

from functools import lru_cache
import json

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Store Locator API"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # CORS
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        validation_alias=AliasChoices("CORS_ORIGINS", "ALLOWED_ORIGINS"),
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v: object) -> list[str]:
        """
        Accept either:
        - JSON array string: '["https://a.com","http://localhost:3000"]'
        - Comma-separated string: "https://a.com,http://localhost:3000"
        - Already-parsed list[str]
        """
        if v is None:
            return []
        if isinstance(v, list):
            return [str(x).strip() for x in v if str(x).strip()]
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    parsed = json.loads(s)
                except json.JSONDecodeError:
                    parsed = s.split(",")
                if isinstance(parsed, list):
                    return [str(x).strip() for x in parsed if str(x).strip()]
                return [str(parsed).strip()]
            return [part.strip() for part in s.split(",") if part.strip()]
        return [str(v).strip()] if str(v).strip() else []

    # Directions link
    maps_url: str = Field(
        default="https://www.google.com/maps/dir/?api=1",
        validation_alias=AliasChoices("MAPS_URL", "MAPSURL"),
    )

    # Google Distance Matrix
    google_maps_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GOOGLE_MAPS_API_KEY", "APIKEY"),
    )
    distance_matrix_url: str = Field(
        default="https://maps.googleapis.com/maps/api/distancematrix/json",
        validation_alias=AliasChoices("DISTANCE_MATRIX_URL"),
    )
    distance_matrix_timeout: float = Field(
        default=10.0,
        validation_alias=AliasChoices("DISTANCE_MATRIX_TIMEOUT"),
        gt=0.0,
    )
    distance_matrix_attempts: int = Field(
        default=1,
        validation_alias=AliasChoices("DISTANCE_MATRIX_ATTEMPTS"),
        ge=1,
        le=5,
        description="Total attempts per refinement call (1 = no retry)",
    )
    distance_matrix_backoff: float = Field(
        default=0.5,
        validation_alias=AliasChoices("DISTANCE_MATRIX_BACKOFF"),
        ge=0.0,
        description="Seconds to wait before retry N, multiplied by N",
    )

    # Lookup
    candidate_count: int = Field(
        default=3,
        validation_alias=AliasChoices("CANDIDATE_COUNT"),
        ge=1,
        le=25,
        description="Stores shortlisted by the coarse filter before road-distance refinement",
    )
    lookup_deadline_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices("LOOKUP_DEADLINE_SECONDS"),
        gt=0.0,
    )

    # Catalog
    catalog_refresh_seconds: int = Field(
        default=0,
        validation_alias=AliasChoices("CATALOG_REFRESH_SECONDS"),
        ge=0,
        description="Periodic catalog reload interval; 0 disables the refresh task",
    )
    catalog_dir: str = Field(
        default="data",
        validation_alias=AliasChoices("CATALOG_DIR"),
    )
    store_file: str = Field(
        default="storeList.csv",
        validation_alias=AliasChoices("STORE_FILE", "GCPSTOREFILE"),
    )
    zip_file: str = Field(
        default="zipList.csv",
        validation_alias=AliasChoices("ZIP_FILE", "GCPZIPFILE"),
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
