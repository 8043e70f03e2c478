"""
Configuration and settings for the operations backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Google Maps web services
    google_maps_api_key: Optional[str] = Field(default=None)
    maps_request_timeout: float = Field(default=30.0)

    # Google sign-in
    google_client_id: Optional[str] = Field(default=None)
    google_client_secret: Optional[str] = Field(default=None)
    session_secret: Optional[str] = Field(default=None)
    session_max_age_seconds: int = Field(default=30 * 24 * 60 * 60)
    auth_redirect_url: str = Field(
        default="http://localhost:8000/api/auth/callback"
    )
    allowed_email_domain: Optional[str] = Field(default=None)

    # Live crew locations (Redis)
    redis_url: Optional[str] = Field(default=None)
    crew_location_key: str = Field(default="treeops:crew_locations")

    # S3-compatible storage for job photos
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
