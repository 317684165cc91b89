"""Configuration management for StashBase.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded once and is
immutable during runtime.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine configuration settings.

    Settings are loaded from environment variables and .env files.
    All configuration values are validated at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STASHBASE_",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "testing"] = "development"

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Record Store Settings
    datastore_adapter: Literal["sqlite", "mongo"] = "sqlite"
    database_url: str = "sqlite+aiosqlite:///./sb_data/stashbase.db"
    db_echo: bool = False
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db_name: str = "stashbase"

    # Blob Store Settings
    blobstore_adapter: Literal["local", "s3"] = "local"
    storage_path: str = "./sb_data/files"
    stream_chunk_size: int = Field(default=64 * 1024, description="Bytes per attachment read chunk")
    s3_bucket: str | None = None
    s3_region: str = "us-east-1"
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None
    s3_endpoint_url: str | None = None
    s3_object_prefix: str = ""

    @field_validator("stream_chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Reject empty read chunks."""
        if v <= 0:
            raise ValueError("stream_chunk_size must be greater than zero")
        return v

    @model_validator(mode="after")
    def validate_s3_bucket(self) -> "Settings":
        """Validate that the S3 blob store has a bucket to write to."""
        if self.blobstore_adapter == "s3" and not self.s3_bucket:
            raise ValueError("blobstore_adapter 's3' requires s3_bucket to be set")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and reused for every subsequent call.

    Returns:
        Settings: Cached engine settings instance.
    """
    return Settings()
