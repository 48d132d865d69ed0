# asset_intake/settings.py
"""
Asset Intake Settings - JSON file store or PostgreSQL.
"""
from __future__ import annotations
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

class Settings(BaseSettings):
    # =========================================================================
    # File Storage (JSON collections, logs)
    # =========================================================================
    ASSET_DATA_ROOT: Path = Field(
        default=(Path(__file__).resolve().parents[2] / "asset-data"),
        validation_alias=AliasChoices("ASSET_DATA_ROOT", "asset_data_root"),
    )

    # =========================================================================
    # PostgreSQL Database
    # =========================================================================
    DB_HOST: str = Field(default="localhost", validation_alias="DB_HOST")
    DB_PORT: int = Field(default=5432, validation_alias="DB_PORT")
    DB_NAME: str = Field(default="asset_intake", validation_alias="DB_NAME")
    DB_USER: str = Field(default="postgres", validation_alias="DB_USER")
    DB_PASSWORD: str = Field(default="postgres", validation_alias="DB_PASSWORD")

    # Connection pool settings
    DB_POOL_SIZE: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    DB_MAX_OVERFLOW: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")

    # =========================================================================
    # Intake / SKU allocation
    # =========================================================================
    DUPLICATE_CHECK_CONCURRENCY: int = Field(
        default=16,
        validation_alias="DUPLICATE_CHECK_CONCURRENCY",
        description="Max concurrent duplicate checks per batch (0 = unbounded)",
    )
    SKU_ALLOCATION_MAX_ATTEMPTS: int = Field(default=5, validation_alias="SKU_ALLOCATION_MAX_ATTEMPTS")
    SKU_ALLOCATION_BACKOFF_SECONDS: float = Field(default=0.05, validation_alias="SKU_ALLOCATION_BACKOFF_SECONDS")
    LEGACY_SKU_CODE: str = Field(default="ATS", validation_alias="LEGACY_SKU_CODE")

    # =========================================================================
    # Logging
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_MAX_BYTES: int = Field(default=5_000_000, validation_alias="LOG_MAX_BYTES")
    LOG_BACKUP_COUNT: int = Field(default=3, validation_alias="LOG_BACKUP_COUNT")
    LOG_TO_CONSOLE: bool = Field(default=False, validation_alias="LOG_TO_CONSOLE")

    # =========================================================================
    # Feature Flags
    # =========================================================================
    USE_POSTGRES: bool = Field(
        default=False,
        description="Use PostgreSQL instead of JSON files for collections"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

settings = Settings()
