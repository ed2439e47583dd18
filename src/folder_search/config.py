"""Configuration management using Pydantic Settings.

This module provides centralized, type-safe configuration for Folder Search.
Configuration is loaded from environment variables with sensible defaults.
Per-index options (hash algorithm, analyzer, ...) live in the catalog's
property files; the values here only seed a newly created configuration.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application-level settings."""

    model_config = SettingsConfigDict(env_prefix="APP_")

    name: str = "folder-search"
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"


class APISettings(BaseSettings):
    """API server settings."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    reload: bool = True


class CatalogSettings(BaseSettings):
    """Location of the indexed tree and its configuration catalog."""

    model_config = SettingsConfigDict(env_prefix="CATALOG_")

    root: Path = Path(".")
    dir_name: str = ".folder_search"
    config_name: str = "default"
    default_limit: int = Field(default=100, ge=1, le=10000)
    message_log_size: int = Field(default=500, ge=1)

    @field_validator("dir_name", "config_name")
    @classmethod
    def validate_plain_name(cls, v: str) -> str:
        """Names must be a single path component."""
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"'{v}' is not a valid directory name")
        return v

    @property
    def catalog_dir(self) -> Path:
        """Directory holding all named configurations."""
        return self.root / self.dir_name


class PipelineSettings(BaseSettings):
    """Build pipeline tuning."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    queue_size: int = Field(default=1, ge=1, le=1024)
    hash_block_size: int = Field(default=8192, ge=512)


class IndexDefaults(BaseSettings):
    """Default option values written into a new index configuration."""

    model_config = SettingsConfigDict(env_prefix="INDEX_DEFAULT_")

    hash_algorithm: str = "SHA-256"
    text_analyzer: str = "Standard"
    scoring_model: str = "BM25"
    field_layout: str = "Standard"
    backend: str = "FS"


class MeilisearchSettings(BaseSettings):
    """Meilisearch connection and index settings."""

    model_config = SettingsConfigDict(env_prefix="MEILISEARCH_")

    host: str = "http://localhost"
    port: int = 7700
    master_key: str = "folder_search_dev_key"
    index_prefix: str = "folder_search"
    batch_size: int = Field(default=1000, ge=1, le=10000)
    task_timeout_ms: int = Field(default=30000, ge=100)

    @property
    def url(self) -> str:
        """Get full Meilisearch URL."""
        return f"{self.host}:{self.port}"


class Settings(BaseSettings):
    """Main settings container aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    api: APISettings = Field(default_factory=APISettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    index_defaults: IndexDefaults = Field(default_factory=IndexDefaults)
    meilisearch: MeilisearchSettings = Field(default_factory=MeilisearchSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
