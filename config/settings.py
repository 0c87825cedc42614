"""Configuration settings loaded from .env file."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

CACHE_BACKENDS = ("memory", "redis", "null")


class Settings(BaseSettings):
    """Application settings, loaded from .env file.

    The cache backend decides whether tag-based invalidation is available:
    only the distributed backends can group entries by tag, the in-process
    ones fall back to forgetting explicit keys.
    """

    # Database
    sqlite_db_path: Path = Path("./data/novelhub.db")

    # Storage (cover images etc. live here, the health check writes to it)
    storage_dir: Path = Path("./data/storage")

    # Cache
    cache_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    cache_prefix: str = "novelhub:"
    cache_default_ttl: int = 3600
    listing_cache_ttl: int = 600            # index / popular / latest / search
    related_cache_ttl: int = 3600           # related novels per reference
    chapter_cache_ttl: int = 1800           # chapter list + navigation

    # Listings
    page_size: int = 12

    # Logging
    log_dir: Path = Path("./data/logs")
    health_log_lines: int = 500

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @field_validator("cache_backend")
    @classmethod
    def validate_cache_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in CACHE_BACKENDS:
            raise ValueError(
                f"cache_backend must be one of {', '.join(CACHE_BACKENDS)} (got {v!r})"
            )
        return v

    @field_validator(
        "cache_default_ttl", "listing_cache_ttl", "related_cache_ttl", "chapter_cache_ttl",
    )
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Cache TTL must be >= 1 second")
        return v

    @field_validator("page_size", "health_log_lines")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("page_size and health_log_lines must be >= 1")
        return v

    @field_validator("sqlite_db_path", "log_dir")
    @classmethod
    def ensure_parent_dirs(cls, v: Path) -> Path:
        v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("storage_dir")
    @classmethod
    def ensure_storage_dir(cls, v: Path) -> Path:
        v.mkdir(parents=True, exist_ok=True)
        return v


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
