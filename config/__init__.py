"""Configuration package — settings, logging, and exceptions."""

from config.exceptions import (
    NovelHubError,
    CacheError,
    DatabaseError,
    NotFoundError,
    NovelNotFoundError,
    ChapterNotFoundError,
    RatingNotFoundError,
    ValidationError,
    InvalidRatingError,
    InvalidStatusError,
    InvalidConfigError,
)
from config.logging_config import setup_logging
from config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "NovelHubError",
    "CacheError",
    "DatabaseError",
    "NotFoundError",
    "NovelNotFoundError",
    "ChapterNotFoundError",
    "RatingNotFoundError",
    "ValidationError",
    "InvalidRatingError",
    "InvalidStatusError",
    "InvalidConfigError",
]
