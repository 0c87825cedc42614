"""Enumerations for novel lifecycle tracking."""

from enum import Enum


class NovelStatus(str, Enum):
    ONGOING = "ongoing"
    COMPLETED = "completed"
    HIATUS = "hiatus"


class NovelSort(str, Enum):
    """Listing orders accepted by the novel index."""
    POPULAR = "popular"
    RATING = "rating"
    LATEST = "latest"
    UPDATED = "updated"
