"""Events package — domain events, bus, and subscribers."""

from events.bus import EventBus
from events.events import (
    NovelSaved,
    NovelDeleted,
    ChapterSaved,
    ChapterDeleted,
    RatingChanged,
)
from events.invalidation import CacheInvalidationSubscriber, NON_MATERIAL_FIELDS

__all__ = [
    "EventBus",
    "NovelSaved",
    "NovelDeleted",
    "ChapterSaved",
    "ChapterDeleted",
    "RatingChanged",
    "CacheInvalidationSubscriber",
    "NON_MATERIAL_FIELDS",
]
