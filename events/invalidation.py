"""Cache invalidation driven by domain events."""

import logging

from cache.helper import CacheHelper, novel_key
from events.bus import EventBus
from events.events import (
    ChapterDeleted,
    ChapterSaved,
    NovelDeleted,
    NovelSaved,
    RatingChanged,
)

logger = logging.getLogger(__name__)

# Saves touching only these fields leave caches alone; a flush per page view
# would empty the listing caches under any real traffic.
NON_MATERIAL_FIELDS = frozenset({"views"})


class CacheInvalidationSubscriber:
    """Translates novel/chapter/rating events into cache flushes."""

    def __init__(self, cache: CacheHelper):
        self.cache = cache

    def register(self, bus: EventBus) -> "CacheInvalidationSubscriber":
        bus.subscribe(NovelSaved, self.on_novel_saved)
        bus.subscribe(NovelDeleted, self.on_novel_deleted)
        bus.subscribe(ChapterSaved, self.on_chapter_changed)
        bus.subscribe(ChapterDeleted, self.on_chapter_changed)
        bus.subscribe(RatingChanged, self.on_rating_changed)
        return self

    def on_novel_saved(self, event: NovelSaved) -> None:
        if event.changed_fields and event.changed_fields <= NON_MATERIAL_FIELDS:
            logger.debug("Skipping cache flush for novel %d (views only)", event.novel_id)
            return
        self.cache.clear_novel_caches(event.novel_id, event.slug)

    def on_novel_deleted(self, event: NovelDeleted) -> None:
        self.cache.clear_novel_caches(event.novel_id, event.slug)

    def on_chapter_changed(self, event) -> None:
        self.cache.clear_chapter_caches(event.novel_id, event.chapter_number, event.slug)
        if event.slug:
            self.cache.forget(novel_key(event.slug))

    def on_rating_changed(self, event: RatingChanged) -> None:
        self.cache.clear_novel_caches(event.novel_id, event.slug)
