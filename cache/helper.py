"""Tag-aware remember/flush helper over a CacheBackend.

Listing endpoints are cached per page and filter combination, so the full
set of derived keys cannot be enumerated on write. Entries are grouped by a
semantic tag (e.g. "novels-index") and the whole group is dropped on any
mutation in that domain. Backends without tag support instead forget a known
list of fallback keys; paginated variants then expire through their TTL.
"""

import logging
from typing import Any, Callable, Iterable, Optional

from cache.backends import MISSING, CacheBackend

logger = logging.getLogger(__name__)

# Backend identifiers known to support tag grouping
TAGGED_BACKENDS = frozenset({"redis", "memcached"})

NOVEL_TAGS = (
    "novels",
    "novels-index",
    "novels-search",
    "novels-popular",
    "novels-updated",
    "novels-recommendations",
    "novels-latest",
    "novels-related",
)

NOVEL_FALLBACK_KEYS = (
    "novels_popular",
    "novels_latest",
    "novels_recently_updated",
    "novels_recommendations",
    "genres_all",
)


def novel_key(slug: str) -> str:
    return f"novel_{slug}"


def chapters_key(novel_id: int) -> str:
    return f"chapters_novel_{novel_id}"


def chapter_key(novel_id: int, chapter_number: int) -> str:
    return f"chapter_{novel_id}_{chapter_number}"


def related_key(novel_id: int) -> str:
    return f"novel_related_{novel_id}"


class CacheHelper:
    """Uniform remember/flush interface with tag fallback.

    Args:
        backend: The key-value store.
        backend_name: Configured backend identifier; decides tag support once.
    """

    def __init__(self, backend: CacheBackend, backend_name: str):
        self.backend = backend
        self.backend_name = backend_name
        self.supports_tags = backend_name in TAGGED_BACKENDS

    @classmethod
    def from_settings(cls, settings, backend: Optional[CacheBackend] = None) -> "CacheHelper":
        from cache.backends import build_cache
        return cls(backend or build_cache(settings), settings.cache_backend)

    def remember(
        self,
        key: str,
        ttl: int,
        producer: Callable[[], Any],
        tags: Iterable[str] = (),
    ) -> Any:
        """Return the cached value for key, producing and storing it on a miss.

        A producer result of None is returned but not stored, so lookups of
        absent rows are retried rather than pinned for the whole ttl.
        """
        tags = tuple(tags) if self.supports_tags else ()
        try:
            value = self.backend.get(key)
        except Exception as e:
            logger.warning("Cache read failed, key=%s, error=%s", key, e)
            return producer()
        if value is not MISSING:
            return value

        value = producer()
        if value is None:
            # misses (e.g. an unknown slug) are not stored
            return value
        try:
            self.backend.put(key, value, ttl, tags)
        except Exception as e:
            logger.warning("Cache write failed, key=%s, tags=%s, error=%s", key, list(tags), e)
        return value

    def flush(self, tags: Iterable[str] = (), fallback_keys: Iterable[str] = ()) -> None:
        """Invalidate tags, or forget fallback_keys when tags are unsupported.

        Never raises: a failed flush leaves stale entries until their TTL.
        """
        tags = list(tags)
        keys = list(fallback_keys)
        try:
            if self.supports_tags and tags:
                self.backend.flush_tags(tags)
            else:
                for key in keys:
                    self.backend.forget(key)
        except Exception as e:
            logger.warning("Cache flush failed, tags=%s, keys=%s, error=%s", tags, keys, e)

    def forget(self, key: str) -> None:
        try:
            self.backend.forget(key)
        except Exception as e:
            logger.warning("Cache forget failed, key=%s, error=%s", key, e)

    def clear_novel_caches(
        self, novel_id: Optional[int] = None, slug: Optional[str] = None,
    ) -> None:
        """Drop every listing plus the given novel's detail, chapter and related entries."""
        keys = list(NOVEL_FALLBACK_KEYS)
        tags = list(NOVEL_TAGS)
        if slug:
            keys.append(novel_key(slug))
            tags.append(novel_key(slug))
        if novel_id is not None:
            keys.append(chapters_key(novel_id))
            keys.append(related_key(novel_id))
        self.flush(tags, keys)

    def clear_chapter_caches(
        self,
        novel_id: int,
        chapter_number: Optional[int] = None,
        slug: Optional[str] = None,
    ) -> None:
        keys = [chapters_key(novel_id)]
        tags = [chapters_key(novel_id)]
        if chapter_number is not None:
            keys.append(chapter_key(novel_id, chapter_number))
        if slug:
            keys.append(novel_key(slug))
            tags.append(novel_key(slug))
        self.flush(tags, keys)
