"""Cache package — backends and the tag-aware helper."""

from cache.backends import (
    MISSING,
    CacheBackend,
    MemoryCache,
    NullCache,
    RedisCache,
    build_cache,
)
from cache.helper import (
    NOVEL_FALLBACK_KEYS,
    NOVEL_TAGS,
    TAGGED_BACKENDS,
    CacheHelper,
    chapter_key,
    chapters_key,
    novel_key,
    related_key,
)

__all__ = [
    "MISSING",
    "CacheBackend",
    "MemoryCache",
    "NullCache",
    "RedisCache",
    "build_cache",
    "CacheHelper",
    "TAGGED_BACKENDS",
    "NOVEL_TAGS",
    "NOVEL_FALLBACK_KEYS",
    "novel_key",
    "chapters_key",
    "chapter_key",
    "related_key",
]
