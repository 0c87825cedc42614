"""Key-value cache backends behind the CacheHelper.

Only the distributed backend can group entries by tag. The in-process and
no-op backends accept tags in put() for a uniform signature but ignore them.
"""

import copy
import logging
import pickle
import threading
import time
from typing import Any, Callable, Iterable, Optional, Protocol, runtime_checkable

import redis

from config.exceptions import CacheError, InvalidConfigError

logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# Returned by get() on a miss, so None stays a cacheable value
MISSING = _Missing()


@runtime_checkable
class CacheBackend(Protocol):
    """Protocol every cache backend implements."""

    def get(self, key: str) -> Any:
        """Return the stored value, or MISSING when absent or expired."""
        ...

    def put(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        """Store value for ttl seconds, associated with tags where supported."""
        ...

    def forget(self, key: str) -> None:
        """Delete a single key (no error if absent)."""
        ...

    def flush_tags(self, tags: Iterable[str]) -> None:
        """Delete every entry ever stored under any of tags."""
        ...


class MemoryCache:
    """In-process dict cache with TTL expiry. Tags are not supported.

    Values are deep-copied on put and get, matching the copy semantics of
    a pickling backend: mutating a returned Novel or Page leaves the
    cached entry intact.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._store: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return MISSING
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._store[key]
                return MISSING
            return copy.deepcopy(value)

    def put(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        with self._lock:
            self._store[key] = (copy.deepcopy(value), self._clock() + ttl)

    def forget(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def flush_tags(self, tags: Iterable[str]) -> None:
        raise NotImplementedError("MemoryCache does not support tags")

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class NullCache:
    """Stores nothing; every lookup is a miss."""

    def get(self, key: str) -> Any:
        return MISSING

    def put(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        pass

    def forget(self, key: str) -> None:
        pass

    def flush_tags(self, tags: Iterable[str]) -> None:
        pass


class RedisCache:
    """Redis-backed cache with tag sets.

    Key structure:
    - {prefix}{key}            - pickled value, expires after ttl
    - {prefix}tag:{tag}:keys   - SET of cache keys stored under the tag,
                                 expires with its longest-lived member

    A put writes the value and its tag memberships in one MULTI/EXEC.
    A flush WATCHes the tag sets while reading their members, so a put
    landing on any of them before EXEC aborts the flush and it is retried
    with the new members included.
    """

    def __init__(self, client: "redis.Redis", prefix: str = "", max_flush_attempts: int = 5):
        self.client = client
        self.prefix = prefix
        self.max_flush_attempts = max_flush_attempts

    @classmethod
    def from_url(cls, url: str, prefix: str = "") -> "RedisCache":
        return cls(redis.Redis.from_url(url), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}tag:{tag}:keys"

    def get(self, key: str) -> Any:
        raw = self.client.get(self._key(key))
        if raw is None:
            return MISSING
        try:
            return pickle.loads(raw)
        except (pickle.UnpicklingError, EOFError, ValueError) as e:
            raise CacheError("Corrupt cache entry", {"key": key}) from e

    def put(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        full_key = self._key(key)
        pipe = self.client.pipeline(transaction=True)
        pipe.set(full_key, pickle.dumps(value), ex=ttl)
        for tag in tags:
            tag_key = self._tag_key(tag)
            pipe.sadd(tag_key, full_key)
            # NX covers a fresh set, GT only ever lengthens an existing expiry
            pipe.expire(tag_key, ttl, nx=True)
            pipe.expire(tag_key, ttl, gt=True)
        pipe.execute()

    def forget(self, key: str) -> None:
        self.client.delete(self._key(key))

    def flush_tags(self, tags: Iterable[str]) -> None:
        tags = list(tags)
        tag_keys = [self._tag_key(tag) for tag in tags]
        if not tag_keys:
            return
        with self.client.pipeline(transaction=True) as pipe:
            for attempt in range(1, self.max_flush_attempts + 1):
                try:
                    pipe.watch(*tag_keys)
                    members: set = set()
                    for tag_key in tag_keys:
                        members.update(pipe.smembers(tag_key))
                    pipe.multi()
                    if members:
                        pipe.delete(*members)
                    pipe.delete(*tag_keys)
                    pipe.execute()
                except redis.WatchError:
                    logger.debug("Tag flush raced a write (attempt %d), retrying: %s", attempt, tags)
                    continue
                logger.debug("Flushed %d cache entries for tags %s", len(members), tags)
                return
        raise CacheError(
            "Tag flush kept racing concurrent writes",
            {"tags": tags, "attempts": self.max_flush_attempts},
        )


def build_cache(settings, client: Optional["redis.Redis"] = None) -> CacheBackend:
    """Instantiate the backend named by settings.cache_backend."""
    name = settings.cache_backend
    if name == "redis":
        if client is not None:
            return RedisCache(client, prefix=settings.cache_prefix)
        return RedisCache.from_url(settings.redis_url, prefix=settings.cache_prefix)
    if name == "null":
        return NullCache()
    if name == "memory":
        return MemoryCache()
    raise InvalidConfigError("Unknown cache backend", {"cache_backend": name})
