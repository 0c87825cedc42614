"""Novel listing, detail, mutation and related-novel operations."""

import dataclasses
import hashlib
import logging
import math
import sqlite3
from dataclasses import dataclass
from typing import Iterable, Optional

from cache.helper import CacheHelper, novel_key, related_key
from config.exceptions import (
    InvalidStatusError,
    NovelNotFoundError,
    ValidationError,
)
from config.settings import Settings
from events.bus import EventBus
from events.events import NovelDeleted, NovelSaved
from models.database import Database
from models.enums import NovelSort, NovelStatus
from models.novel import Genre, Novel
from services.related import (
    RELATED_LIMIT,
    ScoredNovel,
    popular_fallback,
    rank_related,
)

logger = logging.getLogger(__name__)

SHOWCASE_LIMIT = 12
SEARCH_LIMIT = 10
MAX_TITLE_CHARS = 255

_SORT_COLUMNS = {
    NovelSort.POPULAR: "views",
    NovelSort.RATING: "rating",
    NovelSort.LATEST: "created_at",
    NovelSort.UPDATED: "updated_at",
}


@dataclass
class Page:
    """One page of a novel listing."""
    items: list[Novel]
    page: int
    per_page: int
    total: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))


@dataclass
class RelatedNovels:
    """Related novels for a reference; fallback=True means popularity order, no scores."""
    novel_id: int
    fallback: bool
    items: list[ScoredNovel]

    @property
    def novels(self) -> list[Novel]:
        return [item.novel for item in self.items]


def parse_status(value) -> NovelStatus:
    try:
        return NovelStatus(value)
    except ValueError:
        raise InvalidStatusError(value) from None


class NovelService:
    """Read paths go through the cache, write paths publish events for invalidation."""

    def __init__(self, db: Database, cache: CacheHelper, bus: EventBus, settings: Settings):
        self.db = db
        self.cache = cache
        self.bus = bus
        self.settings = settings

    # ---- Listings ----

    def list_novels(
        self,
        genre: Optional[str] = None,
        status: Optional[str] = None,
        sort_by: str = "updated",
        page: int = 1,
    ) -> Page:
        try:
            sort = NovelSort(sort_by)
        except ValueError:
            raise ValidationError(
                "Unknown sort order", {"sort_by": sort_by},
            ) from None
        status_value = parse_status(status) if status else None
        page = max(1, int(page))
        per_page = self.settings.page_size

        def produce() -> Page:
            items = self.db.list_novels(
                genre_slug=genre,
                status=status_value,
                order_by=_SORT_COLUMNS[sort],
                limit=per_page,
                offset=(page - 1) * per_page,
            )
            total = self.db.count_novels(genre_slug=genre, status=status_value)
            return Page(items=items, page=page, per_page=per_page, total=total)

        key = f"novels_index_{genre or 'all'}_{status or 'all'}_{sort.value}_{page}"
        return self.cache.remember(
            key, self.settings.listing_cache_ttl, produce, tags=("novels", "novels-index"),
        )

    def popular(self) -> list[Novel]:
        return self._showcase("novels_popular", "novels-popular", "views")

    def latest(self) -> list[Novel]:
        return self._showcase("novels_latest", "novels-latest", "created_at")

    def recently_updated(self) -> list[Novel]:
        return self._showcase("novels_recently_updated", "novels-updated", "updated_at")

    def recommendations(self) -> list[Novel]:
        return self._showcase("novels_recommendations", "novels-recommendations", "rating_views")

    def _showcase(self, key: str, tag: str, order_by: str) -> list[Novel]:
        return self.cache.remember(
            key,
            self.settings.listing_cache_ttl,
            lambda: self.db.list_novels(order_by=order_by, limit=SHOWCASE_LIMIT),
            tags=("novels", tag),
        )

    def search(self, query: Optional[str]) -> list[Novel]:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query is required")
        digest = hashlib.sha1(query.lower().encode("utf-8")).hexdigest()
        return self.cache.remember(
            f"novels_search_{digest}",
            self.settings.listing_cache_ttl,
            lambda: self.db.search_novels(query, limit=SEARCH_LIMIT),
            tags=("novels", "novels-search"),
        )

    def genres(self) -> list[Genre]:
        return self.cache.remember(
            "genres_all", self.settings.cache_default_ttl, self.db.list_genres, tags=("genres",),
        )

    # ---- Detail ----

    def get_novel(self, slug: str) -> Novel:
        novel = self.cache.remember(
            novel_key(slug),
            self.settings.cache_default_ttl,
            lambda: self.db.get_novel_by_slug(slug),
            tags=(novel_key(slug),),
        )
        if novel is None:
            raise NovelNotFoundError(slug)
        return novel

    def show_novel(self, slug: str) -> Novel:
        """Novel detail for a reader; counts a view."""
        novel = self.get_novel(slug)
        try:
            views = self.db.increment_views(novel.id)
        except sqlite3.Error as e:
            logger.warning("View increment failed, novel=%d, error=%s", novel.id, e)
            return novel
        self.bus.publish(NovelSaved(novel.id, novel.slug, frozenset({"views"})))
        return dataclasses.replace(novel, views=views)

    # ---- Mutations ----

    def create_novel(
        self,
        title: str,
        author: str,
        description: str = "",
        status: str = NovelStatus.ONGOING.value,
        genre_ids: Iterable[int] = (),
    ) -> Novel:
        title = self._validate_title(title)
        novel = Novel(
            title=title,
            author=(author or "").strip(),
            description=description or "",
            status=parse_status(status),
            genres=self._resolve_genres(genre_ids),
        )
        novel.id = self.db.create_novel(novel)
        logger.info("Novel created: id=%d slug=%s", novel.id, novel.slug)
        self.bus.publish(NovelSaved(novel.id, novel.slug))
        return self.db.get_novel(novel.id)

    def update_novel(
        self,
        slug: str,
        title: Optional[str] = None,
        author: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[str] = None,
        genre_ids: Optional[Iterable[int]] = None,
    ) -> Novel:
        novel = self.db.get_novel_by_slug(slug)
        if novel is None:
            raise NovelNotFoundError(slug)

        changed: set[str] = set()
        if title is not None and title.strip() != novel.title:
            novel.title = self._validate_title(title)
            changed.add("title")
        if author is not None and author.strip() != novel.author:
            novel.author = author.strip()
            changed.add("author")
        if description is not None and description != novel.description:
            novel.description = description
            changed.add("description")
        if status is not None:
            new_status = parse_status(status)
            if new_status != novel.status:
                novel.status = new_status
                changed.add("status")

        if changed:
            self.db.update_novel(novel)
        if genre_ids is not None:
            genres = self._resolve_genres(genre_ids)
            if {g.id for g in genres} != novel.genre_ids:
                self.db.set_novel_genres(novel.id, [g.id for g in genres])
                changed.add("genres")

        if changed:
            self.bus.publish(NovelSaved(novel.id, novel.slug, frozenset(changed)))
        return self.db.get_novel(novel.id)

    def delete_novel(self, slug: str) -> None:
        novel = self.db.get_novel_by_slug(slug)
        if novel is None:
            raise NovelNotFoundError(slug)
        self.db.delete_novel(novel.id)
        self.bus.publish(NovelDeleted(novel.id, novel.slug))

    def _validate_title(self, title: Optional[str]) -> str:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if len(title) > MAX_TITLE_CHARS:
            raise ValidationError("Title is too long", {"max": MAX_TITLE_CHARS})
        return title

    def _resolve_genres(self, genre_ids: Iterable[int]) -> list[Genre]:
        wanted = list(dict.fromkeys(genre_ids))
        if not wanted:
            return []
        known = {g.id: g for g in self.db.list_genres()}
        unknown = [gid for gid in wanted if gid not in known]
        if unknown:
            raise ValidationError("Unknown genre ids", {"genre_ids": unknown})
        return [known[gid] for gid in wanted]

    # ---- Related ----

    def related(self, novel_id: int) -> RelatedNovels:
        reference = self.db.get_novel(novel_id)
        if reference is None:
            raise NovelNotFoundError(novel_id)

        def produce() -> RelatedNovels:
            if not reference.genres:
                popular = self.db.list_novels(order_by="views", limit=RELATED_LIMIT + 1)
                return RelatedNovels(
                    novel_id=reference.id,
                    fallback=True,
                    items=[ScoredNovel(n, None) for n in popular_fallback(reference, popular)],
                )
            candidates = self.db.get_genre_neighbours(reference.id)
            return RelatedNovels(
                novel_id=reference.id,
                fallback=False,
                items=rank_related(reference, candidates),
            )

        return self.cache.remember(
            related_key(reference.id),
            self.settings.related_cache_ttl,
            produce,
            tags=("novels-related", novel_key(reference.slug)),
        )
