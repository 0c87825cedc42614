"""Chapter listing, reading and mutation with total_chapters bookkeeping."""

import dataclasses
import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

from cache.helper import CacheHelper, chapter_key, chapters_key
from config.exceptions import ChapterNotFoundError, NovelNotFoundError, ValidationError
from config.settings import Settings
from events.bus import EventBus
from events.events import ChapterDeleted, ChapterSaved
from models.chapter import Chapter, count_words
from models.database import Database
from models.novel import Novel

logger = logging.getLogger(__name__)

MAX_TITLE_CHARS = 255


@dataclass
class ChapterView:
    """A chapter with its neighbours' numbers for prev/next navigation."""
    chapter: Chapter
    previous_number: Optional[int]
    next_number: Optional[int]


class ChapterService:
    def __init__(self, db: Database, cache: CacheHelper, bus: EventBus, settings: Settings):
        self.db = db
        self.cache = cache
        self.bus = bus
        self.settings = settings

    def _novel(self, novel_id: int) -> Novel:
        novel = self.db.get_novel(novel_id)
        if novel is None:
            raise NovelNotFoundError(novel_id)
        return novel

    def list_chapters(self, novel_id: int) -> list[Chapter]:
        """Chapter table of contents (content stripped)."""
        self._novel(novel_id)
        return self.cache.remember(
            chapters_key(novel_id),
            self.settings.chapter_cache_ttl,
            lambda: [dataclasses.replace(ch, content="") for ch in self.db.get_chapters(novel_id)],
            tags=(chapters_key(novel_id),),
        )

    def get_chapter(self, novel_id: int, chapter_number: int) -> ChapterView:
        """Chapter for a reader with prev/next numbers; counts a view."""
        chapter = self.db.get_chapter(novel_id, chapter_number)
        if chapter is None:
            raise ChapterNotFoundError(novel_id, chapter_number)
        try:
            chapter.views = self.db.increment_chapter_views(novel_id, chapter_number)
        except sqlite3.Error as e:
            logger.warning(
                "Chapter view increment failed, novel=%d, chapter=%d, error=%s",
                novel_id, chapter_number, e,
            )

        def navigation() -> tuple[Optional[int], Optional[int]]:
            prev_ch, next_ch = self.db.get_adjacent_chapters(novel_id, chapter_number)
            return (
                prev_ch.chapter_number if prev_ch else None,
                next_ch.chapter_number if next_ch else None,
            )

        previous_number, next_number = self.cache.remember(
            chapter_key(novel_id, chapter_number),
            self.settings.chapter_cache_ttl,
            navigation,
            tags=(chapters_key(novel_id),),
        )
        return ChapterView(chapter, previous_number, next_number)

    def create_chapter(
        self,
        novel_id: int,
        title: str,
        content: str,
        chapter_number: Optional[int] = None,
        is_free: bool = True,
    ) -> Chapter:
        novel = self._novel(novel_id)
        title = self._validate_title(title)
        if not content:
            raise ValidationError("Chapter content is required")

        if chapter_number is None:
            chapter_number = self.db.get_last_chapter_number(novel_id) + 1
        elif chapter_number < 1:
            raise ValidationError("Chapter number must be >= 1", {"chapter_number": chapter_number})
        elif self.db.get_chapter(novel_id, chapter_number) is not None:
            raise ValidationError(
                "Chapter number already exists",
                {"novel_id": novel_id, "chapter_number": chapter_number},
            )

        chapter = Chapter(
            novel_id=novel_id,
            chapter_number=chapter_number,
            title=title,
            content=content,
            word_count=count_words(content),
            is_free=is_free,
        )
        chapter.id = self.db.create_chapter(chapter)
        self.db.adjust_chapter_count(novel_id, +1)
        logger.info("Chapter %d added to novel %d", chapter_number, novel_id)
        self.bus.publish(ChapterSaved(novel_id, chapter_number, novel.slug))
        return self.db.get_chapter(novel_id, chapter_number)

    def update_chapter(
        self,
        novel_id: int,
        chapter_number: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        is_free: Optional[bool] = None,
        new_number: Optional[int] = None,
    ) -> Chapter:
        novel = self._novel(novel_id)
        chapter = self.db.get_chapter(novel_id, chapter_number)
        if chapter is None:
            raise ChapterNotFoundError(novel_id, chapter_number)

        if title is not None:
            chapter.title = self._validate_title(title)
        if content is not None:
            if not content:
                raise ValidationError("Chapter content is required")
            chapter.content = content
            chapter.word_count = count_words(content)
        if is_free is not None:
            chapter.is_free = is_free
        if new_number is not None and new_number != chapter_number:
            if new_number < 1:
                raise ValidationError("Chapter number must be >= 1", {"chapter_number": new_number})
            if self.db.get_chapter(novel_id, new_number) is not None:
                raise ValidationError(
                    "Chapter number already exists",
                    {"novel_id": novel_id, "chapter_number": new_number},
                )
            chapter.chapter_number = new_number

        self.db.update_chapter(chapter)
        self.bus.publish(ChapterSaved(novel_id, chapter_number, novel.slug))
        if chapter.chapter_number != chapter_number:
            self.bus.publish(ChapterSaved(novel_id, chapter.chapter_number, novel.slug))
        return self.db.get_chapter(novel_id, chapter.chapter_number)

    def delete_chapter(self, novel_id: int, chapter_number: int) -> None:
        novel = self._novel(novel_id)
        if not self.db.delete_chapter(novel_id, chapter_number):
            raise ChapterNotFoundError(novel_id, chapter_number)
        self.db.adjust_chapter_count(novel_id, -1)
        logger.info("Chapter %d deleted from novel %d", chapter_number, novel_id)
        self.bus.publish(ChapterDeleted(novel_id, chapter_number, novel.slug))

    def delete_chapters(self, novel_id: int, chapter_numbers: list[int]) -> int:
        """Bulk delete; missing numbers are skipped. Returns how many were removed."""
        deleted = 0
        for number in chapter_numbers:
            try:
                self.delete_chapter(novel_id, number)
            except ChapterNotFoundError:
                logger.debug("Chapter %d of novel %d already gone", number, novel_id)
                continue
            deleted += 1
        return deleted

    def _validate_title(self, title: Optional[str]) -> str:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Chapter title is required")
        if len(title) > MAX_TITLE_CHARS:
            raise ValidationError("Chapter title is too long", {"max": MAX_TITLE_CHARS})
        return title
