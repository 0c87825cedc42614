"""Post-commit domain events published by the services."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class NovelSaved:
    """A novel row was created or updated.

    changed_fields names the columns that changed; "genres" stands for the
    genre links. An empty set means "unknown", treated as a material change.
    """
    novel_id: int
    slug: str
    changed_fields: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class NovelDeleted:
    novel_id: int
    slug: str


@dataclass(frozen=True)
class ChapterSaved:
    novel_id: int
    chapter_number: int
    slug: Optional[str] = None


@dataclass(frozen=True)
class ChapterDeleted:
    novel_id: int
    chapter_number: int
    slug: Optional[str] = None


@dataclass(frozen=True)
class RatingChanged:
    novel_id: int
    slug: Optional[str] = None
