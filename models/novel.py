"""Novel and genre data models."""

import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.enums import NovelStatus


def slugify(text: str) -> str:
    """Lowercase ASCII slug with hyphens, e.g. "Sword & Sorcery!" -> "sword-sorcery"."""
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text).strip("-").lower()
    return text or "novel"


@dataclass
class Genre:
    """A genre label shared by many novels."""
    id: Optional[int] = None
    name: str = ""
    slug: str = ""
    description: str = ""


@dataclass
class Novel:
    """Represents a novel and its denormalized counters."""
    id: Optional[int] = None
    title: str = ""
    slug: str = ""
    author: str = ""
    description: str = ""
    status: NovelStatus = NovelStatus.ONGOING
    genres: list[Genre] = field(default_factory=list)
    views: int = 0
    rating: float = 0.0  # mean of Rating.rating, two decimals
    rating_count: int = 0
    total_chapters: int = 0  # maintained by chapter create/delete
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def genre_ids(self) -> set[int]:
        return {g.id for g in self.genres if g.id is not None}
