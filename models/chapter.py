"""Chapter data model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Chapter:
    """Represents a single chapter."""
    id: Optional[int] = None
    novel_id: int = 0
    chapter_number: int = 0
    title: str = ""
    content: str = ""
    word_count: int = 0
    views: int = 0
    is_free: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def count_words(text: str) -> int:
    """Whitespace-delimited word count used for Chapter.word_count."""
    return len(text.split()) if text else 0
