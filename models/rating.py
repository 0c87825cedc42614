"""Rating data model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

MIN_RATING = 1
MAX_RATING = 5
MAX_REVIEW_CHARS = 1000


@dataclass
class Rating:
    """A user's 1-5 star rating of a novel, with an optional review."""
    id: Optional[int] = None
    novel_id: int = 0
    user_id: int = 0
    rating: int = 0
    review: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
