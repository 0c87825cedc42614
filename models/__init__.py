"""Models package — database, data models, and enums."""

from models.database import Database
from models.novel import Novel, Genre, slugify
from models.chapter import Chapter, count_words
from models.rating import Rating
from models.enums import NovelStatus, NovelSort

__all__ = [
    "Database",
    "Novel",
    "Genre",
    "slugify",
    "Chapter",
    "count_words",
    "Rating",
    "NovelStatus",
    "NovelSort",
]
