"""Services package — novel, chapter, rating and admin operations."""

from services.app import App, create_app
from services.admin_service import AdminService, HealthReport, LogErrorSummary, tail_log_errors
from services.chapter_service import ChapterService, ChapterView
from services.novel_service import NovelService, Page, RelatedNovels
from services.rating_service import RatingService, RatingResult, RatingStats
from services.related import (
    RELATED_LIMIT,
    ScoredNovel,
    popular_fallback,
    rank_related,
    score_candidate,
)

__all__ = [
    "App",
    "create_app",
    "AdminService",
    "HealthReport",
    "LogErrorSummary",
    "tail_log_errors",
    "ChapterService",
    "ChapterView",
    "NovelService",
    "Page",
    "RelatedNovels",
    "RatingService",
    "RatingResult",
    "RatingStats",
    "RELATED_LIMIT",
    "ScoredNovel",
    "popular_fallback",
    "rank_related",
    "score_candidate",
]
