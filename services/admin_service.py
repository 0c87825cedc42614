"""Admin operations: health, dashboard stats, log errors, counter repair, cache clearing."""

import logging
import os
import re
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

from cache.backends import MISSING
from cache.helper import NOVEL_TAGS, CacheHelper
from config.logging_config import MAIN_LOG_NAME
from config.settings import Settings
from models.database import Database

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"

# "2026-01-09 16:29:41 | services.novel_service | ERROR | message"
_LOG_LINE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2}) \d{2}:\d{2}:\d{2} \| (?P<name>[^|]+?) \| "
    r"(?P<level>[A-Z]+) \| (?P<message>.*)$"
)
_ERROR_LEVELS = frozenset({"ERROR", "CRITICAL"})
LATEST_ERRORS_SHOWN = 5
TOP_GENRES_SHOWN = 5


@dataclass
class LogErrorSummary:
    count_today: int = 0
    critical_errors: int = 0
    latest: list[str] = field(default_factory=list)


@dataclass
class HealthReport:
    status: str
    timestamp: str
    checks: dict[str, str]
    recent_errors: LogErrorSummary

    def as_dict(self) -> dict:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "checks": dict(self.checks),
            "recent_errors": {
                "count_today": self.recent_errors.count_today,
                "critical_errors": self.recent_errors.critical_errors,
                "latest": list(self.recent_errors.latest),
            },
        }


@dataclass
class ChapterCountFix:
    novel_id: int
    title: str
    old_count: int
    new_count: int


@dataclass
class DashboardStats:
    total_novels: int
    total_chapters: int
    total_ratings: int
    novels_this_month: int
    total_views: int
    average_rating: float
    top_genres: list[tuple[str, int]]

    def as_dict(self) -> dict:
        return {
            "content": {
                "total_novels": self.total_novels,
                "total_chapters": self.total_chapters,
                "total_ratings": self.total_ratings,
                "novels_this_month": self.novels_this_month,
            },
            "engagement": {
                "total_views": self.total_views,
                "average_rating": self.average_rating,
            },
            "top_genres": [{"name": name, "count": count} for name, count in self.top_genres],
        }


def tail_log_errors(
    path: str | Path, max_lines: int = 500, today: Optional[date] = None,
) -> LogErrorSummary:
    """Summarize ERROR/CRITICAL records dated today among the last max_lines lines.

    Lines not in the application log format (tracebacks, wrapped messages)
    are ignored. A missing log file yields an empty summary.
    """
    path = Path(path)
    today_str = (today or date.today()).isoformat()
    summary = LogErrorSummary()
    if not path.exists():
        return summary

    with path.open("r", encoding="utf-8", errors="replace") as f:
        tail = deque(f, maxlen=max_lines)

    errors = []
    for line in tail:
        match = _LOG_LINE.match(line.rstrip("\n"))
        if not match or match["level"] not in _ERROR_LEVELS:
            continue
        if match["date"] != today_str:
            continue
        summary.count_today += 1
        if match["level"] == "CRITICAL":
            summary.critical_errors += 1
        errors.append(f"{match['name']}: {match['message']}")
    summary.latest = errors[-LATEST_ERRORS_SHOWN:]
    return summary


class AdminService:
    def __init__(self, db: Database, cache: CacheHelper, settings: Settings):
        self.db = db
        self.cache = cache
        self.settings = settings

    def health_check(self) -> HealthReport:
        checks = {
            "database": self._check_database(),
            "cache": self._check_cache(),
            "storage": self._check_storage(),
        }
        status = "up" if all(v == HEALTHY for v in checks.values()) else "degraded"
        return HealthReport(
            status=status,
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            checks=checks,
            recent_errors=tail_log_errors(
                Path(self.settings.log_dir) / MAIN_LOG_NAME,
                max_lines=self.settings.health_log_lines,
            ),
        )

    def _check_database(self) -> str:
        try:
            return HEALTHY if self.db.ping() else UNHEALTHY
        except Exception as e:
            logger.warning("Health check: database unavailable: %s", e)
            return UNHEALTHY

    def _check_cache(self) -> str:
        key = f"health_check_{int(time.time())}"
        backend = self.cache.backend
        try:
            backend.put(key, "test", 5)
            retrieved = backend.get(key)
            backend.forget(key)
        except Exception as e:
            logger.warning("Health check: cache unavailable: %s", e)
            return UNHEALTHY
        return HEALTHY if retrieved is not MISSING and retrieved == "test" else UNHEALTHY

    def _check_storage(self) -> str:
        storage = Path(self.settings.storage_dir)
        return HEALTHY if storage.is_dir() and os.access(storage, os.W_OK) else UNHEALTHY

    def dashboard_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        """Content and engagement totals plus the most used genres."""
        now = now or datetime.now(timezone.utc)
        month_start = now.strftime("%Y-%m-01 00:00:00")
        counts = self.db.dashboard_counts(since=month_start)
        return DashboardStats(
            total_novels=counts["novels"],
            total_chapters=counts["chapters"],
            total_ratings=counts["ratings"],
            novels_this_month=counts["novels_since"],
            total_views=counts["total_views"],
            average_rating=round(counts["average_rating"] or 0.0, 2),
            top_genres=self.db.top_genres(TOP_GENRES_SHOWN),
        )

    def fix_chapter_counts(self) -> list[ChapterCountFix]:
        """Recompute total_chapters from the chapters table for every novel."""
        fixes = []
        for novel in self.db.list_novels(order_by="created_at"):
            actual = self.db.count_chapters(novel.id)
            if actual != novel.total_chapters:
                self.db.set_chapter_count(novel.id, actual)
                fixes.append(ChapterCountFix(novel.id, novel.title, novel.total_chapters, actual))
                logger.info(
                    "Novel '%s': %d -> %d chapters", novel.title, novel.total_chapters, actual,
                )
                self.cache.clear_novel_caches(novel.id, novel.slug)
        return fixes

    def clear_caches(self, tags: Optional[list[str]] = None) -> list[str]:
        """Flush the given tags, or every novel cache when none are given.

        Without tag support the given names are forgotten as plain keys.
        Returns the tags that were requested.
        """
        if not tags:
            self.cache.clear_novel_caches()
            return list(NOVEL_TAGS)
        self.cache.flush(tags, tags)
        return list(tags)
