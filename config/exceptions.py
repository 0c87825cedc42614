"""Custom exception hierarchy for the novel platform."""

from typing import Optional


class NovelHubError(Exception):
    """Base exception for all novelhub errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- Cache Errors ----

class CacheError(NovelHubError):
    """Cache backend operation failed."""


# ---- Database Errors ----

class DatabaseError(NovelHubError):
    """Database operation failed."""


# ---- Not Found Errors ----

class NotFoundError(NovelHubError):
    """Requested record does not exist."""


class NovelNotFoundError(NotFoundError):
    """No novel with the given id or slug."""

    def __init__(self, identifier):
        super().__init__("Novel not found", {"novel": identifier})
        self.identifier = identifier


class ChapterNotFoundError(NotFoundError):
    """No chapter with the given number for the novel."""

    def __init__(self, novel_id: int, chapter_number: int):
        super().__init__(
            "Chapter not found",
            {"novel_id": novel_id, "chapter_number": chapter_number},
        )


class RatingNotFoundError(NotFoundError):
    """No rating with the given id."""

    def __init__(self, rating_id: int):
        super().__init__("Rating not found", {"rating_id": rating_id})


# ---- Validation Errors ----

class ValidationError(NovelHubError):
    """Input validation failed."""


class InvalidRatingError(ValidationError):
    """Rating outside the 1-5 integer range."""

    def __init__(self, value):
        super().__init__("Rating must be an integer between 1 and 5", {"rating": value})


class InvalidStatusError(ValidationError):
    """Unknown novel lifecycle status."""

    def __init__(self, value):
        super().__init__(
            "Status must be one of ongoing, completed, hiatus", {"status": value}
        )


class InvalidConfigError(ValidationError):
    """Configuration value is invalid."""
