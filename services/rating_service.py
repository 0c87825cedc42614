"""Ratings: one per (user, novel), with the novel's average kept in sync."""

import logging
from dataclasses import dataclass
from typing import Optional

from config.exceptions import (
    InvalidRatingError,
    NovelNotFoundError,
    RatingNotFoundError,
    ValidationError,
)
from events.bus import EventBus
from events.events import RatingChanged
from models.database import Database
from models.rating import MAX_RATING, MAX_REVIEW_CHARS, MIN_RATING, Rating

logger = logging.getLogger(__name__)


@dataclass
class RatingStats:
    average_rating: float
    total_ratings: int
    breakdown: dict[int, int]


@dataclass
class RatingResult:
    rating: Rating
    created: bool
    average_rating: float
    total_ratings: int


class RatingService:
    def __init__(self, db: Database, bus: EventBus):
        self.db = db
        self.bus = bus

    def rate(
        self, novel_id: int, user_id: int, rating: int, review: Optional[str] = None,
    ) -> RatingResult:
        """Create or replace the user's rating and recompute the novel average."""
        if isinstance(rating, bool) or not isinstance(rating, int) or not (
            MIN_RATING <= rating <= MAX_RATING
        ):
            raise InvalidRatingError(rating)
        if review is not None and len(review) > MAX_REVIEW_CHARS:
            raise ValidationError("Review is too long", {"max": MAX_REVIEW_CHARS})
        novel = self.db.get_novel(novel_id)
        if novel is None:
            raise NovelNotFoundError(novel_id)

        rating_id, created = self.db.upsert_rating(
            Rating(novel_id=novel_id, user_id=user_id, rating=rating, review=review)
        )
        average, count = self.db.refresh_novel_rating(novel_id)
        logger.info(
            "Rating %s: novel=%d user=%d stars=%d -> avg=%.2f (%d)",
            "created" if created else "updated", novel_id, user_id, rating, average, count,
        )
        self.bus.publish(RatingChanged(novel_id, novel.slug))
        return RatingResult(
            rating=self.db.get_rating(rating_id),
            created=created,
            average_rating=average,
            total_ratings=count,
        )

    def delete_rating(self, rating_id: int) -> RatingStats:
        rating = self.db.get_rating(rating_id)
        if rating is None:
            raise RatingNotFoundError(rating_id)
        self.db.delete_rating(rating_id)
        novel = self.db.get_novel(rating.novel_id)
        self.db.refresh_novel_rating(rating.novel_id)
        self.bus.publish(RatingChanged(rating.novel_id, novel.slug if novel else None))
        return self.stats(rating.novel_id)

    def user_rating(self, user_id: int, novel_id: int) -> Optional[Rating]:
        return self.db.get_user_rating(user_id, novel_id)

    def stats(self, novel_id: int) -> RatingStats:
        novel = self.db.get_novel(novel_id)
        if novel is None:
            raise NovelNotFoundError(novel_id)
        return RatingStats(
            average_rating=novel.rating,
            total_ratings=novel.rating_count,
            breakdown=self.db.rating_breakdown(novel_id),
        )
