"""Related-novel scoring.

Each candidate sharing a genre with the reference gets a score out of 100:

    genre overlap        |C ∩ R| / |R| * 50
    same author          20
    rating proximity     max(0, 15 - 3 * |ΔRating|)
    popularity proximity max(0, 10 - |ln(Cv + 1) - ln(Rv + 1)|)
    same status          5

A reference without genres has nothing to compare on and gets the most
viewed novels instead.
"""

import math
from dataclasses import dataclass
from typing import Optional

from models.novel import Novel

RELATED_LIMIT = 6

GENRE_WEIGHT = 50.0
AUTHOR_BONUS = 20.0
RATING_WEIGHT = 15.0
RATING_PENALTY_PER_STAR = 3.0
POPULARITY_WEIGHT = 10.0
STATUS_BONUS = 5.0


@dataclass
class ScoredNovel:
    novel: Novel
    score: Optional[float]  # None for popularity fallback entries


def genre_overlap_score(reference: Novel, candidate: Novel) -> float:
    reference_genres = reference.genre_ids
    if not reference_genres:
        return 0.0
    shared = len(candidate.genre_ids & reference_genres)
    return shared / len(reference_genres) * GENRE_WEIGHT


def rating_proximity_score(reference: Novel, candidate: Novel) -> float:
    diff = abs(float(candidate.rating) - float(reference.rating))
    return max(0.0, RATING_WEIGHT - RATING_PENALTY_PER_STAR * diff)


def popularity_proximity_score(reference: Novel, candidate: Novel) -> float:
    diff = abs(math.log(candidate.views + 1) - math.log(reference.views + 1))
    return max(0.0, POPULARITY_WEIGHT - diff)


def score_candidate(reference: Novel, candidate: Novel) -> float:
    score = genre_overlap_score(reference, candidate)
    if candidate.author == reference.author:
        score += AUTHOR_BONUS
    score += rating_proximity_score(reference, candidate)
    score += popularity_proximity_score(reference, candidate)
    if candidate.status == reference.status:
        score += STATUS_BONUS
    return score


def rank_related(
    reference: Novel, candidates: list[Novel], limit: int = RELATED_LIMIT,
) -> list[ScoredNovel]:
    """Score genre-sharing candidates and return the best `limit`, ties in input order."""
    reference_genres = reference.genre_ids
    scored = [
        ScoredNovel(novel=c, score=score_candidate(reference, c))
        for c in candidates
        if c.id != reference.id and c.genre_ids & reference_genres
    ]
    # sorted() is stable, equal scores keep their candidate order
    scored = sorted(scored, key=lambda s: s.score, reverse=True)
    return scored[:limit]


def popular_fallback(
    reference: Novel, novels: list[Novel], limit: int = RELATED_LIMIT,
) -> list[Novel]:
    """Most viewed novels other than the reference."""
    others = [n for n in novels if n.id != reference.id]
    return sorted(others, key=lambda n: n.views, reverse=True)[:limit]
