"""
Similarity Recommender - Comparable Listings with Progressive Fallback

Scores each published candidate against a reference property (additive,
out of 100) and then lowers the minimum score step by step until enough
candidates qualify. Sparse inventories still get a full panel, but close
matches win whenever there are enough of them.

Scoring:
- +20 same state
- +20 same city
- +30 same property type
- +20 price within 30% of the reference, else +10 within 50%
- +5 bedrooms within 1 (both known)
- +5 construction area within 30% (both known)

Cutoffs tried in order: 70 -> 50 -> 30 -> 20 -> 10 -> 0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Optional, Sequence

from core.listings.ports import PropertyRepository
from core.listings.result import Err, Ok, Result, port_call, validation_error
from core.listings.schema import (
    MAX_PAGE_SIZE,
    Property,
    PropertyFilters,
    PropertyStatus,
    PropertySummary,
)


logger = logging.getLogger(__name__)

SCOPE = "recommender"


# =============================================================================
# Configuration Constants
# =============================================================================

SAME_STATE_POINTS: Final[int] = 20
SAME_CITY_POINTS: Final[int] = 20
SAME_TYPE_POINTS: Final[int] = 30
PRICE_CLOSE_POINTS: Final[int] = 20
PRICE_NEAR_POINTS: Final[int] = 10
BEDROOMS_POINTS: Final[int] = 5
AREA_POINTS: Final[int] = 5

PRICE_CLOSE_RATIO: Final[float] = 0.30
PRICE_NEAR_RATIO: Final[float] = 0.50
AREA_RATIO: Final[float] = 0.30
BEDROOMS_TOLERANCE: Final[int] = 1

# Strictest first
SCORE_THRESHOLDS: Final[tuple[int, ...]] = (70, 50, 30, 20, 10, 0)

DEFAULT_LIMIT: Final[int] = 3
DEFAULT_POOL_SIZE: Final[int] = 60


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class ScoredCandidate:
    summary: PropertySummary
    score: int


@dataclass(frozen=True)
class Recommendation:
    """
    Ranked comparables.

    threshold_used is the cutoff that yielded enough candidates, or None
    when none did and every candidate was returned.
    """

    items: tuple[ScoredCandidate, ...]
    threshold_used: Optional[int]
    fallback_used: bool

    @property
    def summaries(self) -> list[PropertySummary]:
        return [c.summary for c in self.items]

    def to_dict(self) -> dict:
        return {
            "items": [
                {**c.summary.to_dict(), "similarity_score": c.score}
                for c in self.items
            ],
            "threshold_used": self.threshold_used,
            "fallback_used": self.fallback_used,
        }


# =============================================================================
# Scoring
# =============================================================================


def similarity_score(reference: Property, candidate: PropertySummary) -> int:
    """Additive similarity of a candidate to the reference, 0-100."""
    score = 0

    if reference.address.state == candidate.state:
        score += SAME_STATE_POINTS
    if reference.address.city == candidate.city:
        score += SAME_CITY_POINTS
    if reference.property_type == candidate.property_type:
        score += SAME_TYPE_POINTS

    base_price = reference.price.amount
    price_diff = abs(base_price - candidate.price.amount)
    if price_diff <= base_price * PRICE_CLOSE_RATIO:
        score += PRICE_CLOSE_POINTS
    elif price_diff <= base_price * PRICE_NEAR_RATIO:
        score += PRICE_NEAR_POINTS

    if reference.bedrooms is not None and candidate.bedrooms is not None:
        if abs(reference.bedrooms - candidate.bedrooms) <= BEDROOMS_TOLERANCE:
            score += BEDROOMS_POINTS

    if reference.construction_m2 is not None and candidate.construction_m2 is not None:
        area_diff = abs(reference.construction_m2 - candidate.construction_m2)
        if area_diff <= reference.construction_m2 * AREA_RATIO:
            score += AREA_POINTS

    return score


def select_with_fallback(
    scored: list[ScoredCandidate],
    limit: int,
    thresholds: Sequence[int] = SCORE_THRESHOLDS,
) -> Recommendation:
    """
    Pick the top candidates, relaxing the minimum score until enough qualify.

    Sorting is stable, so equal scores keep candidate order.
    """
    ranked = sorted(scored, key=lambda c: c.score, reverse=True)

    for index, threshold in enumerate(thresholds):
        eligible = [c for c in ranked if c.score >= threshold]
        if len(eligible) >= limit:
            return Recommendation(
                items=tuple(eligible[:limit]),
                threshold_used=threshold,
                fallback_used=index > 0,
            )

    return Recommendation(items=tuple(ranked[:limit]), threshold_used=None, fallback_used=True)


# =============================================================================
# Recommender
# =============================================================================


class SimilarityRecommender:
    """Ranks published listings by similarity to a reference property."""

    def __init__(
        self,
        properties: PropertyRepository,
        limit: int = DEFAULT_LIMIT,
        pool_size: int = DEFAULT_POOL_SIZE,
    ):
        self._properties = properties
        self._limit = limit
        self._pool_size = min(pool_size, MAX_PAGE_SIZE)

    def recommend(
        self,
        reference: Property,
        candidates: Sequence[PropertySummary],
        limit: Optional[int] = None,
    ) -> Recommendation:
        """
        Rank candidates against the reference.

        Args:
            reference: Property to find comparables for (never returned)
            candidates: Published summaries to choose from
            limit: Maximum number of results

        Returns:
            Recommendation with at most `limit` items, best first
        """
        limit = self._limit if limit is None else limit
        if limit <= 0:
            return Recommendation(items=(), threshold_used=None, fallback_used=False)

        scored = [
            ScoredCandidate(summary=c, score=similarity_score(reference, c))
            for c in candidates
            if c.id != reference.id
        ]
        return select_with_fallback(scored, limit)

    async def recommend_for(
        self,
        property_id: str,
        limit: Optional[int] = None,
    ) -> Result[Recommendation]:
        """Load the reference and a pool of published listings, then rank."""
        if limit is not None and limit < 1:
            return validation_error("limit must be at least 1", scope=SCOPE)

        reference = await port_call(self._properties.get(property_id), SCOPE)
        if isinstance(reference, Err):
            return reference

        pool = await port_call(
            self._properties.list(PropertyFilters(
                status=PropertyStatus.PUBLISHED,
                page=1,
                page_size=self._pool_size,
                public=True,
            )),
            SCOPE,
        )
        if isinstance(pool, Err):
            return pool

        recommendation = self.recommend(reference.value, pool.value.items, limit)
        logger.info(
            "Recommended %d of %d listings for %s (cutoff %s)",
            len(recommendation.items), pool.value.total, property_id, recommendation.threshold_used,
        )
        return Ok(recommendation)
