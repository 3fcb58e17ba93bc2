"""
Completeness Scoring - How Ready a Listing Is

Pure scoring over (property, documents, media count). The same scorer
produces the persisted score on update and the transient preview score
while editing, so the two never drift.

Checklist (equal weight, 100 / 9 each):
- title present
- property type present
- price > 0
- city present
- state present
- description present
- amenities or free-text amenities present
- at least one media asset
- at least one attached document (any type)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Final, Sequence

from core.listings.schema import Document, Property


# =============================================================================
# Checklist
# =============================================================================


class ChecklistItem(Enum):
    TITLE = "title"
    PROPERTY_TYPE = "property_type"
    PRICE = "price"
    CITY = "city"
    STATE = "state"
    DESCRIPTION = "description"
    AMENITIES = "amenities"
    MEDIA = "media"
    DOCUMENTS = "documents"


class ReadinessBucket(Enum):
    """Progress colour bands."""

    RED = "red"
    AMBER = "amber"
    GREEN = "green"


AMBER_THRESHOLD: Final[int] = 50
GREEN_THRESHOLD: Final[int] = 80


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def bucket_for(score: int) -> ReadinessBucket:
    if score >= GREEN_THRESHOLD:
        return ReadinessBucket.GREEN
    if score >= AMBER_THRESHOLD:
        return ReadinessBucket.AMBER
    return ReadinessBucket.RED


@dataclass(frozen=True)
class CompletenessReport:
    """Score with the per-item breakdown behind it."""

    score: int
    satisfied: tuple[ChecklistItem, ...]
    missing: tuple[ChecklistItem, ...]

    @property
    def bucket(self) -> ReadinessBucket:
        return bucket_for(self.score)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "bucket": self.bucket.value,
            "satisfied": [item.value for item in self.satisfied],
            "missing": [item.value for item in self.missing],
        }


# =============================================================================
# Scorer
# =============================================================================


class CompletenessScorer:
    """Scores a listing against the fixed checklist."""

    ITEMS: Final = tuple(ChecklistItem)

    def evaluate(
        self,
        prop: Property,
        documents: Sequence[Document],
        media_count: int,
    ) -> CompletenessReport:
        """
        Evaluate every checklist item.

        Args:
            prop: Property as stored, or a patched in-memory copy
            documents: Documents attached to the property
            media_count: Number of durable media assets

        Returns:
            CompletenessReport with score in [0, 100]
        """
        checks = {
            ChecklistItem.TITLE: bool(prop.title.strip()),
            ChecklistItem.PROPERTY_TYPE: prop.property_type is not None,
            ChecklistItem.PRICE: prop.price.amount > 0,
            ChecklistItem.CITY: bool(prop.address.city),
            ChecklistItem.STATE: bool(prop.address.state),
            ChecklistItem.DESCRIPTION: bool((prop.description or "").strip()),
            ChecklistItem.AMENITIES: bool(prop.amenities) or bool((prop.amenities_extra or "").strip()),
            ChecklistItem.MEDIA: media_count >= 1,
            ChecklistItem.DOCUMENTS: len(documents) >= 1,
        }

        satisfied = tuple(item for item in self.ITEMS if checks[item])
        missing = tuple(item for item in self.ITEMS if not checks[item])
        score = round_half_up(100 * len(satisfied) / len(self.ITEMS))

        return CompletenessReport(score=score, satisfied=satisfied, missing=missing)

    def score(
        self,
        prop: Property,
        documents: Sequence[Document],
        media_count: int,
    ) -> int:
        return self.evaluate(prop, documents, media_count).score
