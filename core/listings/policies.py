"""
Listing Policies - Pure Rules Shared by the Managers

No I/O here. Each function takes records and returns a decision or a new
list, so the managers stay a thin read -> decide -> write sequence.

Principles:
- Status changes follow an explicit transition table
- Published listings keep their structural identity
- Media positions are always contiguous and cover is always an image
- The property's registry mirror is derived from trust documents only
"""

from __future__ import annotations

from dataclasses import replace
from typing import Final, Iterable, Optional

from core.listings.schema import (
    Document,
    DocumentType,
    MediaAsset,
    PropertyStatus,
    VerificationStatus,
)


# =============================================================================
# Status Transitions
# =============================================================================

VALID_TRANSITIONS: Final[dict[PropertyStatus, frozenset[PropertyStatus]]] = {
    PropertyStatus.DRAFT: frozenset({PropertyStatus.PUBLISHED, PropertyStatus.ARCHIVED}),
    PropertyStatus.PUBLISHED: frozenset(
        {PropertyStatus.DRAFT, PropertyStatus.SOLD, PropertyStatus.ARCHIVED}
    ),
    PropertyStatus.SOLD: frozenset({PropertyStatus.ARCHIVED}),
    PropertyStatus.ARCHIVED: frozenset(),
}


def can_transition(current: PropertyStatus, target: PropertyStatus) -> bool:
    """Check whether a status change is allowed."""
    return target in VALID_TRANSITIONS.get(current, frozenset())


# =============================================================================
# Editable Fields
# =============================================================================

# Fields a caller may patch through update()
EDITABLE_FIELDS: Final[frozenset[str]] = frozenset({
    "title",
    "property_type",
    "operation_type",
    "price",
    "description",
    "address",
    "location",
    "bedrooms",
    "bathrooms",
    "parking_spots",
    "construction_m2",
    "land_m2",
    "levels",
    "year_built",
    "floor",
    "hoa_fee",
    "condition",
    "orientation",
    "furnished",
    "pet_friendly",
    "amenities",
    "amenities_extra",
    "tags",
    "internal_id",
})

# Identity of a published listing; frozen until it is paused
STRUCTURAL_FIELDS: Final[frozenset[str]] = frozenset({
    "property_type",
    "operation_type",
    "address",
    "location",
})


def rejected_fields(patch: Iterable[str]) -> list[str]:
    """Fields in a patch that update() never accepts (lifecycle, derived or unknown)."""
    return sorted(name for name in patch if name not in EDITABLE_FIELDS)


def structural_fields_in(patch: Iterable[str]) -> list[str]:
    return sorted(name for name in patch if name in STRUCTURAL_FIELDS)


# =============================================================================
# Trust Documents
# =============================================================================


def has_verified_trust_document(
    documents: Iterable[Document],
    trust_type: DocumentType = DocumentType.RPP_CERTIFICATE,
) -> bool:
    """True if any document of the trust type is verified."""
    return any(d.doc_type == trust_type and d.is_verified for d in documents)


def registry_status_from_documents(
    documents: Iterable[Document],
    trust_type: DocumentType = DocumentType.RPP_CERTIFICATE,
) -> Optional[VerificationStatus]:
    """
    Derive the property's registry verification mirror.

    Verified wins over rejected, rejected over pending. None when the
    property has no trust documents at all.
    """
    statuses = {d.verification for d in documents if d.doc_type == trust_type}
    if not statuses:
        return None
    if VerificationStatus.VERIFIED in statuses:
        return VerificationStatus.VERIFIED
    if VerificationStatus.REJECTED in statuses:
        return VerificationStatus.REJECTED
    return VerificationStatus.PENDING


# =============================================================================
# Media Ordering
# =============================================================================


def sort_by_position(assets: Iterable[MediaAsset]) -> list[MediaAsset]:
    return sorted(assets, key=lambda a: a.position)


def renumber(assets: list[MediaAsset]) -> list[MediaAsset]:
    """Assign positions 0..n-1 following list order."""
    return [
        asset if asset.position == index else replace(asset, position=index)
        for index, asset in enumerate(assets)
    ]


def select_cover(assets: list[MediaAsset]) -> Optional[MediaAsset]:
    """First image by position, or None if there are no images."""
    images = [a for a in sort_by_position(assets) if a.is_image]
    return images[0] if images else None


def with_cover(assets: list[MediaAsset], cover_id: Optional[str]) -> list[MediaAsset]:
    """Set is_cover on exactly the asset with cover_id (or none)."""
    return [
        asset if asset.is_cover == (asset.id == cover_id)
        else replace(asset, is_cover=asset.id == cover_id)
        for asset in assets
    ]


def ensure_cover(assets: list[MediaAsset]) -> list[MediaAsset]:
    """Keep the current image cover, else promote the first image."""
    current = next((a for a in assets if a.is_cover and a.is_image), None)
    if current is None:
        current = select_cover(assets)
    return with_cover(assets, current.id if current else None)


def cover_url(assets: Iterable[MediaAsset]) -> Optional[str]:
    return next((a.url for a in assets if a.is_cover), None)

