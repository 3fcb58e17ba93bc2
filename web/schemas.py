"""
API Request Models

Pydantic models for request bodies. Values are passed to the listing
managers as plain dicts; domain validation happens there.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


MetadataValue = Union[str, int, float, bool, None]


# =============================================================================
# Property Fields
# =============================================================================


class MoneyIn(BaseModel):
    amount: float = Field(ge=0)
    currency: str = "MXN"


class AddressIn(BaseModel):
    address_line: Optional[str] = None
    neighborhood: Optional[str] = None
    city: str = ""
    state: str = ""
    postal_code: Optional[str] = None
    country: str = "MX"
    display_address: bool = False


class LocationIn(BaseModel):
    lat: float
    lng: float


class PropertyFields(BaseModel):
    """Editable property fields. Only fields sent by the client are applied."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    property_type: Optional[str] = None
    operation_type: Optional[str] = None
    price: Optional[MoneyIn] = None
    description: Optional[str] = None
    address: Optional[AddressIn] = None
    location: Optional[LocationIn] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    parking_spots: Optional[int] = None
    construction_m2: Optional[float] = None
    land_m2: Optional[float] = None
    levels: Optional[int] = None
    year_built: Optional[int] = None
    floor: Optional[int] = None
    hoa_fee: Optional[MoneyIn] = None
    condition: Optional[str] = None
    orientation: Optional[str] = None
    furnished: Optional[bool] = None
    pet_friendly: Optional[bool] = None
    amenities: Optional[List[str]] = None
    amenities_extra: Optional[str] = None
    tags: Optional[List[str]] = None
    internal_id: Optional[str] = None

    def to_patch(self) -> dict:
        """Fields the client actually sent, as plain values."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# Lifecycle
# =============================================================================


class ScheduleRequest(BaseModel):
    at: datetime


class SoldRequest(BaseModel):
    sold_at: Optional[datetime] = None
    note: Optional[str] = None


class DuplicateRequest(BaseModel):
    copy_media: bool = False
    copy_documents: bool = False


# =============================================================================
# Media
# =============================================================================


class MediaUploadRequest(BaseModel):
    """Phase 1 of an upload: describe the file, receive an upload URL."""

    file_name: str
    content_type: str
    media_type: str = "image"
    size_bytes: Optional[int] = Field(default=None, ge=0)
    checksum_sha256: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    correlation_id: Optional[str] = None
    extra: dict[str, MetadataValue] = {}


class ReorderRequest(BaseModel):
    ordered_ids: List[str]


# =============================================================================
# Documents
# =============================================================================


class DocumentMetadataIn(BaseModel):
    file_name: Optional[str] = None
    content_type: Optional[str] = None
    size_bytes: Optional[int] = Field(default=None, ge=0)
    checksum_sha256: Optional[str] = None
    issuer: Optional[str] = None
    reference_number: Optional[str] = None
    issued_on: Optional[str] = None
    extra: dict[str, MetadataValue] = {}


class DocumentAttachRequest(BaseModel):
    doc_type: str
    object_key: Optional[str] = None
    url: Optional[str] = None
    metadata: Optional[DocumentMetadataIn] = None


class VerifyRequest(BaseModel):
    status: str
