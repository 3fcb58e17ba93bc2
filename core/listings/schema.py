"""
Listing Schema - Canonical Records for Properties, Media and Documents

Defines the aggregate root (Property), its children (MediaAsset, Document),
the caller's identity contract (AuthProfile) and the query types shared by
the repository ports.

Principles:
- Drafts may be incomplete; completeness is measured, not enforced
- Lifecycle fields are only changed by the lifecycle manager
- Metadata is a closed set of typed fields plus an explicit extension map
- Every record round-trips through to_dict() / from_dict()
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Final, Generic, Optional, TypeVar, Union


T = TypeVar("T")


# =============================================================================
# Enums
# =============================================================================


class PropertyStatus(Enum):
    """Lifecycle state of a listing."""

    DRAFT = "draft"
    PUBLISHED = "published"
    SOLD = "sold"
    ARCHIVED = "archived"  # Admin path only


class OperationType(Enum):
    """Commercial operation offered."""

    SALE = "sale"
    RENT = "rent"


class PropertyType(Enum):
    """Kind of real estate."""

    HOUSE = "house"
    APARTMENT = "apartment"
    LAND = "land"
    OFFICE = "office"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    OTHER = "other"


class Currency(Enum):
    """Supported listing currencies."""

    MXN = "MXN"
    USD = "USD"


class Condition(Enum):
    """Physical condition of the property."""

    NEW = "new"
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_RENOVATION = "needs_renovation"
    UNKNOWN = "unknown"


class Orientation(Enum):
    """Facade orientation."""

    NORTH = "north"
    NORTHEAST = "northeast"
    EAST = "east"
    SOUTHEAST = "southeast"
    SOUTH = "south"
    SOUTHWEST = "southwest"
    WEST = "west"
    NORTHWEST = "northwest"


class MediaType(Enum):
    """Kind of media asset."""

    IMAGE = "image"
    VIDEO = "video"
    FLOORPLAN = "floorplan"


class DocumentType(Enum):
    """Supporting document types."""

    RPP_CERTIFICATE = "rpp_certificate"  # Public property registry certificate
    DEED = "deed"
    ID_DOC = "id_doc"
    FLOORPLAN = "floorplan"
    OTHER = "other"


class VerificationStatus(Enum):
    """Review state of a document."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class KycStatus(Enum):
    """Identity verification state of the listing owner."""

    VERIFIED = "verified"
    PENDING = "pending"
    REJECTED = "rejected"


class SortKey(Enum):
    """Sort orders accepted by property listing queries."""

    RECENT = "recent"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    COMPLETENESS_DESC = "completeness_desc"


# =============================================================================
# Constants
# =============================================================================

# Input spellings accepted for document types
DOCUMENT_TYPE_ALIASES: Final[dict[str, DocumentType]] = {
    "plan": DocumentType.FLOORPLAN,
    "floorplan": DocumentType.FLOORPLAN,
    "ine": DocumentType.ID_DOC,
    "id_doc": DocumentType.ID_DOC,
}

MAX_PAGE_SIZE: Final[int] = 100

MetadataValue = Union[str, int, float, bool, None]


# =============================================================================
# Helpers
# =============================================================================


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def generate_property_id() -> str:
    """Generate a unique property ID."""
    return f"PROP-{uuid.uuid4().hex[:12].upper()}"


def generate_media_id() -> str:
    """Generate a unique media asset ID."""
    return f"MED-{uuid.uuid4().hex[:12].upper()}"


def generate_document_id() -> str:
    """Generate a unique document ID."""
    return f"DOC-{uuid.uuid4().hex[:12].upper()}"


def parse_document_type(value: Union[str, DocumentType]) -> DocumentType:
    """Parse a document type, accepting legacy aliases."""
    if isinstance(value, DocumentType):
        return value
    key = (value or "").strip().lower()
    if key in DOCUMENT_TYPE_ALIASES:
        return DOCUMENT_TYPE_ALIASES[key]
    try:
        return DocumentType(key)
    except ValueError:
        raise ValueError(f"Invalid document type: {value}") from None


def parse_enum(enum_cls: type, value: Any, field_name: str) -> Any:
    """Parse an enum value, raising ValueError naming the field."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"Invalid {field_name}: {value}") from None


def _check_non_negative(name: str, value: Optional[float]) -> None:
    if value is not None and value < 0:
        raise ValueError(f"{name} cannot be negative")


def _check_extra(extra: dict[str, Any]) -> None:
    for key, value in extra.items():
        if not isinstance(key, str):
            raise ValueError("metadata extension keys must be strings")
        if value is not None and not isinstance(value, (str, int, float, bool)):
            raise ValueError(f"metadata extension '{key}' must be a scalar value")


# =============================================================================
# Value Objects
# =============================================================================


@dataclass(frozen=True)
class Money:
    """Amount with currency. Drafts may carry a zero price."""

    amount: float
    currency: Currency = Currency.MXN

    def __post_init__(self) -> None:
        if self.amount is None or self.amount < 0:
            raise ValueError("price amount cannot be negative")
        object.__setattr__(self, "currency", parse_enum(Currency, self.currency, "currency"))

    def to_dict(self) -> dict:
        return {"amount": self.amount, "currency": self.currency.value}

    @classmethod
    def from_dict(cls, data: dict) -> "Money":
        return cls(amount=data.get("amount", 0), currency=data.get("currency", "MXN"))


@dataclass(frozen=True)
class Address:
    """
    Postal address.

    City and state are required for publishing (via completeness), not for
    drafts. display_address controls whether street-level detail is public.
    """

    city: str = ""
    state: str = ""
    country: str = "MX"
    address_line: Optional[str] = None
    neighborhood: Optional[str] = None
    postal_code: Optional[str] = None
    display_address: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "city", (self.city or "").strip())
        object.__setattr__(self, "state", (self.state or "").strip())
        object.__setattr__(self, "country", (self.country or "").strip())
        for name in ("address_line", "neighborhood", "postal_code"):
            value = getattr(self, name)
            object.__setattr__(self, name, value.strip() or None if value else None)

    def to_dict(self) -> dict:
        return {
            "address_line": self.address_line,
            "neighborhood": self.neighborhood,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "display_address": self.display_address,
        }

    def to_public_dict(self) -> dict:
        """Buyer-facing view; street-level detail only if the owner opted in."""
        data = {
            "neighborhood": self.neighborhood,
            "city": self.city,
            "state": self.state,
            "country": self.country,
        }
        if self.display_address:
            data["address_line"] = self.address_line
            data["postal_code"] = self.postal_code
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Address":
        return cls(
            city=data.get("city", ""),
            state=data.get("state", ""),
            country=data.get("country", "MX"),
            address_line=data.get("address_line"),
            neighborhood=data.get("neighborhood"),
            postal_code=data.get("postal_code"),
            display_address=bool(data.get("display_address", False)),
        )


@dataclass(frozen=True)
class GeoPoint:
    """Latitude/longitude pair."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if self.lat is None or not -90 <= self.lat <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        if self.lng is None or not -180 <= self.lng <= 180:
            raise ValueError("Longitude must be between -180 and 180")

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: dict) -> "GeoPoint":
        return cls(lat=data["lat"], lng=data["lng"])


# =============================================================================
# Metadata
# =============================================================================


@dataclass(frozen=True)
class MediaMetadata:
    """Known media metadata fields plus a typed extension map."""

    file_name: Optional[str] = None
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    checksum_sha256: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    extra: dict[str, MetadataValue] = field(default_factory=dict)

    KNOWN_FIELDS: ClassVar[tuple[str, ...]] = (
        "file_name", "content_type", "size_bytes", "checksum_sha256", "width", "height",
    )

    def __post_init__(self) -> None:
        _check_non_negative("size_bytes", self.size_bytes)
        _check_non_negative("width", self.width)
        _check_non_negative("height", self.height)
        _check_extra(self.extra)

    def to_dict(self) -> dict:
        data = {name: getattr(self, name) for name in self.KNOWN_FIELDS}
        data["extra"] = dict(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "MediaMetadata":
        """Unknown top-level keys are folded into the extension map."""
        data = dict(data or {})
        extra = dict(data.pop("extra", None) or {})
        known = {name: data.pop(name, None) for name in cls.KNOWN_FIELDS}
        extra.update(data)
        return cls(**known, extra=extra)


@dataclass(frozen=True)
class DocumentMetadata:
    """Known document metadata fields plus a typed extension map."""

    file_name: Optional[str] = None
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    checksum_sha256: Optional[str] = None
    issuer: Optional[str] = None
    reference_number: Optional[str] = None  # Registry folio or deed number
    issued_on: Optional[str] = None  # ISO date as printed on the document
    extra: dict[str, MetadataValue] = field(default_factory=dict)

    KNOWN_FIELDS: ClassVar[tuple[str, ...]] = (
        "file_name", "content_type", "size_bytes", "checksum_sha256",
        "issuer", "reference_number", "issued_on",
    )

    def __post_init__(self) -> None:
        _check_non_negative("size_bytes", self.size_bytes)
        _check_extra(self.extra)

    def to_dict(self) -> dict:
        data = {name: getattr(self, name) for name in self.KNOWN_FIELDS}
        data["extra"] = dict(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DocumentMetadata":
        """Unknown top-level keys are folded into the extension map."""
        data = dict(data or {})
        extra = dict(data.pop("extra", None) or {})
        known = {name: data.pop(name, None) for name in cls.KNOWN_FIELDS}
        extra.update(data)
        return cls(**known, extra=extra)


# =============================================================================
# Identity
# =============================================================================


@dataclass(frozen=True)
class AuthProfile:
    """Authenticated caller as resolved by the identity provider."""

    kyc_status: KycStatus = KycStatus.PENDING
    org_id: Optional[str] = None
    user_id: Optional[str] = None
    role: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kyc_status", parse_enum(KycStatus, self.kyc_status, "kyc_status"))

    @property
    def is_kyc_verified(self) -> bool:
        return self.kyc_status == KycStatus.VERIFIED


# =============================================================================
# Media Asset
# =============================================================================


@dataclass
class MediaAsset:
    """Durable media record. Position and cover are managed by MediaAssetManager."""

    id: str
    property_id: str
    type: MediaType
    position: int
    object_key: str
    url: str
    is_cover: bool = False
    metadata: MediaMetadata = field(default_factory=MediaMetadata)
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.type = parse_enum(MediaType, self.type, "media type")
        if not isinstance(self.position, int) or self.position < 0:
            raise ValueError("position must be a non-negative integer")
        if not self.object_key:
            raise ValueError("object_key is required")

    @property
    def is_image(self) -> bool:
        return self.type == MediaType.IMAGE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "property_id": self.property_id,
            "type": self.type.value,
            "position": self.position,
            "is_cover": self.is_cover,
            "object_key": self.object_key,
            "url": self.url,
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MediaAsset":
        return cls(
            id=data["id"],
            property_id=data["property_id"],
            type=MediaType(data["type"]),
            position=data["position"],
            object_key=data["object_key"],
            url=data.get("url", ""),
            is_cover=bool(data.get("is_cover", False)),
            metadata=MediaMetadata.from_dict(data.get("metadata")),
            created_at=_parse_datetime(data.get("created_at")) or utc_now(),
        )


# =============================================================================
# Document
# =============================================================================


@dataclass
class Document:
    """
    Supporting document attached to a property.

    Only the document verification manager changes `verification`
    after the record is created.
    """

    id: str
    property_id: str
    doc_type: DocumentType
    verification: VerificationStatus = VerificationStatus.PENDING
    object_key: Optional[str] = None
    url: Optional[str] = None
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.doc_type = parse_document_type(self.doc_type)
        self.verification = parse_enum(VerificationStatus, self.verification, "verification")
        if not (self.object_key or "").strip() and not (self.url or "").strip():
            raise ValueError("document requires an object key or a URL")
        if self.updated_at is None:
            self.updated_at = self.created_at

    @property
    def is_verified(self) -> bool:
        return self.verification == VerificationStatus.VERIFIED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "property_id": self.property_id,
            "doc_type": self.doc_type.value,
            "verification": self.verification.value,
            "object_key": self.object_key,
            "url": self.url,
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        return cls(
            id=data["id"],
            property_id=data["property_id"],
            doc_type=data["doc_type"],
            verification=data.get("verification", "pending"),
            object_key=data.get("object_key"),
            url=data.get("url"),
            metadata=DocumentMetadata.from_dict(data.get("metadata")),
            created_at=_parse_datetime(data.get("created_at")) or utc_now(),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


# =============================================================================
# Property
# =============================================================================


@dataclass
class Property:
    """
    Listing aggregate root.

    A draft may lack title, type, price or location; the completeness score
    measures how far it is from publishable. Lifecycle fields are written only
    through PropertyLifecycleManager.
    """

    # === IDENTITY ===
    id: str
    org_id: str
    owner_id: str

    # === COMMERCIAL ===
    title: str = ""
    property_type: Optional[PropertyType] = None
    operation_type: OperationType = OperationType.SALE
    price: Money = field(default_factory=lambda: Money(0))
    description: Optional[str] = None

    # === LOCATION ===
    address: Address = field(default_factory=Address)
    location: Optional[GeoPoint] = None

    # === PHYSICAL ATTRIBUTES ===
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    parking_spots: Optional[int] = None
    construction_m2: Optional[float] = None
    land_m2: Optional[float] = None
    levels: Optional[int] = None
    year_built: Optional[int] = None
    floor: Optional[int] = None
    hoa_fee: Optional[Money] = None
    condition: Optional[Condition] = None
    orientation: Optional[Orientation] = None
    furnished: Optional[bool] = None
    pet_friendly: Optional[bool] = None

    # === PRESENTATION ===
    amenities: list[str] = field(default_factory=list)
    amenities_extra: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    internal_id: Optional[str] = None

    # === LIFECYCLE (set by lifecycle manager) ===
    status: PropertyStatus = PropertyStatus.DRAFT
    published_at: Optional[datetime] = None
    scheduled_publish_at: Optional[datetime] = None
    sold_at: Optional[datetime] = None
    sold_note: Optional[str] = None
    deleted_at: Optional[datetime] = None

    # === DERIVED ===
    completeness_score: int = 0
    rpp_verification: Optional[VerificationStatus] = None

    # === TIMESTAMPS ===
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Normalise and validate at construction."""
        if not self.id:
            raise ValueError("id is required")
        if not self.org_id:
            raise ValueError("org_id is required")

        self.title = (self.title or "").strip()
        self.description = (self.description or "").strip() or None
        self.amenities_extra = (self.amenities_extra or "").strip() or None

        if self.status is None:
            raise ValueError("status is required")
        if self.operation_type is None:
            raise ValueError("operation type is required")

        self.status = parse_enum(PropertyStatus, self.status, "status")
        self.property_type = parse_enum(PropertyType, self.property_type, "property type")
        self.operation_type = parse_enum(OperationType, self.operation_type, "operation type")
        self.condition = parse_enum(Condition, self.condition, "condition")
        self.orientation = parse_enum(Orientation, self.orientation, "orientation")
        self.rpp_verification = parse_enum(
            VerificationStatus, self.rpp_verification, "rpp verification"
        )

        for name in (
            "bedrooms", "bathrooms", "parking_spots", "construction_m2",
            "land_m2", "levels", "year_built", "floor",
        ):
            _check_non_negative(name, getattr(self, name))

        # Amenities behave as a set; keep first-seen order
        seen: dict[str, None] = {}
        for amenity in self.amenities or []:
            amenity = amenity.strip()
            if amenity:
                seen.setdefault(amenity, None)
        self.amenities = list(seen)
        self.tags = [t.strip() for t in (self.tags or []) if t and t.strip()]

        if not 0 <= self.completeness_score <= 100:
            raise ValueError("completeness_score must be between 0 and 100")

        if self.status == PropertyStatus.PUBLISHED and self.published_at is None:
            raise ValueError("published_at is required when status is published")
        if self.status == PropertyStatus.SOLD and self.sold_at is None:
            raise ValueError("sold_at is required when status is sold")

        if self.updated_at is None:
            self.updated_at = self.created_at

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_published(self) -> bool:
        return self.status == PropertyStatus.PUBLISHED

    def to_summary(self, cover_url: Optional[str] = None) -> "PropertySummary":
        """Project to the summary shape used by listings and recommendations."""
        return PropertySummary(
            id=self.id,
            org_id=self.org_id,
            title=self.title,
            status=self.status,
            property_type=self.property_type,
            operation_type=self.operation_type,
            price=self.price,
            city=self.address.city,
            state=self.address.state,
            bedrooms=self.bedrooms,
            bathrooms=self.bathrooms,
            construction_m2=self.construction_m2,
            completeness_score=self.completeness_score,
            cover_url=cover_url,
            published_at=self.published_at,
            created_at=self.created_at,
        )

    def to_dict(self) -> dict:
        """Convert property to dictionary for serialisation."""
        return {
            "id": self.id,
            "org_id": self.org_id,
            "owner_id": self.owner_id,
            "title": self.title,
            "property_type": self.property_type.value if self.property_type else None,
            "operation_type": self.operation_type.value,
            "price": self.price.to_dict(),
            "description": self.description,
            "address": self.address.to_dict(),
            "location": self.location.to_dict() if self.location else None,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "parking_spots": self.parking_spots,
            "construction_m2": self.construction_m2,
            "land_m2": self.land_m2,
            "levels": self.levels,
            "year_built": self.year_built,
            "floor": self.floor,
            "hoa_fee": self.hoa_fee.to_dict() if self.hoa_fee else None,
            "condition": self.condition.value if self.condition else None,
            "orientation": self.orientation.value if self.orientation else None,
            "furnished": self.furnished,
            "pet_friendly": self.pet_friendly,
            "amenities": list(self.amenities),
            "amenities_extra": self.amenities_extra,
            "tags": list(self.tags),
            "internal_id": self.internal_id,
            "status": self.status.value,
            "published_at": _iso(self.published_at),
            "scheduled_publish_at": _iso(self.scheduled_publish_at),
            "sold_at": _iso(self.sold_at),
            "sold_note": self.sold_note,
            "deleted_at": _iso(self.deleted_at),
            "completeness_score": self.completeness_score,
            "rpp_verification": self.rpp_verification.value if self.rpp_verification else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": _iso(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        """Buyer-facing view of a published listing; owner-only fields are left out."""
        return {
            "id": self.id,
            "title": self.title,
            "property_type": self.property_type.value if self.property_type else None,
            "operation_type": self.operation_type.value,
            "price": self.price.to_dict(),
            "description": self.description,
            "address": self.address.to_public_dict(),
            "location": self.location.to_dict() if self.location and self.address.display_address else None,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "parking_spots": self.parking_spots,
            "construction_m2": self.construction_m2,
            "land_m2": self.land_m2,
            "levels": self.levels,
            "year_built": self.year_built,
            "floor": self.floor,
            "hoa_fee": self.hoa_fee.to_dict() if self.hoa_fee else None,
            "condition": self.condition.value if self.condition else None,
            "orientation": self.orientation.value if self.orientation else None,
            "furnished": self.furnished,
            "pet_friendly": self.pet_friendly,
            "amenities": list(self.amenities),
            "amenities_extra": self.amenities_extra,
            "published_at": _iso(self.published_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Property":
        """Create property from dictionary."""
        return cls(
            id=data["id"],
            org_id=data["org_id"],
            owner_id=data.get("owner_id", ""),
            title=data.get("title", ""),
            property_type=data.get("property_type"),
            operation_type=data.get("operation_type") or OperationType.SALE,
            price=Money.from_dict(data.get("price") or {}),
            description=data.get("description"),
            address=Address.from_dict(data.get("address") or {}),
            location=GeoPoint.from_dict(data["location"]) if data.get("location") else None,
            bedrooms=data.get("bedrooms"),
            bathrooms=data.get("bathrooms"),
            parking_spots=data.get("parking_spots"),
            construction_m2=data.get("construction_m2"),
            land_m2=data.get("land_m2"),
            levels=data.get("levels"),
            year_built=data.get("year_built"),
            floor=data.get("floor"),
            hoa_fee=Money.from_dict(data["hoa_fee"]) if data.get("hoa_fee") else None,
            condition=data.get("condition"),
            orientation=data.get("orientation"),
            furnished=data.get("furnished"),
            pet_friendly=data.get("pet_friendly"),
            amenities=list(data.get("amenities") or []),
            amenities_extra=data.get("amenities_extra"),
            tags=list(data.get("tags") or []),
            internal_id=data.get("internal_id"),
            status=data.get("status") or PropertyStatus.DRAFT,
            published_at=_parse_datetime(data.get("published_at")),
            scheduled_publish_at=_parse_datetime(data.get("scheduled_publish_at")),
            sold_at=_parse_datetime(data.get("sold_at")),
            sold_note=data.get("sold_note"),
            deleted_at=_parse_datetime(data.get("deleted_at")),
            completeness_score=data.get("completeness_score", 0),
            rpp_verification=data.get("rpp_verification"),
            created_at=_parse_datetime(data.get("created_at")) or utc_now(),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


# =============================================================================
# Query Types
# =============================================================================


@dataclass(frozen=True)
class PropertySummary:
    """Listing card projection returned by list queries."""

    id: str
    org_id: str
    title: str
    status: PropertyStatus
    property_type: Optional[PropertyType]
    operation_type: OperationType
    price: Money
    city: str
    state: str
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    construction_m2: Optional[float] = None
    completeness_score: int = 0
    cover_url: Optional[str] = None
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "title": self.title,
            "status": self.status.value,
            "property_type": self.property_type.value if self.property_type else None,
            "operation_type": self.operation_type.value,
            "price": self.price.to_dict(),
            "city": self.city,
            "state": self.state,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "construction_m2": self.construction_m2,
            "completeness_score": self.completeness_score,
            "cover_url": self.cover_url,
            "published_at": _iso(self.published_at),
            "created_at": _iso(self.created_at),
        }

    def to_public_dict(self) -> dict:
        data = self.to_dict()
        for name in ("org_id", "status", "completeness_score", "created_at"):
            del data[name]
        return data


@dataclass(frozen=True)
class PropertyFilters:
    """Filters accepted by PropertyRepository.list()."""

    query: Optional[str] = None
    status: Optional[PropertyStatus] = None
    property_type: Optional[PropertyType] = None
    city: Optional[str] = None
    state: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    sort: SortKey = SortKey.RECENT
    page: int = 1
    page_size: int = 20
    public: bool = False  # Published listings of every organisation

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", parse_enum(PropertyStatus, self.status, "status"))
        object.__setattr__(
            self, "property_type", parse_enum(PropertyType, self.property_type, "property type")
        )
        object.__setattr__(self, "sort", parse_enum(SortKey, self.sort, "sort"))
        object.__setattr__(self, "query", (self.query or "").strip() or None)
        _check_non_negative("price_min", self.price_min)
        _check_non_negative("price_max", self.price_max)
        if (
            self.price_min is not None
            and self.price_max is not None
            and self.price_min > self.price_max
        ):
            raise ValueError("price_min cannot exceed price_max")
        if self.page < 1:
            raise ValueError("page must be at least 1")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")

    def matches(self, prop: Property) -> bool:
        """Check a property against every filter except paging and sort."""
        if prop.is_deleted:
            return False
        if self.public and prop.status != PropertyStatus.PUBLISHED:
            return False
        if self.status is not None and prop.status != self.status:
            return False
        if self.property_type is not None and prop.property_type != self.property_type:
            return False
        if self.city and prop.address.city.lower() != self.city.strip().lower():
            return False
        if self.state and prop.address.state.lower() != self.state.strip().lower():
            return False
        if self.price_min is not None and prop.price.amount < self.price_min:
            return False
        if self.price_max is not None and prop.price.amount > self.price_max:
            return False
        if self.query:
            needle = self.query.lower()
            haystack = " ".join(
                part for part in (
                    prop.title, prop.description or "", prop.address.city,
                    prop.address.state, "" if self.public else prop.internal_id or "",
                ) if part
            ).lower()
            if needle not in haystack:
                return False
        return True


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of query results."""

    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total
