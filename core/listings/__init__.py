"""
Listing Readiness Engine - Property Listing Module

Turns draft real-estate listings into publishable ones and finds
comparable listings for buyers.

Principles:
1. Nothing is published until identity, trust document and completeness pass
2. Every operation returns Ok or Err; nothing raises across the boundary
3. Collaborators are ports, wired explicitly by ListingsContainer
4. Media ordering and cover rules hold after every change
"""

from core.listings.result import (
    ErrorKind,
    PublishGuard,
    ListingError,
    Ok,
    Err,
    Result,
    port_call,
)
from core.listings.schema import (
    PropertyStatus,
    OperationType,
    PropertyType,
    Currency,
    Condition,
    Orientation,
    MediaType,
    DocumentType,
    VerificationStatus,
    KycStatus,
    SortKey,
    Money,
    Address,
    GeoPoint,
    MediaMetadata,
    DocumentMetadata,
    AuthProfile,
    MediaAsset,
    Document,
    Property,
    PropertySummary,
    PropertyFilters,
    Page,
)
from core.listings.ports import (
    UploadHandle,
    IdentityProvider,
    PropertyRepository,
    MediaStore,
    DocumentStore,
    ObjectStorageGateway,
)
from core.listings.completeness import (
    ChecklistItem,
    CompletenessReport,
    CompletenessScorer,
    ReadinessBucket,
    round_half_up,
)
from core.listings.documents import DocumentLocator, DocumentVerificationManager
from core.listings.media import (
    MediaDescriptor,
    ProvisionalAsset,
    DurableAsset,
    UploadTracker,
    MediaAssetManager,
)
from core.listings.lifecycle import (
    PropertyLifecycleManager,
    PublishReadiness,
    ReadinessIssue,
)
from core.listings.recommender import (
    Recommendation,
    ScoredCandidate,
    SimilarityRecommender,
    similarity_score,
    select_with_fallback,
    SCORE_THRESHOLDS,
)
from core.listings.sequencing import RequestSequencer
from core.listings.repository import (
    InMemoryDatabase,
    InMemoryPropertyRepository,
    InMemoryMediaStore,
    InMemoryDocumentStore,
    StaticIdentityProvider,
)
from core.listings.storage import InMemoryObjectStorageGateway, HttpObjectStorageGateway
from core.listings.container import ListingsContainer

__all__ = [
    # Results
    "ErrorKind",
    "PublishGuard",
    "ListingError",
    "Ok",
    "Err",
    "Result",
    "port_call",
    # Schema
    "PropertyStatus",
    "OperationType",
    "PropertyType",
    "Currency",
    "Condition",
    "Orientation",
    "MediaType",
    "DocumentType",
    "VerificationStatus",
    "KycStatus",
    "SortKey",
    "Money",
    "Address",
    "GeoPoint",
    "MediaMetadata",
    "DocumentMetadata",
    "AuthProfile",
    "MediaAsset",
    "Document",
    "Property",
    "PropertySummary",
    "PropertyFilters",
    "Page",
    # Ports
    "UploadHandle",
    "IdentityProvider",
    "PropertyRepository",
    "MediaStore",
    "DocumentStore",
    "ObjectStorageGateway",
    # Completeness
    "ChecklistItem",
    "CompletenessReport",
    "CompletenessScorer",
    "ReadinessBucket",
    "round_half_up",
    # Managers
    "DocumentLocator",
    "DocumentVerificationManager",
    "MediaDescriptor",
    "ProvisionalAsset",
    "DurableAsset",
    "UploadTracker",
    "MediaAssetManager",
    "PropertyLifecycleManager",
    "PublishReadiness",
    "ReadinessIssue",
    # Recommendations
    "Recommendation",
    "ScoredCandidate",
    "SimilarityRecommender",
    "similarity_score",
    "select_with_fallback",
    "SCORE_THRESHOLDS",
    "RequestSequencer",
    # Adapters
    "InMemoryDatabase",
    "InMemoryPropertyRepository",
    "InMemoryMediaStore",
    "InMemoryDocumentStore",
    "StaticIdentityProvider",
    "InMemoryObjectStorageGateway",
    "HttpObjectStorageGateway",
    "ListingsContainer",
]
