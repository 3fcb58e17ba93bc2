"""
Listing Readiness Engine - Core Business Logic

This package holds the listing orchestration layer:
1. Property lifecycle (draft / published / sold / archived) and publish guards
2. Media upload pipeline with cover and ordering rules
3. Document verification workflow
4. Completeness scoring
5. Similar-listing recommendations with progressive fallback
"""

from .listings import (
    ListingsContainer,
    PropertyLifecycleManager,
    MediaAssetManager,
    DocumentVerificationManager,
    CompletenessScorer,
    SimilarityRecommender,
    Property,
    MediaAsset,
    Document,
    Ok,
    Err,
    ListingError,
    ErrorKind,
)

__all__ = [
    "ListingsContainer",
    "PropertyLifecycleManager",
    "MediaAssetManager",
    "DocumentVerificationManager",
    "CompletenessScorer",
    "SimilarityRecommender",
    "Property",
    "MediaAsset",
    "Document",
    "Ok",
    "Err",
    "ListingError",
    "ErrorKind",
]
