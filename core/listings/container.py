"""
Listings Container - Explicit Wiring of the Listing Core

Builds every manager from ports passed in by the caller. There is no
module-level instance; each web request (or test) builds its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from core.listings.completeness import CompletenessScorer
from core.listings.documents import DocumentVerificationManager
from core.listings.lifecycle import PropertyLifecycleManager
from core.listings.media import MediaAssetManager, UploadTracker
from core.listings.ports import (
    DocumentStore,
    IdentityProvider,
    MediaStore,
    ObjectStorageGateway,
    PropertyRepository,
)
from core.listings.recommender import SimilarityRecommender
from core.listings.repository import (
    InMemoryDatabase,
    InMemoryDocumentStore,
    InMemoryMediaStore,
    InMemoryPropertyRepository,
)
from core.listings.schema import parse_document_type, utc_now
from core.listings.sequencing import RequestSequencer
from utils.config import Config


@dataclass
class ListingsContainer:
    """The listing managers, sharing one set of ports."""

    lifecycle: PropertyLifecycleManager
    media: MediaAssetManager
    documents: DocumentVerificationManager
    recommender: SimilarityRecommender
    scorer: CompletenessScorer

    @classmethod
    def build(
        cls,
        properties: PropertyRepository,
        media_store: MediaStore,
        document_store: DocumentStore,
        identity: IdentityProvider,
        storage: ObjectStorageGateway,
        config: Optional[Config] = None,
        sequencer: Optional[RequestSequencer] = None,
        tracker: Optional[UploadTracker] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> "ListingsContainer":
        """
        Wire the managers.

        Args:
            properties: Property repository port
            media_store: Media persistence port
            document_store: Document persistence port
            identity: Identity provider for the current caller
            storage: Object storage gateway
            config: Thresholds and limits; loaded from env if omitted
            sequencer: Shared request sequencer for listing queries
            tracker: Upload tracker for provisional media
            clock: Source of the current time
        """
        config = config if config is not None else Config.load()
        trust_type = parse_document_type(config.trust_document_type)
        scorer = CompletenessScorer()

        return cls(
            lifecycle=PropertyLifecycleManager(
                properties=properties,
                documents=document_store,
                media=media_store,
                identity=identity,
                scorer=scorer,
                publish_threshold=config.publish_threshold,
                trust_document_type=trust_type,
                sequencer=sequencer,
                clock=clock,
            ),
            media=MediaAssetManager(
                media=media_store,
                properties=properties,
                storage=storage,
                max_upload_bytes=config.max_upload_bytes,
                tracker=tracker,
            ),
            documents=DocumentVerificationManager(
                documents=document_store,
                properties=properties,
                identity=identity,
                storage=storage,
                trust_document_type=trust_type,
                reviewer_roles=config.reviewer_roles,
            ),
            recommender=SimilarityRecommender(
                properties=properties,
                limit=config.similar_limit,
                pool_size=config.similar_pool_size,
            ),
            scorer=scorer,
        )

    @classmethod
    def in_memory(
        cls,
        db: InMemoryDatabase,
        identity: IdentityProvider,
        storage: ObjectStorageGateway,
        config: Optional[Config] = None,
        **kwargs,
    ) -> "ListingsContainer":
        """Wire the managers over the in-memory adapters."""
        return cls.build(
            properties=InMemoryPropertyRepository(db, identity),
            media_store=InMemoryMediaStore(db, identity),
            document_store=InMemoryDocumentStore(db, identity),
            identity=identity,
            storage=storage,
            config=config,
            **kwargs,
        )
