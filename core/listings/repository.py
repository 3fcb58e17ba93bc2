"""
Listing Repository - In-Memory Adapters for the Persistence Ports

Provides PropertyRepository, MediaStore and DocumentStore implementations
over one shared in-memory database, plus a static identity provider.
This is the development backend; production should use a real database.

Every call is scoped by the caller's organisation, resolved through the
IdentityProvider at call time:
- no organisation -> AUTH
- record of another organisation -> NOT_FOUND (existence is not leaked)

Records are copied on the way in and out so callers never hold a
reference into the store.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

from core.listings.policies import cover_url
from core.listings.ports import (
    DocumentStore,
    IdentityProvider,
    MediaStore,
    PropertyRepository,
)
from core.listings.result import (
    Err,
    Ok,
    Result,
    auth_error,
    conflict,
    not_found,
    validation_error,
)
from core.listings.schema import (
    AuthProfile,
    Document,
    MediaAsset,
    Page,
    Property,
    PropertyFilters,
    PropertyStatus,
    PropertySummary,
    SortKey,
    VerificationStatus,
    utc_now,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Identity
# =============================================================================


class StaticIdentityProvider(IdentityProvider):
    """Returns a fixed profile. Used by tests and by the header-based web layer."""

    def __init__(self, profile: Optional[AuthProfile] = None):
        self._profile = profile

    async def get_current(self) -> Result[AuthProfile]:
        if self._profile is None:
            return auth_error("No authenticated session", scope="identity")
        return Ok(self._profile)


# =============================================================================
# Database
# =============================================================================


class InMemoryDatabase:
    """
    Shared tables for properties, media and documents.

    Uses in-memory storage with optional file persistence.
    """

    def __init__(self, persist_path: Optional[str] = None):
        """
        Initialise database.

        Args:
            persist_path: Optional path to persist data to JSON file
        """
        self.properties: dict[str, Property] = {}
        self.media: dict[str, MediaAsset] = {}
        self.documents: dict[str, Document] = {}
        self._persist_path = Path(persist_path) if persist_path else None

        if self._persist_path and self._persist_path.exists():
            self._load_from_file()

    def save(self) -> None:
        """Persist tables to file, if a path was configured."""
        if not self._persist_path:
            return

        data = {
            "properties": {pid: p.to_dict() for pid, p in self.properties.items()},
            "media": {mid: m.to_dict() for mid, m in self.media.items()},
            "documents": {did: d.to_dict() for did, d in self.documents.items()},
            "saved_at": utc_now().isoformat(),
        }

        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        self._persist_path.write_text(json.dumps(data, indent=2))

    def _load_from_file(self) -> None:
        try:
            data = json.loads(self._persist_path.read_text())
            for pid, raw in data.get("properties", {}).items():
                self.properties[pid] = Property.from_dict(raw)
            for mid, raw in data.get("media", {}).items():
                self.media[mid] = MediaAsset.from_dict(raw)
            for did, raw in data.get("documents", {}).items():
                self.documents[did] = Document.from_dict(raw)
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            # Start fresh rather than refuse to boot
            logger.warning("Could not load listing data from %s: %s", self._persist_path, e)
            self.properties.clear()
            self.media.clear()
            self.documents.clear()

    def property_in_org(self, property_id: str, org_id: str) -> Optional[Property]:
        prop = self.properties.get(property_id)
        if prop is None or prop.org_id != org_id:
            return None
        return prop


class _ScopedStore:
    """Base for stores that resolve the caller's organisation per call."""

    scope = "repository"

    def __init__(self, db: InMemoryDatabase, identity: IdentityProvider):
        self._db = db
        self._identity = identity

    async def _org_id(self) -> Result[str]:
        result = await self._identity.get_current()
        if isinstance(result, Err):
            return Err(result.error.wrap(self.scope))
        if not result.value.org_id:
            return auth_error("Caller has no organisation", scope=self.scope)
        return Ok(result.value.org_id)

    def _property_not_found(self, property_id: str) -> Err:
        return not_found(
            f"Property {property_id} not found",
            scope=self.scope,
            property_id=property_id,
        )


# =============================================================================
# Properties
# =============================================================================


_SORTS = {
    SortKey.RECENT: (lambda p: p.created_at, True),
    SortKey.PRICE_ASC: (lambda p: p.price.amount, False),
    SortKey.PRICE_DESC: (lambda p: p.price.amount, True),
    SortKey.COMPLETENESS_DESC: (lambda p: p.completeness_score, True),
}


class InMemoryPropertyRepository(_ScopedStore, PropertyRepository):
    """PropertyRepository over InMemoryDatabase."""

    async def get(self, property_id: str) -> Result[Property]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        prop = self._db.property_in_org(property_id, org.value)
        if prop is None:
            return self._property_not_found(property_id)
        return Ok(copy.deepcopy(prop))

    async def get_published(self, property_id: str) -> Result[Property]:
        prop = self._db.properties.get(property_id)
        if prop is None or prop.is_deleted or not prop.is_published:
            return self._property_not_found(property_id)
        return Ok(copy.deepcopy(prop))

    async def list(self, filters: PropertyFilters) -> Result[Page[PropertySummary]]:
        """
        Query properties.

        Public queries return published listings of every organisation and
        do not require one; all other queries are limited to the caller's.
        """
        if filters.public:
            candidates = list(self._db.properties.values())
        else:
            org = await self._org_id()
            if isinstance(org, Err):
                return org
            candidates = [p for p in self._db.properties.values() if p.org_id == org.value]

        matched = [p for p in candidates if filters.matches(p)]
        key, reverse = _SORTS[filters.sort]
        matched.sort(key=key, reverse=reverse)

        start = (filters.page - 1) * filters.page_size
        window = matched[start:start + filters.page_size]
        items = [p.to_summary(cover_url=self._cover_url(p.id)) for p in window]
        return Ok(Page(items=items, total=len(matched), page=filters.page, page_size=filters.page_size))

    def _cover_url(self, property_id: str) -> Optional[str]:
        return cover_url(a for a in self._db.media.values() if a.property_id == property_id)

    async def create(self, draft: Property) -> Result[str]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        if draft.org_id != org.value:
            return auth_error("Cannot create a property for another organisation", scope=self.scope)
        if draft.id in self._db.properties:
            return conflict(f"Property {draft.id} already exists", scope=self.scope)

        self._db.properties[draft.id] = copy.deepcopy(draft)
        self._db.save()
        return Ok(draft.id)

    async def update(self, property_id: str, patch: dict[str, Any]) -> Result[Property]:
        return await self._replace(property_id, patch)

    async def set_status(
        self,
        property_id: str,
        status: PropertyStatus,
        fields: Optional[dict[str, Any]] = None,
    ) -> Result[Property]:
        changes = dict(fields or {})
        changes["status"] = status
        return await self._replace(property_id, changes)

    async def soft_delete(self, property_id: str) -> Result[Property]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        prop = self._db.property_in_org(property_id, org.value)
        if prop is None:
            return self._property_not_found(property_id)
        if prop.is_deleted:
            return Ok(copy.deepcopy(prop))
        return await self._replace(property_id, {"deleted_at": utc_now()})

    async def _replace(self, property_id: str, changes: dict[str, Any]) -> Result[Property]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        prop = self._db.property_in_org(property_id, org.value)
        if prop is None:
            return self._property_not_found(property_id)

        changes = copy.deepcopy(changes)
        changes.setdefault("updated_at", utc_now())
        try:
            updated = replace(prop, **changes)
        except (TypeError, ValueError) as e:
            return validation_error(str(e), scope=self.scope, property_id=property_id)

        self._db.properties[property_id] = updated
        self._db.save()
        return Ok(copy.deepcopy(updated))


# =============================================================================
# Media
# =============================================================================


class InMemoryMediaStore(_ScopedStore, MediaStore):
    """MediaStore over InMemoryDatabase."""

    async def list_by_property(self, property_id: str) -> Result[list[MediaAsset]]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        if self._db.property_in_org(property_id, org.value) is None:
            return self._property_not_found(property_id)
        assets = [m for m in self._db.media.values() if m.property_id == property_id]
        assets.sort(key=lambda m: m.position)
        return Ok(copy.deepcopy(assets))

    async def insert(self, asset: MediaAsset) -> Result[MediaAsset]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        if self._db.property_in_org(asset.property_id, org.value) is None:
            return self._property_not_found(asset.property_id)
        if asset.id in self._db.media:
            return conflict(f"Media {asset.id} already exists", scope=self.scope)

        self._db.media[asset.id] = copy.deepcopy(asset)
        self._db.save()
        return Ok(copy.deepcopy(asset))

    async def delete(self, property_id: str, media_id: str) -> Result[None]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        asset = self._db.media.get(media_id)
        if (
            asset is None
            or asset.property_id != property_id
            or self._db.property_in_org(property_id, org.value) is None
        ):
            return not_found(f"Media {media_id} not found", scope=self.scope, media_id=media_id)

        del self._db.media[media_id]
        self._db.save()
        return Ok(None)

    async def save_order(
        self,
        property_id: str,
        assets: list[MediaAsset],
    ) -> Result[list[MediaAsset]]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        if self._db.property_in_org(property_id, org.value) is None:
            return self._property_not_found(property_id)
        for asset in assets:
            stored = self._db.media.get(asset.id)
            if stored is None or stored.property_id != property_id:
                return not_found(f"Media {asset.id} not found", scope=self.scope, media_id=asset.id)

        for asset in assets:
            stored = self._db.media[asset.id]
            self._db.media[asset.id] = replace(
                stored, position=asset.position, is_cover=asset.is_cover
            )
        self._db.save()
        return await self.list_by_property(property_id)


# =============================================================================
# Documents
# =============================================================================


class InMemoryDocumentStore(_ScopedStore, DocumentStore):
    """DocumentStore over InMemoryDatabase."""

    async def insert(self, document: Document) -> Result[Document]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        if self._db.property_in_org(document.property_id, org.value) is None:
            return self._property_not_found(document.property_id)
        if document.id in self._db.documents:
            return conflict(f"Document {document.id} already exists", scope=self.scope)

        self._db.documents[document.id] = copy.deepcopy(document)
        self._db.save()
        return Ok(copy.deepcopy(document))

    async def list_by_property(self, property_id: str) -> Result[list[Document]]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        if self._db.property_in_org(property_id, org.value) is None:
            return self._property_not_found(property_id)
        # Stable sort keeps insertion order for equal timestamps
        documents = [d for d in self._db.documents.values() if d.property_id == property_id]
        documents.sort(key=lambda d: d.created_at)
        return Ok(copy.deepcopy(documents))

    async def get(self, document_id: str) -> Result[Document]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        document = self._scoped_document(document_id, org.value)
        if document is None:
            return self._document_not_found(document_id)
        return Ok(copy.deepcopy(document))

    async def delete(self, document_id: str) -> Result[None]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        if self._scoped_document(document_id, org.value) is None:
            return self._document_not_found(document_id)

        del self._db.documents[document_id]
        self._db.save()
        return Ok(None)

    async def update_verification(
        self,
        document_id: str,
        status: VerificationStatus,
    ) -> Result[Document]:
        org = await self._org_id()
        if isinstance(org, Err):
            return org
        document = self._scoped_document(document_id, org.value)
        if document is None:
            return self._document_not_found(document_id)

        updated = replace(document, verification=status, updated_at=utc_now())
        self._db.documents[document_id] = updated
        self._db.save()
        return Ok(copy.deepcopy(updated))

    def _scoped_document(self, document_id: str, org_id: str) -> Optional[Document]:
        document = self._db.documents.get(document_id)
        if document is None or self._db.property_in_org(document.property_id, org_id) is None:
            return None
        return document

    def _document_not_found(self, document_id: str) -> Err:
        return not_found(
            f"Document {document_id} not found",
            scope=self.scope,
            document_id=document_id,
        )
