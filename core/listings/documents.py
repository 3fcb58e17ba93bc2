"""
Document Verification Manager - Attach, Review and Remove Documents

Documents start pending; review is the only path that flips a listing's
publish-blocking document state. When a trust document (by default the
public registry certificate) is reviewed, the property's registry mirror
is refreshed from all of its trust documents.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from core.listings.policies import registry_status_from_documents
from core.listings.ports import (
    DocumentStore,
    IdentityProvider,
    ObjectStorageGateway,
    PropertyRepository,
)
from core.listings.result import (
    Err,
    Ok,
    Result,
    auth_error,
    conflict,
    not_found,
    port_call,
    validation_error,
)
from core.listings.schema import (
    Document,
    DocumentMetadata,
    DocumentType,
    Property,
    VerificationStatus,
    generate_document_id,
    parse_document_type,
    parse_enum,
)


logger = logging.getLogger(__name__)

SCOPE = "documents"
DEFAULT_REVIEWER_ROLES = ("reviewer", "admin")


@dataclass(frozen=True)
class DocumentLocator:
    """Where a document lives: an object key, an external URL, or both."""

    object_key: Optional[str] = None
    url: Optional[str] = None

    def __post_init__(self) -> None:
        if not (self.object_key or "").strip() and not (self.url or "").strip():
            raise ValueError("document locator needs an object key or a URL")


class DocumentVerificationManager:
    """Attach, list, review and delete property documents."""

    def __init__(
        self,
        documents: DocumentStore,
        properties: PropertyRepository,
        identity: IdentityProvider,
        storage: ObjectStorageGateway,
        trust_document_type: DocumentType = DocumentType.RPP_CERTIFICATE,
        reviewer_roles: Iterable[str] = DEFAULT_REVIEWER_ROLES,
    ):
        self._documents = documents
        self._properties = properties
        self._identity = identity
        self._storage = storage
        self._trust_type = trust_document_type
        self._reviewer_roles = frozenset(r.lower() for r in reviewer_roles)

    @property
    def trust_document_type(self) -> DocumentType:
        return self._trust_type

    async def _living_property(self, property_id: str) -> Result[Property]:
        result = await port_call(self._properties.get(property_id), SCOPE)
        if isinstance(result, Err):
            return result
        if result.value.is_deleted:
            return conflict(f"Property {property_id} is deleted", scope=SCOPE, property_id=property_id)
        return result

    # =========================================================================
    # Attach / List / Delete
    # =========================================================================

    async def attach(
        self,
        property_id: str,
        doc_type: Union[str, DocumentType],
        locator: DocumentLocator,
        metadata: Optional[DocumentMetadata] = None,
        trusted: bool = False,
    ) -> Result[Document]:
        """
        Attach a document to a property.

        Args:
            property_id: Target property
            doc_type: Document type; "plan" and "ine" are accepted aliases
            locator: Object key and/or URL
            metadata: Optional typed metadata
            trusted: Caller already validated the document off-band

        Returns:
            Ok(Document) in pending, or verified when trusted
        """
        prop = await self._living_property(property_id)
        if isinstance(prop, Err):
            return prop

        try:
            document = Document(
                id=generate_document_id(),
                property_id=property_id,
                doc_type=parse_document_type(doc_type),
                verification=VerificationStatus.VERIFIED if trusted else VerificationStatus.PENDING,
                object_key=locator.object_key,
                url=locator.url,
                metadata=metadata or DocumentMetadata(),
            )
        except ValueError as e:
            return validation_error(str(e), scope=SCOPE, property_id=property_id)

        inserted = await port_call(self._documents.insert(document), SCOPE)
        if isinstance(inserted, Err):
            return inserted

        logger.info(
            "Attached %s document %s to %s (%s)",
            document.doc_type.value, document.id, property_id, document.verification.value,
        )
        if document.doc_type == self._trust_type:
            await self._refresh_registry_mirror(property_id)
        return inserted

    async def list_by_property(self, property_id: str) -> Result[list[Document]]:
        """Documents ordered by creation time, oldest first."""
        return await port_call(self._documents.list_by_property(property_id), SCOPE)

    async def _load_document(
        self,
        document_id: str,
        property_id: Optional[str] = None,
    ) -> Result[Document]:
        """Fetch a document, NOT_FOUND if property_id is given and does not own it."""
        existing = await port_call(self._documents.get(document_id), SCOPE)
        if isinstance(existing, Err):
            return existing
        if property_id is not None and existing.value.property_id != property_id:
            return not_found(
                f"Document {document_id} not found on property {property_id}",
                scope=SCOPE,
                document_id=document_id,
            )
        return existing

    async def delete(self, document_id: str, property_id: Optional[str] = None) -> Result[None]:
        """
        Remove a document. NOT_FOUND if absent or outside the caller's scope,
        or when property_id is given and the document belongs elsewhere.
        """
        existing = await self._load_document(document_id, property_id)
        if isinstance(existing, Err):
            return existing

        deleted = await port_call(self._documents.delete(document_id), SCOPE)
        if isinstance(deleted, Err):
            return deleted

        logger.info("Deleted document %s from %s", document_id, existing.value.property_id)
        if existing.value.doc_type == self._trust_type:
            await self._refresh_registry_mirror(existing.value.property_id)
        return deleted

    # =========================================================================
    # Review
    # =========================================================================

    async def verify(
        self,
        property_id: str,
        document_id: str,
        status: Union[str, VerificationStatus],
    ) -> Result[Document]:
        """
        Record a review decision.

        Only callers whose role is a reviewer role may review.

        Returns:
            Ok(Document) with the new verification status
        """
        caller = await port_call(self._identity.get_current(), SCOPE)
        if isinstance(caller, Err):
            return caller
        if (caller.value.role or "").lower() not in self._reviewer_roles:
            return auth_error("Caller is not allowed to review documents", scope=SCOPE)

        try:
            new_status = parse_enum(VerificationStatus, status, "verification status")
        except ValueError as e:
            return validation_error(str(e), scope=SCOPE)
        if new_status is None:
            return validation_error("verification status is required", scope=SCOPE)

        prop = await self._living_property(property_id)
        if isinstance(prop, Err):
            return prop

        existing = await self._load_document(document_id, property_id)
        if isinstance(existing, Err):
            return existing

        updated = await port_call(
            self._documents.update_verification(document_id, new_status), SCOPE
        )
        if isinstance(updated, Err):
            return updated

        logger.info(
            "Document %s on %s reviewed as %s by %s",
            document_id, property_id, new_status.value, caller.value.user_id or "unknown",
        )
        if updated.value.doc_type == self._trust_type:
            await self._refresh_registry_mirror(property_id)
        return updated

    async def _refresh_registry_mirror(self, property_id: str) -> None:
        """
        Recompute the property's registry verification mirror.

        The mirror is a cache; publish guards read documents directly, so a
        failed refresh is logged and does not fail the review.
        """
        documents = await port_call(self._documents.list_by_property(property_id), SCOPE)
        if isinstance(documents, Err):
            logger.error("Registry mirror refresh failed for %s: %s", property_id, documents.error.message)
            return

        mirror = registry_status_from_documents(documents.value, self._trust_type)
        updated = await port_call(
            self._properties.update(property_id, {"rpp_verification": mirror}), SCOPE
        )
        if isinstance(updated, Err):
            logger.error("Registry mirror refresh failed for %s: %s", property_id, updated.error.message)

    # =========================================================================
    # Download
    # =========================================================================

    async def request_download_url(
        self,
        document_id: str,
        property_id: Optional[str] = None,
    ) -> Result[str]:
        """Resolve a URL the caller can fetch the document from."""
        document = await self._load_document(document_id, property_id)
        if isinstance(document, Err):
            return document

        if document.value.object_key:
            return await port_call(
                self._storage.request_download_url(document.value.object_key), SCOPE
            )
        return Ok(document.value.url)
