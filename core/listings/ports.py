"""
Listing Ports - Abstract Collaborators of the Listing Core

The managers never talk to a database, an object store or a session
directly. They depend on these interfaces, which adapters implement
(see repository.py and storage.py for the shipped ones).

Every port method is a coroutine returning a Result; adapters convert
their own failures into Err values instead of raising.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from core.listings.result import Result
from core.listings.schema import (
    AuthProfile,
    Document,
    MediaAsset,
    Page,
    Property,
    PropertyFilters,
    PropertyStatus,
    PropertySummary,
    VerificationStatus,
)


# =============================================================================
# Transfer Types
# =============================================================================


@dataclass(frozen=True)
class UploadHandle:
    """
    Short-lived permission to write one object.

    `handle` is the presigned URL the bytes are sent to; `object_url` is
    where the object is readable once written.
    """

    handle: str
    object_key: str
    object_url: str
    content_type: Optional[str] = None


# =============================================================================
# Identity
# =============================================================================


class IdentityProvider(ABC):
    """Resolves the current caller. Only the output contract is consumed."""

    @abstractmethod
    async def get_current(self) -> Result[AuthProfile]:
        ...


# =============================================================================
# Persistence
# =============================================================================


class PropertyRepository(ABC):
    """
    CRUD and query over properties, scoped to the caller's organisation.

    get() returns soft-deleted properties too so callers can tell "deleted"
    from "never existed"; list() never includes them. get_published() and
    public list() queries are the only calls that need no organisation.
    """

    @abstractmethod
    async def get(self, property_id: str) -> Result[Property]:
        ...

    @abstractmethod
    async def get_published(self, property_id: str) -> Result[Property]:
        """A published, non-deleted property of any organisation."""

    @abstractmethod
    async def list(self, filters: PropertyFilters) -> Result[Page[PropertySummary]]:
        ...

    @abstractmethod
    async def create(self, draft: Property) -> Result[str]:
        """Persist a new property and return its id."""

    @abstractmethod
    async def update(self, property_id: str, patch: dict[str, Any]) -> Result[Property]:
        """Apply a field patch and return the stored property."""

    @abstractmethod
    async def set_status(
        self,
        property_id: str,
        status: PropertyStatus,
        fields: Optional[dict[str, Any]] = None,
    ) -> Result[Property]:
        """Change status together with the lifecycle fields it implies."""

    @abstractmethod
    async def soft_delete(self, property_id: str) -> Result[Property]:
        ...


class MediaStore(ABC):
    """Persistence for media assets, keyed by property."""

    @abstractmethod
    async def list_by_property(self, property_id: str) -> Result[list[MediaAsset]]:
        """Assets of a property ordered by position."""

    @abstractmethod
    async def insert(self, asset: MediaAsset) -> Result[MediaAsset]:
        ...

    @abstractmethod
    async def delete(self, property_id: str, media_id: str) -> Result[None]:
        ...

    @abstractmethod
    async def save_order(
        self,
        property_id: str,
        assets: list[MediaAsset],
    ) -> Result[list[MediaAsset]]:
        """Write positions and cover flags of every asset in one call."""


class DocumentStore(ABC):
    """Persistence for supporting documents, keyed by property."""

    @abstractmethod
    async def insert(self, document: Document) -> Result[Document]:
        ...

    @abstractmethod
    async def list_by_property(self, property_id: str) -> Result[list[Document]]:
        """Documents of a property ordered by creation time."""

    @abstractmethod
    async def get(self, document_id: str) -> Result[Document]:
        ...

    @abstractmethod
    async def delete(self, document_id: str) -> Result[None]:
        ...

    @abstractmethod
    async def update_verification(
        self,
        document_id: str,
        status: VerificationStatus,
    ) -> Result[Document]:
        ...


# =============================================================================
# Object Storage
# =============================================================================


class ObjectStorageGateway(ABC):
    """Issues upload and download handles. Byte transfer happens elsewhere."""

    @abstractmethod
    async def request_upload_handle(
        self,
        file_name: str,
        content_type: str,
    ) -> Result[UploadHandle]:
        ...

    @abstractmethod
    async def request_download_url(self, object_key: str) -> Result[str]:
        ...
