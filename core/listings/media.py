"""
Media Asset Manager - Two-Phase Uploads, Cover and Ordering

Upload pipeline:
1. begin_upload: validate the descriptor and obtain an upload handle
2. the caller sends the bytes straight to the handle
3. complete_upload: persist the MediaAsset pointing at the object key

Between 1 and 3 the asset is provisional: trackable by a correlation id
for local previews, but outside the ordering and cover invariants. A
persistence failure in step 3 leaves an orphaned object in storage; it is
reported, not compensated.

Invariants per property:
- positions are 0..n-1 with no gaps
- at most one cover, and it is an image
- if any image exists, exactly one image is cover
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Final, Optional, Union

from core.listings.policies import (
    ensure_cover,
    renumber,
    sort_by_position,
    with_cover,
)
from core.listings.ports import MediaStore, ObjectStorageGateway, PropertyRepository, UploadHandle
from core.listings.result import (
    Err,
    ListingError,
    Ok,
    Result,
    conflict,
    not_found,
    port_call,
    unknown_error,
    validation_error,
)
from core.listings.schema import (
    MediaAsset,
    MediaMetadata,
    MediaType,
    MetadataValue,
    Property,
    generate_media_id,
    parse_enum,
    utc_now,
)
from core.listings.storage import sanitise_filename


logger = logging.getLogger(__name__)

SCOPE = "media"

DEFAULT_MAX_UPLOAD_BYTES: Final[int] = 25 * 1024 * 1024

ALLOWED_CONTENT_TYPES: Final[dict[MediaType, frozenset[str]]] = {
    MediaType.IMAGE: frozenset({"image/jpeg", "image/png", "image/webp", "image/heic"}),
    MediaType.VIDEO: frozenset({"video/mp4", "video/quicktime", "video/webm"}),
    MediaType.FLOORPLAN: frozenset({"image/jpeg", "image/png", "image/webp", "application/pdf"}),
}

Transfer = Callable[[UploadHandle], Awaitable[None]]

TrackerKey = tuple[str, str, str]


# =============================================================================
# Descriptors and Tracked Assets
# =============================================================================


@dataclass(frozen=True)
class MediaDescriptor:
    """What the caller intends to upload."""

    file_name: str
    content_type: str
    media_type: MediaType = MediaType.IMAGE
    size_bytes: Optional[int] = None
    checksum_sha256: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    extra: dict[str, MetadataValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "media_type", parse_enum(MediaType, self.media_type, "media type"))
        object.__setattr__(self, "content_type", (self.content_type or "").strip().lower())

    def to_metadata(self, file_name: str) -> MediaMetadata:
        return MediaMetadata(
            file_name=file_name,
            content_type=self.content_type,
            size_bytes=self.size_bytes,
            checksum_sha256=self.checksum_sha256,
            width=self.width,
            height=self.height,
            extra=dict(self.extra),
        )


@dataclass(frozen=True)
class ProvisionalAsset:
    """Upload in flight: handle issued, not yet persisted."""

    correlation_id: str
    org_id: str
    property_id: str
    descriptor: MediaDescriptor
    file_name: str
    upload: UploadHandle
    created_at: datetime = field(default_factory=utc_now)

    @property
    def key(self) -> TrackerKey:
        return (self.org_id, self.property_id, self.correlation_id)


@dataclass(frozen=True)
class DurableAsset:
    """Upload persisted; the correlation id now resolves to a stored asset."""

    correlation_id: str
    org_id: str
    asset: MediaAsset

    @property
    def key(self) -> TrackerKey:
        return (self.org_id, self.asset.property_id, self.correlation_id)


TrackedAsset = Union[ProvisionalAsset, DurableAsset]


class UploadTracker:
    """
    Client-side view of uploads keyed by (org, property, correlation id).

    Lets a UI keep rendering the same preview while the asset moves from
    provisional to durable, and drop it if persistence fails. Correlation
    ids are client supplied, so they only have to be unique per property.
    """

    def __init__(self):
        self._entries: dict[TrackerKey, TrackedAsset] = {}

    def track(self, provisional: ProvisionalAsset) -> bool:
        """Register a provisional entry. False if the key is already taken."""
        if provisional.key in self._entries:
            return False
        self._entries[provisional.key] = provisional
        return True

    def reconcile(self, provisional: ProvisionalAsset, asset: MediaAsset) -> DurableAsset:
        durable = DurableAsset(
            correlation_id=provisional.correlation_id,
            org_id=provisional.org_id,
            asset=asset,
        )
        self._entries[provisional.key] = durable
        return durable

    def discard(self, key: TrackerKey) -> None:
        self._entries.pop(key, None)

    def get(self, org_id: str, property_id: str, correlation_id: str) -> Optional[TrackedAsset]:
        return self._entries.get((org_id, property_id, correlation_id))

    def provisional(self) -> list[ProvisionalAsset]:
        return [e for e in self._entries.values() if isinstance(e, ProvisionalAsset)]

    def durable(self) -> list[DurableAsset]:
        return [e for e in self._entries.values() if isinstance(e, DurableAsset)]

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# Manager
# =============================================================================


class MediaAssetManager:
    """Upload pipeline, cover designation and ordering of media assets."""

    def __init__(
        self,
        media: MediaStore,
        properties: PropertyRepository,
        storage: ObjectStorageGateway,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        tracker: Optional[UploadTracker] = None,
    ):
        self._media = media
        self._properties = properties
        self._storage = storage
        self._max_upload_bytes = max_upload_bytes
        self.tracker = tracker if tracker is not None else UploadTracker()

    def validate_descriptor(self, descriptor: MediaDescriptor) -> tuple[bool, Optional[str]]:
        """
        Validate a descriptor before requesting a handle.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not sanitise_filename(descriptor.file_name):
            return False, "File name is empty"

        allowed = ALLOWED_CONTENT_TYPES[descriptor.media_type]
        if descriptor.content_type not in allowed:
            return False, (
                f"Content type {descriptor.content_type or '(none)'} not allowed for "
                f"{descriptor.media_type.value}. Allowed: {sorted(allowed)}"
            )

        if descriptor.size_bytes is not None:
            if descriptor.size_bytes == 0:
                return False, "File is empty"
            if descriptor.size_bytes > self._max_upload_bytes:
                max_mb = self._max_upload_bytes / (1024 * 1024)
                return False, f"File too large. Maximum size: {max_mb:g}MB"

        return True, None

    async def _living_property(self, property_id: str) -> Result[Property]:
        result = await port_call(self._properties.get(property_id), SCOPE)
        if isinstance(result, Err):
            return result
        if result.value.is_deleted:
            return conflict(f"Property {property_id} is deleted", scope=SCOPE, property_id=property_id)
        return result

    # =========================================================================
    # Upload Pipeline
    # =========================================================================

    async def begin_upload(
        self,
        property_id: str,
        descriptor: MediaDescriptor,
        correlation_id: Optional[str] = None,
    ) -> Result[ProvisionalAsset]:
        """
        Phase 1: validate and obtain an upload handle.

        Args:
            property_id: Target property
            descriptor: File name, content type, media type and optional size
            correlation_id: Client key for the preview; generated if omitted

        Returns:
            Ok(ProvisionalAsset), also registered with the tracker
        """
        is_valid, message = self.validate_descriptor(descriptor)
        if not is_valid:
            return validation_error(message, scope=SCOPE, file_name=descriptor.file_name)

        prop = await self._living_property(property_id)
        if isinstance(prop, Err):
            return prop

        correlation_id = correlation_id or uuid.uuid4().hex
        org_id = prop.value.org_id
        if self.tracker.get(org_id, property_id, correlation_id) is not None:
            return self._correlation_taken(property_id, correlation_id)

        file_name = sanitise_filename(descriptor.file_name)
        handle = await port_call(
            self._storage.request_upload_handle(file_name, descriptor.content_type), SCOPE
        )
        if isinstance(handle, Err):
            return handle

        provisional = ProvisionalAsset(
            correlation_id=correlation_id,
            org_id=org_id,
            property_id=property_id,
            descriptor=descriptor,
            file_name=file_name,
            upload=handle.value,
        )
        if not self.tracker.track(provisional):
            return self._correlation_taken(property_id, correlation_id)
        return Ok(provisional)

    def _correlation_taken(self, property_id: str, correlation_id: str) -> Err:
        return conflict(
            f"Upload {correlation_id} is already tracked",
            scope=SCOPE,
            property_id=property_id,
            correlation_id=correlation_id,
        )

    async def complete_upload(self, provisional: ProvisionalAsset) -> Result[MediaAsset]:
        """
        Phase 3: persist the asset after the bytes were transferred.

        Appends at position = current count; the first image becomes cover.
        On failure, including a property deleted since phase 1, the
        provisional entry is discarded and the stored object is reported
        as orphaned.
        """
        property_id = provisional.property_id
        prop = await self._living_property(property_id)
        if isinstance(prop, Err):
            return self._orphaned(provisional, prop.error)

        existing = await port_call(self._media.list_by_property(property_id), SCOPE)
        if isinstance(existing, Err):
            return self._orphaned(provisional, existing.error)

        is_image = provisional.descriptor.media_type == MediaType.IMAGE
        has_image = any(a.is_image for a in existing.value)

        try:
            asset = MediaAsset(
                id=generate_media_id(),
                property_id=property_id,
                type=provisional.descriptor.media_type,
                position=len(existing.value),
                object_key=provisional.upload.object_key,
                url=provisional.upload.object_url,
                is_cover=is_image and not has_image,
                metadata=provisional.descriptor.to_metadata(provisional.file_name),
            )
        except ValueError as e:
            self.tracker.discard(provisional.key)
            return validation_error(str(e), scope=SCOPE)

        inserted = await port_call(self._media.insert(asset), SCOPE)
        if isinstance(inserted, Err):
            return self._orphaned(provisional, inserted.error)

        self.tracker.reconcile(provisional, inserted.value)
        logger.info(
            "Stored %s %s for %s at position %d%s",
            asset.type.value, asset.id, property_id, asset.position,
            " (cover)" if asset.is_cover else "",
        )
        return inserted

    def _orphaned(self, provisional: ProvisionalAsset, cause: ListingError) -> Err:
        self.tracker.discard(provisional.key)
        logger.warning(
            "Media persistence failed for %s; object %s is orphaned: %s",
            provisional.property_id, provisional.upload.object_key, cause.message,
        )
        return unknown_error(
            "Uploaded file could not be recorded",
            cause=cause,
            scope=SCOPE,
            object_key=provisional.upload.object_key,
            orphaned=True,
        )

    async def complete_tracked_upload(
        self,
        property_id: str,
        correlation_id: str,
    ) -> Result[MediaAsset]:
        """
        Phase 3 for callers that only hold the correlation id.

        The entry is looked up within the caller's organisation and
        released once completed, so a server-side tracker does not grow.
        """
        prop = await self._living_property(property_id)
        if isinstance(prop, Err):
            return prop

        key = (prop.value.org_id, property_id, correlation_id)
        entry = self.tracker.get(*key)
        if not isinstance(entry, ProvisionalAsset):
            return not_found(
                f"Upload {correlation_id} not found",
                scope=SCOPE,
                property_id=property_id,
                correlation_id=correlation_id,
            )

        completed = await self.complete_upload(entry)
        self.tracker.discard(key)
        return completed

    async def upload(
        self,
        property_id: str,
        descriptor: MediaDescriptor,
        transfer: Transfer,
        correlation_id: Optional[str] = None,
    ) -> Result[MediaAsset]:
        """
        Run all three phases.

        Args:
            property_id: Target property
            descriptor: What is being uploaded
            transfer: Coroutine function that sends the bytes to the handle
            correlation_id: Optional client preview key
        """
        provisional = await self._transfer(property_id, descriptor, transfer, correlation_id)
        if isinstance(provisional, Err):
            return provisional
        return await self.complete_upload(provisional.value)

    async def _transfer(
        self,
        property_id: str,
        descriptor: MediaDescriptor,
        transfer: Transfer,
        correlation_id: Optional[str] = None,
    ) -> Result[ProvisionalAsset]:
        provisional = await self.begin_upload(property_id, descriptor, correlation_id)
        if isinstance(provisional, Err):
            return provisional

        try:
            await transfer(provisional.value.upload)
        except Exception as e:
            self.tracker.discard(provisional.value.key)
            logger.error("Transfer of %s failed: %s", provisional.value.file_name, e)
            return unknown_error(
                "File transfer failed",
                cause=e,
                scope=SCOPE,
                object_key=provisional.value.upload.object_key,
                orphaned=False,
            )
        return provisional

    async def upload_many(
        self,
        property_id: str,
        uploads: list[tuple[MediaDescriptor, Transfer]],
    ) -> list[Result[MediaAsset]]:
        """
        Upload several files.

        Handles and transfers run concurrently; records are then persisted
        in input order so positions follow the order given. A failure only
        affects its own entry.

        Returns:
            One Result per input, in input order
        """
        transferred = await asyncio.gather(
            *(self._transfer(property_id, descriptor, transfer) for descriptor, transfer in uploads)
        )

        results: list[Result[MediaAsset]] = []
        for provisional in transferred:
            if isinstance(provisional, Err):
                results.append(provisional)
            else:
                results.append(await self.complete_upload(provisional.value))
        return results

    # =========================================================================
    # Cover and Ordering
    # =========================================================================

    async def list_media(self, property_id: str) -> Result[list[MediaAsset]]:
        """Assets ordered by position."""
        result = await port_call(self._media.list_by_property(property_id), SCOPE)
        if isinstance(result, Err):
            return result
        return Ok(sort_by_position(result.value))

    async def remove(self, property_id: str, media_id: str) -> Result[list[MediaAsset]]:
        """
        Delete an asset, close the gap and re-elect the cover if needed.

        Returns:
            Ok(remaining assets in order)
        """
        prop = await self._living_property(property_id)
        if isinstance(prop, Err):
            return prop

        current = await self.list_media(property_id)
        if isinstance(current, Err):
            return current

        target = next((a for a in current.value if a.id == media_id), None)
        if target is None:
            return not_found(f"Media {media_id} not found", scope=SCOPE, media_id=media_id)

        deleted = await port_call(self._media.delete(property_id, media_id), SCOPE)
        if isinstance(deleted, Err):
            return deleted

        remaining = renumber([a for a in current.value if a.id != media_id])
        if target.is_cover:
            remaining = ensure_cover(remaining)

        logger.info("Removed media %s from %s", media_id, property_id)
        if not remaining:
            return Ok([])
        return await self._save_order(property_id, remaining)

    async def set_cover(self, property_id: str, media_id: str) -> Result[list[MediaAsset]]:
        """Make an image the single cover asset."""
        prop = await self._living_property(property_id)
        if isinstance(prop, Err):
            return prop

        current = await self.list_media(property_id)
        if isinstance(current, Err):
            return current

        target = next((a for a in current.value if a.id == media_id), None)
        if target is None:
            return not_found(f"Media {media_id} not found", scope=SCOPE, media_id=media_id)
        if not target.is_image:
            return validation_error(
                f"Only images can be cover, {media_id} is a {target.type.value}",
                scope=SCOPE,
                media_id=media_id,
            )
        if target.is_cover:
            return current

        logger.info("Cover of %s set to %s", property_id, media_id)
        return await self._save_order(property_id, with_cover(current.value, media_id))

    async def reorder(self, property_id: str, ordered_ids: list[str]) -> Result[list[MediaAsset]]:
        """
        Apply a new order. Positions follow list index; cover is unchanged.

        Args:
            property_id: Property whose assets are reordered
            ordered_ids: Permutation of the property's media ids

        Returns:
            Ok(assets in the new order)
        """
        prop = await self._living_property(property_id)
        if isinstance(prop, Err):
            return prop

        current = await self.list_media(property_id)
        if isinstance(current, Err):
            return current

        if len(set(ordered_ids)) != len(ordered_ids):
            duplicates = sorted({i for i in ordered_ids if ordered_ids.count(i) > 1})
            return conflict("Duplicate media ids in order", scope=SCOPE, duplicates=duplicates)

        by_id = {a.id: a for a in current.value}
        if set(ordered_ids) != set(by_id):
            return validation_error(
                "Order must list every media asset of the property exactly once",
                scope=SCOPE,
                missing=sorted(set(by_id) - set(ordered_ids)),
                unknown=sorted(set(ordered_ids) - set(by_id)),
            )

        if ordered_ids == [a.id for a in current.value]:
            return current

        return await self._save_order(property_id, renumber([by_id[i] for i in ordered_ids]))

    async def _save_order(
        self,
        property_id: str,
        assets: list[MediaAsset],
    ) -> Result[list[MediaAsset]]:
        saved = await port_call(self._media.save_order(property_id, assets), SCOPE)
        if isinstance(saved, Err):
            return saved
        return Ok(sort_by_position(saved.value))
