"""
Property Lifecycle Manager - Draft to Published to Sold

The state machine behind a listing. Every transition reads fresh data,
evaluates its guards and only then writes.

States:
    draft --publish--> published --mark_sold--> sold
    published --pause--> draft
    any --archive (admin)--> archived

Publish guards (each reported separately, in this order):
1. KYC: the owner's identity is verified
2. TRUST_DOCUMENT: a trust document (registry certificate by default) is verified
3. COMPLETENESS: score >= publish threshold, recomputed at publish time

Principles:
- Soft-deleted properties accept no transitions
- Published listings cannot change their structural fields
- Completeness is recomputed and stored on every update
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Hashable, Mapping, Optional

from core.listings.completeness import (
    ChecklistItem,
    CompletenessReport,
    CompletenessScorer,
    ReadinessBucket,
)
from core.listings.policies import (
    can_transition,
    has_verified_trust_document,
    registry_status_from_documents,
    rejected_fields,
    structural_fields_in,
)
from core.listings.ports import DocumentStore, IdentityProvider, MediaStore, PropertyRepository
from core.listings.result import (
    Err,
    ListingError,
    Ok,
    PublishGuard,
    Result,
    auth_error,
    conflict,
    guard_failed,
    not_found,
    port_call,
    validation_error,
)
from core.listings.schema import (
    Address,
    AuthProfile,
    Document,
    DocumentType,
    GeoPoint,
    MediaAsset,
    Money,
    Page,
    Property,
    PropertyFilters,
    PropertyStatus,
    PropertySummary,
    VerificationStatus,
    ensure_utc,
    generate_document_id,
    generate_media_id,
    generate_property_id,
    utc_now,
)
from core.listings.sequencing import RequestSequencer


logger = logging.getLogger(__name__)

SCOPE = "lifecycle"

DEFAULT_PUBLISH_THRESHOLD = 80
ADMIN_ROLE = "admin"
COPY_SUFFIX = " (copy)"


# =============================================================================
# Readiness
# =============================================================================


class ReadinessIssue:
    """Neutral issue codes; presentation decides the wording."""

    KYC_MISSING = "kyc_missing"
    TRUST_DOCUMENT_UNVERIFIED = "trust_document_unverified"
    RPP_REJECTED = "rpp_rejected"
    SCORE_BELOW_MIN = "score_below_min"
    MEDIA_MIN_MISSING = "media_min_missing"
    ADDRESS_INCOMPLETE = "address_incomplete"
    REQUIRED_FIELDS_MISSING = "required_fields_missing"


@dataclass(frozen=True)
class PublishReadiness:
    """Outcome of evaluating the publish guards without committing."""

    property_id: str
    completeness: CompletenessReport
    threshold: int
    failed_guards: tuple[ListingError, ...]
    issues: tuple[str, ...]

    @property
    def score(self) -> int:
        return self.completeness.score

    @property
    def bucket(self) -> ReadinessBucket:
        return self.completeness.bucket

    @property
    def can_publish(self) -> bool:
        return not self.failed_guards

    def blocking_error(self) -> Optional[ListingError]:
        """First failing guard, carrying the others as related errors."""
        if not self.failed_guards:
            return None
        first, *rest = self.failed_guards
        return replace(first, related=tuple(rest))

    def to_dict(self) -> dict:
        return {
            "property_id": self.property_id,
            "score": self.score,
            "bucket": self.bucket.value,
            "threshold": self.threshold,
            "can_publish": self.can_publish,
            "failed_guards": [g.guard.value for g in self.failed_guards],
            "issues": list(self.issues),
            "missing": [item.value for item in self.completeness.missing],
        }


# =============================================================================
# Patch Normalisation
# =============================================================================


def _money(value: Any) -> Optional[Money]:
    if value is None or isinstance(value, Money):
        return value
    return Money.from_dict(value)


def _address(value: Any) -> Address:
    if isinstance(value, Address):
        return value
    return Address.from_dict(value or {})


def _location(value: Any) -> Optional[GeoPoint]:
    if value is None or isinstance(value, GeoPoint):
        return value
    return GeoPoint.from_dict(value)


_COERCE: dict[str, Callable[[Any], Any]] = {
    "price": lambda v: _money(v) or Money(0),
    "hoa_fee": _money,
    "address": _address,
    "location": _location,
    "amenities": lambda v: list(v or []),
    "tags": lambda v: list(v or []),
}


def normalise_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    """
    Convert plain values (dicts, strings) into field values.

    Raises:
        ValueError: If a value cannot be converted
    """
    normalised = {}
    for name, value in patch.items():
        coerce = _COERCE.get(name)
        try:
            normalised[name] = coerce(value) if coerce else value
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Invalid {name}: {e}") from e
    return normalised


# =============================================================================
# Manager
# =============================================================================


class PropertyLifecycleManager:
    """Creates listings and moves them through their lifecycle."""

    def __init__(
        self,
        properties: PropertyRepository,
        documents: DocumentStore,
        media: MediaStore,
        identity: IdentityProvider,
        scorer: Optional[CompletenessScorer] = None,
        publish_threshold: int = DEFAULT_PUBLISH_THRESHOLD,
        trust_document_type: DocumentType = DocumentType.RPP_CERTIFICATE,
        sequencer: Optional[RequestSequencer] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._properties = properties
        self._documents = documents
        self._media = media
        self._identity = identity
        self._scorer = scorer if scorer is not None else CompletenessScorer()
        self._threshold = publish_threshold
        self._trust_type = trust_document_type
        self._sequencer = sequencer if sequencer is not None else RequestSequencer()
        self._clock = clock

    # =========================================================================
    # Loading
    # =========================================================================

    async def _load(self, property_id: str) -> Result[Property]:
        """Fresh read, including soft-deleted properties."""
        return await port_call(self._properties.get(property_id), SCOPE)

    async def _load_living(self, property_id: str) -> Result[Property]:
        prop = await self._load(property_id)
        if isinstance(prop, Err):
            return prop
        if prop.value.is_deleted:
            return conflict(
                f"Property {property_id} is deleted",
                scope=SCOPE,
                property_id=property_id,
            )
        return prop

    async def _caller(self) -> Result[AuthProfile]:
        caller = await port_call(self._identity.get_current(), SCOPE)
        if isinstance(caller, Err):
            return caller
        if not caller.value.org_id:
            return auth_error("Caller has no organisation", scope=SCOPE)
        return caller

    async def _children(self, property_id: str) -> Result[tuple[list[Document], list[MediaAsset]]]:
        documents = await port_call(self._documents.list_by_property(property_id), SCOPE)
        if isinstance(documents, Err):
            return documents
        media = await port_call(self._media.list_by_property(property_id), SCOPE)
        if isinstance(media, Err):
            return media
        return Ok((documents.value, media.value))

    # =========================================================================
    # Create / Read
    # =========================================================================

    async def create(self, draft: Mapping[str, Any]) -> Result[Property]:
        """
        Create a draft listing for the caller's organisation.

        Args:
            draft: Editable fields (see policies.EDITABLE_FIELDS)

        Returns:
            Ok(Property) in draft with its initial completeness score
        """
        rejected = rejected_fields(draft)
        if rejected:
            return validation_error("Fields cannot be set on create", scope=SCOPE, fields=rejected)

        caller = await self._caller()
        if isinstance(caller, Err):
            return caller

        now = self._clock()
        try:
            prop = Property(
                id=generate_property_id(),
                org_id=caller.value.org_id,
                owner_id=caller.value.user_id or "",
                created_at=now,
                updated_at=now,
                **normalise_patch(draft),
            )
        except (TypeError, ValueError) as e:
            return validation_error(str(e), scope=SCOPE)

        prop.completeness_score = self._scorer.score(prop, [], 0)

        created = await port_call(self._properties.create(prop), SCOPE)
        if isinstance(created, Err):
            return created

        logger.info("Created draft %s (completeness %d)", prop.id, prop.completeness_score)
        return Ok(prop)

    async def get(self, property_id: str) -> Result[Property]:
        """Get a property. Soft-deleted properties are NOT_FOUND."""
        prop = await self._load(property_id)
        if isinstance(prop, Err):
            return prop
        if prop.value.is_deleted:
            return not_found(f"Property {property_id} not found", scope=SCOPE, property_id=property_id)
        return prop

    async def list(
        self,
        filters: PropertyFilters,
        channel: Optional[Hashable] = None,
    ) -> Optional[Result[Page[PropertySummary]]]:
        """
        List properties.

        Args:
            filters: Query filters
            channel: Requests sharing a channel supersede each other
                     (last request wins); without one every request
                     is delivered

        Returns:
            The page result, or None if a newer request on the same
            channel was issued before this one resolved
        """
        query = port_call(self._properties.list(filters), SCOPE)
        if channel is None:
            return await query
        return await self._sequencer.run(channel, query)

    # =========================================================================
    # Public Catalogue
    # =========================================================================

    async def list_public(self, filters: PropertyFilters) -> Result[Page[PropertySummary]]:
        """Published listings of every organisation. Needs no caller identity."""
        return await port_call(self._properties.list(replace(filters, public=True)), SCOPE)

    async def get_public(self, property_id: str) -> Result[Property]:
        """A published listing by id. Drafts, sold and deleted listings are NOT_FOUND."""
        return await port_call(self._properties.get_published(property_id), SCOPE)

    # =========================================================================
    # Publish
    # =========================================================================

    async def _evaluate(self, prop: Property) -> Result[PublishReadiness]:
        """Evaluate all publish guards against freshly read data."""
        caller = await port_call(self._identity.get_current(), SCOPE)
        if isinstance(caller, Err):
            return caller

        children = await self._children(prop.id)
        if isinstance(children, Err):
            return children
        documents, media = children.value

        report = self._scorer.evaluate(prop, documents, len(media))
        failed: list[ListingError] = []
        issues: list[str] = []

        if not caller.value.is_kyc_verified:
            failed.append(guard_failed(
                PublishGuard.KYC,
                "Owner identity is not verified",
                kyc_status=caller.value.kyc_status.value,
            ))
            issues.append(ReadinessIssue.KYC_MISSING)

        if not has_verified_trust_document(documents, self._trust_type):
            registry = registry_status_from_documents(documents, self._trust_type)
            failed.append(guard_failed(
                PublishGuard.TRUST_DOCUMENT,
                f"No verified {self._trust_type.value} document",
                document_type=self._trust_type.value,
                registry_status=registry.value if registry else None,
            ))
            issues.append(
                ReadinessIssue.RPP_REJECTED
                if registry == VerificationStatus.REJECTED
                else ReadinessIssue.TRUST_DOCUMENT_UNVERIFIED
            )

        if report.score < self._threshold:
            failed.append(guard_failed(
                PublishGuard.COMPLETENESS,
                f"Completeness {report.score} is below {self._threshold}",
                score=report.score,
                threshold=self._threshold,
                missing=[item.value for item in report.missing],
            ))
            issues.append(ReadinessIssue.SCORE_BELOW_MIN)

        missing = set(report.missing)
        if ChecklistItem.MEDIA in missing:
            issues.append(ReadinessIssue.MEDIA_MIN_MISSING)
        if missing & {ChecklistItem.CITY, ChecklistItem.STATE}:
            issues.append(ReadinessIssue.ADDRESS_INCOMPLETE)
        if missing & {ChecklistItem.TITLE, ChecklistItem.PROPERTY_TYPE, ChecklistItem.PRICE}:
            issues.append(ReadinessIssue.REQUIRED_FIELDS_MISSING)

        return Ok(PublishReadiness(
            property_id=prop.id,
            completeness=report,
            threshold=self._threshold,
            failed_guards=tuple(failed),
            issues=tuple(issues),
        ))

    async def check_readiness(self, property_id: str) -> Result[PublishReadiness]:
        """Evaluate the publish guards without changing anything."""
        prop = await self._load_living(property_id)
        if isinstance(prop, Err):
            return prop
        return await self._evaluate(prop.value)

    async def publish(self, property_id: str) -> Result[Property]:
        """
        Publish a draft.

        Returns:
            Ok(Property) when published (or already published);
            Err GUARD_FAILED naming the first failing guard, with any
            other failing guards in `related`
        """
        prop = await self._load_living(property_id)
        if isinstance(prop, Err):
            return prop

        current = prop.value.status
        if current == PropertyStatus.PUBLISHED:
            return prop
        if not can_transition(current, PropertyStatus.PUBLISHED):
            return conflict(
                f"Cannot publish a {current.value} property",
                scope=SCOPE,
                property_id=property_id,
                status=current.value,
            )

        readiness = await self._evaluate(prop.value)
        if isinstance(readiness, Err):
            return readiness

        blocking = readiness.value.blocking_error()
        if blocking is not None:
            logger.warning(
                "Publish of %s blocked by %s",
                property_id, ", ".join(g.guard.value for g in readiness.value.failed_guards),
            )
            return Err(blocking.with_details(property_id=property_id))

        published = await port_call(
            self._properties.set_status(
                property_id,
                PropertyStatus.PUBLISHED,
                {
                    "published_at": self._clock(),
                    "scheduled_publish_at": None,
                    "completeness_score": readiness.value.score,
                },
            ),
            SCOPE,
        )
        if isinstance(published, Err):
            return published

        logger.info("Published %s (completeness %d)", property_id, readiness.value.score)
        return published

    async def schedule_publish(self, property_id: str, at: datetime) -> Result[Property]:
        """Record a future publish time on a draft. Status is unchanged."""
        prop = await self._load_living(property_id)
        if isinstance(prop, Err):
            return prop

        at = ensure_utc(at)
        if at <= self._clock():
            return validation_error(
                "Scheduled publish time must be in the future",
                scope=SCOPE,
                at=at.isoformat(),
            )
        if prop.value.status != PropertyStatus.DRAFT:
            return conflict(
                f"Only drafts can be scheduled, property is {prop.value.status.value}",
                scope=SCOPE,
                property_id=property_id,
            )

        scheduled = await port_call(
            self._properties.update(property_id, {"scheduled_publish_at": at}), SCOPE
        )
        if isinstance(scheduled, Err):
            return scheduled

        logger.info("Scheduled %s for publishing at %s", property_id, at.isoformat())
        return scheduled

    # =========================================================================
    # Other Transitions
    # =========================================================================

    async def pause(self, property_id: str) -> Result[Property]:
        """Take a published listing back to draft."""
        prop = await self._load_living(property_id)
        if isinstance(prop, Err):
            return prop
        if prop.value.status != PropertyStatus.PUBLISHED:
            return conflict(
                f"Only published properties can be paused, property is {prop.value.status.value}",
                scope=SCOPE,
                property_id=property_id,
            )

        paused = await port_call(
            self._properties.set_status(property_id, PropertyStatus.DRAFT, {"published_at": None}),
            SCOPE,
        )
        if isinstance(paused, Err):
            return paused

        logger.info("Paused %s", property_id)
        return paused

    async def mark_sold(
        self,
        property_id: str,
        sold_at: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> Result[Property]:
        """
        Mark a published listing as sold.

        Args:
            property_id: Property to close
            sold_at: Sale date, defaults to now; must not be in the future
            note: Optional free-text note
        """
        prop = await self._load_living(property_id)
        if isinstance(prop, Err):
            return prop

        now = self._clock()
        sold_at = ensure_utc(sold_at) if sold_at else now
        if sold_at > now:
            return validation_error(
                "Sold date cannot be in the future",
                scope=SCOPE,
                sold_at=sold_at.isoformat(),
            )
        if prop.value.status != PropertyStatus.PUBLISHED:
            return conflict(
                f"Only published properties can be sold, property is {prop.value.status.value}",
                scope=SCOPE,
                property_id=property_id,
            )

        sold = await port_call(
            self._properties.set_status(
                property_id,
                PropertyStatus.SOLD,
                {"sold_at": sold_at, "sold_note": (note or "").strip() or None},
            ),
            SCOPE,
        )
        if isinstance(sold, Err):
            return sold

        logger.info("Marked %s as sold on %s", property_id, sold_at.date().isoformat())
        return sold

    async def archive(self, property_id: str) -> Result[Property]:
        """Admin path: retire a listing permanently."""
        caller = await self._caller()
        if isinstance(caller, Err):
            return caller
        if (caller.value.role or "").lower() != ADMIN_ROLE:
            return auth_error("Only administrators can archive properties", scope=SCOPE)

        prop = await self._load_living(property_id)
        if isinstance(prop, Err):
            return prop
        if not can_transition(prop.value.status, PropertyStatus.ARCHIVED):
            return conflict(
                f"Cannot archive a {prop.value.status.value} property",
                scope=SCOPE,
                property_id=property_id,
            )

        archived = await port_call(
            self._properties.set_status(
                property_id, PropertyStatus.ARCHIVED, {"scheduled_publish_at": None}
            ),
            SCOPE,
        )
        if isinstance(archived, Err):
            return archived

        logger.info("Archived %s", property_id)
        return archived

    async def delete(self, property_id: str) -> Result[Property]:
        """
        Soft-delete a property. Deleting twice is a no-op.

        Media and documents are left in place for a separate sweep.
        """
        prop = await self._load(property_id)
        if isinstance(prop, Err):
            return prop
        if prop.value.is_deleted:
            return prop

        children = await self._children(property_id)
        orphans = sum(len(c) for c in children.value) if isinstance(children, Ok) else 0

        deleted = await port_call(self._properties.soft_delete(property_id), SCOPE)
        if isinstance(deleted, Err):
            return deleted

        logger.info("Deleted %s, leaving %d media/document records", property_id, orphans)
        return deleted

    # =========================================================================
    # Edit
    # =========================================================================

    def _check_patch(self, prop: Property, patch: Mapping[str, Any]) -> Optional[Err]:
        if prop.status in (PropertyStatus.SOLD, PropertyStatus.ARCHIVED):
            return conflict(
                f"A {prop.status.value} property cannot be edited",
                scope=SCOPE,
                property_id=prop.id,
            )
        if prop.status == PropertyStatus.PUBLISHED:
            structural = structural_fields_in(patch)
            if structural:
                return conflict(
                    "Pause the listing before changing its structural fields",
                    scope=SCOPE,
                    property_id=prop.id,
                    fields=structural,
                )
        return None

    async def update(self, property_id: str, patch: Mapping[str, Any]) -> Result[Property]:
        """
        Apply a patch of editable fields and store the new completeness score.

        Drafts accept any editable field; published listings only the
        non-structural ones; sold and archived listings nothing.
        """
        if not patch:
            return validation_error("Nothing to update", scope=SCOPE)
        rejected = rejected_fields(patch)
        if rejected:
            return validation_error("Fields cannot be updated", scope=SCOPE, fields=rejected)

        prop = await self._load_living(property_id)
        if isinstance(prop, Err):
            return prop
        blocked = self._check_patch(prop.value, patch)
        if blocked is not None:
            return blocked

        try:
            changes = normalise_patch(patch)
            replace(prop.value, **changes)
        except (TypeError, ValueError) as e:
            return validation_error(str(e), scope=SCOPE, property_id=property_id)

        updated = await port_call(self._properties.update(property_id, changes), SCOPE)
        if isinstance(updated, Err):
            return updated

        children = await self._children(property_id)
        if isinstance(children, Err):
            return children
        documents, media = children.value
        score = self._scorer.score(updated.value, documents, len(media))

        scored = await port_call(
            self._properties.update(property_id, {"completeness_score": score}), SCOPE
        )
        if isinstance(scored, Err):
            return scored

        logger.info(
            "Updated %s (%s), completeness %d",
            property_id, ", ".join(sorted(patch)), score,
        )
        return scored

    async def preview_completeness(
        self,
        property_id: str,
        patch: Optional[Mapping[str, Any]] = None,
    ) -> Result[CompletenessReport]:
        """Score the property as it would be with patch applied. Nothing is stored."""
        patch = patch or {}
        rejected = rejected_fields(patch)
        if rejected:
            return validation_error("Fields cannot be updated", scope=SCOPE, fields=rejected)

        prop = await self._load_living(property_id)
        if isinstance(prop, Err):
            return prop

        try:
            candidate = replace(prop.value, **normalise_patch(patch))
        except (TypeError, ValueError) as e:
            return validation_error(str(e), scope=SCOPE, property_id=property_id)

        children = await self._children(property_id)
        if isinstance(children, Err):
            return children
        documents, media = children.value
        return Ok(self._scorer.evaluate(candidate, documents, len(media)))

    # =========================================================================
    # Duplicate
    # =========================================================================

    async def duplicate(
        self,
        property_id: str,
        copy_media: bool = False,
        copy_documents: bool = False,
    ) -> Result[Property]:
        """
        Copy a listing into a new draft titled "<title> (copy)".

        Copied documents restart review as pending; copied media keep their
        order and cover and point at the same stored objects.
        """
        caller = await self._caller()
        if isinstance(caller, Err):
            return caller

        source = await self._load_living(property_id)
        if isinstance(source, Err):
            return source

        now = self._clock()
        clone = replace(
            source.value,
            id=generate_property_id(),
            owner_id=caller.value.user_id or source.value.owner_id,
            title=f"{source.value.title}{COPY_SUFFIX}".strip(),
            status=PropertyStatus.DRAFT,
            published_at=None,
            scheduled_publish_at=None,
            sold_at=None,
            sold_note=None,
            deleted_at=None,
            rpp_verification=None,
            completeness_score=0,
            created_at=now,
            updated_at=now,
        )

        created = await port_call(self._properties.create(clone), SCOPE)
        if isinstance(created, Err):
            return created

        children = await self._children(property_id)
        if isinstance(children, Err):
            return Err(children.error.with_details(duplicate_id=clone.id))
        documents, media = children.value

        copied_documents: list[Document] = []
        if copy_documents:
            for document in documents:
                inserted = await port_call(
                    self._documents.insert(replace(
                        document,
                        id=generate_document_id(),
                        property_id=clone.id,
                        verification=VerificationStatus.PENDING,
                        created_at=now,
                        updated_at=now,
                    )),
                    SCOPE,
                )
                if isinstance(inserted, Err):
                    return Err(inserted.error.with_details(duplicate_id=clone.id))
                copied_documents.append(inserted.value)

        copied_media = 0
        if copy_media:
            for asset in media:
                inserted = await port_call(
                    self._media.insert(replace(
                        asset, id=generate_media_id(), property_id=clone.id, created_at=now
                    )),
                    SCOPE,
                )
                if isinstance(inserted, Err):
                    return Err(inserted.error.with_details(duplicate_id=clone.id))
                copied_media += 1

        changes: dict[str, Any] = {
            "completeness_score": self._scorer.score(clone, copied_documents, copied_media),
        }
        if copied_documents:
            changes["rpp_verification"] = registry_status_from_documents(
                copied_documents, self._trust_type
            )
        stored = await port_call(self._properties.update(clone.id, changes), SCOPE)
        if isinstance(stored, Err):
            return stored

        logger.info(
            "Duplicated %s as %s (%d media, %d documents)",
            property_id, clone.id, copied_media, len(copied_documents),
        )
        return stored
