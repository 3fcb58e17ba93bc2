"""
Listing Routes - Web API for Property Listings

Thin HTTP surface over the listing managers. Each request builds its own
ListingsContainer from the shared stores in app.state and the caller's
identity headers:

- X-Org-Id: organisation of the caller
- X-User-Id: user id of the caller
- X-Kyc-Status: verified / pending / rejected
- X-Role: e.g. "reviewer" or "admin"

The headers stand in for a session provider during development. The
public catalogue under /public/properties needs none of them.

Result errors map to status codes:
AUTH 401, NOT_FOUND 404, VALIDATION 422, CONFLICT 409, GUARD_FAILED 412, UNKNOWN 502
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response

from core.listings import (
    AuthProfile,
    DocumentLocator,
    DocumentMetadata,
    Err,
    ErrorKind,
    KycStatus,
    ListingsContainer,
    MediaDescriptor,
    PropertyFilters,
    ProvisionalAsset,
    StaticIdentityProvider,
)
from utils.formatting import format_currency, format_percent
from web.schemas import (
    DocumentAttachRequest,
    DuplicateRequest,
    MediaUploadRequest,
    PropertyFields,
    ReorderRequest,
    ScheduleRequest,
    SoldRequest,
    VerifyRequest,
)


# =============================================================================
# Router Setup
# =============================================================================

router = APIRouter(prefix="/properties", tags=["properties"])

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.AUTH: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 422,
    ErrorKind.CONFLICT: 409,
    ErrorKind.GUARD_FAILED: 412,
    ErrorKind.UNKNOWN: 502,
}


def unwrap(result) -> Any:
    """
    Return the value of an Ok result.

    Raises:
        HTTPException with the mapped status if the result is an Err
    """
    if isinstance(result, Err):
        raise HTTPException(
            status_code=STATUS_BY_KIND[result.error.kind],
            detail=result.error.to_dict(),
        )
    return result.value


# =============================================================================
# Identity and Wiring
# =============================================================================


def caller_profile(
    x_org_id: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
    x_kyc_status: Optional[str] = Header(default=None),
    x_role: Optional[str] = Header(default=None),
) -> Optional[AuthProfile]:
    """Build the caller's profile from identity headers. None if no identity was sent."""
    if not x_org_id and not x_user_id:
        return None
    try:
        kyc = KycStatus((x_kyc_status or "pending").strip().lower())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Invalid X-Kyc-Status: {x_kyc_status}")
    return AuthProfile(
        kyc_status=kyc,
        org_id=x_org_id or None,
        user_id=x_user_id or None,
        role=(x_role or "").strip().lower() or None,
    )


def get_container(
    request: Request,
    profile: Optional[AuthProfile] = Depends(caller_profile),
) -> ListingsContainer:
    """Wire the listing managers for this request."""
    state = request.app.state
    return ListingsContainer.in_memory(
        db=state.db,
        identity=StaticIdentityProvider(profile),
        storage=state.storage,
        config=state.config,
        sequencer=state.sequencer,
        tracker=state.tracker,
    )


# =============================================================================
# Properties
# =============================================================================


@router.post("", status_code=201)
async def create_property(
    fields: PropertyFields,
    container: ListingsContainer = Depends(get_container),
):
    """Create a draft listing."""
    prop = unwrap(await container.lifecycle.create(fields.to_patch()))
    return prop.to_dict()


@router.get("")
async def list_properties(
    q: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    property_type: Optional[str] = Query(default=None),
    city: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    price_min: Optional[float] = Query(default=None),
    price_max: Optional[float] = Query(default=None),
    sort: str = Query(default="recent"),
    page: int = Query(default=1),
    page_size: int = Query(default=20),
    x_request_channel: Optional[str] = Header(default=None),
    profile: Optional[AuthProfile] = Depends(caller_profile),
    container: ListingsContainer = Depends(get_container),
):
    """
    List the organisation's properties.

    Clients that send X-Request-Channel get last-request-wins semantics:
    a response overtaken by a newer request on the same channel returns 204.
    """
    try:
        filters = PropertyFilters(
            query=q,
            status=status,
            property_type=property_type,
            city=city,
            state=state,
            price_min=price_min,
            price_max=price_max,
            sort=sort,
            page=page,
            page_size=page_size,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    channel = None
    if x_request_channel and profile is not None:
        channel = (profile.org_id, profile.user_id, x_request_channel)

    result = await container.lifecycle.list(filters, channel=channel)
    if result is None:
        return Response(status_code=204)

    page_result = unwrap(result)
    return {
        "items": [item.to_dict() for item in page_result.items],
        "total": page_result.total,
        "page": page_result.page,
        "page_size": page_result.page_size,
        "has_next": page_result.has_next,
    }


@router.get("/{property_id}")
async def get_property(property_id: str, container: ListingsContainer = Depends(get_container)):
    return unwrap(await container.lifecycle.get(property_id)).to_dict()


@router.patch("/{property_id}")
async def update_property(
    property_id: str,
    fields: PropertyFields,
    container: ListingsContainer = Depends(get_container),
):
    """Apply a partial update; the stored completeness score is refreshed."""
    prop = unwrap(await container.lifecycle.update(property_id, fields.to_patch()))
    return prop.to_dict()


@router.post("/{property_id}/completeness/preview")
async def preview_completeness(
    property_id: str,
    fields: PropertyFields,
    container: ListingsContainer = Depends(get_container),
):
    """Score the listing as if the given fields were saved."""
    report = unwrap(await container.lifecycle.preview_completeness(property_id, fields.to_patch()))
    return report.to_dict()


@router.get("/{property_id}/readiness")
async def readiness(property_id: str, container: ListingsContainer = Depends(get_container)):
    report = unwrap(await container.lifecycle.check_readiness(property_id))
    data = report.to_dict()
    data["score_label"] = format_percent(report.score)
    return data


@router.post("/{property_id}/publish")
async def publish(property_id: str, container: ListingsContainer = Depends(get_container)):
    return unwrap(await container.lifecycle.publish(property_id)).to_dict()


@router.post("/{property_id}/schedule")
async def schedule_publish(
    property_id: str,
    body: ScheduleRequest,
    container: ListingsContainer = Depends(get_container),
):
    return unwrap(await container.lifecycle.schedule_publish(property_id, body.at)).to_dict()


@router.post("/{property_id}/pause")
async def pause(property_id: str, container: ListingsContainer = Depends(get_container)):
    return unwrap(await container.lifecycle.pause(property_id)).to_dict()


@router.post("/{property_id}/sold")
async def mark_sold(
    property_id: str,
    body: SoldRequest,
    container: ListingsContainer = Depends(get_container),
):
    prop = unwrap(await container.lifecycle.mark_sold(property_id, body.sold_at, body.note))
    return prop.to_dict()


@router.post("/{property_id}/archive")
async def archive(property_id: str, container: ListingsContainer = Depends(get_container)):
    return unwrap(await container.lifecycle.archive(property_id)).to_dict()


@router.delete("/{property_id}")
async def delete_property(property_id: str, container: ListingsContainer = Depends(get_container)):
    prop = unwrap(await container.lifecycle.delete(property_id))
    return {"id": prop.id, "deleted_at": prop.deleted_at.isoformat()}


@router.post("/{property_id}/duplicate", status_code=201)
async def duplicate(
    property_id: str,
    body: Optional[DuplicateRequest] = None,
    container: ListingsContainer = Depends(get_container),
):
    body = body or DuplicateRequest()
    prop = unwrap(await container.lifecycle.duplicate(
        property_id,
        copy_media=body.copy_media,
        copy_documents=body.copy_documents,
    ))
    return prop.to_dict()


@router.get("/{property_id}/similar")
async def similar(
    property_id: str,
    limit: Optional[int] = Query(default=None),
    container: ListingsContainer = Depends(get_container),
):
    """Comparable published listings, best match first."""
    recommendation = unwrap(await container.recommender.recommend_for(property_id, limit))
    data = recommendation.to_dict()
    for item, candidate in zip(data["items"], recommendation.items):
        price = candidate.summary.price
        item["price_label"] = format_currency(price.amount, price.currency.value)
    return data


# =============================================================================
# Media
# =============================================================================


def _upload_response(provisional: ProvisionalAsset) -> dict:
    return {
        "correlation_id": provisional.correlation_id,
        "upload_url": provisional.upload.handle,
        "object_key": provisional.upload.object_key,
        "object_url": provisional.upload.object_url,
        "content_type": provisional.upload.content_type,
    }


@router.post("/{property_id}/media/uploads", status_code=201)
async def begin_media_upload(
    property_id: str,
    body: MediaUploadRequest,
    container: ListingsContainer = Depends(get_container),
):
    """
    Start an upload.

    The client PUTs the file to upload_url, then calls the complete endpoint
    with the returned correlation_id.
    """
    try:
        descriptor = MediaDescriptor(
            file_name=body.file_name,
            content_type=body.content_type,
            media_type=body.media_type,
            size_bytes=body.size_bytes,
            checksum_sha256=body.checksum_sha256,
            width=body.width,
            height=body.height,
            extra=dict(body.extra),
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    provisional = unwrap(
        await container.media.begin_upload(property_id, descriptor, body.correlation_id)
    )
    return _upload_response(provisional)


@router.post("/{property_id}/media/uploads/{correlation_id}/complete", status_code=201)
async def complete_media_upload(
    property_id: str,
    correlation_id: str,
    container: ListingsContainer = Depends(get_container),
):
    asset = unwrap(await container.media.complete_tracked_upload(property_id, correlation_id))
    return asset.to_dict()


@router.get("/{property_id}/media")
async def list_media(property_id: str, container: ListingsContainer = Depends(get_container)):
    return [asset.to_dict() for asset in unwrap(await container.media.list_media(property_id))]


@router.delete("/{property_id}/media/{media_id}")
async def remove_media(
    property_id: str,
    media_id: str,
    container: ListingsContainer = Depends(get_container),
):
    remaining = unwrap(await container.media.remove(property_id, media_id))
    return [asset.to_dict() for asset in remaining]


@router.post("/{property_id}/media/{media_id}/cover")
async def set_cover(
    property_id: str,
    media_id: str,
    container: ListingsContainer = Depends(get_container),
):
    assets = unwrap(await container.media.set_cover(property_id, media_id))
    return [asset.to_dict() for asset in assets]


@router.put("/{property_id}/media/order")
async def reorder_media(
    property_id: str,
    body: ReorderRequest,
    container: ListingsContainer = Depends(get_container),
):
    assets = unwrap(await container.media.reorder(property_id, body.ordered_ids))
    return [asset.to_dict() for asset in assets]


# =============================================================================
# Documents
# =============================================================================


@router.post("/{property_id}/documents", status_code=201)
async def attach_document(
    property_id: str,
    body: DocumentAttachRequest,
    container: ListingsContainer = Depends(get_container),
):
    try:
        locator = DocumentLocator(object_key=body.object_key, url=body.url)
        metadata = DocumentMetadata(**body.metadata.model_dump()) if body.metadata else None
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    document = unwrap(
        await container.documents.attach(property_id, body.doc_type, locator, metadata)
    )
    return document.to_dict()


@router.get("/{property_id}/documents")
async def list_documents(property_id: str, container: ListingsContainer = Depends(get_container)):
    documents = unwrap(await container.documents.list_by_property(property_id))
    return [document.to_dict() for document in documents]


@router.post("/{property_id}/documents/{document_id}/verify")
async def verify_document(
    property_id: str,
    document_id: str,
    body: VerifyRequest,
    container: ListingsContainer = Depends(get_container),
):
    document = unwrap(await container.documents.verify(property_id, document_id, body.status))
    return document.to_dict()


@router.delete("/{property_id}/documents/{document_id}", status_code=204)
async def delete_document(
    property_id: str,
    document_id: str,
    container: ListingsContainer = Depends(get_container),
):
    unwrap(await container.documents.delete(document_id, property_id))
    return Response(status_code=204)


@router.get("/{property_id}/documents/{document_id}/download")
async def document_download_url(
    property_id: str,
    document_id: str,
    container: ListingsContainer = Depends(get_container),
):
    return {"url": unwrap(await container.documents.request_download_url(document_id, property_id))}


# =============================================================================
# Public Catalogue
# =============================================================================

public_router = APIRouter(prefix="/public/properties", tags=["public"])


@public_router.get("")
async def list_public_properties(
    q: Optional[str] = Query(default=None),
    property_type: Optional[str] = Query(default=None),
    city: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    price_min: Optional[float] = Query(default=None),
    price_max: Optional[float] = Query(default=None),
    sort: str = Query(default="recent"),
    page: int = Query(default=1),
    page_size: int = Query(default=20),
    container: ListingsContainer = Depends(get_container),
):
    """Published listings of every organisation. No identity headers needed."""
    try:
        filters = PropertyFilters(
            query=q,
            property_type=property_type,
            city=city,
            state=state,
            price_min=price_min,
            price_max=price_max,
            sort=sort,
            page=page,
            page_size=page_size,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    page_result = unwrap(await container.lifecycle.list_public(filters))
    return {
        "items": [item.to_public_dict() for item in page_result.items],
        "total": page_result.total,
        "page": page_result.page,
        "page_size": page_result.page_size,
        "has_next": page_result.has_next,
    }


@public_router.get("/{property_id}")
async def get_public_property(property_id: str, container: ListingsContainer = Depends(get_container)):
    return unwrap(await container.lifecycle.get_public(property_id)).to_public_dict()
