"""
Shared fixtures for the listing engine tests.
"""

import pytest

from core.listings import (
    AuthProfile,
    InMemoryDatabase,
    InMemoryObjectStorageGateway,
    KycStatus,
    ListingsContainer,
    MediaDescriptor,
    RequestSequencer,
    StaticIdentityProvider,
    UploadTracker,
)
from utils.config import Config


ORG = "ORG-1"


@pytest.fixture
def config():
    """Config with explicit values so the environment cannot leak in."""
    return Config(
        publish_threshold=80,
        trust_document_type="rpp_certificate",
        reviewer_roles=("reviewer", "admin"),
        storage_gateway_url=None,
        max_upload_bytes=25 * 1024 * 1024,
        similar_limit=3,
        similar_pool_size=60,
        persist=False,
    )


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def storage():
    return InMemoryObjectStorageGateway()


@pytest.fixture
def make_container(db, storage, config):
    """Factory fixture: a container acting as the given caller over the shared stores."""
    sequencer = RequestSequencer()
    tracker = UploadTracker()

    def _make(
        kyc_status=KycStatus.VERIFIED,
        org_id=ORG,
        user_id="U1",
        role=None,
        anonymous=False,
    ):
        profile = None if anonymous else AuthProfile(
            kyc_status=kyc_status, org_id=org_id, user_id=user_id, role=role
        )
        return ListingsContainer.in_memory(
            db,
            StaticIdentityProvider(profile),
            storage,
            config=config,
            sequencer=sequencer,
            tracker=tracker,
        )

    return _make


@pytest.fixture
def agent(make_container):
    """KYC-verified agent of ORG-1."""
    return make_container()


@pytest.fixture
def reviewer(make_container):
    return make_container(user_id="R1", role="reviewer")


@pytest.fixture
def admin(make_container):
    return make_container(user_id="A1", role="admin")


@pytest.fixture
def complete_draft():
    """Fields satisfying every checklist item that does not need media or documents."""
    return {
        "title": "Casa en Providencia",
        "property_type": "house",
        "price": {"amount": 4_500_000, "currency": "MXN"},
        "description": "Three bedroom house close to the park.",
        "address": {"city": "Guadalajara", "state": "Jalisco", "address_line": "Av. Colomos 120"},
        "bedrooms": 3,
        "bathrooms": 2.5,
        "construction_m2": 180,
        "amenities": ["garden", "terrace"],
    }


@pytest.fixture
def upload_image(storage):
    """Factory fixture: upload an image through the full three-phase flow."""

    async def _upload(container, property_id, file_name="front.jpg", media_type="image"):
        content_type = "application/pdf" if media_type == "floorplan" else "image/jpeg"
        if media_type == "video":
            content_type = "video/mp4"
        descriptor = MediaDescriptor(
            file_name=file_name,
            content_type=content_type,
            media_type=media_type,
            size_bytes=1024,
        )

        async def transfer(handle):
            await storage.put_object(handle, b"\xff\xd8 bytes")

        return await container.media.upload(property_id, descriptor, transfer)

    return _upload
