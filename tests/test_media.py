"""
Tests for the Media Asset Manager

Tests covering:
1. Descriptor validation (content type, size)
2. Two-phase upload with provisional tracking
3. Cover election and contiguous positions
4. Reorder, remove and set-cover rules
5. Failure reporting (transfer failures, orphaned objects)
"""

import pytest

from core.listings import (
    AuthProfile,
    DurableAsset,
    Err,
    ErrorKind,
    InMemoryMediaStore,
    InMemoryPropertyRepository,
    ListingsContainer,
    MediaAssetManager,
    MediaDescriptor,
    MediaStore,
    Ok,
    PropertyFilters,
    ProvisionalAsset,
    StaticIdentityProvider,
    UploadTracker,
)
from core.listings.result import unknown_error


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
async def prop(agent):
    """A fresh draft owned by the agent's organisation."""
    return (await agent.lifecycle.create({"title": "Casa"})).value


def jpeg(name="photo.jpg", size_bytes=2048):
    return MediaDescriptor(file_name=name, content_type="image/jpeg", size_bytes=size_bytes)


async def noop_transfer(handle):
    return None


class FailingInsertStore(MediaStore):
    """Media store that lists fine but cannot insert."""

    def __init__(self, inner):
        self._inner = inner

    async def list_by_property(self, property_id):
        return await self._inner.list_by_property(property_id)

    async def insert(self, asset):
        return unknown_error("write timeout", scope="repository")

    async def delete(self, property_id, media_id):
        return await self._inner.delete(property_id, media_id)

    async def save_order(self, property_id, assets):
        return await self._inner.save_order(property_id, assets)


class CountingOrderStore(FailingInsertStore):
    """Media store that works normally and counts save_order calls."""

    def __init__(self, inner):
        super().__init__(inner)
        self.saves = 0

    async def insert(self, asset):
        return await self._inner.insert(asset)

    async def save_order(self, property_id, assets):
        self.saves += 1
        return await self._inner.save_order(property_id, assets)


# =============================================================================
# Test: Descriptor Validation
# =============================================================================

class TestValidation:
    """Tests for upload descriptor validation."""

    def test_accepts_jpeg_image(self, agent):
        is_valid, message = agent.media.validate_descriptor(jpeg())

        assert is_valid
        assert message is None

    def test_rejects_wrong_content_type(self, agent):
        descriptor = MediaDescriptor(file_name="clip.mov", content_type="video/quicktime")

        is_valid, message = agent.media.validate_descriptor(descriptor)

        assert not is_valid
        assert "not allowed" in message

    def test_floorplan_accepts_pdf(self, agent):
        descriptor = MediaDescriptor(
            file_name="plan.pdf", content_type="application/pdf", media_type="floorplan"
        )

        assert agent.media.validate_descriptor(descriptor) == (True, None)

    def test_rejects_oversized_file(self, agent):
        is_valid, message = agent.media.validate_descriptor(jpeg(size_bytes=26 * 1024 * 1024))

        assert not is_valid
        assert "25MB" in message

    def test_rejects_empty_file(self, agent):
        assert agent.media.validate_descriptor(jpeg(size_bytes=0)) == (False, "File is empty")

    def test_unknown_media_type_raises(self):
        with pytest.raises(ValueError, match="media type"):
            MediaDescriptor(file_name="x.jpg", content_type="image/jpeg", media_type="hologram")

    async def test_begin_upload_rejects_invalid_descriptor(self, agent, prop):
        result = await agent.media.begin_upload(prop.id, jpeg(name="  "))

        assert isinstance(result, Err)
        assert result.error.kind == ErrorKind.VALIDATION


# =============================================================================
# Test: Upload Flow
# =============================================================================

class TestUpload:
    """Tests for the three-phase upload pipeline."""

    async def test_provisional_then_durable(self, agent, prop):
        """The correlation id resolves to the provisional entry, then the stored asset."""
        begun = await agent.media.begin_upload(prop.id, jpeg(), correlation_id="preview-1")

        assert isinstance(agent.media.tracker.get("ORG-1", prop.id, "preview-1"), ProvisionalAsset)
        assert (await agent.media.list_media(prop.id)).value == []

        completed = await agent.media.complete_upload(begun.value)
        tracked = agent.media.tracker.get("ORG-1", prop.id, "preview-1")

        assert isinstance(completed, Ok)
        assert isinstance(tracked, DurableAsset)
        assert tracked.asset.id == completed.value.id

    async def test_first_image_becomes_cover(self, agent, prop, upload_image):
        first = (await upload_image(agent, prop.id, "a.jpg")).value
        second = (await upload_image(agent, prop.id, "b.jpg")).value

        assert first.is_cover
        assert not second.is_cover
        assert (first.position, second.position) == (0, 1)

    async def test_video_is_never_cover(self, agent, prop, upload_image):
        video = (await upload_image(agent, prop.id, "tour.mp4", media_type="video")).value
        image = (await upload_image(agent, prop.id, "front.jpg")).value

        assert not video.is_cover
        assert image.is_cover
        assert image.position == 1

    async def test_asset_points_at_object(self, agent, prop, storage, upload_image):
        asset = (await upload_image(agent, prop.id, "my photo.jpg")).value

        assert asset.object_key in storage.objects
        assert asset.url.startswith("memory://listings/uploads/")
        assert "?" not in asset.url
        assert asset.metadata.file_name == "my photo.jpg"
        assert asset.metadata.size_bytes == 1024

    async def test_upload_many_keeps_input_order(self, agent, prop):
        uploads = [(jpeg(f"{i}.jpg"), noop_transfer) for i in range(4)]

        results = await agent.media.upload_many(prop.id, uploads)

        assert all(isinstance(r, Ok) for r in results)
        assert [r.value.metadata.file_name for r in results] == ["0.jpg", "1.jpg", "2.jpg", "3.jpg"]
        assert [r.value.position for r in results] == [0, 1, 2, 3]

    async def test_failed_transfer_only_affects_its_entry(self, agent, prop):
        async def broken(handle):
            raise ConnectionError("reset by peer")

        results = await agent.media.upload_many(
            prop.id, [(jpeg("ok.jpg"), noop_transfer), (jpeg("bad.jpg"), broken)]
        )

        assert isinstance(results[0], Ok)
        assert isinstance(results[1], Err)
        assert results[1].error.kind == ErrorKind.UNKNOWN
        assert results[1].error.details["orphaned"] is False
        assert len(agent.media.tracker.provisional()) == 0

    async def test_persistence_failure_reports_orphan(self, db, storage, prop):
        identity = StaticIdentityProvider(AuthProfile(kyc_status="verified", org_id="ORG-1"))
        manager = MediaAssetManager(
            media=FailingInsertStore(InMemoryMediaStore(db, identity)),
            properties=InMemoryPropertyRepository(db, identity),
            storage=storage,
        )

        result = await manager.upload(prop.id, jpeg(), noop_transfer, correlation_id="c1")

        assert isinstance(result, Err)
        assert result.error.kind == ErrorKind.UNKNOWN
        assert result.error.details["orphaned"] is True
        assert result.error.details["object_key"].startswith("uploads/")
        assert manager.tracker.get("ORG-1", prop.id, "c1") is None

    async def test_upload_to_deleted_property_is_conflict(self, agent, prop):
        await agent.lifecycle.delete(prop.id)

        result = await agent.media.begin_upload(prop.id, jpeg())

        assert result.error.kind == ErrorKind.CONFLICT

    async def test_duplicate_correlation_id_is_conflict(self, agent, prop):
        await agent.media.begin_upload(prop.id, jpeg(), correlation_id="preview-1")

        result = await agent.media.begin_upload(prop.id, jpeg("other.jpg"), correlation_id="preview-1")

        assert isinstance(result, Err)
        assert result.error.kind == ErrorKind.CONFLICT
        assert result.error.details["correlation_id"] == "preview-1"
        assert len(agent.media.tracker) == 1

    async def test_correlation_ids_are_per_org_and_property(self, agent, prop, make_container):
        """Two organisations may pick the same correlation id without colliding."""
        outsider = make_container(org_id="ORG-2", user_id="U9")
        theirs = (await outsider.lifecycle.create({"title": "Depa"})).value

        mine = await agent.media.begin_upload(prop.id, jpeg(), correlation_id="same")
        other = await outsider.media.begin_upload(theirs.id, jpeg(), correlation_id="same")

        assert isinstance(mine, Ok)
        assert isinstance(other, Ok)
        assert agent.media.tracker.get("ORG-1", prop.id, "same").property_id == prop.id
        assert agent.media.tracker.get("ORG-2", theirs.id, "same").property_id == theirs.id

    async def test_complete_tracked_upload_releases_entry(self, agent, prop):
        await agent.media.begin_upload(prop.id, jpeg(), correlation_id="c7")

        result = await agent.media.complete_tracked_upload(prop.id, "c7")

        assert isinstance(result, Ok)
        assert result.value.is_cover
        assert len(agent.media.tracker) == 0

    async def test_complete_tracked_upload_unknown_id_is_not_found(self, agent, prop):
        result = await agent.media.complete_tracked_upload(prop.id, "never-begun")

        assert result.error.kind == ErrorKind.NOT_FOUND

    async def test_complete_after_property_deleted_reports_orphan(self, agent, prop, db):
        """A property deleted between handle and completion gets no media row."""
        begun = (await agent.media.begin_upload(prop.id, jpeg(), correlation_id="late")).value
        await agent.lifecycle.delete(prop.id)

        result = await agent.media.complete_upload(begun)

        assert isinstance(result, Err)
        assert result.error.kind == ErrorKind.UNKNOWN
        assert result.error.details["orphaned"] is True
        assert result.error.cause.kind == ErrorKind.CONFLICT
        assert db.media == {}
        assert agent.media.tracker.get("ORG-1", prop.id, "late") is None

    async def test_shared_empty_tracker_is_used(self, db, storage, config, prop):
        """An injected tracker is kept even while it holds no entries."""
        tracker = UploadTracker()
        identity = StaticIdentityProvider(AuthProfile(kyc_status="verified", org_id="ORG-1"))
        container = ListingsContainer.in_memory(db, identity, storage, config=config, tracker=tracker)

        await container.media.begin_upload(prop.id, jpeg(), correlation_id="shared")

        assert container.media.tracker is tracker
        assert len(tracker) == 1


# =============================================================================
# Test: Cover and Ordering
# =============================================================================

class TestOrdering:
    """Tests for reorder, remove and set cover."""

    async def test_reorder_keeps_cover(self, agent, prop, upload_image):
        a = (await upload_image(agent, prop.id, "a.jpg")).value
        b = (await upload_image(agent, prop.id, "b.jpg")).value
        c = (await upload_image(agent, prop.id, "c.jpg")).value

        result = await agent.media.reorder(prop.id, [c.id, a.id, b.id])

        assets = result.value
        assert [x.id for x in assets] == [c.id, a.id, b.id]
        assert [x.position for x in assets] == [0, 1, 2]
        assert [x.is_cover for x in assets] == [False, True, False]

    async def test_reorder_with_current_order_is_noop(self, db, storage, prop):
        identity = StaticIdentityProvider(AuthProfile(kyc_status="verified", org_id="ORG-1"))
        store = CountingOrderStore(InMemoryMediaStore(db, identity))
        manager = MediaAssetManager(
            media=store,
            properties=InMemoryPropertyRepository(db, identity),
            storage=storage,
        )
        a = (await manager.upload(prop.id, jpeg("a.jpg"), noop_transfer)).value
        b = (await manager.upload(prop.id, jpeg("b.jpg"), noop_transfer)).value

        result = await manager.reorder(prop.id, [a.id, b.id])

        assert [(x.id, x.position, x.is_cover) for x in result.value] == [
            (a.id, 0, True),
            (b.id, 1, False),
        ]
        assert store.saves == 0

    async def test_reorder_rejects_duplicates(self, agent, prop, upload_image):
        a = (await upload_image(agent, prop.id, "a.jpg")).value
        await upload_image(agent, prop.id, "b.jpg")

        result = await agent.media.reorder(prop.id, [a.id, a.id])

        assert result.error.kind == ErrorKind.CONFLICT
        assert result.error.details["duplicates"] == [a.id]

    async def test_reorder_rejects_partial_list(self, agent, prop, upload_image):
        a = (await upload_image(agent, prop.id, "a.jpg")).value
        b = (await upload_image(agent, prop.id, "b.jpg")).value

        result = await agent.media.reorder(prop.id, [a.id, "MED-UNKNOWN"])

        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.details["missing"] == [b.id]
        assert result.error.details["unknown"] == ["MED-UNKNOWN"]

    async def test_remove_cover_promotes_next_image(self, agent, prop, upload_image):
        a = (await upload_image(agent, prop.id, "a.jpg")).value
        await upload_image(agent, prop.id, "tour.mp4", media_type="video")
        c = (await upload_image(agent, prop.id, "c.jpg")).value

        remaining = (await agent.media.remove(prop.id, a.id)).value

        assert [x.position for x in remaining] == [0, 1]
        assert [x.id for x in remaining if x.is_cover] == [c.id]

    async def test_remove_last_asset(self, agent, prop, upload_image):
        a = (await upload_image(agent, prop.id, "a.jpg")).value

        result = await agent.media.remove(prop.id, a.id)

        assert result.value == []

    async def test_remove_unknown_is_not_found(self, agent, prop):
        result = await agent.media.remove(prop.id, "MED-000000000000")

        assert result.error.kind == ErrorKind.NOT_FOUND

    async def test_set_cover_moves_flag(self, agent, prop, upload_image):
        await upload_image(agent, prop.id, "a.jpg")
        b = (await upload_image(agent, prop.id, "b.jpg")).value

        assets = (await agent.media.set_cover(prop.id, b.id)).value

        assert [x.id for x in assets if x.is_cover] == [b.id]
        assert [x.position for x in assets] == [0, 1]

    async def test_set_cover_on_video_is_validation(self, agent, prop, upload_image):
        video = (await upload_image(agent, prop.id, "tour.mp4", media_type="video")).value

        result = await agent.media.set_cover(prop.id, video.id)

        assert result.error.kind == ErrorKind.VALIDATION

    async def test_cover_url_appears_in_listing(self, agent, prop, upload_image):
        cover = (await upload_image(agent, prop.id, "a.jpg")).value

        page = (await agent.lifecycle.list(PropertyFilters())).value

        assert page.items[0].cover_url == cover.url
