"""
Tests for the In-Memory Repository and Object Storage Gateways

Tests covering:
1. JSON persistence round trip and recovery from a corrupt file
2. Filtering, sorting and pagination of property queries
3. Presign worker client (request shape and failure mapping)
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from core.listings import (
    AuthProfile,
    ErrorKind,
    HttpObjectStorageGateway,
    InMemoryDatabase,
    ListingsContainer,
    Ok,
    PropertyFilters,
    StaticIdentityProvider,
)
from core.listings.storage import object_url_from_handle, sanitise_filename, sha256_hex


# =============================================================================
# Test: Persistence
# =============================================================================

class TestPersistence:
    """Tests for the optional JSON file behind InMemoryDatabase."""

    async def test_round_trip(self, tmp_path, storage, config, upload_image):
        path = tmp_path / "listings.json"
        identity = StaticIdentityProvider(AuthProfile(kyc_status="verified", org_id="ORG-1", user_id="U1"))
        container = ListingsContainer.in_memory(InMemoryDatabase(str(path)), identity, storage, config)
        prop = (await container.lifecycle.create({"title": "Casa", "amenities": ["pool"]})).value
        await upload_image(container, prop.id)

        reloaded = InMemoryDatabase(str(path))

        assert reloaded.properties[prop.id].title == "Casa"
        assert reloaded.properties[prop.id].amenities == ["pool"]
        assert len(reloaded.media) == 1
        assert json.loads(path.read_text())["saved_at"]

    def test_corrupt_file_starts_empty(self, tmp_path, caplog):
        path = tmp_path / "listings.json"
        path.write_text("{not json")

        db = InMemoryDatabase(str(path))

        assert db.properties == {}
        assert "Could not load listing data" in caplog.text

    def test_no_path_never_writes(self, tmp_path):
        db = InMemoryDatabase()
        db.save()

        assert list(tmp_path.iterdir()) == []


# =============================================================================
# Test: Queries
# =============================================================================

class TestQueries:
    """Tests for PropertyRepository.list."""

    @pytest.fixture
    async def seeded(self, agent):
        for title, price, city in [
            ("Casa Azul", 3_000_000, "Guadalajara"),
            ("Depto Centro", 1_500_000, "Guadalajara"),
            ("Terreno", 800_000, "Tequila"),
        ]:
            await agent.lifecycle.create({
                "title": title,
                "price": {"amount": price},
                "address": {"city": city, "state": "Jalisco"},
            })
        return agent

    async def test_sort_by_price(self, seeded):
        page = (await seeded.lifecycle.list(PropertyFilters(sort="price_asc"))).value

        assert [s.title for s in page.items] == ["Terreno", "Depto Centro", "Casa Azul"]

    async def test_filters_combine(self, seeded):
        filters = PropertyFilters(city="guadalajara", price_max=2_000_000)

        page = (await seeded.lifecycle.list(filters)).value

        assert [s.title for s in page.items] == ["Depto Centro"]

    async def test_text_query(self, seeded):
        page = (await seeded.lifecycle.list(PropertyFilters(query="azul"))).value

        assert page.total == 1

    async def test_pagination(self, seeded):
        page = (await seeded.lifecycle.list(PropertyFilters(sort="price_desc", page=2, page_size=2))).value

        assert page.total == 3
        assert [s.title for s in page.items] == ["Terreno"]
        assert not page.has_next

    def test_invalid_filters_raise(self):
        with pytest.raises(ValueError):
            PropertyFilters(page_size=500)
        with pytest.raises(ValueError):
            PropertyFilters(price_min=10, price_max=5)
        with pytest.raises(ValueError):
            PropertyFilters(sort="cheapest")

    async def test_anonymous_list_is_auth(self, make_container):
        anonymous = make_container(anonymous=True)

        result = await anonymous.lifecycle.list(PropertyFilters())

        assert result.error.kind == ErrorKind.AUTH
        assert result.error.scope == "lifecycle"
        assert result.error.cause.scope == "repository"


# =============================================================================
# Test: Storage Helpers and HTTP Gateway
# =============================================================================

def fake_session(payload=None, error=None):
    """requests.Session stand-in returning payload, or raising error."""
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    if error is not None:
        session.post.side_effect = error
    else:
        response = MagicMock()
        response.json.return_value = payload
        session.post.return_value = response
    return session


class TestStorage:
    """Tests for object storage gateways."""

    def test_sanitise_filename(self):
        assert sanitise_filename("../../etc/passwd") == "____etc_passwd"
        assert sanitise_filename("  .hidden.jpg ") == "hidden.jpg"

    def test_object_url_drops_signature(self):
        assert object_url_from_handle("https://cdn/x/a.jpg?X-Sig=1") == "https://cdn/x/a.jpg"

    def test_sha256_hex(self):
        assert sha256_hex(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    async def test_memory_gateway_records_checksum(self, storage):
        handle = (await storage.request_upload_handle("a.jpg", "image/jpeg")).value

        checksum = await storage.put_object(handle, b"")

        assert checksum == sha256_hex(b"")
        assert storage.checksums[handle.object_key] == checksum
        assert storage.objects[handle.object_key] == b""

    async def test_upload_handle_request(self):
        session = fake_session({"url": "https://r2/uploads/k1/a.jpg?sig=abc", "key": "uploads/k1/a.jpg"})
        gateway = HttpObjectStorageGateway("https://worker.example/", session=session)

        result = await gateway.request_upload_handle("a.jpg", "image/jpeg")

        assert isinstance(result, Ok)
        assert result.value.object_key == "uploads/k1/a.jpg"
        assert result.value.object_url == "https://r2/uploads/k1/a.jpg"
        session.post.assert_called_once_with(
            "https://worker.example/generate-presigned",
            json={"filename": "a.jpg", "contentType": "image/jpeg"},
            timeout=30,
        )

    async def test_network_error_is_unknown(self):
        session = fake_session(error=requests.ConnectionError("refused"))
        gateway = HttpObjectStorageGateway("https://worker.example", session=session)

        result = await gateway.request_upload_handle("a.jpg", "image/jpeg")

        assert result.error.kind == ErrorKind.UNKNOWN
        assert isinstance(result.error.root_cause, requests.ConnectionError)

    async def test_missing_key_is_unknown(self):
        session = fake_session({"url": "https://r2/a.jpg"})
        gateway = HttpObjectStorageGateway("https://worker.example", session=session)

        result = await gateway.request_upload_handle("a.jpg", "image/jpeg")

        assert result.error.kind == ErrorKind.UNKNOWN

    async def test_download_url(self):
        session = fake_session({"url": "https://r2/docs/rpp.pdf?sig=1"})
        gateway = HttpObjectStorageGateway("https://worker.example", session=session)

        result = await gateway.request_download_url("docs/rpp.pdf")

        assert result.value == "https://r2/docs/rpp.pdf?sig=1"
        assert session.post.call_args.kwargs["json"] == {"key": "docs/rpp.pdf", "filename": "rpp.pdf"}
