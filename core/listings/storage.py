"""
Object Storage Gateways - Upload and Download Handles

Two ObjectStorageGateway implementations:
- InMemoryObjectStorageGateway: development/test double that also accepts
  the bytes, so a full upload can run without a network
- HttpObjectStorageGateway: talks to the presign worker over HTTP

Neither gateway moves file bytes for the listing core; the caller sends
them straight to the returned handle.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import uuid
from typing import Final, Optional

import requests

from core.listings.ports import ObjectStorageGateway, UploadHandle
from core.listings.result import Ok, Result, unknown_error, validation_error


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

UPLOAD_PATH: Final[str] = "/generate-presigned"
DOWNLOAD_PATH: Final[str] = "/generate-presigned-download"
DEFAULT_TIMEOUT_SECONDS: Final[int] = 30
MEMORY_BASE_URL: Final[str] = "memory://listings"


def sanitise_filename(filename: str) -> str:
    """Sanitise filename for use inside an object key."""
    # Remove path separators and other dangerous characters
    safe = (filename or "").replace("/", "_").replace("\\", "_").replace("..", "_")
    # Remove leading/trailing whitespace and dots
    safe = safe.strip().strip(".")
    return safe


def object_url_from_handle(handle_url: str) -> str:
    """Public object URL is the presigned URL without its query string."""
    return handle_url.split("?", 1)[0]


def sha256_hex(content: bytes) -> str:
    """Calculate SHA-256 hash of file content."""
    return hashlib.sha256(content).hexdigest()


# =============================================================================
# In-Memory Gateway
# =============================================================================


class InMemoryObjectStorageGateway(ObjectStorageGateway):
    """
    Object storage double.

    Issues handles under memory:// URLs and keeps uploaded bytes, with
    their SHA-256 checksums, keyed by object key.
    """

    def __init__(self, base_url: str = MEMORY_BASE_URL):
        self._base_url = base_url.rstrip("/")
        self.objects: dict[str, bytes] = {}
        self.checksums: dict[str, str] = {}
        self.issued: list[UploadHandle] = []

    async def request_upload_handle(
        self,
        file_name: str,
        content_type: str,
    ) -> Result[UploadHandle]:
        safe = sanitise_filename(file_name)
        if not safe:
            return validation_error("File name is empty", scope="storage")

        object_key = f"uploads/{uuid.uuid4().hex}/{safe}"
        object_url = f"{self._base_url}/{object_key}"
        handle = UploadHandle(
            handle=f"{object_url}?signature={uuid.uuid4().hex}",
            object_key=object_key,
            object_url=object_url,
            content_type=content_type,
        )
        self.issued.append(handle)
        return Ok(handle)

    async def request_download_url(self, object_key: str) -> Result[str]:
        if not object_key:
            return validation_error("Object key is required", scope="storage")
        return Ok(f"{self._base_url}/{object_key}?download=1")

    async def put_object(self, handle: UploadHandle, content: bytes) -> str:
        """Accept bytes for an issued handle (the caller's transfer step). Returns the SHA-256."""
        checksum = sha256_hex(content)
        self.objects[handle.object_key] = content
        self.checksums[handle.object_key] = checksum
        return checksum


# =============================================================================
# HTTP Gateway
# =============================================================================


class HttpObjectStorageGateway(ObjectStorageGateway):
    """
    Presign worker client.

    POST {base_url}/generate-presigned          -> {url, key, filename?, contentType?}
    POST {base_url}/generate-presigned-download -> {url}

    requests is blocking, so each call runs in a worker thread.
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialise gateway.

        Args:
            base_url: Presign worker base URL
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def _post(self, path: str, payload: dict) -> dict:
        response = self._session.post(
            f"{self._base_url}{path}",
            json=payload,
            timeout=self._timeout,
        )
        response.raise_for_status()
        return response.json()

    async def request_upload_handle(
        self,
        file_name: str,
        content_type: str,
    ) -> Result[UploadHandle]:
        safe = sanitise_filename(file_name)
        if not safe:
            return validation_error("File name is empty", scope="storage")

        try:
            payload = await asyncio.to_thread(
                self._post, UPLOAD_PATH, {"filename": safe, "contentType": content_type}
            )
        except (requests.RequestException, ValueError) as e:
            logger.error("Upload handle request failed for %s: %s", safe, e)
            return unknown_error("Could not obtain upload handle", cause=e, scope="storage")

        url = payload.get("url")
        key = payload.get("key")
        if not url or not key:
            logger.error("Presign worker returned no url/key for %s", safe)
            return unknown_error("Presign worker returned no url/key", scope="storage")

        return Ok(UploadHandle(
            handle=url,
            object_key=key,
            object_url=object_url_from_handle(url),
            content_type=payload.get("contentType") or content_type,
        ))

    async def request_download_url(self, object_key: str) -> Result[str]:
        if not object_key:
            return validation_error("Object key is required", scope="storage")

        filename = object_key.rsplit("/", 1)[-1]
        try:
            payload = await asyncio.to_thread(
                self._post, DOWNLOAD_PATH, {"key": object_key, "filename": filename}
            )
        except (requests.RequestException, ValueError) as e:
            logger.error("Download URL request failed for %s: %s", object_key, e)
            return unknown_error("Could not obtain download URL", cause=e, scope="storage")

        url = payload.get("url")
        if not url:
            return unknown_error("Presign worker returned no download url", scope="storage")
        return Ok(url)
