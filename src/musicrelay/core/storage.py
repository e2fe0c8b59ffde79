"""Storage strategies for republishing generated audio and uploaded images.

Two strategies are available and one is selected at application start-up
from :attr:`RelayConfig.storage_backend`:

- :class:`LocalDiskStorage` writes files into ``uploads_dir``; the returned
  reference is a ``/uploads/<filename>`` path served by the API's static
  file mount.
- :class:`CloudinaryStorage` pushes files to Cloudinary's unsigned upload
  endpoint and returns the ``secure_url`` it assigns.

Both strategies return a :class:`StoredAsset` so callers never branch on the
backend in use.

Usage
-----
::

    storage = build_storage(config, http_client)
    asset = await storage.store(data, "music-abc123.mp3", "audio/mpeg")
    print(asset.url)
"""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError

from musicrelay.core.config import RelayConfig
from musicrelay.core.errors import UpstreamError

logger = logging.getLogger(__name__)

LOCAL_URL_PREFIX = "/uploads"


@dataclass(frozen=True)
class StoredAsset:
    """Reference and metadata for a file held by a storage strategy.

    Attributes:
        url: Public URL (remote) or ``/uploads/...`` path (local).
        public_id: Storage-assigned identifier, when the backend has one.
        format: File format/extension without the leading dot.
        size: Stored size in bytes.
        width: Pixel width for images, when known.
        height: Pixel height for images, when known.
    """

    url: str
    public_id: str | None = None
    format: str | None = None
    size: int | None = None
    width: int | None = None
    height: int | None = None


class StorageStrategy(ABC):
    """Interface shared by all storage backends."""

    name: str = "base"

    @abstractmethod
    async def store(self, data: bytes, filename: str, content_type: str | None = None) -> StoredAsset:
        """Persist *data* under *filename* and return its reference."""


def _image_dimensions(data: bytes) -> tuple[int | None, int | None]:
    """Return ``(width, height)`` if *data* decodes as an image."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.width, image.height
    except (UnidentifiedImageError, OSError):
        return None, None


class LocalDiskStorage(StorageStrategy):
    """Write files to a local directory served under ``/uploads``."""

    name = "local"

    def __init__(self, directory: Path, url_prefix: str = LOCAL_URL_PREFIX) -> None:
        self.directory = directory
        self.url_prefix = url_prefix.rstrip("/")
        self.directory.mkdir(parents=True, exist_ok=True)

    async def store(self, data: bytes, filename: str, content_type: str | None = None) -> StoredAsset:
        # Only the final path component is honoured so callers cannot escape
        # the uploads directory.
        safe_name = Path(filename).name
        path = self.directory / safe_name
        path.write_bytes(data)

        width, height = (None, None)
        if content_type is None or content_type.startswith("image/"):
            width, height = _image_dimensions(data)

        logger.info("Stored %d bytes locally at %s", len(data), path)
        return StoredAsset(
            url=f"{self.url_prefix}/{safe_name}",
            public_id=safe_name,
            format=path.suffix.lstrip(".") or None,
            size=len(data),
            width=width,
            height=height,
        )


class CloudinaryStorage(StorageStrategy):
    """Upload files to Cloudinary with an unsigned upload preset."""

    name = "cloudinary"

    def __init__(
        self,
        client: httpx.AsyncClient,
        cloud_name: str,
        upload_preset: str,
        base_url: str = "https://api.cloudinary.com/v1_1",
    ) -> None:
        self.client = client
        self.upload_preset = upload_preset
        self.upload_url = f"{base_url.rstrip('/')}/{cloud_name}/auto/upload"

    async def store(self, data: bytes, filename: str, content_type: str | None = None) -> StoredAsset:
        files = {"file": (filename, data, content_type or "application/octet-stream")}
        form = {
            "upload_preset": self.upload_preset,
            "public_id": Path(filename).stem,
        }

        try:
            response = await self.client.post(self.upload_url, data=form, files=files)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Cloudinary upload failed: {exc}") from exc

        if not response.is_success:
            raise UpstreamError(
                f"Cloudinary upload failed: {response.status_code} {response.reason_phrase}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError("Cloudinary returned a malformed response") from exc
        if not isinstance(body, dict) or not body.get("secure_url"):
            raise UpstreamError("Cloudinary returned a malformed response")

        logger.info("Uploaded %s to Cloudinary as %s", filename, body.get("public_id"))
        return StoredAsset(
            url=body["secure_url"],
            public_id=body.get("public_id"),
            format=body.get("format"),
            size=body.get("bytes", len(data)),
            width=body.get("width"),
            height=body.get("height"),
        )


def build_storage(settings: RelayConfig, client: httpx.AsyncClient) -> StorageStrategy:
    """Instantiate the storage strategy named by ``settings.storage_backend``.

    Args:
        settings: Relay configuration.
        client: Shared HTTP client used by remote backends.

    Returns:
        The configured :class:`StorageStrategy`.
    """
    if settings.storage_backend == "cloudinary":
        return CloudinaryStorage(
            client,
            cloud_name=settings.cloudinary_cloud_name,
            upload_preset=settings.cloudinary_upload_preset,
            base_url=settings.cloudinary_base_url,
        )
    return LocalDiskStorage(settings.uploads_dir)
