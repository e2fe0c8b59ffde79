"""Asset and upload relays.

Both relays republish bytes through the configured
:class:`~musicrelay.core.storage.StorageStrategy`:

- :class:`AssetRelay` downloads a finished generation from the transient URL
  the generation service reports and stores it as ``music-<job id><ext>``.
- :class:`UploadRelay` stores a client-supplied file under a randomly
  suffixed ``image-<hex><ext>`` name.
"""

from __future__ import annotations

import logging
import mimetypes
import uuid
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlparse

import httpx

from musicrelay.core.errors import UpstreamError
from musicrelay.core.output_resolver import resolve_output_url
from musicrelay.core.storage import StorageStrategy, StoredAsset

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_EXTENSION = ".mp3"


def _extension_from_url(url: str, default: str) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    return suffix or default


class AssetRelay:
    """Materialize generated assets into durable storage."""

    def __init__(self, client: httpx.AsyncClient, storage: StorageStrategy) -> None:
        self.client = client
        self.storage = storage

    async def download(self, source_url: str) -> bytes:
        """Fetch *source_url* fully into memory.

        Raises:
            UpstreamError: On transport errors or a non-2xx response.
        """
        try:
            response = await self.client.get(source_url, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Failed to download generated asset: {exc}") from exc
        if not response.is_success:
            raise UpstreamError(
                f"Failed to download generated asset: {response.status_code} "
                f"{response.reason_phrase}"
            )
        return response.content

    async def materialize(self, output: Any, job_id: str) -> tuple[str, StoredAsset]:
        """Relay a prediction's output to storage.

        Args:
            output: The polymorphic ``output`` value of a succeeded prediction.
            job_id: Prediction id, used to name the stored file.

        Returns:
            Tuple of ``(source_url, stored_asset)``.
        """
        source_url = resolve_output_url(output)
        data = await self.download(source_url)

        extension = _extension_from_url(source_url, DEFAULT_AUDIO_EXTENSION)
        filename = f"music-{job_id}{extension}"
        content_type = mimetypes.guess_type(filename)[0] or "audio/mpeg"

        asset = await self.storage.store(data, filename, content_type)
        logger.info("Materialized prediction %s to %s", job_id, asset.url)
        return source_url, asset


class UploadRelay:
    """Republish inbound client files."""

    def __init__(self, storage: StorageStrategy) -> None:
        self.storage = storage

    async def store(self, data: bytes, filename: str | None, content_type: str | None) -> dict:
        """Store an uploaded file and describe the result.

        Args:
            data: Raw file bytes.
            filename: Client-supplied filename, used only for its extension.
            content_type: Client-declared MIME type.

        Returns:
            Dictionary with ``image_url``, ``public_id``, ``format``,
            ``mimetype``, ``size``, ``width`` and ``height``.
        """
        extension = PurePosixPath(filename or "").suffix.lower()
        if not extension and content_type:
            extension = mimetypes.guess_extension(content_type) or ""
        stored_name = f"image-{uuid.uuid4().hex}{extension}"

        asset = await self.storage.store(data, stored_name, content_type)
        logger.info("Relayed upload %r (%d bytes) to %s", filename, len(data), asset.url)
        return {
            "image_url": asset.url,
            "public_id": asset.public_id,
            "format": asset.format,
            "mimetype": content_type,
            "size": asset.size if asset.size is not None else len(data),
            "width": asset.width,
            "height": asset.height,
        }
