"""Unit tests for storage strategies and the asset/upload relays."""

from __future__ import annotations

import httpx
import pytest

from conftest import AUDIO_BYTES, CLOUDINARY_URL, SOURCE_URL
from musicrelay.core.errors import OutputResolutionError, UpstreamError
from musicrelay.core.relays import AssetRelay, UploadRelay
from musicrelay.core.storage import (
    CloudinaryStorage,
    LocalDiskStorage,
    build_storage,
)


class TestLocalDiskStorage:
    @pytest.mark.asyncio
    async def test_store_writes_file(self, temp_dir):
        storage = LocalDiskStorage(temp_dir / "uploads")

        asset = await storage.store(b"abc", "music-1.mp3", "audio/mpeg")

        assert asset.url == "/uploads/music-1.mp3"
        assert asset.public_id == "music-1.mp3"
        assert asset.format == "mp3"
        assert asset.size == 3
        assert asset.width is None
        assert (temp_dir / "uploads" / "music-1.mp3").read_bytes() == b"abc"

    @pytest.mark.asyncio
    async def test_store_strips_directories(self, temp_dir):
        storage = LocalDiskStorage(temp_dir / "uploads")

        asset = await storage.store(b"abc", "../../escape.txt")

        assert asset.url == "/uploads/escape.txt"
        assert (temp_dir / "uploads" / "escape.txt").exists()

    @pytest.mark.asyncio
    async def test_image_dimensions(self, temp_dir, png_bytes):
        storage = LocalDiskStorage(temp_dir / "uploads")

        asset = await storage.store(png_bytes, "image-1.png", "image/png")

        assert (asset.width, asset.height) == (4, 3)

    @pytest.mark.asyncio
    async def test_non_image_has_no_dimensions(self, temp_dir):
        storage = LocalDiskStorage(temp_dir / "uploads")

        asset = await storage.store(b"not an image", "image-1.png", "image/png")

        assert asset.width is None and asset.height is None


class TestCloudinaryStorage:
    @pytest.mark.asyncio
    async def test_store_posts_preset(self, fake_upstream):
        async with httpx.AsyncClient(transport=fake_upstream.transport()) as client:
            storage = CloudinaryStorage(client, "demo", "unsigned-music")
            asset = await storage.store(AUDIO_BYTES, "music-abc123.mp3", "audio/mpeg")

        assert asset.url == CLOUDINARY_URL
        assert asset.public_id == "music-abc123"
        assert asset.size == len(AUDIO_BYTES)
        body = fake_upstream.cloudinary_uploads[0]
        assert b'name="upload_preset"' in body
        assert b"unsigned-music" in body
        assert AUDIO_BYTES in body

    def test_upload_url(self):
        storage = CloudinaryStorage(httpx.AsyncClient(), "demo", "p")
        assert storage.upload_url == "https://api.cloudinary.com/v1_1/demo/auto/upload"

    @pytest.mark.asyncio
    async def test_non_success_raises(self, fake_upstream):
        fake_upstream.cloudinary_status = 401
        async with httpx.AsyncClient(transport=fake_upstream.transport()) as client:
            storage = CloudinaryStorage(client, "demo", "unsigned-music")
            with pytest.raises(UpstreamError, match="401"):
                await storage.store(b"x", "a.mp3")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="upload ok"),
            httpx.Response(200, json=[]),
            httpx.Response(200, json={"public_id": "music-abc123"}),
        ],
    )
    async def test_malformed_body_raises(self, response):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: response)) as client:
            storage = CloudinaryStorage(client, "demo", "unsigned-music")
            with pytest.raises(UpstreamError, match="malformed response"):
                await storage.store(b"x", "a.mp3")


class TestBuildStorage:
    def test_local(self, test_config):
        storage = build_storage(test_config, httpx.AsyncClient())
        assert isinstance(storage, LocalDiskStorage)
        assert storage.directory == test_config.uploads_dir

    def test_cloudinary(self, cloudinary_config):
        storage = build_storage(cloudinary_config, httpx.AsyncClient())
        assert isinstance(storage, CloudinaryStorage)
        assert "/demo/" in storage.upload_url


class TestAssetRelay:
    @pytest.mark.asyncio
    async def test_materialize_local(self, temp_dir, fake_upstream):
        async with httpx.AsyncClient(transport=fake_upstream.transport()) as client:
            relay = AssetRelay(client, LocalDiskStorage(temp_dir))
            source_url, asset = await relay.materialize([SOURCE_URL], "abc123")

        assert source_url == SOURCE_URL
        assert asset.url == "/uploads/music-abc123.mp3"
        assert (temp_dir / "music-abc123.mp3").read_bytes() == AUDIO_BYTES

    @pytest.mark.asyncio
    async def test_extension_follows_source(self, temp_dir, fake_upstream):
        async with httpx.AsyncClient(transport=fake_upstream.transport()) as client:
            relay = AssetRelay(client, LocalDiskStorage(temp_dir))
            _, asset = await relay.materialize(
                "https://replicate.delivery/pbxt/abc123/output.wav", "abc123"
            )

        assert asset.url == "/uploads/music-abc123.wav"

    @pytest.mark.asyncio
    async def test_extension_defaults_to_mp3(self, temp_dir, fake_upstream):
        async with httpx.AsyncClient(transport=fake_upstream.transport()) as client:
            relay = AssetRelay(client, LocalDiskStorage(temp_dir))
            _, asset = await relay.materialize("https://replicate.delivery/file/xyz", "j1")

        assert asset.url == "/uploads/music-j1.mp3"

    @pytest.mark.asyncio
    async def test_download_failure(self, temp_dir, fake_upstream):
        fake_upstream.download_status = 500
        async with httpx.AsyncClient(transport=fake_upstream.transport()) as client:
            relay = AssetRelay(client, LocalDiskStorage(temp_dir))
            with pytest.raises(UpstreamError, match="download"):
                await relay.materialize(SOURCE_URL, "abc123")

        assert not (temp_dir / "music-abc123.mp3").exists()

    @pytest.mark.asyncio
    async def test_unresolvable_output(self, temp_dir, fake_upstream):
        async with httpx.AsyncClient(transport=fake_upstream.transport()) as client:
            relay = AssetRelay(client, LocalDiskStorage(temp_dir))
            with pytest.raises(OutputResolutionError):
                await relay.materialize({"files": []}, "abc123")

        assert fake_upstream.downloads == 0


class TestUploadRelay:
    @pytest.mark.asyncio
    async def test_store_local(self, temp_dir, png_bytes):
        relay = UploadRelay(LocalDiskStorage(temp_dir))

        result = await relay.store(png_bytes, "Cover.PNG", "image/png")

        assert result["image_url"].startswith("/uploads/image-")
        assert result["image_url"].endswith(".png")
        assert result["mimetype"] == "image/png"
        assert result["size"] == len(png_bytes)
        assert result["public_id"] == result["image_url"].rsplit("/", 1)[-1]

    @pytest.mark.asyncio
    async def test_names_are_unique(self, temp_dir, png_bytes):
        relay = UploadRelay(LocalDiskStorage(temp_dir))

        first = await relay.store(png_bytes, "a.png", "image/png")
        second = await relay.store(png_bytes, "a.png", "image/png")

        assert first["image_url"] != second["image_url"]

    @pytest.mark.asyncio
    async def test_extension_from_content_type(self, temp_dir, png_bytes):
        relay = UploadRelay(LocalDiskStorage(temp_dir))

        result = await relay.store(png_bytes, "blob", "image/png")

        assert result["format"] == "png"
