"""Shared pytest fixtures for Music Relay tests."""

import io
import json
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from musicrelay.api.main import create_app
from musicrelay.core.config import RelayConfig

SOURCE_URL = "https://replicate.delivery/pbxt/abc123/output.mp3"
AUDIO_BYTES = b"ID3\x04\x00fake-mp3-payload"
CLOUDINARY_URL = "https://res.cloudinary.com/demo/video/upload/v1/music-abc123.mp3"


class FakeUpstream:
    """In-process stand-in for Replicate, the asset CDN and Cloudinary.

    Attributes:
        next_id: Id handed out by the next submission.
        predictions: Prediction bodies served by ``GET /v1/predictions/{id}``.
        submissions: ``input`` objects received by the submit endpoint.
        submit_status: Status code for submissions (>= 400 simulates failure).
        download_status: Status code for asset downloads.
        downloads: Number of asset downloads served.
        cloudinary_status: Status code for Cloudinary uploads.
        cloudinary_uploads: Raw bodies of Cloudinary upload requests.
    """

    def __init__(self) -> None:
        self.next_id = "abc123"
        self.predictions: dict[str, dict] = {}
        self.submissions: list[dict] = []
        self.submit_status = 201
        self.download_status = 200
        self.downloads = 0
        self.cloudinary_status = 200
        self.cloudinary_uploads: list[bytes] = []

    # -- state helpers ------------------------------------------------------

    def set_status(self, prediction_id: str, status: str, *, logs: str = "", **extra) -> None:
        body = self.predictions.setdefault(prediction_id, {"id": prediction_id})
        body.update({"status": status, "logs": logs, **extra})

    def complete(self, prediction_id: str, output=SOURCE_URL, logs: str = "step 1\nstep 2") -> None:
        self.set_status(prediction_id, "succeeded", output=output, logs=logs)

    def fail(self, prediction_id: str, error="model crashed") -> None:
        self.set_status(prediction_id, "failed", error=error, logs="fatal")

    # -- transport ----------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        path = request.url.path

        if host == "api.replicate.com":
            if request.method == "POST" and path.endswith("/predictions"):
                if self.submit_status >= 400:
                    return httpx.Response(self.submit_status, json={"detail": "Invalid version"})
                self.submissions.append(json.loads(request.content)["input"])
                self.predictions[self.next_id] = {
                    "id": self.next_id,
                    "status": "starting",
                    "output": None,
                    "error": None,
                    "logs": "",
                }
                return httpx.Response(201, json={"id": self.next_id, "status": "starting"})
            if request.method == "GET" and path.startswith("/v1/predictions/"):
                prediction_id = path.rsplit("/", 1)[-1]
                if prediction_id not in self.predictions:
                    return httpx.Response(404, json={"detail": "Not found."})
                return httpx.Response(200, json=self.predictions[prediction_id])

        if host == "replicate.delivery":
            self.downloads += 1
            if self.download_status != 200:
                return httpx.Response(self.download_status)
            return httpx.Response(200, content=AUDIO_BYTES)

        if host == "api.cloudinary.com":
            if self.cloudinary_status != 200:
                return httpx.Response(
                    self.cloudinary_status, json={"error": {"message": "Upload preset not found"}}
                )
            self.cloudinary_uploads.append(request.content)
            return httpx.Response(
                200,
                json={
                    "secure_url": CLOUDINARY_URL,
                    "public_id": "music-abc123",
                    "format": "mp3",
                    "bytes": len(AUDIO_BYTES),
                },
            )

        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> RelayConfig:
    """Local-storage configuration rooted in a temporary directory."""
    return RelayConfig(
        _env_file=None,
        replicate_api_token="r8_test",
        storage_backend="local",
        uploads_dir=str(temp_dir / "uploads"),
    )


@pytest.fixture
def cloudinary_config(temp_dir: Path) -> RelayConfig:
    """Cloudinary-storage configuration."""
    return RelayConfig(
        _env_file=None,
        replicate_api_token="r8_test",
        storage_backend="cloudinary",
        cloudinary_cloud_name="demo",
        cloudinary_upload_preset="unsigned-music",
        uploads_dir=str(temp_dir / "uploads"),
    )


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def test_client(test_config: RelayConfig, fake_upstream: FakeUpstream) -> Generator[TestClient, None, None]:
    """TestClient for a local-storage app wired to the fake upstream."""
    app = create_app(test_config, transport=fake_upstream.transport())
    with TestClient(app) as client:
        yield client


@pytest.fixture
def cloudinary_client(
    cloudinary_config: RelayConfig, fake_upstream: FakeUpstream
) -> Generator[TestClient, None, None]:
    """TestClient for a Cloudinary-storage app wired to the fake upstream."""
    app = create_app(cloudinary_config, transport=fake_upstream.transport())
    with TestClient(app) as client:
        yield client


@pytest.fixture
def png_bytes() -> bytes:
    """A tiny 4x3 PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (4, 3), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()
