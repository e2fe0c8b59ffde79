"""Pydantic request and response models for the Music Relay API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for request validation, serialisation, and OpenAPI documentation.
Response bodies are emitted in camelCase (``predictionId``, ``createdAt``,
``audioUrl``) to match what existing clients consume.

Models
------
GenerateRequest
    Payload for ``POST /generate``.  Accepts both the direct shape
    (``prompt``/``lyrics``) and the indirect shape (``input`` plus style
    modifiers); see :mod:`musicrelay.api.input_normalizer`.
GenerateResponse
    Body returned after a successful submission.
StatusResponse
    Body returned by ``GET /status/{predictionId}``.
UploadResponse
    Body returned by ``POST /upload``.
HealthResponse
    Body returned by ``GET /health``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


class GenerateRequest(BaseModel):
    """Request body for the ``POST /generate`` endpoint.

    Parsing is deliberately lax: unknown fields are ignored, numeric strings
    are coerced, and empty or null audio parameters fall back to their
    defaults.

    Attributes:
        prompt: Music description (direct shape).
        lyrics: Song lyrics (direct shape).
        image_url: Optional reference image, sent as ``imageUrl``.
        bitrate: Audio bitrate in bits per second.
        sample_rate: Audio sample rate in Hz.
        audio_format: Output container, e.g. ``"mp3"``.
        input: Free text used as lyrics (indirect shape).
        style: Style modifier (indirect shape).
        mode: Mode modifier (indirect shape).
        speed: Tempo modifier (indirect shape).
        instrumentation: Instrumentation modifier (indirect shape).
        vocal: Vocal modifier (indirect shape).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    prompt: str | None = Field(default=None, description="Music description.")
    lyrics: str | None = Field(default=None, description="Song lyrics.")
    image_url: str | None = Field(
        default=None,
        alias="imageUrl",
        description="Optional reference image URL.",
    )
    bitrate: int = Field(default=256000, description="Audio bitrate (bps).")
    sample_rate: int = Field(default=44100, description="Audio sample rate (Hz).")
    audio_format: str = Field(default="mp3", description="Audio format.")

    input: str | None = Field(default=None, description="Free text used as lyrics.")
    style: str | None = Field(default=None, description="Style modifier.")
    mode: str | None = Field(default=None, description="Mode modifier.")
    speed: str | None = Field(default=None, description="Tempo modifier.")
    instrumentation: str | None = Field(default=None, description="Instrumentation modifier.")
    vocal: str | None = Field(default=None, description="Vocal modifier.")

    @field_validator("bitrate", "sample_rate", "audio_format", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value

    @field_validator(
        "prompt", "lyrics", "image_url", "input", "style", "mode", "speed",
        "instrumentation", "vocal",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateResponse(_CamelModel):
    """Response body for a successful ``POST /generate``."""

    prediction_id: str
    status: str
    message: str


class ResultPayload(_CamelModel):
    """Relayed asset of a succeeded prediction."""

    audio_url: str
    source_url: str
    public_id: str | None = None


class StatusResponse(_CamelModel):
    """Response body for ``GET /status/{predictionId}``."""

    id: str
    status: str
    created_at: datetime
    updated_at: datetime
    result: ResultPayload | None = None
    error: Any = None
    logs: list[str] = Field(default_factory=list)


class UploadResponse(_CamelModel):
    """Response body for ``POST /upload``."""

    image_url: str
    public_id: str | None = None
    format: str | None = None
    mimetype: str | None = None
    size: int
    width: int | None = None
    height: int | None = None


class HealthResponse(BaseModel):
    """Response body for ``GET /health``."""

    status: str
    timestamp: datetime
    service: str
