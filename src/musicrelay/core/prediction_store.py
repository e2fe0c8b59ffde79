"""Prediction records and the key-value store that holds them.

The relay keeps one :class:`PredictionRecord` per submitted job, keyed by the
id the generation service assigned.  Route handlers and the tracker only ever
talk to the :class:`PredictionStore` protocol, so the default
:class:`InMemoryPredictionStore` can be replaced by a persistent backend
without touching them.

Records live for the lifetime of the process; nothing here deletes them on
its own.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PredictionResult(BaseModel):
    """Where a succeeded prediction's audio was relayed to."""

    audio_url: str
    source_url: str
    public_id: str | None = None


class PredictionRecord(BaseModel):
    """Last-known state of one submitted generation job.

    Attributes:
        id: Opaque id assigned by the generation service.
        status: Upstream status, mirrored verbatim.
        created_at: Set by the tracker when the record is first stored.
        updated_at: Set by the tracker on every status refresh.
        prompt: Normalized prompt that produced the job.
        lyrics: Normalized lyrics, if any.
        image_url: Reference image, if any.
        result: Relayed asset, set at most once after success.
        error: Upstream error payload when the job failed.
    """

    id: str
    status: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    prompt: str | None = None
    lyrics: str | None = None
    image_url: str | None = None
    result: PredictionResult | None = None
    error: Any = None


class PredictionStore(Protocol):
    """Key-value access to prediction records by job id."""

    def get(self, job_id: str) -> PredictionRecord | None: ...

    def set(self, record: PredictionRecord) -> None: ...

    def delete(self, job_id: str) -> None: ...


class InMemoryPredictionStore:
    """Process-local :class:`PredictionStore` backed by a dict."""

    def __init__(self) -> None:
        self._records: dict[str, PredictionRecord] = {}

    def get(self, job_id: str) -> PredictionRecord | None:
        return self._records.get(job_id)

    def set(self, record: PredictionRecord) -> None:
        self._records[record.id] = record

    def delete(self, job_id: str) -> None:
        self._records.pop(job_id, None)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._records

    def __len__(self) -> int:
        return len(self._records)
