"""Prediction lifecycle tracking.

:class:`PredictionTracker` sits between the API routes and the external
collaborators.  It submits jobs to the generation service, mirrors their
status into the :class:`~musicrelay.core.prediction_store.PredictionStore`
on every poll, and relays the finished audio to storage the first time a
poll observes success.

Materialization
---------------
A succeeded poll triggers :meth:`AssetRelay.materialize` only while the
record has no ``result``.  Concurrent polls for the same job serialize on a
per-job :class:`asyncio.Lock` and re-check ``result`` once they hold it, so
the asset is relayed once.  A failed relay is logged and left for the next
poll to retry; it never fails the status request itself.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from musicrelay.core.errors import RelayError
from musicrelay.core.generation_client import ReplicateClient
from musicrelay.core.prediction_store import (
    PredictionRecord,
    PredictionResult,
    PredictionStore,
    utcnow,
)
from musicrelay.core.relays import AssetRelay

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
FAILED = "failed"


@dataclass
class GenerationInput:
    """Normalized input for one generation job."""

    prompt: str
    lyrics: str | None = None
    image_url: str | None = None
    bitrate: int | None = 256000
    sample_rate: int | None = 44100
    audio_format: str | None = "mp3"

    def to_payload(self) -> dict[str, Any]:
        """Return the upstream input object, omitting empty fields."""
        payload = {
            "prompt": self.prompt,
            "lyrics": self.lyrics,
            "image_url": self.image_url,
            "bitrate": self.bitrate,
            "sample_rate": self.sample_rate,
            "audio_format": self.audio_format,
        }
        return {key: value for key, value in payload.items() if value not in (None, "")}


@dataclass
class PredictionSnapshot:
    """A stored record plus the upstream log lines from the latest poll."""

    record: PredictionRecord
    logs: list[str] = field(default_factory=list)


class PredictionTracker:
    """Submit jobs and keep their records current."""

    def __init__(
        self,
        generation: ReplicateClient,
        store: PredictionStore,
        asset_relay: AssetRelay,
    ) -> None:
        self.generation = generation
        self.store = store
        self.asset_relay = asset_relay
        self._materialize_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def submit(self, generation_input: GenerationInput) -> PredictionRecord:
        """Submit a job and record it.

        Raises:
            UpstreamError: If the generation service rejects the submission.
                No record is stored in that case.
        """
        submitted = await self.generation.submit(generation_input.to_payload())
        record = PredictionRecord(
            id=submitted.id,
            status=submitted.status,
            prompt=generation_input.prompt,
            lyrics=generation_input.lyrics,
            image_url=generation_input.image_url,
        )
        self.store.set(record)
        return record

    async def refresh(self, job_id: str) -> PredictionSnapshot:
        """Poll the generation service and merge the result into the store.

        Raises:
            NotFound: If the generation service does not know *job_id*.
            UpstreamError: If the status call itself fails.
        """
        status = await self.generation.get_status(job_id)

        record = self.store.get(job_id)
        if record is None:
            # Polls can arrive before the submitting request has stored its record.
            record = PredictionRecord(id=job_id, status=status.status)

        if record.status != status.status:
            logger.info("Prediction %s: %s -> %s", job_id, record.status, status.status)
        record.status = status.status
        record.updated_at = utcnow()
        if status.status == FAILED:
            record.error = status.error
        self.store.set(record)

        if status.status == SUCCEEDED and status.output and record.result is None:
            record = await self._materialize(job_id, status.output)

        return PredictionSnapshot(record=record, logs=status.logs)

    async def _materialize(self, job_id: str, output: Any) -> PredictionRecord:
        lock = self._materialize_locks.setdefault(job_id, asyncio.Lock())
        self._lock_users[job_id] = self._lock_users.get(job_id, 0) + 1
        try:
            async with lock:
                return await self._materialize_locked(job_id, output)
        finally:
            # The lock is dropped once no poll for this job holds or awaits it.
            self._lock_users[job_id] -= 1
            if not self._lock_users[job_id]:
                del self._lock_users[job_id]
                self._materialize_locks.pop(job_id, None)

    async def _materialize_locked(self, job_id: str, output: Any) -> PredictionRecord:
        record = self.store.get(job_id)
        if record.result is not None:
            return record
        try:
            source_url, asset = await self.asset_relay.materialize(output, job_id)
        except RelayError as exc:
            logger.warning("Materialization of %s failed: %s", job_id, exc)
            return record
        except Exception:
            logger.exception("Materialization of %s failed unexpectedly", job_id)
            return record

        record.result = PredictionResult(
            audio_url=asset.url,
            source_url=source_url,
            public_id=asset.public_id,
        )
        record.updated_at = utcnow()
        self.store.set(record)
        return record
