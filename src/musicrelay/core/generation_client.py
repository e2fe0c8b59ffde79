"""Async client for the Replicate predictions API.

Only the two calls the relay needs are implemented:

- :meth:`ReplicateClient.submit` creates a prediction for the configured
  model and returns its id and initial status.
- :meth:`ReplicateClient.get_status` fetches the current state of a
  prediction, including its output, error and log lines.

No retries are attempted; failures are raised immediately as
:class:`~musicrelay.core.errors.UpstreamError` or
:class:`~musicrelay.core.errors.NotFound`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from musicrelay.core.errors import NotFound, UpstreamError

logger = logging.getLogger(__name__)

# Status codes with which the service rejects a prediction id itself.
REJECTED_ID_STATUSES = frozenset({400, 404, 422})


@dataclass
class SubmittedPrediction:
    id: str
    status: str


@dataclass
class PredictionStatus:
    """Snapshot of a prediction as reported by the generation service."""

    id: str
    status: str
    output: Any = None
    error: Any = None
    logs: list[str] = field(default_factory=list)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)


def _json_object(response: httpx.Response) -> dict[str, Any]:
    """Return a 2xx response body, which must be a JSON object.

    Raises:
        UpstreamError: If the body is not JSON or not an object.
    """
    try:
        body = response.json()
    except ValueError as exc:
        raise UpstreamError("Generation service returned a malformed response") from exc
    if not isinstance(body, dict):
        raise UpstreamError("Generation service returned a malformed response")
    return body


def _split_logs(logs: Any) -> list[str]:
    if not logs:
        return []
    if isinstance(logs, str):
        return [line for line in logs.splitlines() if line.strip()]
    return [str(line) for line in logs]


class ReplicateClient:
    """Minimal Replicate HTTP client bound to one model."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_token: str,
        model: str,
        base_url: str = "https://api.replicate.com/v1",
    ) -> None:
        self.client = client
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {api_token}",
            "Content-Type": "application/json",
        }

    async def submit(self, payload: dict[str, Any]) -> SubmittedPrediction:
        """Create a prediction for :attr:`model` with *payload* as its input.

        Raises:
            UpstreamError: On transport errors, non-2xx responses, or a
                response without a prediction id.
        """
        url = f"{self.base_url}/models/{self.model}/predictions"
        try:
            response = await self.client.post(url, headers=self.headers, json={"input": payload})
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Generation request failed: {exc}") from exc

        if not response.is_success:
            raise UpstreamError(
                f"Generation request failed ({response.status_code}): {_error_detail(response)}"
            )

        body = _json_object(response)
        if not body.get("id"):
            raise UpstreamError("Generation service returned no prediction id")
        logger.info("Submitted prediction %s to %s", body["id"], self.model)
        return SubmittedPrediction(id=body["id"], status=body.get("status", "starting"))

    async def get_status(self, prediction_id: str) -> PredictionStatus:
        """Fetch the current state of *prediction_id*.

        Raises:
            NotFound: If the service rejects the id (400, 404 or 422).
            UpstreamError: On transport errors, any other non-2xx response
                (including 401, 403 and 429), or a malformed body.
        """
        url = f"{self.base_url}/predictions/{prediction_id}"
        try:
            response = await self.client.get(url, headers=self.headers)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Status request failed: {exc}") from exc

        if response.status_code in REJECTED_ID_STATUSES:
            raise NotFound(f"Prediction not found: {prediction_id}")
        if not response.is_success:
            raise UpstreamError(
                f"Status request failed ({response.status_code}): {_error_detail(response)}"
            )

        body = _json_object(response)
        return PredictionStatus(
            id=body.get("id", prediction_id),
            status=body.get("status", "unknown"),
            output=body.get("output"),
            error=body.get("error"),
            logs=_split_logs(body.get("logs")),
        )
