"""Music Relay — FastAPI Application.

This module defines the FastAPI application, all REST routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Configuration** comes from :class:`~musicrelay.core.config.RelayConfig`
  (environment variables with the ``MUSICRELAY_`` prefix).
- **Generation** is delegated to Replicate through
  :class:`~musicrelay.core.generation_client.ReplicateClient`.
- **Job state** lives in an injected
  :class:`~musicrelay.core.prediction_store.PredictionStore`; the default is
  process-local and does not survive restarts.
- **Storage** is a strategy chosen once at start-up: local disk (served back
  under ``/uploads``) or Cloudinary.
- **Outbound HTTP** uses a single ``httpx.AsyncClient`` opened and closed by
  the application lifespan.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
POST      ``/generate``                 Submit a music generation job
GET       ``/status/{predictionId}``    Poll a job, relaying audio on success
POST      ``/upload``                   Relay an image upload to storage
GET       ``/health``                   Liveness probe
GET       ``/uploads/...``              Stored files (local storage only)
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    musicrelay

Direct invocation::

    python -m musicrelay.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, FastAPI, File, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from musicrelay import __version__
from musicrelay.api.input_normalizer import normalize_generate_request
from musicrelay.api.models import (
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    ResultPayload,
    StatusResponse,
    UploadResponse,
)
from musicrelay.core.config import RelayConfig, config
from musicrelay.core.errors import InvalidInput, RelayError
from musicrelay.core.generation_client import ReplicateClient
from musicrelay.core.prediction_store import InMemoryPredictionStore, PredictionStore
from musicrelay.core.relays import AssetRelay, UploadRelay
from musicrelay.core.storage import LOCAL_URL_PREFIX, build_storage
from musicrelay.core.tracker import PredictionTracker

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

router = APIRouter()


# ---------------------------------------------------------------------------
# Exception handlers.
# ---------------------------------------------------------------------------


async def _relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Translate a :class:`RelayError` into its mapped status code.

    The body uses the same ``{"detail": ...}`` shape as ``HTTPException``.
    """
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as 400 Bad Request."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected exceptions server-side and answer with a generic 500."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@router.post("/generate", response_model=GenerateResponse)
async def generate(req: GenerateRequest, request: Request) -> GenerateResponse:
    """Submit a music generation job.

    Args:
        req: Request body in either the direct or the indirect shape.

    Returns:
        The prediction id, its initial status and a confirmation message.

    Raises:
        InvalidInput: 400 when no prompt can be derived from the body.
        UpstreamError: 500 when the generation service rejects the job.
    """
    generation_input = normalize_generate_request(req)
    tracker: PredictionTracker = request.app.state.tracker
    record = await tracker.submit(generation_input)
    return GenerateResponse(
        prediction_id=record.id,
        status=record.status,
        message=f"Music generation started. Poll /status/{record.id} for progress.",
    )


@router.get("/status", include_in_schema=False)
@router.get("/status/", include_in_schema=False)
async def status_missing_id() -> None:
    """Reject status polls that carry no prediction id."""
    raise InvalidInput("predictionId is required")


@router.get(
    "/status/{prediction_id}",
    response_model=StatusResponse,
    response_model_exclude_none=True,
)
async def get_status(prediction_id: str, request: Request) -> StatusResponse:
    """Poll a prediction and return its current record.

    When the generation service reports success for the first time, the
    audio is relayed to storage before responding.  A failed relay leaves
    ``result`` unset so the client can simply poll again.

    Args:
        prediction_id: Id returned by ``POST /generate``.

    Returns:
        The merged prediction record plus the upstream log lines.

    Raises:
        InvalidInput: 400 for a blank id.
        NotFound: 404 when the generation service does not know the id.
    """
    if not prediction_id.strip():
        raise InvalidInput("predictionId is required")

    tracker: PredictionTracker = request.app.state.tracker
    snapshot = await tracker.refresh(prediction_id)
    record = snapshot.record

    result = None
    if record.result is not None:
        result = ResultPayload(**record.result.model_dump())

    return StatusResponse(
        id=record.id,
        status=record.status,
        created_at=record.created_at,
        updated_at=record.updated_at,
        result=result,
        error=record.error,
        logs=snapshot.logs,
    )


@router.post(
    "/upload",
    response_model=UploadResponse,
    response_model_exclude_none=True,
)
async def upload_image(
    request: Request,
    image: UploadFile | None = File(default=None),
) -> UploadResponse:
    """Relay an uploaded image to storage.

    Args:
        image: Multipart file in the ``image`` field.

    Returns:
        The stored file's reference and metadata.

    Raises:
        InvalidInput: 400 when no file was provided.
        UpstreamError: 500 when remote storage rejects the upload.
    """
    if image is None or not image.filename:
        raise InvalidInput("No file provided")

    data = await image.read()
    upload_relay: UploadRelay = request.app.state.upload_relay
    stored = await upload_relay.store(data, image.filename, image.content_type)
    return UploadResponse(**stored)


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Liveness probe."""
    settings: RelayConfig = request.app.state.settings
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        service=settings.service_name,
    )


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    settings: RelayConfig | None = None,
    *,
    store: PredictionStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration to use.  Defaults to the global ``config``.
        store: Prediction store.  Defaults to a fresh in-memory store.
        transport: Optional ``httpx`` transport for all outbound calls,
            used to point the relay at fakes in tests.

    Returns:
        The configured FastAPI application.
    """
    settings = settings or config
    store = store if store is not None else InMemoryPredictionStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Open the shared HTTP client and wire the relay components.

        On shutdown the HTTP client is closed.  Prediction records are not
        persisted.
        """
        # --- Startup -------------------------------------------------------
        client = httpx.AsyncClient(timeout=settings.http_timeout, transport=transport)
        storage = build_storage(settings, client)
        generation = ReplicateClient(
            client,
            api_token=settings.replicate_api_token,
            model=settings.replicate_model,
            base_url=settings.replicate_base_url,
        )
        app.state.settings = settings
        app.state.store = store
        app.state.tracker = PredictionTracker(generation, store, AssetRelay(client, storage))
        app.state.upload_relay = UploadRelay(storage)
        logger.info(
            "Music relay started (model=%s, storage=%s).",
            settings.replicate_model,
            storage.name,
        )

        yield  # Application runs here.

        # --- Shutdown ------------------------------------------------------
        await client.aclose()
        logger.info("Music relay stopped.")

    app = FastAPI(
        title="Music Relay",
        description="Relay for hosted music generation with asset republishing.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RelayError, _relay_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
    app.include_router(router)

    # Stored files are only served from this process in local mode.
    if settings.storage_backend == "local":
        app.mount(
            LOCAL_URL_PREFIX,
            StaticFiles(directory=str(settings.uploads_dir)),
            name="uploads",
        )

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def configure_logging(level: str) -> None:
    """Apply the relay's log format to the root logger."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~musicrelay.core.config.config`
    (``MUSICRELAY_SERVER_HOST`` and ``MUSICRELAY_SERVER_PORT``).  Defaults to
    ``0.0.0.0:3000``.

    This function is registered as the ``musicrelay`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    configure_logging(config.log_level)
    uvicorn.run(
        "musicrelay.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
