"""Configuration management for Music Relay.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the MUSICRELAY_ prefix,
allowing the relay to be pointed at different upstream accounts without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (MUSICRELAY_* prefix)
2. .env file in the project root
3. Default values defined in RelayConfig

Example .env file:
    MUSICRELAY_REPLICATE_API_TOKEN=r8_xxx
    MUSICRELAY_STORAGE_BACKEND=cloudinary
    MUSICRELAY_CLOUDINARY_CLOUD_NAME=my-cloud
    MUSICRELAY_CLOUDINARY_UPLOAD_PRESET=unsigned-music

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
The FastAPI application uses it unless a different instance is passed to
:func:`musicrelay.api.main.create_app`.

Storage Backends
----------------
- ``local``: generated audio and uploaded images are written to
  ``uploads_dir`` and served back under ``/uploads``.
- ``cloudinary``: files are pushed to Cloudinary's unsigned upload endpoint
  using ``cloudinary_cloud_name`` and ``cloudinary_upload_preset``.

See Also
--------
- musicrelay.core.storage: Storage strategies selected from ``storage_backend``
- RelayConfig: Full configuration class documentation
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelayConfig(BaseSettings):
    """Main configuration for Music Relay.

    Values are loaded from environment variables with the MUSICRELAY_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Generation Service:
        replicate_api_token : str
            Bearer token for the Replicate HTTP API
        replicate_base_url : str
            Base URL of the Replicate API (overridable for tests and proxies)
        replicate_model : str
            ``owner/name`` of the music model to run

    Storage:
        storage_backend : Literal["local", "cloudinary"]
            Where generated audio and uploaded images are republished
        cloudinary_cloud_name : str
            Cloudinary account identifier (cloudinary mode only)
        cloudinary_upload_preset : str
            Unsigned upload preset (cloudinary mode only)
        cloudinary_base_url : str
            Base URL of the Cloudinary upload API
        uploads_dir : Path
            Directory for locally stored files (local mode)

    Server:
        service_name : str
            Name reported by ``GET /health``
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn (1024-65535)
        http_timeout : float
            Timeout in seconds for every outbound HTTP call
        log_level : str
            Root logging level used by the CLI entry point

    Notes
    -----
    - ``uploads_dir`` is created automatically if it doesn't exist
    - Cloudinary mode requires both the cloud name and the upload preset

    Examples
    --------
        >>> custom_config = RelayConfig(
        ...     storage_backend="local",
        ...     uploads_dir="/tmp/music-relay",
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MUSICRELAY_",
        case_sensitive=False,
        extra="ignore",
    )

    # Generation service
    replicate_api_token: str = Field(
        default="",
        description="Bearer token for the Replicate API",
    )
    replicate_base_url: str = Field(
        default="https://api.replicate.com/v1",
        description="Base URL of the Replicate API",
    )
    replicate_model: str = Field(
        default="minimax/music-1.5",
        description="Model to run, as owner/name",
    )

    # Storage
    storage_backend: Literal["local", "cloudinary"] = Field(
        default="local",
        description="Storage strategy for generated audio and uploads",
    )
    cloudinary_cloud_name: str = Field(
        default="",
        description="Cloudinary cloud name (cloudinary mode only)",
    )
    cloudinary_upload_preset: str = Field(
        default="",
        description="Cloudinary unsigned upload preset (cloudinary mode only)",
    )
    cloudinary_base_url: str = Field(
        default="https://api.cloudinary.com/v1_1",
        description="Base URL of the Cloudinary upload API",
    )
    uploads_dir: Path = Field(
        default=Path("uploads"),
        description="Directory for locally stored audio and images",
    )

    # Server
    service_name: str = Field(
        default="music-relay",
        description="Service name reported by the health endpoint",
    )
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=3000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    http_timeout: float = Field(
        default=60.0,
        description="Timeout in seconds for outbound HTTP calls",
        gt=0,
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level for the CLI entry point",
    )

    @model_validator(mode="after")
    def _check_cloudinary_credentials(self) -> "RelayConfig":
        if self.storage_backend == "cloudinary" and not (
            self.cloudinary_cloud_name and self.cloudinary_upload_preset
        ):
            raise ValueError(
                "cloudinary storage requires cloudinary_cloud_name and "
                "cloudinary_upload_preset"
            )
        return self

    def __init__(self, **kwargs):
        """Initialize configuration and create the uploads directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.uploads_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance
# Loads values from environment variables (MUSICRELAY_* prefix) and .env file.
config = RelayConfig()
