"""Music Relay - generation relay for hosted text-to-music models."""

__version__ = "0.1.0"

from musicrelay.core.config import RelayConfig, config

__all__ = [
    "RelayConfig",
    "config",
]
