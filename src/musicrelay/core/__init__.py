"""Core functionality for relaying music generation jobs.

- **config**: Environment-based configuration (Pydantic Settings, MUSICRELAY_ prefix)
- **errors**: Exception hierarchy mapped to HTTP status codes
- **generation_client**: Async Replicate predictions client
- **output_resolver**: Normalization of polymorphic prediction outputs to a URL
- **storage**: Local-disk and Cloudinary storage strategies
- **relays**: Asset (generated audio) and upload (client image) relays
- **prediction_store**: Prediction records and the key-value store holding them
- **tracker**: Submission and status refresh of prediction records
"""

from musicrelay.core.config import RelayConfig, config
from musicrelay.core.errors import InvalidInput, NotFound, RelayError, UpstreamError
from musicrelay.core.prediction_store import InMemoryPredictionStore, PredictionRecord
from musicrelay.core.tracker import GenerationInput, PredictionTracker

__all__ = [
    "GenerationInput",
    "InMemoryPredictionStore",
    "InvalidInput",
    "NotFound",
    "PredictionRecord",
    "PredictionTracker",
    "RelayConfig",
    "RelayError",
    "UpstreamError",
    "config",
]
