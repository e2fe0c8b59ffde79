"""Exception hierarchy for the relay.

Every error the relay raises on purpose derives from :class:`RelayError` and
carries the HTTP status code the API layer should answer with.  Anything else
that escapes a route handler is treated as an unhandled error and reported
as a generic 500.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors with a known HTTP mapping."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(RelayError):
    """The client omitted or malformed a required field."""

    status_code = 400


class NotFound(RelayError):
    """The generation service does not know the requested job id."""

    status_code = 404


class UpstreamError(RelayError):
    """A generation, download or storage call failed or returned non-success."""

    status_code = 500


class OutputResolutionError(UpstreamError):
    """A finished prediction's output did not yield a usable URL."""
