"""Resolution of a finished prediction's ``output`` into a single URL.

The generation service reports a completed asset in several shapes depending
on the model and client version:

- a plain URL string
- a list whose first element is the asset (itself any of these shapes)
- a mapping with a ``url`` key
- an object exposing ``url`` either as an attribute or as a callable
  accessor (file-output handles returned by SDK clients)

:func:`resolve_output_url` tries each shape in that fixed order and returns
the first non-empty URL.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from musicrelay.core.errors import OutputResolutionError


def _from_string(output: Any) -> str | None:
    if isinstance(output, str) and output.strip():
        return output.strip()
    return None


def _from_sequence(output: Any) -> str | None:
    if isinstance(output, (list, tuple)) and output:
        return _resolve(output[0])
    return None


def _from_mapping(output: Any) -> str | None:
    if isinstance(output, Mapping):
        return _from_string(output.get("url"))
    return None


def _from_accessor(output: Any) -> str | None:
    if isinstance(output, (str, list, tuple, Mapping)) or output is None:
        return None
    url = getattr(output, "url", None)
    if callable(url):
        url = url()
    return _from_string(str(url)) if url else None


_RESOLVERS = (_from_string, _from_sequence, _from_mapping, _from_accessor)


def _resolve(output: Any) -> str | None:
    for resolver in _RESOLVERS:
        url = resolver(output)
        if url:
            return url
    return None


def resolve_output_url(output: Any) -> str:
    """Return the asset URL carried by a prediction output.

    Args:
        output: The ``output`` value reported by the generation service.

    Returns:
        The first non-empty URL found.

    Raises:
        OutputResolutionError: If no supported shape yields a URL.
    """
    url = _resolve(output)
    if not url:
        raise OutputResolutionError(
            f"Could not resolve an audio URL from prediction output of type "
            f"{type(output).__name__}: {output!r:.200}"
        )
    return url
