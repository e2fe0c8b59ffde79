"""Normalization of ``POST /generate`` bodies into a generation input.

Clients send one of two shapes:

Direct shape::

    {"prompt": "upbeat pop", "lyrics": "...", "imageUrl": "...",
     "bitrate": 256000, "sample_rate": 44100, "audio_format": "mp3"}

Indirect shape::

    {"input": "lyrics text", "style": "pop", "mode": "verse-chorus",
     "speed": "fast", "instrumentation": "piano", "vocal": "female"}

The direct shape wins.  The indirect shape is only consulted when both
``prompt`` and ``lyrics`` are blank; its ``input`` becomes the lyrics and its
non-empty modifiers, joined with ``", "`` in the order style, mode, speed,
instrumentation, vocal, become the prompt.

Usage
-----
::

    generation_input = normalize_generate_request(req)
    payload = generation_input.to_payload()
"""

from __future__ import annotations

from musicrelay.api.models import GenerateRequest
from musicrelay.core.errors import InvalidInput
from musicrelay.core.tracker import GenerationInput

MODIFIER_FIELDS = ("style", "mode", "speed", "instrumentation", "vocal")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def build_modifier_prompt(req: GenerateRequest) -> str:
    """Join the non-empty indirect-shape modifiers in their fixed order."""
    parts = [_clean(getattr(req, name)) for name in MODIFIER_FIELDS]
    return ", ".join(part for part in parts if part)


def normalize_generate_request(req: GenerateRequest) -> GenerationInput:
    """Resolve a request body into a :class:`GenerationInput`.

    Args:
        req: Validated request body in either shape.

    Returns:
        The normalized generation input.

    Raises:
        InvalidInput: If no non-empty prompt can be derived.
    """
    prompt = _clean(req.prompt)
    lyrics = _clean(req.lyrics)

    if prompt is None and lyrics is None:
        lyrics = _clean(req.input)
        prompt = _clean(build_modifier_prompt(req))

    if prompt is None:
        raise InvalidInput("prompt is required")

    return GenerationInput(
        prompt=prompt,
        lyrics=lyrics,
        image_url=_clean(req.image_url),
        bitrate=req.bitrate,
        sample_rate=req.sample_rate,
        audio_format=_clean(req.audio_format),
    )
