"""Decoding of loosely-shaped JSON list envelopes.

Providers wrap record lists differently (a bare array, ``{"data": [...]}``,
``{"pools": [...]}`` and so on). ``decode_envelope`` tries the known shapes
in priority order and reports which one matched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

LIST = "list"


class MalformedPayloadError(ValueError):
    """Raised when a payload matches none of the expected envelope shapes."""


@dataclass(frozen=True)
class Envelope:
    shape: str
    items: list[Any]


def decode_envelope(payload: Any, shapes: Sequence[str] = (LIST, "data")) -> Envelope:
    """Extract the record list from ``payload``.

    Args:
        payload: Decoded JSON body
        shapes: Shapes to try, in order. ``"list"`` means the payload itself
            is the array; any other name is a top-level key holding the array.

    Raises:
        MalformedPayloadError: If no shape matches
    """
    for shape in shapes:
        if shape == LIST:
            if isinstance(payload, list):
                return Envelope(shape, payload)
        elif isinstance(payload, dict) and isinstance(payload.get(shape), list):
            return Envelope(shape, payload[shape])

    if isinstance(payload, dict):
        found = f"object with keys {sorted(payload)[:8]}"
    else:
        found = type(payload).__name__
    raise MalformedPayloadError(
        f"Expected one of {list(shapes)} envelopes, got {found}"
    )
