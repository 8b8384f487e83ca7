"""
JSON encoder/decoder for the relay wire format.

Every frame is a single JSON object carrying a "type" discriminator.
"""

import json
from typing import Any

# Upper bound on a single inbound frame. A full board snapshot is well under 8KB.
MAX_MESSAGE_BYTES = 64 * 1024


class DecodeError(Exception):
    """Error raised when an inbound frame is not a JSON object."""


def encode(data: dict[str, Any]) -> str:
    """
    Encode a dict to a compact JSON string.
    """
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def decode(raw: str, max_bytes: int = MAX_MESSAGE_BYTES) -> dict[str, Any]:
    """
    Decode a JSON text frame to a dict.

    Raises DecodeError if the frame is too large, is not valid JSON,
    or does not hold an object.
    """
    size = len(raw.encode("utf-8"))
    if size > max_bytes:
        raise DecodeError(f"payload too large: {size} bytes (max {max_bytes})")
    try:
        result = json.loads(raw)
    except ValueError as e:
        raise DecodeError(f"failed to decode JSON data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected object, got {type(result).__name__}")

    return result
