from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from .exceptions import DecodeFailure

logger = logging.getLogger(__name__)

# Upstream stores some fields JSON-encoded twice. Two passes cover that defect;
# anything nested deeper is treated as malformed.
MAX_DECODE_ATTEMPTS = 2


def _parse_json(raw: Any) -> Any:
    value = raw
    for _ in range(MAX_DECODE_ATTEMPTS):
        if not isinstance(value, (str, bytes, bytearray)):
            break
        try:
            value = json.loads(value)
        except (TypeError, ValueError) as exc:
            raise DecodeFailure(f"Invalid JSON payload: {exc}") from exc
    return value


def _decode(raw: Any, field: str) -> Any:
    if raw is None or not isinstance(raw, (str, bytes, bytearray)):
        return None
    try:
        return _parse_json(raw)
    except DecodeFailure as exc:
        logger.debug("source_decode_failed", extra={"field": field, "error": str(exc)})
        return None


def decode_list(raw: Any, *, field: str = "unknown") -> list[Any]:
    """Return a list from a list, a JSON string, or a doubly encoded JSON string.

    Anything else, including malformed JSON, decodes to an empty list.
    """
    if isinstance(raw, list):
        return raw
    if isinstance(raw, tuple):
        return list(raw)
    value = _decode(raw, field)
    return value if isinstance(value, list) else []


def decode_mapping(raw: Any, *, field: str = "unknown") -> dict[str, Any]:
    if isinstance(raw, Mapping):
        return dict(raw)
    value = _decode(raw, field)
    return value if isinstance(value, dict) else {}
