"""Shared payload decoding helpers.

Both the single-shot response path and the streaming decoder go through
these functions so the two call modes cannot drift apart.
"""

from __future__ import annotations

import json
from typing import Any

from responses_dsl.errors import DecodingError


def load_json_object(payload: str | bytes, *, what: str) -> dict[str, Any]:
    """Parse *payload* and require a JSON object at the top level."""
    try:
        obj = json.loads(payload)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodingError(f"{what} is not valid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise DecodingError(f"{what} must be a JSON object, got {type(obj).__name__}")
    return obj


def require_mapping(obj: Any, *, what: str) -> dict[str, Any]:
    if not isinstance(obj, dict):
        raise DecodingError(f"{what} must be an object, got {type(obj).__name__}")
    return obj


def require_str(obj: dict[str, Any], key: str, *, what: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise DecodingError(f"{what}.{key} must be a string")
    return value


def optional_str(obj: dict[str, Any], key: str, *, what: str) -> str | None:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodingError(f"{what}.{key} must be a string or null")
    return value


def require_int(obj: dict[str, Any], key: str, *, what: str) -> int:
    value = obj.get(key)
    # bool is an int subclass; reject it explicitly.
    if not isinstance(value, int) or isinstance(value, bool):
        raise DecodingError(f"{what}.{key} must be an integer")
    return value


def require_list(obj: dict[str, Any], key: str, *, what: str) -> list[Any]:
    value = obj.get(key)
    if not isinstance(value, list):
        raise DecodingError(f"{what}.{key} must be an array")
    return value
