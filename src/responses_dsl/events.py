"""Typed events of a streaming response."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import logging
from types import MappingProxyType
from typing import Any, TypeAlias

from responses_dsl._json import optional_str, require_mapping, require_str
from responses_dsl.errors import (
    APIError,
    APITimeoutError,
    AuthenticationError,
    DecodingError,
    ErrorKind,
    NetworkError,
    RateLimitError,
)
from responses_dsl.response import Response, decode_response

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputItemAdded:
    """A new output item (message, function call, ...) started."""

    item_id: str | None
    item: Mapping[str, Any]
    output_index: int | None = None


@dataclass(frozen=True)
class OutputItemDelta:
    """An incremental piece of an output item's content."""

    item_id: str
    delta: str
    output_index: int | None = None


@dataclass(frozen=True)
class Completed:
    """The response finished; always the last event of a stream."""

    response: Response


@dataclass(frozen=True)
class ErrorEvent:
    """The endpoint reported a failure in-band; always the last event of a stream."""

    kind: ErrorKind
    message: str
    code: str | None = None

    def to_exception(self) -> APIError:
        """Return the exception a caller would raise for this event."""
        cls: type[APIError] = _ERROR_CLASSES.get(self.kind, APIError)
        detail = f" ({self.code})" if self.code else ""
        return cls(f"{self.message}{detail}")


@dataclass(frozen=True)
class UnrecognizedEvent:
    """An event whose ``type`` this version does not know; safe to ignore."""

    type: str
    payload: Mapping[str, Any]


StreamEvent: TypeAlias = (
    OutputItemAdded | OutputItemDelta | Completed | ErrorEvent | UnrecognizedEvent
)

_ERROR_CLASSES: dict[ErrorKind, type[APIError]] = {
    ErrorKind.AUTHENTICATION_FAILED: AuthenticationError,
    ErrorKind.RATE_LIMITED: RateLimitError,
    ErrorKind.TIMEOUT: APITimeoutError,
    ErrorKind.NETWORK_ERROR: NetworkError,
}

# Long-form names used by the OpenAI Responses API.
_TYPE_ALIASES: dict[str, str] = {
    "response.output_item.added": "output_item.added",
    "response.output_text.delta": "output_item.delta",
}


def is_terminal(event: StreamEvent) -> bool:
    return isinstance(event, (Completed, ErrorEvent))


def _kind_for_code(code: str | None) -> ErrorKind:
    if not code:
        return ErrorKind.UNKNOWN
    lowered = code.lower()
    if "rate_limit" in lowered:
        return ErrorKind.RATE_LIMITED
    if "api_key" in lowered or "auth" in lowered:
        return ErrorKind.AUTHENTICATION_FAILED
    if "timeout" in lowered:
        return ErrorKind.TIMEOUT
    return ErrorKind.UNKNOWN


def _optional_index(data: dict[str, Any], *, what: str) -> int | None:
    value = data.get("output_index")
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        raise DecodingError(f"{what}.output_index must be an integer")
    return value


def _error_event(error: Any, *, what: str) -> ErrorEvent:
    data = require_mapping(error, what=what)
    code = optional_str(data, "code", what=what)
    message = optional_str(data, "message", what=what) or "stream reported an error"
    return ErrorEvent(kind=_kind_for_code(code), message=message, code=code)


def decode_event(payload: Any) -> StreamEvent:
    """Materialize one record payload as a typed event.

    Unknown ``type`` values become ``UnrecognizedEvent``; a known type with a
    malformed body raises ``DecodingError``.
    """
    data = require_mapping(payload, what="event")
    raw_type = require_str(data, "type", what="event")
    event_type = _TYPE_ALIASES.get(raw_type, raw_type)

    if event_type == "output_item.added":
        item = require_mapping(data.get("item"), what="event.item")
        item_id = item.get("id")
        return OutputItemAdded(
            item_id=item_id if isinstance(item_id, str) else None,
            item=MappingProxyType(dict(item)),
            output_index=_optional_index(data, what="event"),
        )
    if event_type == "output_item.delta":
        return OutputItemDelta(
            item_id=require_str(data, "item_id", what="event"),
            delta=require_str(data, "delta", what="event"),
            output_index=_optional_index(data, what="event"),
        )
    if event_type == "response.completed":
        return Completed(response=decode_response(data.get("response")))
    if event_type == "error":
        body = data.get("error") if isinstance(data.get("error"), dict) else data
        return _error_event(body, what="event")
    if event_type == "response.failed":
        response = require_mapping(data.get("response"), what="event.response")
        return _error_event(response.get("error") or {}, what="event.response.error")

    log.debug("Unrecognized stream event type: %s", raw_type)
    return UnrecognizedEvent(type=raw_type, payload=MappingProxyType(dict(data)))
