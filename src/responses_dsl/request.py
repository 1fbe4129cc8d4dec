"""Request composition, validation and wire encoding."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from copy import deepcopy
from dataclasses import dataclass, field, replace
import json
from types import MappingProxyType
from typing import Any

from responses_dsl._json import (
    load_json_object,
    optional_str,
    require_list,
    require_mapping,
    require_str,
)
from responses_dsl.errors import DecodingError, InvalidValueError
from responses_dsl.messages import Message, decode_message, encode_message
from responses_dsl.parameters import ConflictPolicy, Parameter, apply_parameters
from responses_dsl.tools import Tool, decode_tool, encode_tool

#: Top-level wire keys owned by the request itself; parameters may not set them.
RESERVED_FIELDS: frozenset[str] = frozenset(
    {"model", "input", "stream", "previous_response_id", "tools"}
)


def _validate_model(model: Any) -> None:
    if not isinstance(model, str) or not model.strip():
        raise InvalidValueError(
            "model",
            "must be a non-empty identifier",
            hint="Pass a model name such as 'gpt-4.1-mini'.",
        )


def _validate_messages(
    messages: tuple[Message, ...], previous_response_id: str | None
) -> None:
    if previous_response_id is not None and (
        not isinstance(previous_response_id, str) or not previous_response_id
    ):
        raise InvalidValueError("previous_response_id", "must be a non-empty string")
    for i, m in enumerate(messages):
        if not isinstance(m, Message):
            raise InvalidValueError(
                f"messages[{i}]", f"expected Message, got {type(m).__name__}"
            )
    if not messages and previous_response_id is None:
        raise InvalidValueError(
            "messages",
            "must not be empty",
            hint="Add at least one message or continue with previous_response_id.",
        )


def _validate_parameters(parameters: Mapping[str, Any]) -> None:
    clashing = sorted(RESERVED_FIELDS.intersection(parameters))
    if clashing:
        raise InvalidValueError("parameters", f"may not set reserved fields {clashing}")


def _validate_tools(tools: tuple[Tool, ...] | None) -> None:
    if tools is None:
        return
    for i, t in enumerate(tools):
        if not isinstance(t, Tool):
            raise InvalidValueError(f"tools[{i}]", f"expected Tool, got {type(t).__name__}")
        t.validate(field=f"tools[{i}]")


@dataclass(frozen=True)
class Request:
    """The validated, immutable description of one call to the endpoint.

    Prefer ``build_request`` or ``RequestBuilder``; direct construction runs
    the same checks but takes already-merged ``parameters``.
    """

    model: str
    messages: tuple[Message, ...]
    parameters: Mapping[str, Any] = field(default_factory=dict)
    stream: bool = False
    previous_response_id: str | None = None
    tools: tuple[Tool, ...] | None = None

    def __post_init__(self) -> None:
        messages = tuple(self.messages)
        tools = tuple(self.tools) if self.tools is not None else None
        _validate_model(self.model)
        _validate_messages(messages, self.previous_response_id)
        if not isinstance(self.parameters, Mapping):
            raise InvalidValueError("parameters", "must be a mapping of wire fields")
        _validate_parameters(self.parameters)
        _validate_tools(tools)
        if not isinstance(self.stream, bool):
            raise InvalidValueError("stream", "must be a bool")
        object.__setattr__(self, "messages", messages)
        object.__setattr__(self, "tools", tools)
        object.__setattr__(
            self, "parameters", MappingProxyType(deepcopy(dict(self.parameters)))
        )

    def with_stream(self, stream: bool) -> Request:
        """Return a copy with the stream flag set; ``self`` is unchanged."""
        if stream is self.stream:
            return self
        return replace(self, stream=stream)


def build_request(
    model: str,
    messages: Iterable[Message] = (),
    *,
    parameters: Iterable[Parameter] = (),
    stream: bool = False,
    tools: Iterable[Tool] | None = None,
    previous_response_id: str | None = None,
    conflict_policy: ConflictPolicy = "last_wins",
) -> Request:
    """Validate inputs and compose them into a ``Request``.

    Checks run in a fixed order and the first failure wins: model identifier,
    message list (may be empty only with ``previous_response_id``),
    parameters (applied in list order, last-applied-wins), then tools.
    Nothing is built unless every check passes. No I/O is performed.

    Raises:
        InvalidValueError: On the first failing check.
    """
    _validate_model(model)
    message_tuple = tuple(messages)
    _validate_messages(message_tuple, previous_response_id)
    merged = apply_parameters(parameters, conflict_policy=conflict_policy)
    _validate_parameters(merged)
    tool_tuple = tuple(tools) if tools is not None else None
    _validate_tools(tool_tuple)
    return Request(
        model=model,
        messages=message_tuple,
        parameters=merged,
        stream=stream,
        previous_response_id=previous_response_id,
        tools=tool_tuple,
    )


def encode_request(request: Request) -> dict[str, Any]:
    """Map a request to its JSON wire body."""
    body: dict[str, Any] = {
        "model": request.model,
        "input": [encode_message(m) for m in request.messages],
        "stream": request.stream,
        "previous_response_id": request.previous_response_id,
    }
    body.update(deepcopy(dict(request.parameters)))
    if request.tools is not None:
        body["tools"] = [encode_tool(t) for t in request.tools]
    return body


def request_to_json(request: Request) -> bytes:
    return json.dumps(encode_request(request), ensure_ascii=False).encode("utf-8")


def decode_request(obj: Any) -> Request:
    """Inverse of ``encode_request``; accepts a dict or JSON text."""
    if isinstance(obj, (str, bytes)):
        obj = load_json_object(obj, what="request body")
    data = require_mapping(obj, what="request")
    stream = data.get("stream", False)
    if not isinstance(stream, bool):
        raise DecodingError("request.stream must be a bool")
    tools_raw = data.get("tools")
    tools = (
        tuple(decode_tool(t) for t in require_list(data, "tools", what="request"))
        if tools_raw is not None
        else None
    )
    parameters = {k: v for k, v in data.items() if k not in RESERVED_FIELDS}
    try:
        return Request(
            model=require_str(data, "model", what="request"),
            messages=tuple(
                decode_message(m) for m in require_list(data, "input", what="request")
            ),
            parameters=parameters,
            stream=stream,
            previous_response_id=optional_str(data, "previous_response_id", what="request"),
            tools=tools,
        )
    except InvalidValueError as e:
        raise DecodingError(f"invalid request: {e}") from e
