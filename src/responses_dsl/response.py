"""Non-streaming response model and its decoder.

``decode_response`` is the single place a response payload becomes a typed
``Response``; the streaming decoder reuses it for ``response.completed``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from responses_dsl._json import (
    load_json_object,
    optional_str,
    require_int,
    require_list,
    require_mapping,
    require_str,
)
from responses_dsl.errors import DecodingError
from responses_dsl.messages import Message, decode_message, encode_message


@dataclass(frozen=True)
class Usage:
    """Token accounting for one response."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class Choice:
    message: Message
    finish_reason: str | None = None


@dataclass(frozen=True)
class Response:
    """The complete result of a non-streaming request."""

    id: str
    choices: tuple[Choice, ...]
    usage: Usage

    @property
    def first_message(self) -> Message | None:
        return self.choices[0].message if self.choices else None

    @property
    def text(self) -> str:
        """Text of the first choice, or ``""`` when there are no choices."""
        message = self.first_message
        return message.text if message is not None else ""


def _decode_usage(obj: Any) -> Usage:
    if obj is None:
        return Usage()
    data = require_mapping(obj, what="usage")
    values = {
        key: require_int(data, key, what="usage")
        for key in ("prompt_tokens", "completion_tokens", "total_tokens")
    }
    negative = [k for k, v in values.items() if v < 0]
    if negative:
        raise DecodingError(f"usage counts must be >= 0: {negative}")
    return Usage(**values)


def decode_response(obj: Any) -> Response:
    """Decode a response payload (dict or JSON text) into a ``Response``.

    Raises:
        DecodingError: If the payload does not have the expected shape.
    """
    if isinstance(obj, (str, bytes)):
        obj = load_json_object(obj, what="response body")
    data = require_mapping(obj, what="response")
    choices: list[Choice] = []
    for i, raw in enumerate(require_list(data, "choices", what="response")):
        entry = require_mapping(raw, what=f"response.choices[{i}]")
        choices.append(
            Choice(
                message=decode_message(entry.get("message")),
                finish_reason=optional_str(
                    entry, "finish_reason", what=f"response.choices[{i}]"
                ),
            )
        )
    return Response(
        id=require_str(data, "id", what="response"),
        choices=tuple(choices),
        usage=_decode_usage(data.get("usage")),
    )


def encode_response(response: Response) -> dict[str, Any]:
    return {
        "id": response.id,
        "choices": [
            {"message": encode_message(c.message), "finish_reason": c.finish_reason}
            for c in response.choices
        ],
        "usage": {
            "prompt_tokens": response.usage.prompt_tokens,
            "completion_tokens": response.usage.completion_tokens,
            "total_tokens": response.usage.total_tokens,
        },
    }
