"""Messages: a role plus one or more content parts."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from responses_dsl._json import require_mapping, require_str
from responses_dsl.content import (
    ContentPart,
    TextPart,
    as_part,
    decode_part,
    encode_part,
)
from responses_dsl.errors import DecodingError, InvalidValueError


class Role(str, Enum):
    """Author of a message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class Message:
    """An immutable conversational turn.

    ``content`` is stored as a tuple, so a message can be shared between a
    conversation log and any number of requests without aliasing hazards.
    """

    role: Role
    content: tuple[ContentPart, ...]

    def __post_init__(self) -> None:
        try:
            role = Role(self.role)
        except ValueError:
            raise InvalidValueError(
                "message.role",
                f"must be one of {[r.value for r in Role]}, got {self.role!r}",
            ) from None
        object.__setattr__(self, "role", role)

        if isinstance(self.content, (str, TextPart)) or not isinstance(
            self.content, Iterable
        ):
            raise InvalidValueError(
                "message.content", "must be a sequence of content parts"
            )
        parts = tuple(as_part(p) for p in self.content)
        if not parts:
            raise InvalidValueError("message.content", "must not be empty")
        object.__setattr__(self, "content", parts)

    @classmethod
    def of(cls, role: Role | str, *content: str | ContentPart) -> Message:
        """Build a message from strings and/or content parts."""
        return cls(role=role, content=content)  # type: ignore[arg-type]

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.content if isinstance(p, TextPart))

    def with_role(self, role: Role | str) -> Message:
        return replace(self, role=role)


def system(*content: str | ContentPart) -> Message:
    """Shorthand for ``Message.of(Role.SYSTEM, ...)``."""
    return Message.of(Role.SYSTEM, *content)


def user(*content: str | ContentPart) -> Message:
    """Shorthand for ``Message.of(Role.USER, ...)``."""
    return Message.of(Role.USER, *content)


def assistant(*content: str | ContentPart) -> Message:
    """Shorthand for ``Message.of(Role.ASSISTANT, ...)``."""
    return Message.of(Role.ASSISTANT, *content)


def tool(*content: str | ContentPart) -> Message:
    """Shorthand for ``Message.of(Role.TOOL, ...)``."""
    return Message.of(Role.TOOL, *content)


def encode_message(message: Message) -> dict[str, Any]:
    return {
        "role": message.role.value,
        "content": [encode_part(p) for p in message.content],
    }


def decode_message(obj: Any) -> Message:
    """Inverse of ``encode_message``.

    A bare string ``content`` (as some endpoints return for assistant turns)
    is accepted and decoded as a single text part.
    """
    data = require_mapping(obj, what="message")
    role = require_str(data, "role", what="message")
    raw_content = data.get("content")
    if isinstance(raw_content, str):
        parts: list[ContentPart] = [TextPart(raw_content)] if raw_content else []
    elif isinstance(raw_content, list):
        parts = [decode_part(p) for p in raw_content]
    else:
        raise DecodingError("message.content must be a string or an array")
    try:
        return Message(role=role, content=tuple(parts))  # type: ignore[arg-type]
    except InvalidValueError as e:
        raise DecodingError(f"invalid message: {e}") from e
