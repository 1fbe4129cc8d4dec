"""Conversation: a caller-owned, append-only message log."""

from __future__ import annotations

from typing import TYPE_CHECKING

from responses_dsl.errors import InvalidValueError
from responses_dsl.messages import Message, Role
from responses_dsl.request import Request, build_request

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from responses_dsl.content import ContentPart
    from responses_dsl.parameters import ConflictPolicy, Parameter
    from responses_dsl.response import Response
    from responses_dsl.tools import Tool


class Conversation:
    """An ordered log of turns used to build successive requests.

    The log only grows. Messages are immutable, so ``generate_request``
    snapshots the log cheaply and later appends never reach a request that
    was already built. Not safe for concurrent mutation; callers bound its
    length themselves.

    Example:
        convo = Conversation()
        convo.append_system("You are a patient tutor.")
        convo.append_user("What is a monad?")
        response = await client.respond(convo.generate_request("gpt-4.1-mini"))
        convo.append_response(response)
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = []
        self._last_response_id: str | None = None
        for message in messages:
            self.append(message)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    @property
    def messages(self) -> tuple[Message, ...]:
        """Snapshot of the log."""
        return tuple(self._messages)

    @property
    def last_response_id(self) -> str | None:
        """Id of the most recent response passed to ``append_response``."""
        return self._last_response_id

    def append(self, message: Message) -> Message:
        if not isinstance(message, Message):
            raise InvalidValueError(
                "message", f"expected Message, got {type(message).__name__}"
            )
        self._messages.append(message)
        return message

    def append_system(self, *content: str | ContentPart) -> Message:
        return self.append(Message.of(Role.SYSTEM, *content))

    def append_user(self, *content: str | ContentPart) -> Message:
        return self.append(Message.of(Role.USER, *content))

    def append_assistant(self, *content: str | ContentPart) -> Message:
        return self.append(Message.of(Role.ASSISTANT, *content))

    def append_tool(self, *content: str | ContentPart) -> Message:
        return self.append(Message.of(Role.TOOL, *content))

    def append_response(self, response: Response) -> Message:
        """Append the first choice of *response* as an assistant turn."""
        message = response.first_message
        if message is None:
            raise InvalidValueError(
                "response.choices",
                "response has no choices to append",
                hint="Check finish_reason on the response before appending.",
            )
        appended = self.append(message.with_role(Role.ASSISTANT))
        self._last_response_id = response.id
        return appended

    def generate_request(
        self,
        model: str,
        parameters: Iterable[Parameter] = (),
        *,
        stream: bool = False,
        tools: Iterable[Tool] | None = None,
        previous_response_id: str | None = None,
        conflict_policy: ConflictPolicy = "last_wins",
    ) -> Request:
        """Build a request from a snapshot of the current log.

        The conversation is not consumed and stays usable afterwards.
        """
        return build_request(
            model,
            self.messages,
            parameters=parameters,
            stream=stream,
            tools=tools,
            previous_response_id=previous_response_id,
            conflict_policy=conflict_policy,
        )
