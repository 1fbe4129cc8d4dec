"""Fluent request composition.

``RequestBuilder`` records messages, parameters and tools in call order and
hands them to ``build_request`` unchanged, so later parameters override
earlier ones for the same field exactly as in list-based composition.

Example:
    request = (
        RequestBuilder("gpt-4.1-mini")
        .system("You are a concise assistant.")
        .user("Summarize the release notes.")
        .temperature(0.2)
        .max_output_tokens(300)
        .build()
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from responses_dsl.messages import Message, Role
from responses_dsl.parameters import (
    ConflictPolicy,
    MaxOutputTokens,
    Parameter,
    Temperature,
    ToolChoice,
    TopP,
)
from responses_dsl.request import Request, build_request

if TYPE_CHECKING:
    from collections.abc import Iterable

    from responses_dsl.content import ContentPart
    from responses_dsl.tools import Tool


class RequestBuilder:
    """Accumulates request inputs; ``build()`` validates and freezes them."""

    def __init__(self, model: str) -> None:
        self._model = model
        self._messages: list[Message] = []
        self._parameters: list[Parameter] = []
        self._tools: list[Tool] | None = None
        self._stream = False
        self._previous_response_id: str | None = None

    # --- messages ---

    def message(self, message: Message) -> RequestBuilder:
        self._messages.append(message)
        return self

    def messages(self, messages: Iterable[Message]) -> RequestBuilder:
        self._messages.extend(messages)
        return self

    def system(self, *content: str | ContentPart) -> RequestBuilder:
        return self.message(Message.of(Role.SYSTEM, *content))

    def user(self, *content: str | ContentPart) -> RequestBuilder:
        return self.message(Message.of(Role.USER, *content))

    def assistant(self, *content: str | ContentPart) -> RequestBuilder:
        return self.message(Message.of(Role.ASSISTANT, *content))

    def tool_output(self, *content: str | ContentPart) -> RequestBuilder:
        return self.message(Message.of(Role.TOOL, *content))

    # --- parameters ---

    def parameter(self, *parameters: Parameter) -> RequestBuilder:
        self._parameters.extend(parameters)
        return self

    def temperature(self, value: float) -> RequestBuilder:
        return self.parameter(Temperature(value))

    def top_p(self, value: float) -> RequestBuilder:
        return self.parameter(TopP(value))

    def max_output_tokens(self, value: int) -> RequestBuilder:
        return self.parameter(MaxOutputTokens(value))

    def tool_choice(self, choice: ToolChoice) -> RequestBuilder:
        return self.parameter(choice)

    # --- tools & flags ---

    def tool(self, *tools: Tool) -> RequestBuilder:
        if self._tools is None:
            self._tools = []
        self._tools.extend(tools)
        return self

    def streaming(self, enabled: bool = True) -> RequestBuilder:
        self._stream = enabled
        return self

    def previous_response(self, response_id: str) -> RequestBuilder:
        self._previous_response_id = response_id
        return self

    def build(self, *, conflict_policy: ConflictPolicy = "last_wins") -> Request:
        """Validate everything recorded so far and return a new ``Request``.

        The builder stays usable; each call produces an independent request.
        """
        return build_request(
            self._model,
            list(self._messages),
            parameters=list(self._parameters),
            stream=self._stream,
            tools=list(self._tools) if self._tools is not None else None,
            previous_response_id=self._previous_response_id,
            conflict_policy=conflict_policy,
        )
