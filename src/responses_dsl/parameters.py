"""Generation parameters.

Every parameter validates its value at construction and never exists in an
invalid state. Applying a list of parameters onto a request is done strictly
in list order:

- Parameters that set the same scalar field overwrite each other, so the one
  applied last wins. There is no merge and no error by default.
- Bag parameters (``StreamOptions``, ``Metadata``, ``ReasoningEffort``) merge
  key-by-key into their field; later values overwrite the same keys.

Pass ``conflict_policy="error"`` to ``apply_parameters`` (or to
``build_request``) to reject a scalar field set more than once instead.

Custom parameters subclass ``Parameter`` and implement ``apply``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import math
from types import MappingProxyType
from typing import Any, ClassVar, Literal, get_args

from responses_dsl.errors import InvalidValueError

ConflictPolicy = Literal["last_wins", "error"]
ToolChoicePolicy = Literal["auto", "none", "required", "function"]
TruncationStrategy = Literal["auto", "disabled"]
Effort = Literal["minimal", "low", "medium", "high"]

_TOOL_CHOICE_POLICIES: frozenset[str] = frozenset(get_args(ToolChoicePolicy))
_TRUNCATION_STRATEGIES: frozenset[str] = frozenset(get_args(TruncationStrategy))
_EFFORTS: frozenset[str] = frozenset(get_args(Effort))

_METADATA_MAX_KEYS = 16
_METADATA_MAX_KEY_LEN = 64
_METADATA_MAX_VALUE_LEN = 512


class Parameter(ABC):
    """A self-validating value that knows how to apply itself onto a request.

    ``field_name`` names the wire field the parameter targets. Bag parameters
    set ``merges = True`` and are exempt from duplicate detection.
    """

    field_name: ClassVar[str]
    merges: ClassVar[bool] = False

    @abstractmethod
    def apply(self, params: dict[str, Any]) -> None:
        """Write this parameter's effect into the accumulator *params*."""


def _check_number(value: Any, *, field: str, lo: float, hi: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidValueError(field, f"must be a number, got {type(value).__name__}")
    if math.isnan(value) or not lo <= value <= hi:
        raise InvalidValueError(field, f"must be in [{lo}, {hi}], got {value}")


def _check_int(value: Any, *, field: str, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidValueError(field, f"must be an integer, got {type(value).__name__}")
    if value < minimum:
        raise InvalidValueError(field, f"must be >= {minimum}, got {value}")


class _ScalarParameter(Parameter):
    value: Any

    def apply(self, params: dict[str, Any]) -> None:
        params[self.field_name] = self.value


@dataclass(frozen=True)
class Temperature(_ScalarParameter):
    """Sampling temperature in ``[0.0, 2.0]``."""

    value: float
    field_name: ClassVar[str] = "temperature"

    def __post_init__(self) -> None:
        _check_number(self.value, field=self.field_name, lo=0.0, hi=2.0)


@dataclass(frozen=True)
class TopP(_ScalarParameter):
    """Nucleus sampling threshold in ``[0.0, 1.0]``."""

    value: float
    field_name: ClassVar[str] = "top_p"

    def __post_init__(self) -> None:
        _check_number(self.value, field=self.field_name, lo=0.0, hi=1.0)


@dataclass(frozen=True)
class MaxOutputTokens(_ScalarParameter):
    """Hard cap on generated tokens (``>= 1``)."""

    value: int
    field_name: ClassVar[str] = "max_output_tokens"

    def __post_init__(self) -> None:
        _check_int(self.value, field=self.field_name, minimum=1)


@dataclass(frozen=True)
class FrequencyPenalty(_ScalarParameter):
    value: float
    field_name: ClassVar[str] = "frequency_penalty"

    def __post_init__(self) -> None:
        _check_number(self.value, field=self.field_name, lo=-2.0, hi=2.0)


@dataclass(frozen=True)
class PresencePenalty(_ScalarParameter):
    value: float
    field_name: ClassVar[str] = "presence_penalty"

    def __post_init__(self) -> None:
        _check_number(self.value, field=self.field_name, lo=-2.0, hi=2.0)


@dataclass(frozen=True)
class MaxToolCalls(_ScalarParameter):
    """Upper bound on built-in tool calls per response (``>= 0``)."""

    value: int
    field_name: ClassVar[str] = "max_tool_calls"

    def __post_init__(self) -> None:
        _check_int(self.value, field=self.field_name, minimum=0)


@dataclass(frozen=True)
class ParallelToolCalls(_ScalarParameter):
    value: bool
    field_name: ClassVar[str] = "parallel_tool_calls"

    def __post_init__(self) -> None:
        if not isinstance(self.value, bool):
            raise InvalidValueError(self.field_name, "must be a bool")


@dataclass(frozen=True)
class Truncation(_ScalarParameter):
    value: TruncationStrategy
    field_name: ClassVar[str] = "truncation"

    def __post_init__(self) -> None:
        if self.value not in _TRUNCATION_STRATEGIES:
            raise InvalidValueError(
                self.field_name,
                f"must be one of {sorted(_TRUNCATION_STRATEGIES)}, got {self.value!r}",
            )


@dataclass(frozen=True)
class ToolChoice(Parameter):
    """Policy governing whether and which tools the model may call.

    Example:
        ToolChoice("required")
        ToolChoice.function("get_weather")
    """

    policy: ToolChoicePolicy
    function_name: str | None = None
    field_name: ClassVar[str] = "tool_choice"

    def __post_init__(self) -> None:
        if self.policy not in _TOOL_CHOICE_POLICIES:
            raise InvalidValueError(
                self.field_name,
                f"must be one of {sorted(_TOOL_CHOICE_POLICIES)}, got {self.policy!r}",
            )
        if self.policy == "function":
            if not isinstance(self.function_name, str) or not self.function_name:
                raise InvalidValueError(
                    self.field_name, "a function policy requires a non-empty function name"
                )
        elif self.function_name is not None:
            raise InvalidValueError(
                self.field_name, "function_name is only valid with policy 'function'"
            )

    @classmethod
    def function(cls, name: str) -> ToolChoice:
        return cls("function", function_name=name)

    def wire_value(self) -> str | dict[str, str]:
        if self.policy == "function":
            return {"type": "function", "name": self.function_name or ""}
        return self.policy

    def apply(self, params: dict[str, Any]) -> None:
        params[self.field_name] = self.wire_value()


class _BagParameter(Parameter):
    entries: Mapping[str, Any]
    merges: ClassVar[bool] = True

    def _freeze_entries(self) -> None:
        if not isinstance(self.entries, Mapping):
            raise InvalidValueError(self.field_name, "must be a mapping")
        for key in self.entries:
            if not isinstance(key, str) or not key:
                raise InvalidValueError(self.field_name, "keys must be non-empty strings")
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    def apply(self, params: dict[str, Any]) -> None:
        existing = params.get(self.field_name)
        merged = dict(existing) if isinstance(existing, Mapping) else {}
        merged.update(self.entries)
        params[self.field_name] = merged


@dataclass(frozen=True)
class StreamOptions(_BagParameter):
    """Opaque options forwarded to the streaming endpoint (e.g. ``include_usage``)."""

    entries: Mapping[str, Any]
    field_name: ClassVar[str] = "stream_options"

    def __post_init__(self) -> None:
        self._freeze_entries()


@dataclass(frozen=True)
class Metadata(_BagParameter):
    """String key/value pairs attached to the stored response."""

    entries: Mapping[str, str]
    field_name: ClassVar[str] = "metadata"

    def __post_init__(self) -> None:
        self._freeze_entries()
        if len(self.entries) > _METADATA_MAX_KEYS:
            raise InvalidValueError(
                self.field_name, f"at most {_METADATA_MAX_KEYS} keys are allowed"
            )
        for key, value in self.entries.items():
            if len(key) > _METADATA_MAX_KEY_LEN:
                raise InvalidValueError(
                    self.field_name, f"key {key[:16]!r}... exceeds {_METADATA_MAX_KEY_LEN} chars"
                )
            if not isinstance(value, str) or len(value) > _METADATA_MAX_VALUE_LEN:
                raise InvalidValueError(
                    self.field_name,
                    f"value for {key!r} must be a string of at most "
                    f"{_METADATA_MAX_VALUE_LEN} chars",
                )


@dataclass(frozen=True)
class ReasoningEffort(Parameter):
    """Reasoning depth for reasoning models; merged into the ``reasoning`` bag."""

    value: Effort
    field_name: ClassVar[str] = "reasoning"
    merges: ClassVar[bool] = True

    def __post_init__(self) -> None:
        if self.value not in _EFFORTS:
            raise InvalidValueError(
                "reasoning.effort", f"must be one of {sorted(_EFFORTS)}, got {self.value!r}"
            )

    def apply(self, params: dict[str, Any]) -> None:
        existing = params.get(self.field_name)
        merged = dict(existing) if isinstance(existing, Mapping) else {}
        merged["effort"] = self.value
        params[self.field_name] = merged


def apply_parameters(
    parameters: Iterable[Parameter],
    *,
    conflict_policy: ConflictPolicy = "last_wins",
) -> dict[str, Any]:
    """Fold *parameters* in order into a fresh wire-field accumulator."""
    if conflict_policy not in ("last_wins", "error"):
        raise InvalidValueError(
            "conflict_policy", f"must be 'last_wins' or 'error', got {conflict_policy!r}"
        )
    params: dict[str, Any] = {}
    seen: set[str] = set()
    for i, parameter in enumerate(parameters):
        if not isinstance(parameter, Parameter):
            raise InvalidValueError(
                f"parameters[{i}]",
                f"expected a Parameter, got {type(parameter).__name__}",
                hint="Wrap raw values, e.g. Temperature(0.7).",
            )
        name = parameter.field_name
        if conflict_policy == "error" and not parameter.merges and name in seen:
            raise InvalidValueError(name, "set more than once")
        seen.add(name)
        parameter.apply(params)
    return params
