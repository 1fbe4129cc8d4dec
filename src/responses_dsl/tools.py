"""Tool definitions a model may invoke."""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from responses_dsl._json import require_mapping, require_str
from responses_dsl.errors import DecodingError, InvalidValueError

ParameterSchemaInput = dict[str, Any] | type[BaseModel]


class ToolKind(str, Enum):
    FUNCTION = "function"
    FILE_SEARCH = "file_search"
    WEB_SEARCH_PREVIEW = "web_search_preview"


def to_strict_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Normalize a JSON schema for strict function calling.

    Ensures that for all 'object' types:
    1. additionalProperties is False
    2. All defined properties are listed in 'required', replacing any
       partial list the caller supplied
    """
    normalized = deepcopy(schema)

    def walk(node: Any) -> Any:
        if isinstance(node, list):
            return [walk(item) for item in node]
        if not isinstance(node, dict):
            return node

        updated: dict[str, Any] = {}
        for key, value in node.items():
            updated[key] = walk(value)

        if updated.get("type") == "object" or "properties" in updated:
            properties = updated.get("properties", {})
            if isinstance(properties, dict):
                updated["additionalProperties"] = False
                updated["required"] = list(properties.keys())

        return updated

    return walk(normalized)


def validate_schema(schema: Any, *, field: str) -> None:
    """Check that *schema* is a well-formed object schema for function parameters.

    An empty schema means "no parameters". Only structure is checked; the
    endpoint remains the authority on JSON Schema semantics.
    """
    if not isinstance(schema, dict):
        raise InvalidValueError(field, "parameter schema must be a JSON object")
    if not schema:
        return
    schema_type = schema.get("type")
    if schema_type != "object":
        raise InvalidValueError(
            field, f"parameter schema must have type 'object', got {schema_type!r}"
        )
    properties = schema.get("properties", {})
    if not isinstance(properties, dict):
        raise InvalidValueError(field, "'properties' must be an object")
    for name, sub in properties.items():
        if not isinstance(sub, dict):
            raise InvalidValueError(field, f"property {name!r} must be a schema object")
    required = schema.get("required", [])
    if not isinstance(required, list) or not all(isinstance(r, str) for r in required):
        raise InvalidValueError(field, "'required' must be a list of property names")
    unknown = [r for r in required if r not in properties]
    if unknown:
        raise InvalidValueError(field, f"'required' names undefined properties: {unknown}")


@dataclass(frozen=True)
class FunctionSpec:
    """A callable function the model may invoke.

    ``parameters`` takes a JSON Schema dict or a pydantic ``BaseModel``
    subclass. Strict functions store their schema in strict form.
    """

    name: str
    description: str = ""
    parameters: ParameterSchemaInput = field(default_factory=dict)
    strict: bool = True

    def __post_init__(self) -> None:
        schema = self.parameters
        if isinstance(schema, type) and issubclass(schema, BaseModel):
            schema = schema.model_json_schema()
        if isinstance(schema, dict):
            schema = to_strict_schema(schema) if self.strict and schema else deepcopy(schema)
        object.__setattr__(self, "parameters", schema)

    def validate(self, *, field: str = "function") -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidValueError(f"{field}.name", "must be a non-empty string")
        if not isinstance(self.description, str):
            raise InvalidValueError(f"{field}.description", "must be a string")
        if not isinstance(self.strict, bool):
            raise InvalidValueError(f"{field}.strict", "must be a bool")
        validate_schema(self.parameters, field=f"{field}.parameters")


@dataclass(frozen=True)
class Tool:
    """A tool definition: a function, or a hosted tool with its options."""

    kind: ToolKind
    function: FunctionSpec | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        try:
            kind = ToolKind(self.kind)
        except ValueError:
            raise InvalidValueError(
                "tool.kind",
                f"must be one of {[k.value for k in ToolKind]}, got {self.kind!r}",
            ) from None
        object.__setattr__(self, "kind", kind)
        if not isinstance(self.options, Mapping):
            raise InvalidValueError("tool.options", "must be a mapping")
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    @classmethod
    def from_function(
        cls,
        name: str,
        description: str = "",
        parameters: ParameterSchemaInput | None = None,
        *,
        strict: bool = True,
    ) -> Tool:
        spec = FunctionSpec(
            name=name,
            description=description,
            parameters=parameters if parameters is not None else {},
            strict=strict,
        )
        return cls(ToolKind.FUNCTION, function=spec)

    @classmethod
    def file_search(cls, vector_store_ids: list[str], **options: Any) -> Tool:
        return cls(
            ToolKind.FILE_SEARCH,
            options={"vector_store_ids": list(vector_store_ids), **options},
        )

    @classmethod
    def web_search_preview(cls, **options: Any) -> Tool:
        return cls(ToolKind.WEB_SEARCH_PREVIEW, options=options)

    def validate(self, *, field: str = "tool") -> None:
        if self.kind is ToolKind.FUNCTION:
            if self.function is None:
                raise InvalidValueError(field, "function tools require a FunctionSpec")
            if self.options:
                raise InvalidValueError(field, "function tools take no hosted options")
            self.function.validate(field=f"{field}.function")
            return
        if self.function is not None:
            raise InvalidValueError(field, f"{self.kind.value} tools take no FunctionSpec")
        if "type" in self.options:
            raise InvalidValueError(f"{field}.options", "'type' is reserved")
        if self.kind is ToolKind.FILE_SEARCH:
            ids = self.options.get("vector_store_ids")
            if (
                not isinstance(ids, list)
                or not ids
                or not all(isinstance(i, str) and i for i in ids)
            ):
                raise InvalidValueError(
                    f"{field}.vector_store_ids", "must be a non-empty list of ids"
                )


def encode_tool(tool: Tool) -> dict[str, Any]:
    if tool.kind is ToolKind.FUNCTION and tool.function is not None:
        fn = tool.function
        return {
            "type": "function",
            "name": fn.name,
            "description": fn.description,
            "parameters": deepcopy(fn.parameters),
            "strict": fn.strict,
        }
    return {"type": tool.kind.value, **deepcopy(dict(tool.options))}


def decode_tool(obj: Any) -> Tool:
    data = require_mapping(obj, what="tool")
    tool_type = require_str(data, "type", what="tool")
    if tool_type == ToolKind.FUNCTION.value:
        description = data.get("description", "")
        strict = data.get("strict", True)
        parameters = data.get("parameters", {})
        if not isinstance(description, str) or not isinstance(strict, bool):
            raise DecodingError("tool.description/strict have the wrong type")
        if not isinstance(parameters, dict):
            raise DecodingError("tool.parameters must be an object")
        spec = FunctionSpec(
            name=require_str(data, "name", what="tool"),
            description=description,
            parameters=parameters,
            strict=strict,
        )
        return Tool(ToolKind.FUNCTION, function=spec)
    if tool_type in (ToolKind.FILE_SEARCH.value, ToolKind.WEB_SEARCH_PREVIEW.value):
        options = {k: v for k, v in data.items() if k != "type"}
        return Tool(ToolKind(tool_type), options=options)
    raise DecodingError(f"unknown tool type: {tool_type!r}")
