"""responses-dsl: a typed request DSL and streaming client for Responses-style APIs.

Public API:
    - Message, user/system/assistant/tool: conversation turns
    - Temperature, TopP, MaxOutputTokens, ...: validated request parameters
    - Tool, FunctionSpec: tool descriptions
    - build_request(), RequestBuilder: validated, immutable requests
    - Conversation: caller-owned turn log
    - Client, ClientConfig: transport
    - EventStream, StreamCancellation: streaming results
"""

from __future__ import annotations

import logging

from responses_dsl.builder import RequestBuilder
from responses_dsl.client import Client
from responses_dsl.config import ClientConfig
from responses_dsl.content import (
    ContentPart,
    FilePart,
    ImagePart,
    TextPart,
    decode_part,
    encode_part,
)
from responses_dsl.conversation import Conversation
from responses_dsl.errors import (
    APIError,
    APITimeoutError,
    AuthenticationError,
    ConfigurationError,
    DecodingError,
    ErrorKind,
    InvalidValueError,
    NetworkError,
    ProtocolError,
    RateLimitError,
    ResponsesError,
)
from responses_dsl.events import (
    Completed,
    ErrorEvent,
    OutputItemAdded,
    OutputItemDelta,
    StreamEvent,
    UnrecognizedEvent,
    decode_event,
)
from responses_dsl.messages import (
    Message,
    Role,
    assistant,
    decode_message,
    encode_message,
    system,
    tool,
    user,
)
from responses_dsl.parameters import (
    FrequencyPenalty,
    MaxOutputTokens,
    MaxToolCalls,
    Metadata,
    ParallelToolCalls,
    Parameter,
    PresencePenalty,
    ReasoningEffort,
    StreamOptions,
    Temperature,
    ToolChoice,
    TopP,
    Truncation,
    apply_parameters,
)
from responses_dsl.request import (
    Request,
    build_request,
    decode_request,
    encode_request,
)
from responses_dsl.response import Choice, Response, Usage, decode_response
from responses_dsl.streaming import (
    EventStream,
    EventStreamDecoder,
    StreamCancellation,
    iter_events,
)
from responses_dsl.tools import FunctionSpec, Tool, ToolKind, decode_tool, encode_tool

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("responses-dsl")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("responses_dsl").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "APITimeoutError",
    "AuthenticationError",
    "Choice",
    "Client",
    "ClientConfig",
    "Completed",
    "ConfigurationError",
    "ContentPart",
    "Conversation",
    "DecodingError",
    "ErrorEvent",
    "ErrorKind",
    "EventStream",
    "EventStreamDecoder",
    "FilePart",
    "FrequencyPenalty",
    "FunctionSpec",
    "ImagePart",
    "InvalidValueError",
    "MaxOutputTokens",
    "MaxToolCalls",
    "Message",
    "Metadata",
    "NetworkError",
    "OutputItemAdded",
    "OutputItemDelta",
    "ParallelToolCalls",
    "Parameter",
    "PresencePenalty",
    "ProtocolError",
    "RateLimitError",
    "ReasoningEffort",
    "Request",
    "RequestBuilder",
    "Response",
    "ResponsesError",
    "Role",
    "StreamCancellation",
    "StreamEvent",
    "StreamOptions",
    "Temperature",
    "TextPart",
    "Tool",
    "ToolChoice",
    "ToolKind",
    "TopP",
    "Truncation",
    "UnrecognizedEvent",
    "Usage",
    "apply_parameters",
    "assistant",
    "build_request",
    "decode_event",
    "decode_message",
    "decode_part",
    "decode_request",
    "decode_response",
    "decode_tool",
    "encode_message",
    "encode_part",
    "encode_request",
    "encode_tool",
    "iter_events",
    "system",
    "tool",
    "user",
]
