"""Exception hierarchy for responses-dsl.

Callers get a closed taxonomy that separates "never sent" (validation) from
"sent but failed" (network/decoding) from "rejected by the server"
(authentication, rate limiting). Every exception carries an ``ErrorKind`` so
recovery code can switch on kind instead of class.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from collections.abc import Iterator


class ErrorKind(str, Enum):
    """Stable error categories surfaced to callers."""

    INVALID_VALUE = "invalid_value"
    AUTHENTICATION_FAILED = "authentication_failed"
    NETWORK_ERROR = "network_error"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    DECODING_ERROR = "decoding_error"
    PROTOCOL_ERROR = "protocol_error"
    UNKNOWN = "unknown"


class ResponsesError(Exception):
    """Base exception for all responses-dsl errors."""

    kind: ClassVar[ErrorKind] = ErrorKind.UNKNOWN

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class InvalidValueError(ResponsesError):
    """A value failed validation before any I/O took place."""

    kind = ErrorKind.INVALID_VALUE

    def __init__(self, field: str, reason: str, *, hint: str | None = None) -> None:
        super().__init__(f"{field}: {reason}", hint=hint)
        self.field = field
        self.reason = reason


class ConfigurationError(InvalidValueError):
    """Client configuration validation failed."""


class APIError(ResponsesError):
    """The request was sent but did not complete successfully.

    A bare ``APIError`` is the catch-all for unclassified failures. Retry
    metadata is attached so caller-side retry layers can decide without
    brittle substring matching; nothing is retried inside this library.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        retry_after_s: float | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after_s = retry_after_s


class AuthenticationError(APIError):
    """No credential was configured, or the endpoint rejected it."""

    kind = ErrorKind.AUTHENTICATION_FAILED


class RateLimitError(APIError):
    """The endpoint signaled throttling (HTTP 429)."""

    kind = ErrorKind.RATE_LIMITED


class NetworkError(APIError):
    """The transport could not complete the round trip."""

    kind = ErrorKind.NETWORK_ERROR


class APITimeoutError(NetworkError):
    """A deadline enforced by the transport was exceeded."""

    kind = ErrorKind.TIMEOUT


class DecodingError(ResponsesError):
    """A wire payload did not match the expected shape."""

    kind = ErrorKind.DECODING_ERROR


class ProtocolError(DecodingError):
    """Streaming framing was malformed or exceeded buffering limits."""

    kind = ErrorKind.PROTOCOL_ERROR


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
