"""Mapping of transport failures and HTTP statuses into the error taxonomy.

Transport exceptions come from httpx; everything leaving the client is a
``ResponsesError`` subclass with stable retry metadata.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from responses_dsl._http import AUTH_STATUS_CODES, RETRYABLE_STATUS_CODES
from responses_dsl.errors import (
    APIError,
    APITimeoutError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ResponsesError,
    _walk_exception_chain,
)


def extract_retry_after_s(headers: Any) -> float | None:
    """Return the ``Retry-After`` delay in seconds, when present and numeric."""
    if headers is None:
        return None
    raw: Any = None
    try:
        raw = headers.get("Retry-After")
    except Exception:
        raw = None
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        seconds = float(raw)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _error_detail(body: bytes | str | None) -> str:
    """Pull a human-readable message out of an error body.

    Handles the common ``{"error": {"message": ...}}`` envelope and falls back
    to the raw (truncated) body text.
    """
    if not body:
        return ""
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    try:
        obj = json.loads(text)
    except ValueError:
        return text.strip()[:500]
    if isinstance(obj, dict):
        err = obj.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(err, str):
            return err
        if isinstance(obj.get("message"), str):
            return obj["message"]
    return text.strip()[:500]


def error_for_status(
    status_code: int,
    *,
    headers: Any = None,
    body: bytes | str | None = None,
) -> APIError:
    """Build the typed error for a non-2xx response."""
    detail = _error_detail(body)
    suffix = f": {detail}" if detail else ""
    retry_after_s = extract_retry_after_s(headers)
    retryable = status_code in RETRYABLE_STATUS_CODES or retry_after_s is not None

    if status_code in AUTH_STATUS_CODES:
        return AuthenticationError(
            f"Authentication rejected (status={status_code}){suffix}",
            hint="Check the API key passed in ClientConfig(api_key=...).",
            retryable=False,
            status_code=status_code,
        )
    if status_code == 429:
        return RateLimitError(
            f"Rate limited (status=429){suffix}",
            hint="Back off and retry later; honor retry_after_s when set.",
            retryable=True,
            status_code=status_code,
            retry_after_s=retry_after_s,
        )
    if status_code == 408:
        return APITimeoutError(
            f"Endpoint timed out (status=408){suffix}",
            retryable=True,
            status_code=status_code,
            retry_after_s=retry_after_s,
        )
    return APIError(
        f"Request failed (status={status_code}){suffix}",
        retryable=retryable,
        status_code=status_code,
        retry_after_s=retry_after_s,
    )


def wrap_transport_error(exc: BaseException, *, phase: str) -> ResponsesError:
    """Map an exception raised while talking to the endpoint into the taxonomy."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    # Already classified.
    if isinstance(exc, ResponsesError):
        return exc

    for e in _walk_exception_chain(exc):
        if isinstance(e, httpx.TimeoutException):
            return APITimeoutError(
                f"{phase} timed out: {e}" if str(e) else f"{phase} timed out",
                hint="Increase ClientConfig(timeout_s=...) for long generations.",
                retryable=True,
            )
        if isinstance(e, httpx.TransportError):
            return NetworkError(
                f"{phase} failed: {e}" if str(e) else f"{phase} failed",
                retryable=True,
            )

    cause = str(exc)
    return APIError(
        f"{phase} failed: {cause}" if cause else f"{phase} failed",
        retryable=False,
    )
