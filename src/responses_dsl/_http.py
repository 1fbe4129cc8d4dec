"""Small HTTP-related constants shared across responses-dsl.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

# Statuses worth a retry by a caller-side policy.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})

AUTH_STATUS_CODES: frozenset[int] = frozenset({401, 403})

DEFAULT_ENDPOINT = "https://api.openai.com/v1/responses"
