"""Configuration: a frozen, explicit client configuration."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import os
from types import MappingProxyType
from urllib.parse import urlparse

import dotenv

from responses_dsl._http import DEFAULT_ENDPOINT
from responses_dsl.errors import ConfigurationError
from responses_dsl.streaming import DEFAULT_DONE_MARKER, DEFAULT_MAX_BUFFER_BYTES


@dataclass(frozen=True)
class ClientConfig:
    """Immutable transport configuration for ``Client``.

    Nothing is read from the environment here; use ``from_env()`` for that.

    Example:
        config = ClientConfig(api_key="sk-...")
        config = ClientConfig(base_url="http://localhost:8080/v1/responses")
    """

    base_url: str = DEFAULT_ENDPOINT
    api_key: str | None = None
    #: Per-request deadline enforced by the transport; *None* disables it.
    timeout_s: float | None = 60.0
    #: Largest incomplete stream record kept in memory before failing.
    max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES
    #: Payload that ends a stream cleanly.
    done_marker: str = DEFAULT_DONE_MARKER
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate fields early for clear errors."""
        parsed = urlparse(self.base_url) if isinstance(self.base_url, str) else None
        if parsed is None or parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ConfigurationError(
                "base_url",
                f"must be an absolute http(s) URL, got {self.base_url!r}",
                hint="Pass the full endpoint, e.g. https://api.openai.com/v1/responses.",
            )
        if self.api_key is not None and (
            not isinstance(self.api_key, str) or not self.api_key.strip()
        ):
            raise ConfigurationError(
                "api_key", "must be a non-empty string or None"
            )
        if self.timeout_s is not None and (
            isinstance(self.timeout_s, bool)
            or not isinstance(self.timeout_s, (int, float))
            or self.timeout_s <= 0
        ):
            raise ConfigurationError(
                "timeout_s", f"must be > 0 or None, got {self.timeout_s!r}"
            )
        if (
            isinstance(self.max_buffer_bytes, bool)
            or not isinstance(self.max_buffer_bytes, int)
            or self.max_buffer_bytes < 1
        ):
            raise ConfigurationError(
                "max_buffer_bytes", f"must be an integer >= 1, got {self.max_buffer_bytes!r}"
            )
        if not isinstance(self.done_marker, str) or not self.done_marker.strip():
            raise ConfigurationError("done_marker", "must be a non-empty string")
        if not isinstance(self.headers, Mapping):
            raise ConfigurationError("headers", "must be a mapping of header names to values")
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @classmethod
    def from_env(cls, prefix: str = "OPENAI", *, load_env_file: bool = True) -> ClientConfig:
        """Build a config from ``{prefix}_API_KEY`` and ``{prefix}_BASE_URL``.

        Loads a ``.env`` file first unless *load_env_file* is False. Intended for
        applications; the library itself never calls this.
        """
        if load_env_file:
            dotenv.load_dotenv()
        base_url = os.environ.get(f"{prefix}_BASE_URL") or DEFAULT_ENDPOINT
        api_key = os.environ.get(f"{prefix}_API_KEY") or None
        return cls(base_url=base_url, api_key=api_key)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"ClientConfig(base_url={self.base_url!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"timeout_s={self.timeout_s!r})"
        )

    __repr__ = __str__
