"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, and a client wired to
a mock transport. Fixtures in the isolation and logging sections are autouse.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import suppress
import logging
import os
from typing import Any

import httpx
import pytest

from responses_dsl import Client, ClientConfig
from tests.helpers import TEST_ENDPOINT, FakeEndpoint, response_payload

# =============================================================================
# Transport Fixtures
# =============================================================================


@pytest.fixture
def endpoint() -> FakeEndpoint:
    """Endpoint double that answers every request with one response body."""
    return FakeEndpoint(json_body=response_payload())


@pytest.fixture
def make_client() -> Callable[..., Client]:
    """Factory for clients wired to a ``FakeEndpoint`` through MockTransport."""

    def _make(handler: FakeEndpoint, **config: Any) -> Client:
        config.setdefault("base_url", TEST_ENDPOINT)
        config.setdefault("api_key", "sk-test")
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return Client(ClientConfig(**config), http_client=http)

    return _make


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(monkeypatch):
    """Clear OPENAI_* env vars to prevent test pollution."""
    for key in list(os.environ.keys()):
        if key.startswith("OPENAI_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
