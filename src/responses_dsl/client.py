"""Client orchestrator: executes requests over HTTP.

The client holds only read-only configuration plus a connection pool, so one
instance can serve many concurrent calls. Nothing is retried here; retry and
backoff belong to the caller, guided by ``APIError.retryable``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from responses_dsl._errors import error_for_status, wrap_transport_error
from responses_dsl.config import ClientConfig
from responses_dsl.errors import AuthenticationError
from responses_dsl.messages import user
from responses_dsl.request import build_request, request_to_json
from responses_dsl.response import Response, decode_response
from responses_dsl.streaming import EventStream, EventStreamDecoder, StreamCancellation

if TYPE_CHECKING:
    from collections.abc import Iterable

    from responses_dsl.content import ContentPart
    from responses_dsl.parameters import Parameter
    from responses_dsl.request import Request

log = logging.getLogger(__name__)


class Client:
    """Async client for a Responses-style inference endpoint.

    Example:
        async with Client(ClientConfig(api_key="sk-...")) as client:
            response = await client.respond(request)
            print(response.text)

    A caller-supplied ``http_client`` is used as-is and never closed here.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_s)
        )

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def has_authentication(self) -> bool:
        return self._config.has_api_key

    def validate_authentication(self) -> None:
        """Raise ``AuthenticationError`` when no credential is configured."""
        if not self.has_authentication:
            raise AuthenticationError(
                "No API key configured",
                hint="Pass ClientConfig(api_key=...) or use ClientConfig.from_env().",
                retryable=False,
            )

    def _headers(self, *, stream: bool) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        headers.update(self._config.headers)
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers

    def _build_http_request(self, request: Request) -> httpx.Request:
        return self._http.build_request(
            "POST",
            self._config.base_url,
            content=request_to_json(request),
            headers=self._headers(stream=request.stream),
        )

    async def respond(self, request: Request) -> Response:
        """Execute *request* as one round trip and decode the body.

        The request is sent with ``stream`` false regardless of its flag.

        Raises:
            AuthenticationError: The endpoint rejected the credential.
            RateLimitError: The endpoint signaled throttling.
            APITimeoutError: The transport deadline was exceeded.
            NetworkError: The round trip could not complete.
            DecodingError: The body did not match the response shape.
            APIError: Any other non-2xx status or unclassified failure.
        """
        request = request.with_stream(False)
        http_request = self._build_http_request(request)
        log.debug(
            "POST %s model=%s messages=%d stream=false",
            http_request.url,
            request.model,
            len(request.messages),
        )
        try:
            http_response = await self._http.send(http_request)
        except Exception as e:
            raise wrap_transport_error(e, phase="request") from e

        log.debug("Response status=%s", http_response.status_code)
        if not http_response.is_success:
            raise error_for_status(
                http_response.status_code,
                headers=http_response.headers,
                body=http_response.content,
            )
        return decode_response(http_response.content)

    async def stream(
        self,
        request: Request,
        *,
        cancellation: StreamCancellation | None = None,
    ) -> EventStream:
        """Open a streaming call and return its event sequence.

        Connection and status failures raise here. Failures after the stream
        is open are raised while iterating the returned ``EventStream``.
        """
        request = request.with_stream(True)
        http_request = self._build_http_request(request)
        log.debug(
            "POST %s model=%s messages=%d stream=true",
            http_request.url,
            request.model,
            len(request.messages),
        )
        try:
            http_response = await self._http.send(http_request, stream=True)
        except Exception as e:
            raise wrap_transport_error(e, phase="stream open") from e

        log.debug("Stream status=%s", http_response.status_code)
        if not http_response.is_success:
            try:
                # Read the body first so the error carries the endpoint's message.
                body = await http_response.aread()
            except httpx.HTTPError as e:
                log.debug("Could not read error body: %s", e)
                body = b""
            finally:
                await http_response.aclose()
            raise error_for_status(
                http_response.status_code,
                headers=http_response.headers,
                body=body,
            )

        decoder = EventStreamDecoder(
            max_buffer_bytes=self._config.max_buffer_bytes,
            done_marker=self._config.done_marker,
        )
        return EventStream(
            http_response.aiter_bytes(),
            decoder=decoder,
            cancellation=cancellation,
            on_close=http_response.aclose,
        )

    async def chat(
        self,
        model: str,
        *content: str | ContentPart,
        parameters: Iterable[Parameter] = (),
    ) -> Response:
        """Send one user turn and return the response."""
        return await self.respond(
            build_request(model, [user(*content)], parameters=parameters)
        )

    async def aclose(self) -> None:
        """Close the connection pool when this client created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
