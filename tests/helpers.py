"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: transport doubles and wire builders
shared by the decoder, stream and client suites.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
import json
from typing import Any

import httpx

TEST_ENDPOINT = "https://llm.test/v1/responses"


@dataclass
class RecordingStream(httpx.AsyncByteStream):
    """Response body double that yields fixed chunks and records ``aclose``.

    ``block_after`` makes the stream hang (until cancelled) once that many
    chunks have been produced, simulating a server that stops sending.
    """

    chunks: list[bytes] = field(default_factory=list)
    block_after: int | None = None
    served: int = 0
    closed: bool = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            if self.block_after is not None and self.served >= self.block_after:
                break
            self.served += 1
            yield chunk
        if self.block_after is not None:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class RecordingChunks:
    """Async chunk iterator double for driving ``EventStream`` directly."""

    chunks: list[bytes] = field(default_factory=list)
    block_after: int | None = None
    served: int = 0
    closed: bool = False
    error: Exception | None = None

    def __aiter__(self) -> RecordingChunks:
        return self

    async def __anext__(self) -> bytes:
        if self.block_after is not None and self.served >= self.block_after:
            await asyncio.Event().wait()
        if self.served >= len(self.chunks):
            if self.error is not None:
                raise self.error
            raise StopAsyncIteration
        chunk = self.chunks[self.served]
        self.served += 1
        return chunk

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class FakeEndpoint:
    """``httpx.MockTransport`` handler that records requests and replays a reply."""

    status_code: int = 200
    json_body: Any = None
    stream: RecordingStream | None = None
    headers: dict[str, str] = field(default_factory=dict)
    error: Exception | None = None
    requests: list[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.stream is not None:
            return httpx.Response(
                self.status_code,
                headers={"content-type": "text/event-stream", **self.headers},
                stream=self.stream,
            )
        return httpx.Response(self.status_code, json=self.json_body, headers=self.headers)

    @property
    def last_body(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


def sse(*payloads: Any) -> bytes:
    """Frame payloads as ``data:`` records; strings are sent verbatim."""
    out = []
    for payload in payloads:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        out.append(f"data: {text}\n\n")
    return "".join(out).encode("utf-8")


def response_payload(
    response_id: str = "r1", text: str | None = "hello", **usage: int
) -> dict[str, Any]:
    choices = []
    if text is not None:
        choices.append(
            {
                "message": {"role": "assistant", "content": [{"type": "text", "text": text}]},
                "finish_reason": "stop",
            }
        )
    return {
        "id": response_id,
        "choices": choices,
        "usage": {
            "prompt_tokens": usage.get("prompt_tokens", 5),
            "completion_tokens": usage.get("completion_tokens", 1),
            "total_tokens": usage.get("total_tokens", 6),
        },
    }


def delta(text: str, item_id: str = "msg_1") -> dict[str, Any]:
    return {"type": "output_item.delta", "item_id": item_id, "delta": text}


def completed(response_id: str = "r1", text: str | None = "hello") -> dict[str, Any]:
    return {"type": "response.completed", "response": response_payload(response_id, text)}


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


async def chunks_of(parts: Iterable[bytes]) -> AsyncIterator[bytes]:
    for part in parts:
        yield part
