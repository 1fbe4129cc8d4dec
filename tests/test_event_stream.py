"""EventStream lifecycle tests: laziness, cancellation, and transport release."""

from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from responses_dsl.errors import NetworkError, ProtocolError
from responses_dsl.events import Completed, OutputItemDelta
from responses_dsl.streaming import EventStream, EventStreamDecoder, StreamCancellation
from tests.helpers import RecordingChunks, chunks_of, completed, delta, sse

pytestmark = pytest.mark.unit


class CloseRecorder:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self.error = error

    async def __call__(self) -> None:
        self.calls += 1
        if self.error is not None:
            raise self.error


def _delta_chunks(n: int) -> list[bytes]:
    return [sse(delta(str(i))) for i in range(n)]


@pytest.mark.asyncio
async def test_stream_is_cold_until_first_pull() -> None:
    chunks = RecordingChunks(_delta_chunks(3))
    stream = EventStream(chunks)

    assert chunks.served == 0
    first = await stream.__anext__()

    assert isinstance(first, OutputItemDelta)
    assert chunks.served == 1
    await stream.aclose()


@pytest.mark.asyncio
async def test_events_arrive_in_wire_order() -> None:
    stream = EventStream(RecordingChunks(_delta_chunks(5)))

    events = await stream.collect()

    assert [e.delta for e in events] == ["0", "1", "2", "3", "4"]  # type: ignore[union-attr]
    assert stream.closed


@pytest.mark.asyncio
@pytest.mark.parametrize("n", [0, 1, 3])
async def test_cancel_after_n_events_yields_exactly_n(n: int) -> None:
    chunks = RecordingChunks(_delta_chunks(6))
    on_close = CloseRecorder()
    stream = EventStream(chunks, on_close=on_close)

    received = []
    async for event in stream:
        if len(received) == n:
            break
        received.append(event)
    await stream.cancel()
    received.extend([event async for event in stream])

    assert len(received) == n
    assert chunks.closed is True
    assert on_close.calls == 1
    assert stream.cancellation.cancelled


@pytest.mark.asyncio
async def test_cancel_from_another_task_unblocks_a_pending_read() -> None:
    chunks = RecordingChunks(_delta_chunks(1), block_after=1)
    on_close = CloseRecorder()
    token = StreamCancellation()
    stream = EventStream(chunks, cancellation=token, on_close=on_close)
    first_seen = asyncio.Event()

    async def consume() -> list:
        received = []
        async for event in stream:
            received.append(event)
            first_seen.set()
        return received

    task = asyncio.create_task(consume())
    await first_seen.wait()
    await asyncio.sleep(0.01)
    assert not task.done()

    token.cancel()
    received = await asyncio.wait_for(task, timeout=1.0)

    assert len(received) == 1
    assert chunks.closed is True
    assert on_close.calls == 1


@pytest.mark.asyncio
async def test_cancel_before_start_yields_nothing() -> None:
    chunks = RecordingChunks(_delta_chunks(2))
    token = StreamCancellation()
    token.cancel()
    stream = EventStream(chunks, cancellation=token)

    assert await stream.collect() == []
    assert chunks.served == 0
    assert stream.closed


@pytest.mark.asyncio
async def test_cancel_is_idempotent() -> None:
    on_close = CloseRecorder()
    stream = EventStream(RecordingChunks(_delta_chunks(2)), on_close=on_close)

    await stream.cancel()
    await stream.cancel()
    await stream.aclose()

    assert on_close.calls == 1


@pytest.mark.asyncio
async def test_terminal_event_releases_transport_immediately() -> None:
    chunks = RecordingChunks([sse(delta("a"), completed()), sse(delta("never"))])
    on_close = CloseRecorder()
    stream = EventStream(chunks, on_close=on_close)

    first = await stream.__anext__()
    last = await stream.__anext__()

    assert isinstance(first, OutputItemDelta)
    assert isinstance(last, Completed)
    assert stream.closed
    assert on_close.calls == 1
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


@pytest.mark.asyncio
async def test_transport_failure_mid_stream_is_raised_after_cleanup() -> None:
    chunks = RecordingChunks(_delta_chunks(1), error=httpx.ReadError("connection reset"))
    on_close = CloseRecorder()
    stream = EventStream(chunks, on_close=on_close)

    first = await stream.__anext__()
    with pytest.raises(NetworkError) as exc:
        await stream.__anext__()

    assert isinstance(first, OutputItemDelta)
    assert exc.value.retryable is True
    assert chunks.closed is True
    assert on_close.calls == 1
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


@pytest.mark.asyncio
async def test_framing_error_ends_the_sequence() -> None:
    stream = EventStream(chunks_of([sse(delta("a")), b"data: {"]))

    received = []
    with pytest.raises(ProtocolError):
        async for event in stream:
            received.append(event)

    assert len(received) == 1
    assert stream.closed


@pytest.mark.asyncio
async def test_decoder_limits_apply_to_the_stream() -> None:
    decoder = EventStreamDecoder(max_buffer_bytes=16)
    stream = EventStream(chunks_of([b"data: " + b"x" * 64]), decoder=decoder)

    with pytest.raises(ProtocolError):
        await stream.collect()


@pytest.mark.asyncio
async def test_context_manager_releases_transport() -> None:
    chunks = RecordingChunks(_delta_chunks(3))

    async with EventStream(chunks) as stream:
        await stream.__anext__()

    assert chunks.closed is True
    assert stream.closed


@pytest.mark.asyncio
async def test_cleanup_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    on_close = CloseRecorder(error=RuntimeError("socket already gone"))
    stream = EventStream(RecordingChunks(_delta_chunks(1)), on_close=on_close)

    with caplog.at_level(logging.WARNING, logger="responses_dsl.streaming"):
        events = await stream.collect()

    assert len(events) == 1
    assert "socket already gone" in caplog.text


@pytest.mark.asyncio
async def test_task_cancellation_propagates_and_releases_transport() -> None:
    chunks = RecordingChunks(_delta_chunks(1), block_after=1)
    on_close = CloseRecorder()
    stream = EventStream(chunks, on_close=on_close)
    first_seen = asyncio.Event()

    async def consume() -> None:
        async for _ in stream:
            first_seen.set()

    task = asyncio.create_task(consume())
    await first_seen.wait()
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert chunks.closed is True
    assert on_close.calls == 1
