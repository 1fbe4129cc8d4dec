"""Incremental decoding of server-sent event streams.

Two layers:

- ``EventStreamDecoder`` is a sans-I/O state machine. Bytes go in through
  ``feed()`` in chunks of any size; ``next_event()`` pulls the next typed
  event once a complete record (``data:`` lines closed by a blank line) is
  buffered, or returns ``None`` when it needs more bytes.
- ``EventStream`` drives a decoder from an async byte iterator. It is cold
  (nothing is read until the first ``__anext__``), strictly ordered, and
  cancellable through a ``StreamCancellation`` handle.

Feeding a stream in one chunk or split at any byte boundary yields the same
events, followed by the same error if there is one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Final

from responses_dsl._errors import wrap_transport_error
from responses_dsl._json import load_json_object
from responses_dsl.errors import DecodingError, ProtocolError, ResponsesError
from responses_dsl.events import StreamEvent, decode_event, is_terminal

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable, Iterator

log = logging.getLogger(__name__)

DEFAULT_MAX_BUFFER_BYTES: Final[int] = 1 << 20
DEFAULT_DONE_MARKER: Final[str] = "[DONE]"


class EventStreamDecoder:
    """Frame and decode ``data:`` records from raw bytes.

    Lifecycle: buffering until a terminal event (``response.completed``,
    ``error``), the done marker, or end of input. After that every call is a
    no-op. Any error is terminal too: the decoder drops its buffers and
    reports ``finished``.
    """

    def __init__(
        self,
        *,
        max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
        done_marker: str = DEFAULT_DONE_MARKER,
    ) -> None:
        if max_buffer_bytes < 1:
            raise ValueError("max_buffer_bytes must be >= 1")
        self._max_buffer_bytes = max_buffer_bytes
        self._done_marker = done_marker
        self._buffer = bytearray()
        self._data_lines: list[str] = []
        self._event_name: str | None = None
        # Line bytes (terminators excluded) of the current record already
        # moved out of ``_buffer``; a partial line is measured the same way.
        self._record_bytes = 0
        self._eof = False
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def buffered_bytes(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> None:
        """Append raw bytes; decoding happens in ``next_event()``."""
        if self._finished:
            return
        if self._eof:
            raise ProtocolError("data fed after end of stream")
        self._buffer += chunk

    def close(self) -> None:
        """Signal end of input; a buffered partial record becomes an error."""
        self._eof = True

    def abort(self) -> None:
        """Stop decoding and drop everything buffered."""
        self._finish()

    def next_event(self) -> StreamEvent | None:
        """Return the next decoded event, or ``None`` if more input is needed.

        Raises:
            ProtocolError: Malformed framing, buffer overflow, or a partial
                record at end of input.
            DecodingError: A record payload that is not a valid event.
        """
        while not self._finished:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                if self._eof:
                    self._finish_at_eof()
                    return None
                pending = len(self._buffer) - self._buffer.endswith(b"\r")
                if self._record_bytes + pending > self._max_buffer_bytes:
                    raise self._fail(self._overflow())
                return None
            raw = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            event = self._process_line(raw)
            if event is not None:
                return event
        return None

    def events(self) -> Iterator[StreamEvent]:
        """Yield every event decodable from what is buffered so far."""
        while True:
            event = self.next_event()
            if event is None:
                return
            yield event

    # --- internals ---

    def _overflow(self) -> ProtocolError:
        return ProtocolError(
            f"stream record exceeds {self._max_buffer_bytes} bytes without a terminator",
            hint="Raise ClientConfig(max_buffer_bytes=...) if records are legitimately large.",
        )

    def _finish(self) -> None:
        self._finished = True
        self._buffer.clear()
        self._data_lines.clear()
        self._event_name = None
        self._record_bytes = 0

    def _fail(self, exc: ResponsesError) -> ResponsesError:
        self._finish()
        return exc

    def _finish_at_eof(self) -> None:
        if self._data_lines or self._buffer.strip():
            raise self._fail(
                ProtocolError("stream ended in the middle of a record (missing blank line)")
            )
        self._finish()

    def _process_line(self, raw: bytes) -> StreamEvent | None:
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        if not raw:
            self._record_bytes = 0
            return self._dispatch()

        if self._record_bytes + len(raw) > self._max_buffer_bytes:
            raise self._fail(self._overflow())
        if raw.startswith(b":"):
            # Comments (keep-alives) are dropped and not charged to the record.
            return None
        self._record_bytes += len(raw)
        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise self._fail(ProtocolError(f"stream line is not valid UTF-8: {e}")) from e

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "data":
            self._data_lines.append(value)
        elif name == "event":
            self._event_name = value or None
        elif name not in ("id", "retry"):
            log.debug("Ignoring unknown stream field: %s", name)
        return None

    def _dispatch(self) -> StreamEvent | None:
        if not self._data_lines:
            self._event_name = None
            return None
        payload = "\n".join(self._data_lines)
        event_name = self._event_name
        self._data_lines = []
        self._event_name = None

        if payload.strip() == self._done_marker:
            self._finish()
            return None
        try:
            obj: dict[str, Any] = load_json_object(payload, what="stream record")
            if "type" not in obj and event_name:
                obj = {**obj, "type": event_name}
            event = decode_event(obj)
        except DecodingError as e:
            raise self._fail(e)
        if is_terminal(event):
            self._finish()
        return event


def iter_events(
    chunks: Iterable[bytes],
    *,
    max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
    done_marker: str = DEFAULT_DONE_MARKER,
) -> Iterator[StreamEvent]:
    """Lazily decode a synchronous iterable of byte chunks."""
    decoder = EventStreamDecoder(max_buffer_bytes=max_buffer_bytes, done_marker=done_marker)
    for chunk in chunks:
        decoder.feed(chunk)
        yield from decoder.events()
        if decoder.finished:
            return
    decoder.close()
    yield from decoder.events()


class StreamCancellation:
    """Cancellation handle for one streaming call.

    Create one up front and pass it to ``Client.stream()``, or use the one
    exposed as ``EventStream.cancellation``. ``cancel()`` is safe to call from
    any task, any number of times.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


_CANCELLED: Final = object()


async def _read_chunk(iterator: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


class EventStream:
    """Ordered, lazy, cancellable async sequence of ``StreamEvent``.

    The sequence ends after a terminal event, the done marker, or end of
    input. Transport and decoding failures are raised from ``__anext__``
    once, after the transport is released. After cancellation nothing more is
    yielded or raised.

    Example:
        async with await client.stream(request) as events:
            async for event in events:
                if isinstance(event, OutputItemDelta):
                    print(event.delta, end="")
    """

    def __init__(
        self,
        chunks: AsyncIterable[bytes],
        *,
        decoder: EventStreamDecoder | None = None,
        cancellation: StreamCancellation | None = None,
        on_close: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        self._chunks = chunks
        self._iterator: AsyncIterator[bytes] | None = None
        self._decoder = decoder or EventStreamDecoder()
        self._cancellation = cancellation or StreamCancellation()
        self._on_close = on_close
        self._read_task: asyncio.Future[bytes | None] | None = None
        self._closed = False

    @property
    def cancellation(self) -> StreamCancellation:
        return self._cancellation

    @property
    def closed(self) -> bool:
        """True once the underlying transport has been released."""
        return self._closed

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> StreamEvent:
        try:
            while True:
                if self._closed:
                    raise StopAsyncIteration
                if self._cancellation.cancelled:
                    await self._shutdown()
                    raise StopAsyncIteration
                event = self._decoder.next_event()
                if event is not None:
                    if self._decoder.finished:
                        await self._shutdown()
                    return event
                if self._decoder.finished:
                    await self._shutdown()
                    raise StopAsyncIteration
                chunk = await self._pull()
                if chunk is _CANCELLED:
                    continue
                if chunk is None:
                    self._decoder.close()
                else:
                    self._decoder.feed(chunk)  # type: ignore[arg-type]
        except (StopAsyncIteration, asyncio.CancelledError):
            await self._shutdown()
            raise
        except ResponsesError:
            await self._shutdown()
            raise
        except Exception as e:
            await self._shutdown()
            raise wrap_transport_error(e, phase="stream read") from e

    async def _pull(self) -> bytes | None | object:
        if self._iterator is None:
            self._iterator = self._chunks.__aiter__()
        read = asyncio.ensure_future(_read_chunk(self._iterator))
        self._read_task = read
        waiter = asyncio.ensure_future(self._cancellation.wait())
        try:
            await asyncio.wait({read, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            read.cancel()
            raise
        finally:
            waiter.cancel()
        if self._cancellation.cancelled:
            if not read.done():
                read.cancel()
            return _CANCELLED
        self._read_task = None
        return read.result()

    async def _shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._decoder.abort()

        read, self._read_task = self._read_task, None
        if read is not None:
            if not read.done():
                read.cancel()
                await asyncio.wait({read})
            if not read.cancelled():
                read.exception()

        iterator = self._iterator
        aclose = getattr(iterator, "aclose", None)
        if callable(aclose):
            try:
                await aclose()
            except Exception as exc:
                log.debug("Chunk iterator close failed: %s", exc)
        if self._on_close is not None:
            try:
                await self._on_close()
            except Exception as exc:
                # Cleanup should never mask the primary outcome.
                log.warning("Stream transport cleanup failed: %s", exc)

    async def cancel(self) -> None:
        """Stop the stream now and release the transport.

        Events already returned stay returned; no further event or error is
        produced.
        """
        self._cancellation.cancel()
        await self._shutdown()

    aclose = cancel

    async def collect(self) -> list[StreamEvent]:
        """Drain the remaining events into a list."""
        return [event async for event in self]

    async def __aenter__(self) -> EventStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
