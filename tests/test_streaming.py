"""Streaming decoder tests: framing, chunk invariance, and failure modes."""

from __future__ import annotations

import json
import logging

from hypothesis import given, settings
from hypothesis import strategies as st
import pytest

from responses_dsl.errors import DecodingError, ProtocolError, ResponsesError
from responses_dsl.events import (
    Completed,
    ErrorEvent,
    OutputItemAdded,
    OutputItemDelta,
    StreamEvent,
    UnrecognizedEvent,
)
from responses_dsl.streaming import EventStreamDecoder, iter_events
from tests.helpers import completed, delta, split_every, sse

pytestmark = pytest.mark.unit

COMPLETED_SCENARIO = (
    b'data: {"type":"response.completed","response":{"id":"r1","choices":[],'
    b'"usage":{"prompt_tokens":5,"completion_tokens":0,"total_tokens":5}}}\n\n'
)

TYPICAL_STREAM = (
    b": keep-alive\n\n"
    + sse({"type": "output_item.added", "item": {"id": "msg_1", "type": "message"}})
    + b"event: output_item.delta\r\n"
    + b'data: {"item_id": "msg_1",\r\n'
    + b'data:  "delta": "H\xc3\xa9llo"}\r\n\r\n'
    + sse(delta(" world"), {"type": "response.in_progress"}, completed("r1", "Héllo world"))
    + sse("[DONE]")
)


def _decode(chunks: list[bytes], **kwargs) -> tuple[list[StreamEvent], type[Exception] | None]:
    """Run chunks through the decoder, returning events and the error type."""
    events: list[StreamEvent] = []
    try:
        for event in iter_events(chunks, **kwargs):
            events.append(event)
    except ResponsesError as e:
        return events, type(e)
    return events, None


# =============================================================================
# Framing
# =============================================================================


def test_completed_scenario_yields_one_event_and_ends() -> None:
    events, error = _decode([COMPLETED_SCENARIO])

    assert error is None
    assert len(events) == 1
    event = events[0]
    assert isinstance(event, Completed)
    assert event.response.id == "r1"
    assert event.response.choices == ()
    assert event.response.usage.prompt_tokens == 5
    assert event.response.usage.total_tokens == 5


def test_typical_stream_decodes_in_order() -> None:
    events, error = _decode([TYPICAL_STREAM])

    assert error is None
    assert [type(e) for e in events] == [
        OutputItemAdded,
        OutputItemDelta,
        OutputItemDelta,
        UnrecognizedEvent,
        Completed,
    ]
    assert isinstance(events[1], OutputItemDelta)
    assert events[1].delta == "Héllo"
    assert events[-1].response.text == "Héllo world"  # type: ignore[union-attr]


def test_multiline_data_is_joined_with_newlines() -> None:
    """Two ``data:`` lines form one payload joined by a newline."""
    raw = b'data: {"type": "output_item.delta",\ndata: "item_id": "a", "delta": "x"}\n\n'
    events, error = _decode([raw])

    assert error is None
    assert events == [OutputItemDelta(item_id="a", delta="x")]


def test_event_field_supplies_missing_type() -> None:
    raw = b'event: output_item.delta\ndata: {"item_id": "a", "delta": "x"}\n\n'
    events, _ = _decode([raw])
    assert events == [OutputItemDelta(item_id="a", delta="x")]


def test_done_marker_ends_stream_and_ignores_the_rest() -> None:
    raw = sse(delta("a"), "[DONE]", delta("never"))
    events, error = _decode([raw])

    assert error is None
    assert events == [OutputItemDelta(item_id="msg_1", delta="a")]


def test_custom_done_marker() -> None:
    raw = sse(delta("a"), "END", delta("never"))
    events, error = _decode([raw], done_marker="END")

    assert error is None
    assert len(events) == 1


def test_terminal_event_stops_decoding() -> None:
    raw = sse(completed(), delta("after"))
    events, error = _decode([raw])

    assert error is None
    assert [type(e) for e in events] == [Completed]


def test_in_band_error_is_a_terminal_item() -> None:
    raw = sse(delta("a"), {"type": "error", "error": {"code": "server_error", "message": "x"}})
    events, error = _decode([raw])

    assert error is None
    assert isinstance(events[-1], ErrorEvent)


def test_clean_eof_without_terminal_event_ends_quietly() -> None:
    events, error = _decode([sse(delta("a"), delta("b"))])

    assert error is None
    assert len(events) == 2


def test_comments_ids_and_unknown_fields_are_ignored(caplog: pytest.LogCaptureFixture) -> None:
    raw = b": ping\nid: 7\nretry: 1000\nfoo: bar\n" + sse(delta("x", item_id="a"))

    with caplog.at_level(logging.DEBUG, logger="responses_dsl.streaming"):
        events, error = _decode([raw])

    assert error is None
    assert len(events) == 1
    assert "foo" in caplog.text


# =============================================================================
# Failures
# =============================================================================


def test_missing_blank_line_then_close_is_a_protocol_error() -> None:
    raw = b'data: {"type": "output_item.delta", "item_id": "a", "delta": "x"}\n'
    events, error = _decode([raw])

    assert events == []
    assert error is ProtocolError


def test_partial_line_at_close_is_a_protocol_error() -> None:
    events, error = _decode([sse(delta("a")) + b"data: {"])

    assert len(events) == 1
    assert error is ProtocolError


def test_malformed_json_is_a_decoding_error() -> None:
    events, error = _decode([sse(delta("a")) + b"data: {not json}\n\n" + sse(delta("b"))])

    assert len(events) == 1
    assert error is DecodingError


def test_invalid_utf8_is_a_protocol_error() -> None:
    _, error = _decode([b"data: \xff\xfe\n\n"])
    assert error is ProtocolError


def test_oversized_record_is_a_protocol_error() -> None:
    big = json.dumps(delta("x" * 200)).encode()
    events, error = _decode([sse(delta("a")) + b"data: " + big + b"\n\n"], max_buffer_bytes=128)

    assert len(events) == 1
    assert error is ProtocolError


def test_unterminated_flood_overflows_before_close() -> None:
    decoder = EventStreamDecoder(max_buffer_bytes=64)
    decoder.feed(b"data: " + b"x" * 40)
    assert decoder.next_event() is None

    decoder.feed(b"x" * 40)
    with pytest.raises(ProtocolError):
        decoder.next_event()
    assert decoder.finished
    assert decoder.buffered_bytes == 0


def test_back_to_back_keep_alives_do_not_count_toward_the_limit() -> None:
    raw = b": ping\n" * 20 + sse(delta("x"))

    events, error = _decode([raw], max_buffer_bytes=96)

    assert error is None
    assert [e.delta for e in events] == ["x"]  # type: ignore[union-attr]


def test_oversized_comment_line_is_a_protocol_error() -> None:
    _, error = _decode([b":" + b"z" * 100 + b"\n" + sse(delta("x"))], max_buffer_bytes=96)
    assert error is ProtocolError


def test_decoder_is_inert_after_an_error() -> None:
    decoder = EventStreamDecoder()
    decoder.feed(b"data: nope\n\n")
    with pytest.raises(DecodingError):
        decoder.next_event()

    decoder.feed(sse(delta("a")))
    assert decoder.next_event() is None
    assert decoder.buffered_bytes == 0


def test_feed_after_close_is_rejected() -> None:
    decoder = EventStreamDecoder()
    decoder.close()
    with pytest.raises(ProtocolError):
        decoder.feed(b"data: x\n\n")


def test_abort_drops_buffered_bytes() -> None:
    decoder = EventStreamDecoder()
    decoder.feed(b"data: partial")

    decoder.abort()

    assert decoder.finished
    assert decoder.buffered_bytes == 0
    assert decoder.next_event() is None


def test_decoder_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError):
        EventStreamDecoder(max_buffer_bytes=0)


# =============================================================================
# Chunk invariance
# =============================================================================

# Large enough for every well-formed record above, small enough for "overflow".
_LIMIT = 400

_STREAMS = {
    "typical": TYPICAL_STREAM,
    "completed": COMPLETED_SCENARIO,
    "missing_terminator": sse(delta("a")) + b'data: {"type": "output_item.delta"}\n',
    "bad_json": sse(delta("a")) + b"data: {oops\n\n",
    "bad_utf8": sse(delta("a")) + b"data: \xc3(\n\n",
    "overflow": sse(delta("a")) + b"data: " + b"y" * 500 + b"\n\n",
    "keep_alives": b": ping\n" * 80 + sse(delta("a")),
}


@pytest.mark.parametrize("name", sorted(_STREAMS))
def test_every_two_way_split_matches_single_chunk(name: str) -> None:
    data = _STREAMS[name]
    expected = _decode([data], max_buffer_bytes=_LIMIT)

    for i in range(len(data) + 1):
        assert _decode([data[:i], data[i:]], max_buffer_bytes=_LIMIT) == expected, i


@pytest.mark.parametrize("name", sorted(_STREAMS))
def test_byte_at_a_time_matches_single_chunk(name: str) -> None:
    data = _STREAMS[name]
    assert _decode(split_every(data, 1), max_buffer_bytes=_LIMIT) == _decode(
        [data], max_buffer_bytes=_LIMIT
    )


@given(cuts=st.lists(st.integers(min_value=0, max_value=len(TYPICAL_STREAM)), max_size=12))
@settings(max_examples=100, deadline=None, derandomize=True)
def test_arbitrary_chunking_matches_single_chunk(cuts: list[int]) -> None:
    bounds = [0, *sorted(cuts), len(TYPICAL_STREAM)]
    chunks = [TYPICAL_STREAM[a:b] for a, b in zip(bounds, bounds[1:])]

    assert _decode(chunks) == _decode([TYPICAL_STREAM])
