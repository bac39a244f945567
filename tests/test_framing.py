from __future__ import annotations

import pytest

from inferload.config import FramingType
from inferload.loadgen.framing import (
    FrameError,
    NdjsonFraming,
    RawFraming,
    SseFraming,
    decoder_for,
)
from inferload.metrics import StreamErrorKind


def _feed_all(decoder, chunks: list[bytes]) -> int:
    frames = sum(decoder.feed(chunk) for chunk in chunks)
    return frames + decoder.close()


def test_raw_framing_counts_non_empty_chunks() -> None:
    assert _feed_all(RawFraming(), [b"abc", b"", b"d"]) == 2


def test_ndjson_frames_split_across_chunks() -> None:
    chunks = [b'{"token": {"text": "He', b'llo"}}\n{"token": ', b'{"text": "!"}}\n', b"\n"]
    assert _feed_all(NdjsonFraming(), chunks) == 2


def test_ndjson_accepts_final_line_without_newline() -> None:
    assert _feed_all(NdjsonFraming(), [b'{"a": 1}\n{"b": 2}']) == 2


def test_ndjson_truncated_final_line() -> None:
    decoder = NdjsonFraming()
    assert decoder.feed(b'{"a": 1}\n{"b": ') == 1
    with pytest.raises(FrameError) as info:
        decoder.close()
    assert info.value.kind is StreamErrorKind.TRUNCATED


def test_ndjson_malformed_line() -> None:
    with pytest.raises(FrameError) as info:
        NdjsonFraming().feed(b"not json\n")
    assert info.value.kind is StreamErrorKind.MALFORMED


def test_sse_events_and_comments() -> None:
    chunks = [
        b": keep-alive\n\n",
        b'data:{"token": {"text": "a"}}\n\n',
        b'event: token\r\ndata: {"token": ',
        b'{"text": "b"}}\r\n\r\n',
        b"data: [DONE]\n\n",
    ]
    assert _feed_all(SseFraming(), chunks) == 3


def test_sse_unterminated_event_is_truncated() -> None:
    decoder = SseFraming()
    assert decoder.feed(b"data: one\n\ndata: tw") == 1
    with pytest.raises(FrameError) as info:
        decoder.close()
    assert info.value.kind is StreamErrorKind.TRUNCATED


def test_sse_plain_data_event_counts_one_frame() -> None:
    assert SseFraming().feed(b"data: {}\n\n") == 1


def test_sse_ignores_unknown_fields_and_colonless_lines() -> None:
    decoder = SseFraming()
    assert decoder.feed(b"garbage line\nfoo: bar\n\n") == 0
    assert decoder.feed(b"x-meta: 1\ndata: {}\n\n") == 1
    assert decoder.close() == 0


def test_sse_undecodable_line_is_malformed() -> None:
    with pytest.raises(FrameError) as info:
        SseFraming().feed(b"data: \xff\xfe\n\n")
    assert info.value.kind is StreamErrorKind.MALFORMED


@pytest.mark.parametrize(
    ("framing", "cls"),
    [(FramingType.RAW, RawFraming), (FramingType.NDJSON, NdjsonFraming), (FramingType.SSE, SseFraming)],
)
def test_decoder_for(framing: FramingType, cls: type) -> None:
    assert isinstance(decoder_for(framing), cls)
