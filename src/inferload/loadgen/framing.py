"""Incremental frame counting for streamed response bodies.

A decoder is fed raw body chunks as they arrive and reports how many
complete frames each chunk finished. ``close`` is called once the peer has
closed the body; anything left half-delivered at that point is a truncated
stream.
"""

from __future__ import annotations

import json
from typing import Protocol

from inferload.config import FramingType
from inferload.metrics import StreamErrorKind

SSE_FIELDS = frozenset({b"data", b"event", b"id", b"retry"})


class FrameError(Exception):
    def __init__(self, kind: StreamErrorKind, detail: str) -> None:
        super().__init__(f"{kind.value}: {detail}")
        self.kind = kind


class FrameDecoder(Protocol):
    def feed(self, chunk: bytes) -> int:
        ...

    def close(self) -> int:
        ...


class RawFraming:
    """Every non-empty transport chunk counts as one frame."""

    def feed(self, chunk: bytes) -> int:
        return 1 if chunk else 0

    def close(self) -> int:
        return 0


class _LineBuffer:
    def __init__(self) -> None:
        self._pending = bytearray()

    def lines(self, chunk: bytes) -> list[bytes]:
        self._pending.extend(chunk)
        *complete, rest = self._pending.split(b"\n")
        self._pending = bytearray(rest)
        return [bytes(line.rstrip(b"\r")) for line in complete]

    def remainder(self) -> bytes:
        rest = bytes(self._pending)
        self._pending.clear()
        return rest


class NdjsonFraming:
    """One JSON document per line; blank lines are ignored."""

    def __init__(self) -> None:
        self._buffer = _LineBuffer()

    def feed(self, chunk: bytes) -> int:
        frames = 0
        for line in self._buffer.lines(chunk):
            if line.strip():
                _require_json(line)
                frames += 1
        return frames

    def close(self) -> int:
        rest = self._buffer.remainder()
        if not rest.strip():
            return 0
        try:
            json.loads(rest)
        except ValueError as exc:
            raise FrameError(StreamErrorKind.TRUNCATED, f"partial line {rest[:80]!r}") from exc
        return 1


class SseFraming:
    """Server-sent events: field lines terminated by a blank line.

    Unknown fields are ignored as the event-stream format requires; only
    lines that are not valid UTF-8 make the stream malformed.
    """

    def __init__(self) -> None:
        self._buffer = _LineBuffer()
        self._fields = 0

    def feed(self, chunk: bytes) -> int:
        frames = 0
        for line in self._buffer.lines(chunk):
            if not line:
                if self._fields:
                    frames += 1
                    self._fields = 0
                continue
            if line.startswith(b":"):
                continue
            try:
                line.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise FrameError(StreamErrorKind.MALFORMED, f"undecodable line {line[:80]!r}") from exc
            if line.split(b":", 1)[0] in SSE_FIELDS:
                self._fields += 1
        return frames

    def close(self) -> int:
        rest = self._buffer.remainder()
        if rest.strip() or self._fields:
            raise FrameError(StreamErrorKind.TRUNCATED, "event not terminated by a blank line")
        return 0


def decoder_for(framing: FramingType) -> FrameDecoder:
    if framing is FramingType.RAW:
        return RawFraming()
    if framing is FramingType.NDJSON:
        return NdjsonFraming()
    if framing is FramingType.SSE:
        return SseFraming()
    msg = f"Unsupported framing: {framing}"
    raise ValueError(msg)


def _require_json(line: bytes) -> None:
    try:
        json.loads(line)
    except ValueError as exc:
        raise FrameError(StreamErrorKind.MALFORMED, f"invalid JSON line {line[:80]!r}") from exc
