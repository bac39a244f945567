from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import httpx

from inferload.config import FramingType
from inferload.loadgen.framing import FrameError, decoder_for
from inferload.metrics import StreamErrorKind

Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class StreamResult:
    first_byte_at: float | None
    last_byte_at: float | None
    ended_at: float
    bytes_received: int
    frames_received: int
    text: str | None = None
    error: StreamErrorKind | None = None

    @property
    def completed_at(self) -> float:
        if self.error is None and self.last_byte_at is not None:
            return self.last_byte_at
        return self.ended_at


@dataclass(slots=True)
class StreamConsumer:
    framing: FramingType = FramingType.RAW
    capture_text: bool = False
    clock: Clock = time.perf_counter

    async def consume(self, response: httpx.Response) -> StreamResult:
        """Read a streamed body chunk by chunk, timing the first non-empty chunk."""
        decoder = decoder_for(self.framing)
        body = bytearray() if self.capture_text else None
        first_byte_at: float | None = None
        last_byte_at: float | None = None
        received = 0
        frames = 0
        error: StreamErrorKind | None = None
        try:
            async for chunk in response.aiter_bytes():
                if not chunk:
                    continue
                now = self.clock()
                if first_byte_at is None:
                    first_byte_at = now
                last_byte_at = now
                received += len(chunk)
                if body is not None:
                    body.extend(chunk)
                frames += decoder.feed(chunk)
            frames += decoder.close()
        except FrameError as exc:
            error = exc.kind
        except httpx.RemoteProtocolError:
            error = StreamErrorKind.TRUNCATED
        except (httpx.DecodingError, ValueError):
            error = StreamErrorKind.MALFORMED
        return StreamResult(
            first_byte_at=first_byte_at,
            last_byte_at=last_byte_at,
            ended_at=self.clock(),
            bytes_received=received,
            frames_received=frames,
            text=_decode(body),
            error=error,
        )

    async def read_all(self, response: httpx.Response) -> StreamResult:
        """Buffered read for non-streaming requests; no first-byte time is taken."""
        content = await response.aread()
        now = self.clock()
        return StreamResult(
            first_byte_at=None,
            last_byte_at=now if content else None,
            ended_at=now,
            bytes_received=len(content),
            frames_received=1 if content else 0,
            text=_decode(content) if self.capture_text else None,
        )


def _decode(body: bytes | bytearray | None) -> str | None:
    if body is None:
        return None
    return bytes(body).decode("utf-8", errors="replace")
