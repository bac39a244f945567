from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class OutcomeState(str, Enum):
    SUCCESS = "success"
    HTTP_ERROR = "http_error"
    TRANSPORT_ERROR = "transport_error"
    STREAM_ERROR = "stream_error"


class TransportErrorKind(str, Enum):
    CONNECT = "connect"
    DNS = "dns"
    TIMEOUT = "timeout"
    RESET = "reset"
    CANCELLED = "cancelled"
    OTHER = "other"


class StreamErrorKind(str, Enum):
    TRUNCATED = "truncated"
    MALFORMED = "malformed"


@dataclass(frozen=True, slots=True)
class RequestOutcome:
    """One completed (or aborted) attempt.

    Timestamps come from the run clock (``time.perf_counter`` by default) and
    are only meaningful relative to each other.
    """

    index: int
    dispatched_at: float
    completed_at: float
    state: OutcomeState
    status_code: int | None = None
    error_kind: TransportErrorKind | StreamErrorKind | None = None
    first_byte_at: float | None = None
    bytes_received: int = 0
    frames_received: int = 0
    text: str | None = None

    @property
    def latency_ms(self) -> float:
        return (self.completed_at - self.dispatched_at) * 1000.0

    @property
    def ttfb_ms(self) -> float | None:
        if self.first_byte_at is None:
            return None
        return (self.first_byte_at - self.dispatched_at) * 1000.0

    @property
    def success(self) -> bool:
        return self.state is OutcomeState.SUCCESS

    @property
    def label(self) -> str:
        if self.state is OutcomeState.HTTP_ERROR:
            return f"{self.state.value}:{self.status_code}"
        if self.error_kind is not None:
            return f"{self.state.value}:{self.error_kind.value}"
        return self.state.value


@dataclass(frozen=True, slots=True)
class Distribution:
    count: int
    min_ms: float
    max_ms: float
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float
    p99_ms: float


@dataclass(frozen=True, slots=True)
class Aggregate:
    requested: int
    total: int
    state_counts: Mapping[OutcomeState, int]
    error_breakdown: Mapping[str, int]
    latency: Distribution | None
    ttfb: Distribution | None
    elapsed_sec: float | None
    throughput_rps: float
    bytes_received: int = 0
    cancelled: bool = False

    @property
    def success(self) -> int:
        return self.state_counts.get(OutcomeState.SUCCESS, 0)

    @property
    def failed(self) -> int:
        return self.total - self.success

    @property
    def error_rate(self) -> float:
        if self.total == 0:
            return math.nan
        return self.failed / self.total

    def to_row(self) -> dict[str, Any]:
        """Flatten into a single storage/comparison row."""
        row: dict[str, Any] = {
            "requested": self.requested,
            "total": self.total,
            "success": self.success,
            "http_errors": self.state_counts.get(OutcomeState.HTTP_ERROR, 0),
            "transport_errors": self.state_counts.get(OutcomeState.TRANSPORT_ERROR, 0),
            "stream_errors": self.state_counts.get(OutcomeState.STREAM_ERROR, 0),
            "error_rate": self.error_rate,
            "elapsed_sec": self.elapsed_sec,
            "throughput_rps": self.throughput_rps,
            "bytes_received": self.bytes_received,
            "cancelled": self.cancelled,
        }
        for prefix, dist in (("latency", self.latency), ("ttfb", self.ttfb)):
            for name in ("min", "max", "mean", "p50", "p90", "p95", "p99"):
                row[f"{prefix}_{name}_ms"] = getattr(dist, f"{name}_ms") if dist else None
        return row
