from __future__ import annotations

import math
import sys
import threading
from dataclasses import dataclass, field
from typing import TextIO

from inferload.metrics import Aggregate, Distribution, OutcomeState, RequestOutcome

RESPONSE_START = "--- RESPONSE START [{index}] ---"
RESPONSE_END = "--- RESPONSE END [{index}] ---"


def _fmt_ms(value: float | None) -> str:
    if value is None or math.isnan(value):
        return "n/a"
    return f"{value:.2f} ms"


def _fmt_rate(part: int, total: int) -> str:
    if total == 0:
        return "n/a"
    return f"{part / total * 100:.1f}%"


def _distribution_lines(title: str, dist: Distribution | None) -> list[str]:
    lines = [f"--- {title} ---"]
    if dist is None:
        lines.append("no samples")
        return lines
    lines.extend(
        [
            f"Samples: {dist.count}",
            f"Min: {_fmt_ms(dist.min_ms)}",
            f"Avg: {_fmt_ms(dist.mean_ms)}",
            f"P50: {_fmt_ms(dist.p50_ms)}",
            f"P90: {_fmt_ms(dist.p90_ms)}",
            f"P95: {_fmt_ms(dist.p95_ms)}",
            f"P99: {_fmt_ms(dist.p99_ms)}",
            f"Max: {_fmt_ms(dist.max_ms)}",
        ]
    )
    return lines


def render_summary(aggregate: Aggregate) -> str:
    lines = ["=== Results ==="]
    if aggregate.cancelled:
        lines.append(f"Run cancelled: {aggregate.total} of {aggregate.requested} attempts recorded")
    lines.append(
        f"Total: {aggregate.total}, Success: {aggregate.success}, Failed: {aggregate.failed}"
    )
    for state in OutcomeState:
        count = aggregate.state_counts.get(state, 0)
        lines.append(f"  {state.value}: {count} ({_fmt_rate(count, aggregate.total)})")
    if aggregate.error_breakdown:
        lines.append("Errors:")
        for label, count in aggregate.error_breakdown.items():
            lines.append(f"  {label}: {count}")
    if aggregate.elapsed_sec is None:
        lines.append("Total time: n/a")
    else:
        lines.append(f"Total time: {aggregate.elapsed_sec:.3f} s")
    lines.append(f"Bytes received: {aggregate.bytes_received}")
    lines.append("")
    lines.extend(_distribution_lines("End-to-End latency (successful)", aggregate.latency))
    if aggregate.ttfb is not None:
        lines.append("")
        lines.extend(_distribution_lines("Time to first byte", aggregate.ttfb))
    lines.append("")
    if math.isnan(aggregate.throughput_rps):
        lines.append("Requests/sec: n/a")
    else:
        lines.append(f"Requests/sec: {aggregate.throughput_rps:.2f}")
    return "\n".join(lines) + "\n"


@dataclass(slots=True)
class ResponsePrinter:
    """Echoes response bodies as they complete, one contiguous block per attempt."""

    stream: TextIO = field(default_factory=lambda: sys.stdout)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def format(self, outcome: RequestOutcome) -> str:
        header = RESPONSE_START.format(index=outcome.index)
        footer = RESPONSE_END.format(index=outcome.index)
        body = outcome.text or ""
        if body and not body.endswith("\n"):
            body += "\n"
        return f"{header} {outcome.label}\n{body}{footer}\n"

    def emit(self, outcome: RequestOutcome) -> None:
        block = self.format(outcome)
        with self._lock:
            self.stream.write(block)
            self.stream.flush()
