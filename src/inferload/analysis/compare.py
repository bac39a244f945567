from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class Regression:
    metric: str
    delta_pct: float
    message: str


def _value(row: Mapping[str, Any], key: str) -> float | None:
    value = row.get(key)
    if value is None:
        return None
    value = float(value)
    if math.isnan(value):
        return None
    return value


def _increase(base: Mapping[str, Any], candidate: Mapping[str, Any], key: str) -> float | None:
    base_value = _value(base, key)
    cand_value = _value(candidate, key)
    if base_value is None or cand_value is None or base_value <= 0:
        return None
    return (cand_value - base_value) / base_value


def compare_runs(base: Mapping[str, Any], candidate: Mapping[str, Any]) -> list[Regression]:
    """Flag material regressions of ``candidate`` against ``base`` summary rows."""
    regressions: list[Regression] = []
    delta = _increase(base, candidate, "latency_p99_ms")
    if delta is not None and delta > 0.2:
        regressions.append(
            Regression(
                metric="latency_p99_ms",
                delta_pct=delta * 100,
                message="p99 latency increased materially",
            )
        )
    delta = _increase(base, candidate, "ttfb_p99_ms")
    if delta is not None and delta > 0.2:
        regressions.append(
            Regression(
                metric="ttfb_p99_ms",
                delta_pct=delta * 100,
                message="p99 time to first byte increased materially",
            )
        )
    base_errors = _value(base, "error_rate")
    cand_errors = _value(candidate, "error_rate")
    if base_errors == 0 and cand_errors:
        # no relative change from zero; report percentage points instead
        regressions.append(
            Regression(
                metric="error_rate",
                delta_pct=cand_errors * 100,
                message="errors appeared where the base run had none",
            )
        )
    delta = _increase(base, candidate, "error_rate")
    if delta is not None and delta > 0.3:
        regressions.append(
            Regression(
                metric="error_rate",
                delta_pct=delta * 100,
                message="error rate regression detected",
            )
        )
    base_rps = _value(base, "throughput_rps")
    cand_rps = _value(candidate, "throughput_rps") or 0.0
    if base_rps is not None and base_rps > 0:
        delta = (base_rps - cand_rps) / base_rps
        if delta > 0.2:
            regressions.append(
                Regression(
                    metric="throughput_rps",
                    delta_pct=delta * 100,
                    message="throughput regression detected",
                )
            )
    return regressions
