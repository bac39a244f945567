from __future__ import annotations

import math
from collections import Counter
from typing import Iterable, Sequence

import numpy as np

from inferload.metrics.models import Aggregate, Distribution, OutcomeState, RequestOutcome

PERCENTILES = (0.50, 0.90, 0.95, 0.99)


def nearest_rank_index(p: float, count: int) -> int:
    """Index of the nearest-rank percentile ``p`` (0..1) in a sorted sample of ``count``."""
    if count <= 0:
        msg = "Cannot take a percentile of an empty sample"
        raise ValueError(msg)
    # round() absorbs float noise such as 0.07 * 100 == 7.000000000000001
    idx = math.ceil(round(p * count, 9)) - 1
    return min(max(idx, 0), count - 1)


def percentile(sorted_values: Sequence[float] | np.ndarray, p: float) -> float:
    return float(sorted_values[nearest_rank_index(p, len(sorted_values))])


def summarize(values: Iterable[float]) -> Distribution | None:
    samples = np.sort(np.fromiter(values, dtype=float))
    if samples.size == 0:
        return None
    p50, p90, p95, p99 = (percentile(samples, p) for p in PERCENTILES)
    return Distribution(
        count=int(samples.size),
        min_ms=float(samples[0]),
        max_ms=float(samples[-1]),
        mean_ms=float(samples.mean()),
        p50_ms=p50,
        p90_ms=p90,
        p95_ms=p95,
        p99_ms=p99,
    )


def compute_aggregate(
    outcomes: Sequence[RequestOutcome],
    requested: int,
    cancelled: bool = False,
) -> Aggregate:
    state_counts = Counter(o.state for o in outcomes)
    error_breakdown = Counter(o.label for o in outcomes if not o.success)
    successes = [o for o in outcomes if o.success]
    latency = summarize(o.latency_ms for o in successes)
    ttfb = summarize(o.ttfb_ms for o in outcomes if o.ttfb_ms is not None)

    elapsed_sec: float | None = None
    throughput = math.nan
    if outcomes:
        first_dispatch = min(o.dispatched_at for o in outcomes)
        last_completion = max(o.completed_at for o in outcomes)
        elapsed_sec = last_completion - first_dispatch
        if successes and elapsed_sec > 0:
            throughput = len(successes) / elapsed_sec

    return Aggregate(
        requested=requested,
        total=len(outcomes),
        state_counts={state: state_counts.get(state, 0) for state in OutcomeState},
        error_breakdown=dict(sorted(error_breakdown.items())),
        latency=latency,
        ttfb=ttfb,
        elapsed_sec=elapsed_sec,
        throughput_rps=throughput,
        bytes_received=sum(o.bytes_received for o in outcomes),
        cancelled=cancelled,
    )
