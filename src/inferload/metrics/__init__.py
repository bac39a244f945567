from __future__ import annotations

from inferload.metrics.aggregator import compute_aggregate, nearest_rank_index, percentile, summarize
from inferload.metrics.collector import MetricsCollector
from inferload.metrics.models import (
    Aggregate,
    Distribution,
    OutcomeState,
    RequestOutcome,
    StreamErrorKind,
    TransportErrorKind,
)

__all__ = [
    "Aggregate",
    "Distribution",
    "MetricsCollector",
    "OutcomeState",
    "RequestOutcome",
    "StreamErrorKind",
    "TransportErrorKind",
    "compute_aggregate",
    "nearest_rank_index",
    "percentile",
    "summarize",
]
