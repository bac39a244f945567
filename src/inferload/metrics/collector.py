from __future__ import annotations

import asyncio

from inferload.metrics.aggregator import compute_aggregate
from inferload.metrics.models import Aggregate, RequestOutcome


class MetricsCollector:
    """Run-scoped sink for outcomes submitted by concurrent workers."""

    def __init__(self, requested: int) -> None:
        self.requested = requested
        self._outcomes: list[RequestOutcome] = []
        self._seen: set[int] = set()
        self._lock = asyncio.Lock()
        self._aggregate: Aggregate | None = None

    async def submit(self, outcome: RequestOutcome) -> None:
        async with self._lock:
            if self._aggregate is not None:
                msg = "Collector is already finalized"
                raise RuntimeError(msg)
            if not 0 <= outcome.index < self.requested:
                msg = f"Outcome index {outcome.index} outside 0..{self.requested - 1}"
                raise ValueError(msg)
            if outcome.index in self._seen:
                msg = f"Duplicate outcome for index {outcome.index}"
                raise ValueError(msg)
            self._seen.add(outcome.index)
            self._outcomes.append(outcome)

    @property
    def outcomes(self) -> list[RequestOutcome]:
        return sorted(self._outcomes, key=lambda o: o.index)

    def __len__(self) -> int:
        return len(self._outcomes)

    def aggregate(self, cancelled: bool = False) -> Aggregate:
        if self._aggregate is None:
            self._aggregate = compute_aggregate(self.outcomes, self.requested, cancelled=cancelled)
        return self._aggregate
