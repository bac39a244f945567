from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

import httpx

from inferload.config import LoadTestConfig
from inferload.loadgen.client import send_attempt
from inferload.loadgen.stream import Clock, StreamConsumer
from inferload.metrics import (
    Aggregate,
    MetricsCollector,
    OutcomeState,
    RequestOutcome,
    TransportErrorKind,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunResult:
    run_id: str
    outcomes: list[RequestOutcome]
    aggregate: Aggregate
    cancelled: bool


ProgressCallback = Callable[[int, int], Awaitable[None]]
OutcomeCallback = Callable[[RequestOutcome], None]


class SlotCounter:
    """Hands out attempt indices 0..total-1, each exactly once.

    ``claim`` never awaits, so on a single event loop two workers cannot
    observe the same value.
    """

    def __init__(self, total: int) -> None:
        self.total = total
        self._next = 0
        self._closed = False

    def claim(self) -> int | None:
        if self._closed or self._next >= self.total:
            return None
        index = self._next
        self._next += 1
        return index

    def close(self) -> None:
        self._closed = True

    @property
    def claimed(self) -> int:
        return self._next


def _new_run_id() -> str:
    return uuid.uuid4().hex


async def run_load_test(
    config: LoadTestConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    cancel: asyncio.Event | None = None,
    progress: ProgressCallback | None = None,
    on_outcome: OutcomeCallback | None = None,
    clock: Clock = time.perf_counter,
) -> RunResult:
    run_id = config.run_id or _new_run_id()
    cancel = cancel or asyncio.Event()
    collector = MetricsCollector(config.requests)
    slots = SlotCounter(config.requests)
    consumer = StreamConsumer(
        framing=config.framing,
        capture_text=config.print_response,
        clock=clock,
    )
    limits = httpx.Limits(
        max_connections=config.concurrency,
        max_keepalive_connections=config.concurrency,
    )
    logger.info(
        "Starting run %s against %s (requests=%d, concurrency=%d, stream=%s)",
        run_id,
        config.url,
        config.requests,
        config.concurrency,
        config.stream,
    )
    async with httpx.AsyncClient(
        transport=transport,
        limits=limits,
        timeout=config.timeout_sec,
    ) as client:
        workers = [
            asyncio.create_task(
                _worker(client, config, slots, collector, consumer, clock, progress, on_outcome)
            )
            for _ in range(config.concurrency)
        ]
        try:
            cancelled = await _supervise(workers, slots, cancel, config.grace_sec)
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

    aggregate = collector.aggregate(cancelled=cancelled)
    logger.info(
        "Run %s finished: %d/%d recorded, %d succeeded",
        run_id,
        aggregate.total,
        config.requests,
        aggregate.success,
    )
    return RunResult(
        run_id=run_id,
        outcomes=collector.outcomes,
        aggregate=aggregate,
        cancelled=cancelled,
    )


async def _supervise(
    workers: list[asyncio.Task[None]],
    slots: SlotCounter,
    cancel: asyncio.Event,
    grace_sec: float,
) -> bool:
    pool = asyncio.gather(*workers, return_exceptions=True)
    waiter = asyncio.create_task(cancel.wait())
    try:
        await asyncio.wait({pool, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
    if pool.done():
        _raise_worker_errors(pool.result())
        return False

    slots.close()
    logger.warning(
        "Cancellation requested after %d claimed slots; waiting up to %.1fs for in-flight attempts",
        slots.claimed,
        grace_sec,
    )
    pending = set(workers)
    if grace_sec > 0:
        _, pending = await asyncio.wait(workers, timeout=grace_sec)
    if pending:
        logger.warning("Grace period expired; aborting %d in-flight attempts", len(pending))
        for task in pending:
            task.cancel()
    _raise_worker_errors(await pool)
    return True


def _raise_worker_errors(results: Iterable[object]) -> None:
    for result in results:
        if isinstance(result, Exception):
            raise result


async def _worker(
    client: httpx.AsyncClient,
    config: LoadTestConfig,
    slots: SlotCounter,
    collector: MetricsCollector,
    consumer: StreamConsumer,
    clock: Clock,
    progress: ProgressCallback | None,
    on_outcome: OutcomeCallback | None,
) -> None:
    while True:
        index = slots.claim()
        if index is None:
            return
        started = clock()
        try:
            outcome = await send_attempt(client, config, index, consumer, clock)
        except asyncio.CancelledError:
            await collector.submit(
                RequestOutcome(
                    index=index,
                    dispatched_at=started,
                    completed_at=clock(),
                    state=OutcomeState.TRANSPORT_ERROR,
                    error_kind=TransportErrorKind.CANCELLED,
                )
            )
            raise
        await collector.submit(outcome)
        if on_outcome is not None:
            on_outcome(outcome)
        if progress is not None:
            await progress(len(collector), config.requests)
