from __future__ import annotations

from pathlib import Path

import pytest
from conftest import make_config

from inferload.analysis import compare_runs
from inferload.metrics import OutcomeState, RequestOutcome, compute_aggregate
from inferload.storage import Storage


def _outcomes(latency: float, failures: int = 0) -> list[RequestOutcome]:
    outcomes = []
    for i in range(10):
        if i < failures:
            outcomes.append(
                RequestOutcome(
                    index=i,
                    dispatched_at=0.0,
                    completed_at=latency,
                    state=OutcomeState.HTTP_ERROR,
                    status_code=500,
                )
            )
        else:
            outcomes.append(
                RequestOutcome(
                    index=i,
                    dispatched_at=0.0,
                    completed_at=latency,
                    state=OutcomeState.SUCCESS,
                    status_code=200,
                    first_byte_at=latency / 4,
                    bytes_received=64,
                    frames_received=4,
                )
            )
    return outcomes


def test_save_and_load_run(tmp_path: Path) -> None:
    storage = Storage(tmp_path / "runs.duckdb")
    config = make_config(10, 5, notes="baseline")
    outcomes = _outcomes(0.2, failures=1)
    storage.save_run(config, "run-a", outcomes, compute_aggregate(outcomes, requested=10))

    assert storage.run_exists("run-a")
    assert not storage.run_exists("run-b")
    meta = storage.load_run_meta("run-a")
    assert meta is not None
    assert meta["run_id"] == "run-a"
    assert meta["requests"] == 10

    stored = storage.load_outcomes("run-a")
    assert stored["request_index"].tolist() == list(range(10))
    assert stored["state"].tolist().count("http_error") == 1

    summary = storage.load_summary("run-a")
    assert summary is not None
    assert summary["success"] == 9
    assert summary["latency_p50_ms"] == pytest.approx(200.0)
    assert summary["latency_p95_ms"] == pytest.approx(200.0)
    assert summary["ttfb_p95_ms"] == pytest.approx(50.0)

    runs = storage.list_runs()
    assert runs["run_id"].tolist() == ["run-a"]


def test_duplicate_run_id_is_rejected(tmp_path: Path) -> None:
    storage = Storage(tmp_path / "runs.duckdb")
    outcomes = _outcomes(0.1)
    aggregate = compute_aggregate(outcomes, requested=10)
    storage.save_run(make_config(), "dup", outcomes, aggregate)
    with pytest.raises(ValueError):
        storage.save_run(make_config(), "dup", outcomes, aggregate)


def test_missing_summary_is_none(tmp_path: Path) -> None:
    assert Storage(tmp_path / "runs.duckdb").load_summary("nope") is None


def test_compare_flags_latency_and_throughput_regressions() -> None:
    base = compute_aggregate(_outcomes(0.1, failures=1), requested=10).to_row()
    slower = compute_aggregate(_outcomes(0.3, failures=3), requested=10).to_row()
    metrics = {reg.metric for reg in compare_runs(base, slower)}
    assert metrics == {"latency_p99_ms", "ttfb_p99_ms", "error_rate", "throughput_rps"}
    assert compare_runs(base, base) == []


def test_compare_round_trips_through_storage(tmp_path: Path) -> None:
    storage = Storage(tmp_path / "runs.duckdb")
    for run_id, latency in (("fast", 0.1), ("slow", 0.5)):
        outcomes = _outcomes(latency)
        storage.save_run(make_config(), run_id, outcomes, compute_aggregate(outcomes, requested=10))
    regressions = compare_runs(storage.load_summary("fast"), storage.load_summary("slow"))
    assert "latency_p99_ms" in {reg.metric for reg in regressions}


def test_compare_flags_errors_appearing_on_a_clean_base() -> None:
    clean = compute_aggregate(_outcomes(0.1), requested=10).to_row()
    failing = compute_aggregate(_outcomes(0.1, failures=2), requested=10).to_row()
    regressions = {reg.metric: reg for reg in compare_runs(clean, failing)}
    assert "error_rate" in regressions
    assert regressions["error_rate"].delta_pct == pytest.approx(20.0)
    assert compare_runs(clean, clean) == []
