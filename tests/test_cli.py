from __future__ import annotations

from pathlib import Path

import pytest
from conftest import make_config

from inferload.cli import main
from inferload.metrics import OutcomeState, RequestOutcome, compute_aggregate
from inferload.storage import Storage


@pytest.mark.parametrize(
    "argv",
    [
        ["run", "-u", "http://localhost:8080/generate", "-b", "{not json"],
        ["run", "-u", "", "-b", "{}"],
        ["run", "-u", "http://localhost:8080/generate", "-b", "{}", "-n", "0"],
        ["run", "-u", "http://localhost:8080/generate", "-b", "{}", "-c", "-2"],
    ],
)
def test_fatal_configuration_exits_non_zero_without_report(argv: list[str], capsys) -> None:
    assert main(argv) == 2
    captured = capsys.readouterr()
    assert "error:" in captured.err
    assert "=== Results ===" not in captured.out


def test_list_on_empty_store(tmp_path: Path, capsys) -> None:
    assert main(["list", "--store", str(tmp_path / "runs.duckdb")]) == 0
    assert "No runs stored" in capsys.readouterr().out


def test_compare_unknown_run(tmp_path: Path, capsys) -> None:
    store = str(tmp_path / "runs.duckdb")
    assert main(["compare", "a", "b", "--store", store]) == 2
    assert "not found" in capsys.readouterr().err


def test_duplicate_run_id_is_rejected_before_dispatch(tmp_path: Path, capsys) -> None:
    store = tmp_path / "runs.duckdb"
    outcomes = [
        RequestOutcome(index=0, dispatched_at=0.0, completed_at=0.1, state=OutcomeState.SUCCESS, status_code=200)
    ]
    Storage(store).save_run(make_config(1, 1), "nightly", outcomes, compute_aggregate(outcomes, requested=1))

    argv = ["run", "-u", "http://127.0.0.1:9/generate", "-b", "{}", "--store", str(store), "--run-id", "nightly"]
    assert main(argv) == 2
    captured = capsys.readouterr()
    assert "already exists" in captured.err
    assert "Starting benchmark" not in captured.out
    assert "=== Results ===" not in captured.out
    assert len(Storage(store).load_outcomes("nightly")) == 1
