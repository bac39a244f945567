from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import duckdb
import pandas as pd

from inferload.config import LoadTestConfig
from inferload.metrics import Aggregate, RequestOutcome

_SUMMARY_COLUMNS = """
    run_id TEXT,
    requested INTEGER,
    total INTEGER,
    success INTEGER,
    http_errors INTEGER,
    transport_errors INTEGER,
    stream_errors INTEGER,
    error_rate DOUBLE,
    elapsed_sec DOUBLE,
    throughput_rps DOUBLE,
    bytes_received BIGINT,
    cancelled BOOLEAN,
    latency_min_ms DOUBLE,
    latency_max_ms DOUBLE,
    latency_mean_ms DOUBLE,
    latency_p50_ms DOUBLE,
    latency_p90_ms DOUBLE,
    latency_p95_ms DOUBLE,
    latency_p99_ms DOUBLE,
    ttfb_min_ms DOUBLE,
    ttfb_max_ms DOUBLE,
    ttfb_mean_ms DOUBLE,
    ttfb_p50_ms DOUBLE,
    ttfb_p90_ms DOUBLE,
    ttfb_p95_ms DOUBLE,
    ttfb_p99_ms DOUBLE
"""


@dataclass(slots=True)
class Storage:
    db_path: Path

    def __post_init__(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def _init_schema(self) -> None:
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS run_meta (
                    run_id TEXT PRIMARY KEY,
                    created_at TIMESTAMP,
                    config_json TEXT,
                    notes TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS outcomes (
                    run_id TEXT,
                    request_index INTEGER,
                    dispatched_at DOUBLE,
                    completed_at DOUBLE,
                    first_byte_at DOUBLE,
                    latency_ms DOUBLE,
                    ttfb_ms DOUBLE,
                    state TEXT,
                    status_code INTEGER,
                    error_kind TEXT,
                    bytes_received BIGINT,
                    frames_received INTEGER
                );
                """
            )
            con.execute(f"CREATE TABLE IF NOT EXISTS summary ({_SUMMARY_COLUMNS});")

    def run_exists(self, run_id: str) -> bool:
        with self._connect() as con:
            result = con.execute(
                "SELECT COUNT(*) FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            return bool(result and result[0] > 0)

    def save_run(
        self,
        config: LoadTestConfig,
        run_id: str,
        outcomes: Iterable[RequestOutcome],
        aggregate: Aggregate,
    ) -> None:
        if self.run_exists(run_id):
            msg = f"Run {run_id} already exists"
            raise ValueError(msg)
        meta = dict(config.to_metadata())
        meta["run_id"] = run_id
        config_json = json.dumps(meta)
        with self._connect() as con:
            con.execute(
                "INSERT INTO run_meta VALUES (?, ?, ?, ?)",
                [run_id, config.created_at, config_json, config.notes],
            )
            outcomes_df = pd.DataFrame(
                [
                    {
                        "run_id": run_id,
                        "request_index": o.index,
                        "dispatched_at": o.dispatched_at,
                        "completed_at": o.completed_at,
                        "first_byte_at": o.first_byte_at,
                        "latency_ms": o.latency_ms,
                        "ttfb_ms": o.ttfb_ms,
                        "state": o.state.value,
                        "status_code": o.status_code,
                        "error_kind": o.error_kind.value if o.error_kind else None,
                        "bytes_received": o.bytes_received,
                        "frames_received": o.frames_received,
                    }
                    for o in outcomes
                ]
            )
            if not outcomes_df.empty:
                outcomes_df = outcomes_df.astype({"status_code": "Int64"})
                con.execute("INSERT INTO outcomes SELECT * FROM outcomes_df")
            summary_df = pd.DataFrame([{"run_id": run_id, **aggregate.to_row()}])
            con.execute("INSERT INTO summary SELECT * FROM summary_df")

    def list_runs(self) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                """
                SELECT m.run_id, m.created_at, s.total, s.success, s.throughput_rps, m.notes
                FROM run_meta m LEFT JOIN summary s USING (run_id)
                ORDER BY m.created_at DESC
                """
            ).fetchdf()

    def load_run_meta(self, run_id: str) -> dict[str, object] | None:
        with self._connect() as con:
            row = con.execute(
                "SELECT config_json FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            if not row:
                return None
            return json.loads(row[0])

    def load_outcomes(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM outcomes WHERE run_id = ? ORDER BY request_index",
                [run_id],
            ).fetchdf()

    def load_summary(self, run_id: str) -> dict[str, Any] | None:
        with self._connect() as con:
            df = con.execute(
                "SELECT * FROM summary WHERE run_id = ?",
                [run_id],
            ).fetchdf()
        if df.empty:
            return None
        return df.iloc[0].to_dict()
