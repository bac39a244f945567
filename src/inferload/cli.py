from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

from inferload.analysis import compare_runs
from inferload.config import ConfigError, FramingType, LoadTestConfig, build_config
from inferload.loadgen.runner import RunResult, run_load_test
from inferload.report import ResponsePrinter, render_summary
from inferload.storage import DEFAULT_DB_PATH, Storage

logger = logging.getLogger("inferload")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Concurrency tester for HTTP inference endpoints",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a load test")
    run.add_argument("-u", "--url", required=True, help="Target URL")
    run.add_argument("-n", "--requests", type=int, default=10, help="Total number of requests")
    run.add_argument("-c", "--concurrency", type=int, default=10, help="Concurrent in-flight requests")
    run.add_argument("-t", "--timeout", type=float, default=60.0, help="Per-request timeout (sec)")
    run.add_argument("-b", "--body", required=True, help="JSON request body template")
    run.add_argument("-p", "--print-response", action="store_true", help="Echo every response body")
    run.add_argument(
        "--framing",
        choices=[f.value for f in FramingType],
        default=FramingType.RAW.value,
        help="How streamed bodies are split into frames",
    )
    run.add_argument("--grace", type=float, default=5.0, help="Cancellation grace period (sec)")
    run.add_argument("--vary-seed", action="store_true", help="Use parameters.seed + index per request")
    run.add_argument("-H", "--header", action="append", default=[], help="Extra header 'Name: value'")
    run.add_argument("--store", type=Path, default=None, help="DuckDB file to save the run into")
    run.add_argument("--run-id", default=None)
    run.add_argument("--notes", default="")

    runs = sub.add_parser("list", help="List stored runs")
    runs.add_argument("--store", type=Path, default=DEFAULT_DB_PATH)

    compare = sub.add_parser("compare", help="Compare two stored runs")
    compare.add_argument("base")
    compare.add_argument("candidate")
    compare.add_argument("--store", type=Path, default=DEFAULT_DB_PATH)
    return parser


async def _run(config: LoadTestConfig) -> RunResult:
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, cancel.set)

    async def on_progress(done: int, total: int) -> None:
        logger.debug("Progress: %d/%d", done, total)

    printer = ResponsePrinter() if config.print_response else None
    return await run_load_test(
        config,
        cancel=cancel,
        progress=on_progress,
        on_outcome=printer.emit if printer else None,
    )


def _command_run(args: argparse.Namespace) -> int:
    try:
        config = build_config(
            args.url,
            args.requests,
            args.concurrency,
            args.body,
            print_response=args.print_response,
            timeout_sec=args.timeout,
            grace_sec=args.grace,
            framing=args.framing,
            vary_seed=args.vary_seed,
            headers=args.header,
            run_id=args.run_id,
            notes=args.notes,
        )
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    storage = Storage(args.store) if args.store is not None else None
    if storage is not None and config.run_id and storage.run_exists(config.run_id):
        print(f"error: run {config.run_id} already exists in {args.store}", file=sys.stderr)
        return 2

    print(
        f"Starting benchmark: {config.url} "
        f"(requests={config.requests}, concurrency={config.concurrency})"
    )
    result = asyncio.run(_run(config))
    print()
    print(render_summary(result.aggregate), end="")
    if storage is not None:
        storage.save_run(config, result.run_id, result.outcomes, result.aggregate)
        print(f"Run saved: {result.run_id}")
    return 0


def _command_list(args: argparse.Namespace) -> int:
    runs = Storage(args.store).list_runs()
    if runs.empty:
        print("No runs stored")
        return 0
    print(runs.to_string(index=False))
    return 0


def _command_compare(args: argparse.Namespace) -> int:
    storage = Storage(args.store)
    base = storage.load_summary(args.base)
    candidate = storage.load_summary(args.candidate)
    for run_id, summary in ((args.base, base), (args.candidate, candidate)):
        if summary is None:
            print(f"error: run {run_id} not found in {args.store}", file=sys.stderr)
            return 2
    regressions = compare_runs(base, candidate)
    if not regressions:
        print("No regressions detected")
        return 0
    for reg in regressions:
        print(f"{reg.message} ({reg.delta_pct:.1f}% on {reg.metric})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.command == "run":
        return _command_run(args)
    if args.command == "list":
        return _command_list(args)
    return _command_compare(args)


if __name__ == "__main__":
    sys.exit(main())
