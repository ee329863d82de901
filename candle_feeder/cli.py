from __future__ import annotations

import argparse
import logging
import signal
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .config import WorkerConfig, load_yaml
from .db import DuckDBStore, coverage_stats, ensure_table, list_series
from .errors import ConfigError
from .worker import build_worker


logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"


@dataclass
class RunConfig:
    command: str
    duckdb_path: Path
    options: Dict[str, Any] = field(default_factory=dict)
    max_cycles: Optional[int] = None
    debug: bool = False


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT, stream=sys.stderr)


def run_worker(cfg: RunConfig) -> int:
    worker_cfg = WorkerConfig.from_mapping(cfg.options)
    store = DuckDBStore(cfg.duckdb_path)
    worker = build_worker(worker_cfg, store)

    def _stop(signum, _frame):
        logger.info("signal %s received, stopping", signum)
        worker.stop()

    previous = {sig: signal.signal(sig, _stop) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        worker.run(max_cycles=cfg.max_cycles)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return 0


def show_status(cfg: RunConfig) -> int:
    ensure_table(cfg.duckdb_path)
    buckets = list_series(cfg.duckdb_path)
    if not buckets:
        print("[INFO] store is empty")
        return 0
    for bucket in buckets:
        cov = coverage_stats(cfg.duckdb_path, bucket)
        if cov is None:
            continue
        tmin, tmax, cnt = cov
        print(f"{bucket} min={tmin} max={tmax} count={cnt}")
    return 0


def _options_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    options: Dict[str, Any] = load_yaml(args.config) if args.config else {}
    # Flags override the file
    overrides = {
        "provider": args.provider,
        "symbols": args.symbols,
        "query_start": args.query_start,
        "query_end": args.query_end,
        "base_timeframe": args.base_timeframe,
        "batch_size": args.batch_size,
    }
    options.update({k: v for k, v in overrides.items() if v is not None})
    return options


def parse_args(argv: Optional[list[str]] = None) -> RunConfig:
    p = argparse.ArgumentParser(description="Resumable OHLCV candle feeder")
    sub = p.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Backfill from the last stored bar, then tail live bars")
    run_p.add_argument("--duckdb", type=Path, required=True, help="Path to DuckDB file")
    run_p.add_argument("--config", type=Path, default=None, help="YAML file with worker options")
    run_p.add_argument("--provider", default=None, help="binance, bitfinex or gdax (default: binance)")
    run_p.add_argument("--symbols", nargs="+", default=None, help="Symbols to ingest (default: all tradable)")
    run_p.add_argument("--query-start", default=None, help="Start when nothing is stored, e.g. '2024-01-01 00:00'")
    run_p.add_argument("--query-end", default=None, help="Backfill up to here, then keep tailing live bars")
    run_p.add_argument("--base-timeframe", default=None, help="Bar size such as 1Min, 5Min, 1H, 1D")
    run_p.add_argument("--batch-size", type=int, default=None, help="Bars per request (default: 300)")
    run_p.add_argument("--max-cycles", type=int, default=None, help="Stop after this many fetch cycles")
    run_p.add_argument("--debug", action="store_true", help="Verbose logging")

    status_p = sub.add_parser("status", help="Print stored coverage per series")
    status_p.add_argument("--duckdb", type=Path, required=True, help="Path to DuckDB file")
    status_p.add_argument("--debug", action="store_true", help="Verbose logging")

    args = p.parse_args(argv)
    return RunConfig(
        command=args.command,
        duckdb_path=args.duckdb,
        options=_options_from_args(args) if args.command == "run" else {},
        max_cycles=getattr(args, "max_cycles", None),
        debug=args.debug,
    )


def main(argv: Optional[list[str]] = None) -> int:
    try:
        cfg = parse_args(argv)
    except ConfigError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2
    setup_logging(cfg.debug)
    try:
        if cfg.command == "status":
            return show_status(cfg)
        return run_worker(cfg)
    except ConfigError as e:
        logger.error("cannot start: %s", e)
        return 2
    except Exception as e:  # surface clear error message
        print(f"[ERROR] {e}", file=sys.stderr)
        if cfg.debug:
            raise
        return 3


if __name__ == "__main__":
    raise SystemExit(main())
