#!/usr/bin/env python3
"""
Run-over-run performance history.

One CSV row per test run, appended to ``k6-api-performance-history.csv``
(configurable via ``K6_HISTORY_FILE``).  The header is written only when the
file is created.

Usage:
  python -m tools.k6.history results.json --flow-name "Checkout" --test-type load
  python -m tools.k6.history --row '2025-09-12T15:32:09Z,Checkout,load,…'
"""

from __future__ import annotations

import argparse
import csv
import io
import logging
import os
import sys

from common.errors import FileAccessError, run_cli
from common.logging import setup_logging
from common.run_context import set_run_id
from tools.k6.aggregator import default_resolver
from tools.k6.config import K6Config, load_config
from tools.k6.report import round_half_up
from tools.k6.summary import RunSummary, summarize_file

logger = logging.getLogger(__name__)

HISTORY_COLUMNS: tuple[str, ...] = (
    "Timestamp",
    "Flow Name",
    "Test Type",
    "Total Requests",
    "Successful Requests",
    "Failed Requests",
    "Success Rate (%)",
    "Average Response Time (ms)",
    "Median Response Time (ms)",
    "P95 Response Time (ms)",
    "P99 Response Time (ms)",
    "Fastest Endpoint",
    "Fastest Time (ms)",
    "Slowest Endpoint",
    "Slowest Time (ms)",
    "Requests Per Second",
    "Data Received (KB)",
    "Data Sent (KB)",
    "Performance Grade",
)


def _num(value: float, digits: int = 2) -> str:
    return f"{round_half_up(value, digits):.{digits}f}"


def history_row(run: RunSummary, flow_name: str, test_type: str) -> list[str]:
    return [
        run.generated_at,
        flow_name,
        test_type,
        str(run.total_requests),
        str(run.successful_requests),
        str(run.failed_requests),
        _num(run.success_rate_pct),
        _num(run.avg_ms),
        _num(run.median_ms),
        _num(run.p95_ms),
        _num(run.p99_ms),
        run.fastest_endpoint,
        _num(run.fastest_avg_ms),
        run.slowest_endpoint,
        _num(run.slowest_avg_ms),
        _num(run.requests_per_second),
        _num(run.data_received_kb),
        _num(run.data_sent_kb),
        run.grade,
    ]


def _render(row: list[str]) -> str:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerow(row)
    return buf.getvalue()


def append_history_line(path: str, line: str) -> bool:
    """Append one pre-rendered CSV line; returns True if the file was created."""
    created = not os.path.exists(path)
    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, "a", encoding="utf-8", newline="") as f:
            if created:
                f.write(_render(list(HISTORY_COLUMNS)))
            f.write(line.rstrip("\r\n") + "\n")
    except OSError as exc:
        raise FileAccessError(f"Cannot append to {path}: {exc.strerror or exc}") from exc

    if created:
        logger.info("Created new performance history file %s", path)
    logger.info("Results appended to %s", path)
    return created


def append_history(path: str, run: RunSummary, flow_name: str, test_type: str) -> bool:
    return append_history_line(path, _render(history_row(run, flow_name, test_type)))


# ── CLI ──────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="k6-history",
        description="Append one run to the k6 performance history CSV",
    )
    parser.add_argument("input", nargs="?", help="k6 JSON results file (--out json=…)")
    parser.add_argument("--flow-name", default="API Load Test", help="Flow name recorded in the row")
    parser.add_argument("--test-type", default="load", help="Test type recorded in the row")
    parser.add_argument("--file", dest="history_file", help="History CSV (default: K6_HISTORY_FILE)")
    parser.add_argument("--row", help="Append this pre-rendered CSV row instead of reading results")
    return parser


def run(args: argparse.Namespace, config: K6Config) -> int:
    path = args.history_file or config.history_path
    if args.row:
        append_history_line(path, args.row)
        return 0

    results = summarize_file(
        args.input,
        resolver=default_resolver(config.endpoint_tags, config.check_separator),
    )
    append_history(path, results.run, args.flow_name, args.test_type)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.input and not args.row:
        parser.error("either an input file or --row is required")

    setup_logging("k6-history")
    set_run_id()
    return run_cli(lambda: run(args, load_config()))


if __name__ == "__main__":
    sys.exit(main())
