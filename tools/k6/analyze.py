#!/usr/bin/env python3
"""
Analyze k6 NDJSON results: per-endpoint breakdown, error analysis and
performance insights on the console, plus ``<name>-detailed-analysis.csv``.

Endpoints are resolved from the ``endpoint`` tag, then k6's own ``name``
tag, then the check name.

Usage:
  python -m tools.k6.analyze test-results/k6-results-2025-09-12T15-32-09-123Z.json
  python -m tools.k6.analyze results.json --summary-export summary.json
  python -m tools.k6.analyze results.json --no-csv
"""

from __future__ import annotations

import argparse
import logging
import sys

from rich.console import Console
from rich.table import Table

from common.errors import run_cli
from common.logging import setup_logging
from common.run_context import set_run_id
from tools.k6.aggregator import default_resolver
from tools.k6.config import K6Config, load_config
from tools.k6.report import analysis_csv_path, render_console, write_analysis_csv
from tools.k6.summary import performance_grade, performance_insights, summarize_file
from tools.k6.summary_export import OverallMetrics, parse_summary_export

logger = logging.getLogger(__name__)


def analysis_tags(config: K6Config) -> tuple[str, ...]:
    tags = tuple(config.endpoint_tags)
    return tags if "name" in tags else (*tags, "name")


def render_overall(overall: OverallMetrics, console: Console) -> None:
    table = Table(title="Overall Test Summary (k6 summary export)", show_header=True, header_style="bold cyan")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    if overall.test_duration_s is not None:
        table.add_row("Test duration", f"{overall.test_duration_s:.2f}s")
    table.add_row("Total requests", f"{overall.total_requests:,}")
    table.add_row("Request rate", f"{overall.request_rate:.2f} req/s")
    table.add_row("Average response time", f"{overall.avg_ms:.2f}ms")
    table.add_row("P95 response time", f"{overall.p95_ms:.2f}ms")
    table.add_row("P99 response time", f"{overall.p99_ms:.2f}ms")
    table.add_row("Error rate", f"{overall.error_rate_pct:.2f}%")
    table.add_row("Failed requests", str(overall.failed_requests))

    insights = performance_insights(overall.avg_ms, overall.p95_ms, overall.error_rate_pct)
    table.add_row("Grade", performance_grade(insights))
    console.print(table)


def run(args: argparse.Namespace, config: K6Config, console: Console | None = None) -> int:
    console = console or Console()
    results = summarize_file(
        args.input,
        resolver=default_resolver(analysis_tags(config), config.check_separator),
    )
    render_console(results.run, results.endpoints, console=console, title=f"k6 Results Analysis: {args.input}")

    if args.summary_export:
        render_overall(parse_summary_export(args.summary_export), console)

    if not args.no_csv:
        path = analysis_csv_path(args.input)
        write_analysis_csv(path, results.endpoints)
        console.print(f"📄 Detailed analysis saved to: {path}\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="k6-analyze", description="K6 streaming results analyzer")
    parser.add_argument("input", help="k6 JSON results file (--out json=…)")
    parser.add_argument("--summary-export", metavar="FILE", help="k6 --summary-export JSON with overall metrics")
    parser.add_argument("--no-csv", action="store_true", help="Skip writing <name>-detailed-analysis.csv")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("k6-analyze")
    set_run_id()
    return run_cli(lambda: run(args, load_config()))


if __name__ == "__main__":
    sys.exit(main())
