#!/usr/bin/env python3
"""
Export k6 NDJSON results to a spreadsheet-friendly CSV.

Modes:
  create  →  <output_dir>/k6-api-metrics-<timestamp>.csv  (new file per run)
  append  →  <output_dir>/k6-api-metrics-trends.csv       (one block per run)

Usage:
  python -m tools.k6.export results.json
  python -m tools.k6.export results.json ./test-results
  python -m tools.k6.export results.json ./test-results --append --json
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass

from rich.console import Console

from common.errors import FileAccessError, run_cli
from common.logging import setup_logging
from common.run_context import set_run_id
from tools.k6.aggregator import default_resolver
from tools.k6.config import K6Config, load_config
from tools.k6.report import (
    MODE_APPEND,
    MODE_CREATE,
    file_timestamp,
    render_console,
    write_json_summary,
    write_summary_csv,
)
from tools.k6.summary import Results, summarize_file

logger = logging.getLogger(__name__)


@dataclass
class ExportOutcome:
    csv_path: str
    mode: str
    results: Results
    json_path: str | None = None


def csv_target(output_dir: str, append: bool, config: K6Config) -> str:
    if append:
        return os.path.join(output_dir, config.trends_file)
    return os.path.join(output_dir, f"k6-api-metrics-{file_timestamp()}.csv")


def export_results(
    input_path: str,
    output_dir: str | None,
    config: K6Config,
    append: bool = False,
    write_json: bool = False,
) -> ExportOutcome:
    """Summarize *input_path* and write the CSV (and optionally JSON) report."""
    output_dir = output_dir or os.path.dirname(input_path) or "."
    if not os.path.isdir(output_dir):
        raise FileAccessError(f"Output directory not found: {output_dir}")

    results = summarize_file(
        input_path,
        resolver=default_resolver(config.endpoint_tags, config.check_separator),
    )

    path = csv_target(output_dir, append, config)
    mode = write_summary_csv(path, results.endpoints, MODE_APPEND if append else MODE_CREATE)

    json_path = None
    if write_json:
        json_path = os.path.splitext(path)[0] + "-summary.json"
        write_json_summary(json_path, results.run, results.endpoints, source=input_path)

    return ExportOutcome(csv_path=path, mode=mode, results=results, json_path=json_path)


def print_outcome(outcome: ExportOutcome, console: Console | None = None) -> None:
    console = console or Console()
    render_console(outcome.results.run, outcome.results.endpoints, console=console, title="k6 Export Summary")
    console.print(f"[bold]File:[/bold] {outcome.csv_path}")
    if outcome.json_path:
        console.print(f"[bold]JSON:[/bold] {outcome.json_path}")
    if outcome.mode == MODE_APPEND:
        console.print("[bold]Mode:[/bold] appended to trends file (one block per run)\n")
    else:
        console.print("[bold]Mode:[/bold] new file created\n")


# ── CLI ──────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="k6-export",
        description="Export k6 JSON results to CSV (per-endpoint metrics)",
        epilog="Use --append to add the run to k6-api-metrics-trends.csv for trend tracking.",
    )
    parser.add_argument("input", help="k6 JSON results file (--out json=…)")
    parser.add_argument("output_dir", nargs="?", help="Output directory (default: input file's directory)")
    parser.add_argument("--append", action="store_true", help="Append to the trends file instead of creating a new CSV")
    parser.add_argument("--json", action="store_true", help="Also write a JSON summary next to the CSV")
    return parser


def run(args: argparse.Namespace, config: K6Config) -> int:
    outcome = export_results(args.input, args.output_dir, config, append=args.append, write_json=args.json)
    print_outcome(outcome)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("k6-export")
    set_run_id()
    return run_cli(lambda: run(args, load_config()))


if __name__ == "__main__":
    sys.exit(main())
