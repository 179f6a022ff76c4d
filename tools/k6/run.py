#!/usr/bin/env python3
"""
k6 workflow orchestrator – one command for the full load-test pipeline.

Phases:
  1. Validate environment (k6 on PATH, script present, output dir created)
  2. (optional) Wait for InfluxDB /ping
  3. Run k6 with --out json=<timestamped file> (+ InfluxDB when requested)
  4. Verify the JSON results file exists
  5. Export to CSV (new file, or --append to the trends file)
  6. (optional) Append one row to the performance history CSV
  7. Console summary

A failed phase stops the pipeline; there are no retries.

Usage:
  python -m tools.k6.run                       # individual results file
  python -m tools.k6.run --append              # trend tracking
  python -m tools.k6.run --scenario stress --influx --history
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import shutil
import subprocess
import sys
import time

from common.errors import EXIT_EXTERNAL, EXIT_IO, EXIT_OK, ToolError, run_cli
from common.logging import setup_logging
from common.run_context import set_run_id
from tools.k6.config import K6Config, load_config
from tools.k6.export import ExportOutcome, export_results, print_outcome
from tools.k6.grafana import k6_command, ping_influxdb, results_path
from tools.k6.history import append_history
from tools.k6.report import PhaseResult, render_phases

logger = logging.getLogger(__name__)


# ── Utility ──────────────────────────────────────────────────────────


def _run(cmd: list[str], timeout: float | None = None) -> subprocess.CompletedProcess:
    """Run a command with inherited stdio; never raise on non-zero exit."""
    logger.info("Running: %s", " ".join(cmd))
    return subprocess.run(cmd, env=os.environ.copy(), timeout=timeout, check=False)


def _log(icon: str, msg: str) -> None:
    print(f"  {icon}  {msg}", flush=True)


def _elapsed_ms(t0: float) -> float:
    return (time.monotonic() - t0) * 1000


# ── Phases ───────────────────────────────────────────────────────────


def phase_validate(config: K6Config) -> PhaseResult:
    """k6 on PATH, script present, output directory created."""
    _log("🔍", "Validating environment …")
    t0 = time.monotonic()

    if not shutil.which("k6"):
        return PhaseResult(
            name="validate",
            passed=False,
            duration_ms=_elapsed_ms(t0),
            detail="k6 not installed (install: https://k6.io/docs/get-started/installation/)",
            exit_code=EXIT_EXTERNAL,
        )
    if not os.path.isfile(config.script):
        return PhaseResult(
            name="validate",
            passed=False,
            duration_ms=_elapsed_ms(t0),
            detail=f"k6 script not found: {config.script}",
            exit_code=EXIT_IO,
        )
    try:
        os.makedirs(config.output_dir, exist_ok=True)
    except OSError as exc:
        return PhaseResult(
            name="validate",
            passed=False,
            duration_ms=_elapsed_ms(t0),
            detail=f"Cannot create {config.output_dir}: {exc.strerror or exc}",
            exit_code=EXIT_IO,
        )
    return PhaseResult(
        name="validate",
        passed=True,
        duration_ms=_elapsed_ms(t0),
        detail=f"k6 found, script {config.script}, output {config.output_dir}",
    )


def phase_influx_ready(config: K6Config) -> PhaseResult:
    _log("⏳", "Checking InfluxDB …")
    t0 = time.monotonic()
    ok = ping_influxdb(config)
    return PhaseResult(
        name="influxdb",
        passed=ok,
        duration_ms=_elapsed_ms(t0),
        detail=f"InfluxDB ready at {config.influxdb.base_url}" if ok else f"InfluxDB not reachable at {config.influxdb.base_url}",
        exit_code=EXIT_EXTERNAL,
    )


def phase_k6(config: K6Config, json_path: str, influx: bool = False, timeout: float | None = None) -> PhaseResult:
    """Run k6 and block until it exits."""
    _log("🔥", f"Running k6 ({config.scenario}) → {json_path}")
    t0 = time.monotonic()
    cmd = k6_command(config, json_out=json_path, influx=influx)
    try:
        r = _run(cmd, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as exc:
        return PhaseResult(
            name="k6_run",
            passed=False,
            duration_ms=_elapsed_ms(t0),
            detail=f"k6 could not run: {exc}",
            exit_code=EXIT_EXTERNAL,
        )
    ok = r.returncode == 0
    return PhaseResult(
        name="k6_run",
        passed=ok,
        duration_ms=_elapsed_ms(t0),
        detail="k6 passed all thresholds" if ok else f"k6 exit code {r.returncode}",
        exit_code=EXIT_EXTERNAL,
    )


def phase_verify_output(json_path: str) -> PhaseResult:
    t0 = time.monotonic()
    if not os.path.isfile(json_path):
        return PhaseResult(
            name="verify_output",
            passed=False,
            duration_ms=_elapsed_ms(t0),
            detail=f"k6 JSON output was not created: {json_path}",
            exit_code=EXIT_EXTERNAL,
        )
    size_kb = os.path.getsize(json_path) / 1024
    _log("✓", f"k6 results: {json_path} ({size_kb:.1f} KB)")
    return PhaseResult(
        name="verify_output",
        passed=True,
        duration_ms=_elapsed_ms(t0),
        detail=f"{size_kb:.1f} KB",
    )


def phase_export(
    config: K6Config,
    json_path: str,
    append: bool = False,
    write_json: bool = False,
) -> tuple[PhaseResult, ExportOutcome | None]:
    _log("📊", f"Exporting results ({'trend tracking' if append else 'individual results'}) …")
    t0 = time.monotonic()
    try:
        outcome = export_results(json_path, config.output_dir, config, append=append, write_json=write_json)
    except ToolError as exc:
        return (
            PhaseResult(
                name="export",
                passed=False,
                duration_ms=_elapsed_ms(t0),
                detail=exc.detail,
                exit_code=exc.exit_code,
            ),
            None,
        )
    detail = f"{outcome.mode}: {outcome.csv_path} ({len(outcome.results.endpoints)} endpoint(s))"
    return PhaseResult(name="export", passed=True, duration_ms=_elapsed_ms(t0), detail=detail), outcome


def phase_history(config: K6Config, outcome: ExportOutcome, flow_name: str, test_type: str) -> PhaseResult:
    _log("📈", "Appending to performance history …")
    t0 = time.monotonic()
    try:
        append_history(config.history_path, outcome.results.run, flow_name, test_type)
    except ToolError as exc:
        return PhaseResult(
            name="history",
            passed=False,
            duration_ms=_elapsed_ms(t0),
            detail=exc.detail,
            exit_code=exc.exit_code,
        )
    return PhaseResult(name="history", passed=True, duration_ms=_elapsed_ms(t0), detail=config.history_path)


# ── Main ─────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="k6-run", description="k6 complete test workflow")
    parser.add_argument("--append", action="store_true", help="Append results to the trends file")
    parser.add_argument("--scenario", help="k6 scenario passed as SCENARIO (default: K6_SCENARIO)")
    parser.add_argument("--script", help="k6 script (default: K6_SCRIPT)")
    parser.add_argument("--output-dir", help="Output directory (default: K6_OUTPUT_DIR)")
    parser.add_argument("--influx", action="store_true", help="Stream results to InfluxDB as well")
    parser.add_argument("--history", action="store_true", help="Append a row to the performance history CSV")
    parser.add_argument("--flow-name", default="API Load Test", help="Flow name for the history row")
    parser.add_argument("--test-type", default="load", help="Test type for the history row")
    parser.add_argument("--json", action="store_true", help="Also write a JSON summary")
    parser.add_argument("--timeout", type=float, help="Abort k6 after this many seconds")
    return parser


def apply_overrides(config: K6Config, args: argparse.Namespace) -> K6Config:
    overrides = {
        key: value
        for key, value in (
            ("scenario", args.scenario),
            ("script", args.script),
            ("output_dir", args.output_dir),
        )
        if value
    }
    return dataclasses.replace(config, **overrides) if overrides else config


def run(args: argparse.Namespace, config: K6Config) -> int:
    t_global = time.monotonic()
    phases: list[PhaseResult] = []

    print("\n" + "═" * 60)
    print("  K6 COMPLETE TEST WORKFLOW")
    print(f"  Mode: {'Trend Tracking (Append)' if args.append else 'Individual Results'}")
    print(f"  Output: {config.output_dir}   Script: {config.script}")
    print("═" * 60 + "\n")

    def finish() -> int:
        render_phases(phases, total_duration_s=time.monotonic() - t_global)
        failed = next((p for p in phases if not p.passed), None)
        return failed.exit_code if failed else EXIT_OK

    json_path = results_path(config)

    steps = [lambda: phase_validate(config)]
    if args.influx:
        steps.append(lambda: phase_influx_ready(config))
    steps += [
        lambda: phase_k6(config, json_path, influx=args.influx, timeout=args.timeout),
        lambda: phase_verify_output(json_path),
    ]
    for step in steps:
        p = step()
        phases.append(p)
        if not p.passed:
            return finish()

    p, outcome = phase_export(config, json_path, append=args.append, write_json=args.json)
    phases.append(p)
    if outcome is None:
        return finish()

    if args.history:
        phases.append(phase_history(config, outcome, args.flow_name, args.test_type))

    print_outcome(outcome)
    return finish()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("k6-run")
    set_run_id()
    return run_cli(lambda: run(args, apply_overrides(load_config(), args)))


if __name__ == "__main__":
    sys.exit(main())
