"""
Report writers – CSV (create / append), JSON and console outputs.

CSV layout is fixed: one header row, then one row per endpoint, every field
double-quoted.  Append mode keeps the history of earlier runs:

    header
    run 1 rows
    <blank line>
    run 2 rows

so a spreadsheet shows each run as its own block.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping

from rich.console import Console
from rich.table import Table

from common.errors import EXIT_FAILURE, FileAccessError
from tools.k6.summary import (
    ACCEPTABLE,
    EXCELLENT,
    GOOD,
    NEEDS_IMPROVEMENT,
    EndpointSummary,
    RunSummary,
)

logger = logging.getLogger(__name__)

CSV_COLUMNS: tuple[str, ...] = (
    "Endpoint",
    "Date/Time",
    "Total Requests",
    "Success Rate (%)",
    "Min Response Time (ms)",
    "Max Response Time (ms)",
    "Avg Response Time (ms)",
    "Median Response Time (ms)",
    "P95 Response Time (ms)",
    "P99 Response Time (ms)",
    "Avg Blocked Time (ms)",
    "Avg Connecting Time (ms)",
    "Avg Sending Time (ms)",
    "Avg Waiting Time (ms)",
    "Avg Receiving Time (ms)",
    "Total Data Received (KB)",
    "Total Data Sent (KB)",
    "Requests Per Second",
    "Peak Request Rate (RPS)",
    "Response Time at Peak (ms)",
    "Max Load Level (VUs)",
)

ANALYSIS_COLUMNS: tuple[str, ...] = (
    "Endpoint",
    "Requests",
    "Avg (ms)",
    "Min (ms)",
    "Max (ms)",
    "P50 (ms)",
    "P90 (ms)",
    "P95 (ms)",
    "P99 (ms)",
    "Errors",
    "Error Rate (%)",
)

MODE_CREATE = "create"
MODE_APPEND = "append"

_LEVEL_ICON = {EXCELLENT: "🟢", GOOD: "🟡", NEEDS_IMPROVEMENT: "🔴"}
_LEVEL_LABEL = {
    EXCELLENT: "EXCELLENT",
    GOOD: "GOOD",
    ACCEPTABLE: "ACCEPTABLE",
    NEEDS_IMPROVEMENT: "NEEDS IMPROVEMENT",
}


# ── Data models ──────────────────────────────────────────────────────


@dataclass
class PhaseResult:
    name: str
    passed: bool
    duration_ms: float = 0.0
    detail: str = ""
    exit_code: int = EXIT_FAILURE


# ── Formatting ───────────────────────────────────────────────────────


def round_half_up(value: float, digits: int = 0) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _ms(value: float) -> str:
    return str(int(round_half_up(value)))


def _fixed(value: float, digits: int) -> str:
    return f"{round_half_up(value, digits):.{digits}f}"


def file_timestamp(moment: datetime | None = None) -> str:
    """Filesystem-safe UTC timestamp, e.g. ``2025-09-12T15-32-09-123Z``."""
    moment = moment or datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S-") + f"{moment.microsecond // 1000:03d}Z"


def summary_row(s: EndpointSummary) -> list[str]:
    return [
        s.endpoint,
        s.generated_at,
        str(s.total_requests),
        _fixed(s.success_rate_pct, 1),
        _ms(s.min_ms),
        _ms(s.max_ms),
        _ms(s.avg_ms),
        _ms(s.median_ms),
        _ms(s.p95_ms),
        _ms(s.p99_ms),
        _fixed(s.avg_blocked_ms, 2),
        _fixed(s.avg_connecting_ms, 2),
        _fixed(s.avg_sending_ms, 2),
        _fixed(s.avg_waiting_ms, 2),
        _fixed(s.avg_receiving_ms, 2),
        _ms(s.data_received_kb),
        _ms(s.data_sent_kb),
        _fixed(s.requests_per_second, 2),
        _fixed(s.peak_request_rate, 1),
        _ms(s.response_time_at_peak_ms),
        str(s.max_load_level),
    ]


def render_csv(rows: Iterable[Iterable[str]], quote_all: bool = True) -> str:
    buf = io.StringIO()
    writer = csv.writer(
        buf,
        quoting=csv.QUOTE_ALL if quote_all else csv.QUOTE_MINIMAL,
        lineterminator="\n",
    )
    writer.writerows(rows)
    return buf.getvalue()


# ── CSV writers ──────────────────────────────────────────────────────


def _read_existing(path: str) -> str:
    if not os.path.exists(path):
        return ""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as exc:
        raise FileAccessError(f"Cannot read {path}: {exc.strerror or exc}") from exc


def _write_text(path: str, content: str) -> None:
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as exc:
        raise FileAccessError(f"Cannot write {path}: {exc.strerror or exc}") from exc


def _append_text(path: str, content: str) -> None:
    try:
        with open(path, "a", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as exc:
        raise FileAccessError(f"Cannot append to {path}: {exc.strerror or exc}") from exc


def _block_separator(existing: str) -> str:
    """Newlines that leave exactly one blank line before the next run block."""
    if existing.endswith("\n\n"):
        return ""
    if existing.endswith("\n"):
        return "\n"
    return "\n\n"


def write_summary_csv(
    path: str,
    summaries: Mapping[str, EndpointSummary],
    mode: str = MODE_CREATE,
) -> str:
    """Write endpoint summaries to *path*.

    Returns the mode actually used: append on a missing or empty file
    behaves exactly like create.  Appending never rewrites earlier runs, so a
    failed write leaves them intact.
    """
    rows = [summary_row(s) for s in summaries.values()]
    existing = _read_existing(path) if mode == MODE_APPEND else ""

    if existing.strip():
        _append_text(path, _block_separator(existing) + render_csv(rows))
        used = MODE_APPEND
    else:
        _write_text(path, render_csv([list(CSV_COLUMNS), *rows]))
        used = MODE_CREATE

    logger.info("%s %s (%d endpoint row(s))", "Appended to" if used == MODE_APPEND else "Wrote", path, len(rows))
    return used


def analysis_csv_path(input_path: str) -> str:
    base, ext = os.path.splitext(input_path)
    if ext.lower() == ".json":
        return f"{base}-detailed-analysis.csv"
    return f"{input_path}-detailed-analysis.csv"


def write_analysis_csv(path: str, summaries: Mapping[str, EndpointSummary]) -> None:
    """Analyzer table: one row per endpoint that recorded durations."""
    rows: list[list[str]] = [list(ANALYSIS_COLUMNS)]
    for s in summaries.values():
        if not s.duration_count:
            continue
        error_rate = s.failed_requests / s.duration_count * 100
        rows.append(
            [
                s.endpoint,
                str(s.duration_count),
                _fixed(s.avg_ms, 2),
                _fixed(s.min_ms, 2),
                _fixed(s.max_ms, 2),
                _fixed(s.p50_ms, 2),
                _fixed(s.p90_ms, 2),
                _fixed(s.p95_ms, 2),
                _fixed(s.p99_ms, 2),
                str(s.failed_requests),
                _fixed(error_rate, 2),
            ]
        )
    _write_text(path, render_csv(rows, quote_all=False))
    logger.info("Detailed analysis saved to %s", path)


# ── JSON writer ──────────────────────────────────────────────────────


def _to_dict(obj: Any) -> Any:
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    return obj


def write_json_summary(
    path: str,
    run: RunSummary,
    summaries: Mapping[str, EndpointSummary],
    source: str = "",
) -> None:
    payload = {
        "source": source,
        "run": _to_dict(run),
        "endpoints": [_to_dict(s) for s in summaries.values()],
    }
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False, default=str)
    except OSError as exc:
        raise FileAccessError(f"Cannot write {path}: {exc.strerror or exc}") from exc
    logger.info("JSON summary written to %s", path)


# ── Console ──────────────────────────────────────────────────────────


def render_console(
    run: RunSummary,
    summaries: Mapping[str, EndpointSummary],
    console: Console | None = None,
    title: str = "k6 Load Test Results",
) -> None:
    console = console or Console()
    console.print()
    console.rule(f"[bold]{title}[/bold]")

    console.print(
        f"\n[bold]Overall:[/bold] {run.total_requests:,} reqs, "
        f"{run.requests_per_second:.2f} rps, "
        f"err={run.error_rate_pct:.2f}%, "
        f"avg={run.avg_ms:.2f}ms, p95={run.p95_ms:.2f}ms, p99={run.p99_ms:.2f}ms, "
        f"grade={run.grade}"
    )

    if not summaries:
        console.print("\n[yellow]No endpoints found in the results.[/yellow]\n")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Endpoint")
    table.add_column("Requests", justify="right")
    table.add_column("Success %", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Median", justify="right")
    table.add_column("p95", justify="right")
    table.add_column("p99", justify="right")
    table.add_column("Errors", justify="right")
    for s in summaries.values():
        table.add_row(
            s.endpoint,
            f"{s.total_requests:,}",
            f"{s.success_rate_pct:.1f}%" if s.checks_total else "–",
            f"{s.avg_ms:.0f}ms",
            f"{s.min_ms:.0f}ms",
            f"{s.max_ms:.0f}ms",
            f"{s.median_ms:.0f}ms",
            f"{s.p95_ms:.0f}ms",
            f"{s.p99_ms:.0f}ms",
            str(s.failed_requests),
        )
    console.print(table)

    if run.fastest_endpoint and run.slowest_endpoint and run.fastest_endpoint != run.slowest_endpoint:
        console.print("\n[bold]Comparison:[/bold]")
        console.print(f"  🏆 Fastest: {run.fastest_endpoint} ({run.fastest_avg_ms:.0f}ms avg)")
        console.print(f"  🐌 Slowest: {run.slowest_endpoint} ({run.slowest_avg_ms:.0f}ms avg)")
        console.print(f"  📊 Difference: {run.slowest_avg_ms - run.fastest_avg_ms:.0f}ms")

    failing = [s for s in summaries.values() if s.failed_requests]
    console.print("\n[bold]Errors:[/bold]")
    if failing:
        for s in failing:
            console.print(f"  {s.endpoint}: {s.failed_requests} failed request(s)")
    else:
        console.print("  No errors detected ✅")

    if run.insights:
        console.print("\n[bold]Insights:[/bold]")
        for insight in run.insights:
            icon = _LEVEL_ICON.get(insight.level, "🟠")
            console.print(f"  {icon} {_LEVEL_LABEL[insight.level]}: {insight.message}")
    console.print()


def render_phases(
    phases: Iterable[PhaseResult],
    console: Console | None = None,
    total_duration_s: float = 0.0,
) -> None:
    console = console or Console()
    phases = list(phases)
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Phase")
    table.add_column("Status")
    table.add_column("Duration")
    table.add_column("Detail")
    for p in phases:
        status = "[green]PASS[/green]" if p.passed else "[red]FAIL[/red]"
        table.add_row(p.name, status, f"{p.duration_ms:.0f}ms", p.detail[:80])
    console.print(table)

    ok = all(p.passed for p in phases)
    verdict = "[bold green]✅ WORKFLOW PASSED[/bold green]" if ok else "[bold red]❌ WORKFLOW FAILED[/bold red]"
    console.print(f"\n{verdict}  (duration: {total_duration_s:.1f}s)\n")
