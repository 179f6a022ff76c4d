"""
Parser for k6's end-of-test summary (``--summary-export`` / ``handleSummary``).

Two layouts exist in the wild:

  * ``metrics.<name>.values.<stat>``  (handleSummary data, k6 ≥ 0.30)
  * ``metrics.<name>.<stat>``         (legacy ``--summary-export``)

Both are accepted.  Percentile keys may be spelled ``p(95)`` or ``p95``.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any

from common.errors import FileAccessError, ParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverallMetrics:
    total_requests: int = 0
    request_rate: float = 0.0
    avg_ms: float = 0.0
    median_ms: float = 0.0
    p90_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    max_ms: float = 0.0
    error_rate_pct: float = 0.0
    failed_requests: int = 0
    checks_passed: int = 0
    checks_failed: int = 0
    test_duration_s: float | None = None


def _values(metrics: dict[str, Any], name: str) -> dict[str, Any]:
    metric = metrics.get(name)
    if not isinstance(metric, dict):
        return {}
    values = metric.get("values")
    return values if isinstance(values, dict) else metric


def _stat(values: dict[str, Any], *keys: str, default: float = 0.0) -> float:
    for key in keys:
        raw = values.get(key)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            continue
        try:
            number = float(raw)
        except OverflowError:
            continue
        if math.isfinite(number):
            return number
    return default


def _duration_s(data: dict[str, Any]) -> float | None:
    state = data.get("state")
    if isinstance(state, dict) and isinstance(state.get("testRunDurationMs"), (int, float)):
        return state["testRunDurationMs"] / 1000
    root = data.get("root_group")
    if isinstance(root, dict) and isinstance(root.get("duration"), (int, float)):
        # legacy exports report the root group duration in nanoseconds
        return root["duration"] / 1_000_000_000
    return None


def parse_summary(data: dict[str, Any]) -> OverallMetrics:
    metrics = data.get("metrics")
    if not isinstance(metrics, dict):
        raise ParseError("k6 summary has no 'metrics' object")

    reqs = _values(metrics, "http_reqs")
    duration = _values(metrics, "http_req_duration")
    failed = _values(metrics, "http_req_failed")
    checks = _values(metrics, "checks")

    return OverallMetrics(
        total_requests=int(_stat(reqs, "count")),
        request_rate=_stat(reqs, "rate"),
        avg_ms=_stat(duration, "avg"),
        median_ms=_stat(duration, "med", "p(50)", "p50"),
        p90_ms=_stat(duration, "p(90)", "p90"),
        p95_ms=_stat(duration, "p(95)", "p95"),
        p99_ms=_stat(duration, "p(99)", "p99"),
        max_ms=_stat(duration, "max"),
        error_rate_pct=_stat(failed, "rate", "value") * 100,
        failed_requests=int(_stat(failed, "passes", "count")),
        checks_passed=int(_stat(checks, "passes")),
        checks_failed=int(_stat(checks, "fails")),
        test_duration_s=_duration_s(data),
    )


def parse_summary_export(path: str) -> OverallMetrics:
    """Read a k6 summary JSON file into :class:`OverallMetrics`."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise FileAccessError(f"k6 summary not found: {path}") from exc
    except OSError as exc:
        raise FileAccessError(f"Cannot read {path}: {exc.strerror or exc}") from exc
    except json.JSONDecodeError as exc:
        raise ParseError(f"{path} is not valid JSON (line {exc.lineno}): {exc.msg}") from exc

    if not isinstance(data, dict):
        raise ParseError(f"{path} does not contain a JSON object")

    overall = parse_summary(data)
    logger.info("Parsed k6 summary %s: %d request(s)", path, overall.total_requests)
    return overall
