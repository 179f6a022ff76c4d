"""
Endpoint and run summaries derived from aggregated buckets.

``summarize_endpoints`` turns every :class:`EndpointBucket` into a frozen
:class:`EndpointSummary`; ``summarize_run`` rolls the whole run up into a
:class:`RunSummary` with a performance grade.

Empty duration sequences are the one place where statistics fall back to a
sentinel: response-time fields are reported as ``0.0``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Sequence

from common.errors import EmptyInputError
from tools.k6.aggregator import EndpointAggregator, EndpointBucket, ResolverChain
from tools.k6.samples import SampleReader, parse_time
from tools.k6.stats import Distribution, describe, mean

logger = logging.getLogger(__name__)

EXCELLENT = "excellent"
GOOD = "good"
ACCEPTABLE = "acceptable"
NEEDS_IMPROVEMENT = "needs_improvement"

_LEVEL_SCORE = {EXCELLENT: 3, GOOD: 2, ACCEPTABLE: 1, NEEDS_IMPROVEMENT: 0}


# ── Data models ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class EndpointSummary:
    endpoint: str
    generated_at: str
    total_requests: int = 0
    success_rate_pct: float = 0.0
    checks_total: int = 0
    failed_requests: int = 0
    min_ms: float = 0.0
    max_ms: float = 0.0
    avg_ms: float = 0.0
    median_ms: float = 0.0
    p90_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    avg_blocked_ms: float = 0.0
    avg_connecting_ms: float = 0.0
    avg_sending_ms: float = 0.0
    avg_waiting_ms: float = 0.0
    avg_receiving_ms: float = 0.0
    data_received_kb: float = 0.0
    data_sent_kb: float = 0.0
    requests_per_second: float = 0.0
    peak_request_rate: float = 0.0
    response_time_at_peak_ms: float = 0.0
    max_load_level: int = 0
    duration_count: int = 0
    p50_ms: float = 0.0


@dataclass(frozen=True)
class Insight:
    topic: str
    level: str
    message: str


@dataclass(frozen=True)
class RunSummary:
    generated_at: str
    endpoints: int = 0
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    success_rate_pct: float = 0.0
    error_rate_pct: float = 0.0
    avg_ms: float = 0.0
    median_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    fastest_endpoint: str = ""
    fastest_avg_ms: float = 0.0
    slowest_endpoint: str = ""
    slowest_avg_ms: float = 0.0
    requests_per_second: float = 0.0
    data_received_kb: float = 0.0
    data_sent_kb: float = 0.0
    grade: str = "N/A"
    insights: tuple[Insight, ...] = field(default_factory=tuple)


# ── Helpers ──────────────────────────────────────────────────────────


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _avg_or_zero(values: Sequence[float]) -> float:
    try:
        return mean(values)
    except EmptyInputError:
        return 0.0


def _distribution(values: Iterable[float]) -> Distribution | None:
    try:
        return describe(sorted(values))
    except EmptyInputError:
        return None


def _span_seconds(times: Iterable[str]) -> float:
    """Seconds between first and last timestamp, at least 1."""
    parsed = [t for t in (parse_time(raw) for raw in times) if t is not None]
    if len(parsed) < 2:
        return 1.0
    return max(1.0, (max(parsed) - min(parsed)).total_seconds())


# ── Endpoint summaries ───────────────────────────────────────────────


def summarize_bucket(
    bucket: EndpointBucket,
    generated_at: str,
    global_bytes_sent: float = 0.0,
    global_bytes_received: float = 0.0,
    request_share: float = 0.0,
) -> EndpointSummary:
    dist = _distribution(bucket.durations)

    if bucket.checks_total:
        success_rate = round(bucket.checks_passed / bucket.checks_total * 100, 1)
    else:
        success_rate = 0.0

    rps = 0.0
    if bucket.requests:
        rps = bucket.requests / _span_seconds(bucket.request_times)

    max_level = max(bucket.load_levels) if bucket.load_levels else 0
    at_peak = _avg_or_zero(bucket.durations_by_load_level.get(max_level, [])) if max_level else 0.0

    received = bucket.bytes_received + global_bytes_received * request_share
    sent = bucket.bytes_sent + global_bytes_sent * request_share

    return EndpointSummary(
        endpoint=bucket.endpoint,
        generated_at=generated_at,
        total_requests=bucket.requests,
        success_rate_pct=success_rate,
        checks_total=bucket.checks_total,
        failed_requests=bucket.failed_requests,
        min_ms=dist.min if dist else 0.0,
        max_ms=dist.max if dist else 0.0,
        avg_ms=dist.avg if dist else 0.0,
        median_ms=dist.median if dist else 0.0,
        p50_ms=dist.p(50) if dist else 0.0,
        p90_ms=dist.p(90) if dist else 0.0,
        p95_ms=dist.p(95) if dist else 0.0,
        p99_ms=dist.p(99) if dist else 0.0,
        avg_blocked_ms=_avg_or_zero(bucket.timings["blocked"]),
        avg_connecting_ms=_avg_or_zero(bucket.timings["connecting"]),
        avg_sending_ms=_avg_or_zero(bucket.timings["sending"]),
        avg_waiting_ms=_avg_or_zero(bucket.timings["waiting"]),
        avg_receiving_ms=_avg_or_zero(bucket.timings["receiving"]),
        data_received_kb=received / 1024,
        data_sent_kb=sent / 1024,
        requests_per_second=rps,
        peak_request_rate=round(rps, 1),
        response_time_at_peak_ms=at_peak,
        max_load_level=max_level,
        duration_count=dist.count if dist else 0,
    )


def summarize_endpoints(
    aggregator: EndpointAggregator,
    generated_at: str | None = None,
) -> dict[str, EndpointSummary]:
    """Summaries keyed by endpoint, in first-seen order."""
    generated_at = generated_at or now_iso()
    total_requests = aggregator.total_requests()
    summaries: dict[str, EndpointSummary] = {}
    for endpoint, bucket in aggregator.buckets.items():
        share = bucket.requests / total_requests if total_requests else 0.0
        summaries[endpoint] = summarize_bucket(
            bucket,
            generated_at,
            global_bytes_sent=aggregator.global_bytes_sent,
            global_bytes_received=aggregator.global_bytes_received,
            request_share=share,
        )
    return summaries


# ── Insights ─────────────────────────────────────────────────────────


def rate_average(avg_ms: float) -> Insight:
    if avg_ms < 200:
        return Insight("average", EXCELLENT, "Average response time under 200ms")
    if avg_ms < 500:
        return Insight("average", GOOD, "Average response time under 500ms")
    if avg_ms < 1000:
        return Insight("average", ACCEPTABLE, "Average response time under 1s")
    return Insight("average", NEEDS_IMPROVEMENT, "Average response time over 1s")


def rate_p95(p95_ms: float) -> Insight:
    if p95_ms < 500:
        return Insight("p95", EXCELLENT, "P95 response time under 500ms")
    if p95_ms < 1000:
        return Insight("p95", GOOD, "P95 response time under 1s")
    return Insight("p95", ACCEPTABLE, "P95 response time over 1s")


def rate_errors(error_rate_pct: float) -> Insight:
    if error_rate_pct < 1:
        return Insight("errors", EXCELLENT, "Error rate under 1%")
    if error_rate_pct < 5:
        return Insight("errors", GOOD, "Error rate under 5%")
    return Insight("errors", NEEDS_IMPROVEMENT, "Error rate over 5%")


def performance_insights(avg_ms: float, p95_ms: float, error_rate_pct: float) -> tuple[Insight, ...]:
    return (rate_average(avg_ms), rate_p95(p95_ms), rate_errors(error_rate_pct))


def performance_grade(insights: Sequence[Insight]) -> str:
    """A–F from the summed insight levels (3 per excellent rating)."""
    if not insights:
        return "N/A"
    score = sum(_LEVEL_SCORE[i.level] for i in insights)
    ratio = score / (3 * len(insights))
    if ratio >= 0.85:
        return "A"
    if ratio >= 0.65:
        return "B"
    if ratio >= 0.45:
        return "C"
    if ratio >= 0.25:
        return "D"
    return "F"


# ── Run summary ──────────────────────────────────────────────────────


def summarize_run(
    aggregator: EndpointAggregator,
    endpoints: dict[str, EndpointSummary],
    generated_at: str | None = None,
) -> RunSummary:
    generated_at = generated_at or now_iso()
    buckets = list(aggregator.buckets.values())

    total = sum(b.requests for b in buckets)
    failed = sum(b.failed_requests for b in buckets)
    successful = max(total - failed, 0)
    error_rate = failed / total * 100 if total else 0.0

    dist = _distribution(d for b in buckets for d in b.durations)
    avg_ms = dist.avg if dist else 0.0
    p95_ms = dist.p(95) if dist else 0.0

    timed = [s for s in endpoints.values() if s.duration_count]
    fastest = min(timed, key=lambda s: s.avg_ms) if timed else None
    slowest = max(timed, key=lambda s: s.avg_ms) if timed else None

    rps = total / _span_seconds(t for b in buckets for t in b.request_times) if total else 0.0

    bytes_received = sum(b.bytes_received for b in buckets) + aggregator.global_bytes_received
    bytes_sent = sum(b.bytes_sent for b in buckets) + aggregator.global_bytes_sent

    insights = performance_insights(avg_ms, p95_ms, error_rate) if dist else ()

    return RunSummary(
        generated_at=generated_at,
        endpoints=len(endpoints),
        total_requests=total,
        successful_requests=successful,
        failed_requests=failed,
        success_rate_pct=round(successful / total * 100, 2) if total else 0.0,
        error_rate_pct=error_rate,
        avg_ms=avg_ms,
        median_ms=dist.median if dist else 0.0,
        p95_ms=p95_ms,
        p99_ms=dist.p(99) if dist else 0.0,
        fastest_endpoint=fastest.endpoint if fastest else "",
        fastest_avg_ms=fastest.avg_ms if fastest else 0.0,
        slowest_endpoint=slowest.endpoint if slowest else "",
        slowest_avg_ms=slowest.avg_ms if slowest else 0.0,
        requests_per_second=rps,
        data_received_kb=bytes_received / 1024,
        data_sent_kb=bytes_sent / 1024,
        grade=performance_grade(insights),
        insights=insights,
    )


# ── File pipeline ────────────────────────────────────────────────────


@dataclass
class Results:
    """Everything one k6 results file reduces to."""

    source: str
    reader: SampleReader
    aggregator: EndpointAggregator
    endpoints: dict[str, EndpointSummary]
    run: RunSummary


def summarize_file(
    path: str,
    resolver: ResolverChain | None = None,
    generated_at: str | None = None,
) -> Results:
    """Read, aggregate and summarize *path* in one pass.

    A file with no endpoints is not an error: it yields an empty result and a
    warning, so callers still write an (empty) report.
    """
    generated_at = generated_at or now_iso()
    reader = SampleReader(path)
    aggregator = EndpointAggregator(resolver)
    aggregator.consume(reader)

    endpoints = summarize_endpoints(aggregator, generated_at)
    if not endpoints:
        logger.warning("No endpoints found in %s (%d sample(s) read)", path, reader.samples)
    return Results(
        source=path,
        reader=reader,
        aggregator=aggregator,
        endpoints=endpoints,
        run=summarize_run(aggregator, endpoints, generated_at),
    )
