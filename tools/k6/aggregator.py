"""
Per-endpoint bucketing of k6 samples.

Endpoint resolution is a chain with fixed precedence:

  1. an explicit tag (``endpoint``; analysis also accepts k6's ``name``)
  2. the part of a check name before the separator
     (``"Device Information - status is 200"`` → ``"Device Information"``)
  3. ``"Unknown"``

One pass, one thread: the result only depends on the input order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol, Sequence

from tools.k6.samples import Sample

logger = logging.getLogger(__name__)

UNKNOWN_ENDPOINT = "Unknown"

TIMING_METRICS: dict[str, str] = {
    "http_req_blocked": "blocked",
    "http_req_connecting": "connecting",
    "http_req_sending": "sending",
    "http_req_waiting": "waiting",
    "http_req_receiving": "receiving",
}

ROUTED_METRICS = frozenset(
    {"http_reqs", "http_req_duration", "checks", "http_req_failed", "data_sent", "data_received"}
    | set(TIMING_METRICS)
)


# ── Endpoint resolvers ───────────────────────────────────────────────


class EndpointResolver(Protocol):
    def resolve(self, sample: Sample) -> str | None: ...


@dataclass(frozen=True)
class TagResolver:
    keys: tuple[str, ...] = ("endpoint",)

    def resolve(self, sample: Sample) -> str | None:
        for key in self.keys:
            value = sample.tags.get(key)
            if value:
                return value
        return None


@dataclass(frozen=True)
class CheckNameResolver:
    separator: str = " - "

    def resolve(self, sample: Sample) -> str | None:
        check = sample.tags.get("check")
        if check and self.separator in check:
            return check.split(self.separator, 1)[0].strip() or None
        return None


@dataclass(frozen=True)
class ResolverChain:
    resolvers: tuple[EndpointResolver, ...]
    fallback: str = UNKNOWN_ENDPOINT

    def resolve(self, sample: Sample) -> str:
        for resolver in self.resolvers:
            endpoint = resolver.resolve(sample)
            if endpoint:
                return endpoint
        return self.fallback

    def has_explicit(self, sample: Sample) -> bool:
        return any(isinstance(r, TagResolver) and r.resolve(sample) for r in self.resolvers)


def default_resolver(tag_keys: Sequence[str] = ("endpoint",), separator: str = " - ") -> ResolverChain:
    return ResolverChain(resolvers=(TagResolver(tuple(tag_keys)), CheckNameResolver(separator)))


# ── Buckets ──────────────────────────────────────────────────────────


def _load_level(sample: Sample) -> int | None:
    raw = sample.tags.get("load_level")
    if raw is None:
        return None
    try:
        return int(float(raw))
    except ValueError:
        return None


@dataclass
class EndpointBucket:
    endpoint: str
    durations: list[float] = field(default_factory=list)
    requests: int = 0
    request_times: list[str] = field(default_factory=list)
    load_levels: set[int] = field(default_factory=set)
    durations_by_load_level: dict[int, list[float]] = field(default_factory=dict)
    checks_passed: int = 0
    checks_failed: int = 0
    failed_requests: int = 0
    timings: dict[str, list[float]] = field(
        default_factory=lambda: {phase: [] for phase in TIMING_METRICS.values()}
    )
    bytes_sent: float = 0.0
    bytes_received: float = 0.0

    @property
    def checks_total(self) -> int:
        return self.checks_passed + self.checks_failed

    def add(self, sample: Sample) -> None:
        metric = sample.metric
        value = sample.value
        if metric == "http_reqs":
            self.requests += 1
            if sample.time:
                self.request_times.append(sample.time)
            level = _load_level(sample)
            if level is not None:
                self.load_levels.add(level)
        elif metric == "http_req_duration":
            self.durations.append(value)
            level = _load_level(sample)
            if level is not None:
                self.durations_by_load_level.setdefault(level, []).append(value)
        elif metric == "checks":
            if value == 1:
                self.checks_passed += 1
            else:
                self.checks_failed += 1
        elif metric == "http_req_failed":
            if value == 1:
                self.failed_requests += 1
        elif metric in TIMING_METRICS:
            self.timings[TIMING_METRICS[metric]].append(value)
        elif metric == "data_sent":
            self.bytes_sent += value
        elif metric == "data_received":
            self.bytes_received += value


# ── Aggregator ───────────────────────────────────────────────────────


class EndpointAggregator:
    """Routes samples into lazily created :class:`EndpointBucket` objects.

    ``data_sent`` / ``data_received`` samples without an explicit endpoint tag
    are run-wide (k6 reports them per iteration); they are summed into
    ``global_bytes_sent`` / ``global_bytes_received`` instead of a bucket.
    """

    def __init__(self, resolver: ResolverChain | None = None):
        self.resolver = resolver or default_resolver()
        self.buckets: dict[str, EndpointBucket] = {}
        self.global_bytes_sent = 0.0
        self.global_bytes_received = 0.0
        self.consumed = 0
        self.unrouted = 0

    def bucket(self, endpoint: str) -> EndpointBucket:
        bucket = self.buckets.get(endpoint)
        if bucket is None:
            bucket = self.buckets[endpoint] = EndpointBucket(endpoint=endpoint)
        return bucket

    def add(self, sample: Sample) -> None:
        self.consumed += 1
        if sample.metric not in ROUTED_METRICS:
            self.unrouted += 1
            return
        if sample.metric in ("data_sent", "data_received") and not self.resolver.has_explicit(sample):
            if sample.metric == "data_sent":
                self.global_bytes_sent += sample.value
            else:
                self.global_bytes_received += sample.value
            return
        self.bucket(self.resolver.resolve(sample)).add(sample)

    def consume(self, samples: Iterable[Sample]) -> dict[str, EndpointBucket]:
        for sample in samples:
            self.add(sample)
        logger.debug(
            "Aggregated %d sample(s) into %d endpoint(s), %d unrouted",
            self.consumed,
            len(self.buckets),
            self.unrouted,
        )
        return self.buckets

    def total_requests(self) -> int:
        return sum(b.requests for b in self.buckets.values())
