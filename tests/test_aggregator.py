"""
Unit tests – Endpoint Aggregator.

Coverage:
  - Resolver chain precedence: tag > check name > "Unknown"
  - Metric routing into bucket fields
  - Non-routed metrics never create buckets
  - Untagged data_sent / data_received become run-global totals
  - Load-level tags
  - Deterministic first-seen bucket order
"""

from tests.conftest import point
from tools.k6.aggregator import (
    UNKNOWN_ENDPOINT,
    CheckNameResolver,
    EndpointAggregator,
    ResolverChain,
    TagResolver,
    default_resolver,
)
from tools.k6.samples import sample_from_record


def _s(metric, value, **tags):
    return sample_from_record(point(metric, value, **tags))


def _aggregate(*samples, resolver=None):
    agg = EndpointAggregator(resolver)
    agg.consume(samples)
    return agg


# ═══════════════════════════════════════════════════════════════════════
#  Resolvers
# ═══════════════════════════════════════════════════════════════════════


def test_tag_resolver_first_matching_key():
    r = TagResolver(("endpoint", "name"))
    assert r.resolve(_s("http_reqs", 1, name="GET /apps")) == "GET /apps"
    assert r.resolve(_s("http_reqs", 1, endpoint="Apps", name="GET /apps")) == "Apps"
    assert r.resolve(_s("http_reqs", 1)) is None


def test_check_name_resolver_splits_on_separator():
    r = CheckNameResolver()
    assert r.resolve(_s("checks", 1, check="Device Information - status is 200")) == "Device Information"
    assert r.resolve(_s("checks", 1, check="status is 200")) is None


def test_check_name_resolver_custom_separator():
    r = CheckNameResolver(separator=" | ")
    assert r.resolve(_s("checks", 1, check="Apps | body ok")) == "Apps"


def test_chain_precedence_tag_over_check():
    chain = default_resolver()
    sample = _s("checks", 1, endpoint="Apps", check="Device Information - status is 200")
    assert chain.resolve(sample) == "Apps"


def test_chain_falls_back_to_unknown():
    chain = default_resolver()
    assert chain.resolve(_s("http_reqs", 1)) == UNKNOWN_ENDPOINT


def test_chain_custom_fallback():
    chain = ResolverChain(resolvers=(TagResolver(),), fallback="Other")
    assert chain.resolve(_s("http_reqs", 1)) == "Other"


def test_has_explicit_only_for_tags():
    chain = default_resolver()
    assert chain.has_explicit(_s("data_sent", 10, endpoint="Apps"))
    assert not chain.has_explicit(_s("data_sent", 10, check="Apps - ok"))


# ═══════════════════════════════════════════════════════════════════════
#  Routing
# ═══════════════════════════════════════════════════════════════════════


def test_routes_every_metric_kind():
    agg = _aggregate(
        _s("http_reqs", 1, endpoint="Apps"),
        _s("http_req_duration", 250.0, endpoint="Apps"),
        _s("http_req_failed", 1, endpoint="Apps"),
        _s("http_req_failed", 0, endpoint="Apps"),
        _s("checks", 1, endpoint="Apps"),
        _s("checks", 0, endpoint="Apps"),
        _s("checks", 1, endpoint="Apps"),
        _s("http_req_blocked", 1.5, endpoint="Apps"),
        _s("http_req_connecting", 2.5, endpoint="Apps"),
        _s("http_req_sending", 0.5, endpoint="Apps"),
        _s("http_req_waiting", 240.0, endpoint="Apps"),
        _s("http_req_receiving", 5.0, endpoint="Apps"),
        _s("data_sent", 300, endpoint="Apps"),
        _s("data_received", 2048, endpoint="Apps"),
    )
    b = agg.buckets["Apps"]
    assert b.requests == 1
    assert b.durations == [250.0]
    assert b.failed_requests == 1
    assert (b.checks_passed, b.checks_failed, b.checks_total) == (2, 1, 3)
    assert b.timings == {
        "blocked": [1.5],
        "connecting": [2.5],
        "sending": [0.5],
        "waiting": [240.0],
        "receiving": [5.0],
    }
    assert b.bytes_sent == 300
    assert b.bytes_received == 2048
    assert agg.global_bytes_sent == 0


def test_check_name_routes_into_derived_bucket():
    agg = _aggregate(
        _s("checks", 1, check="Device Information - status is 200"),
        _s("checks", 0, check="Device Information - body has serial"),
    )
    assert list(agg.buckets) == ["Device Information"]
    assert agg.buckets["Device Information"].checks_total == 2


def test_untagged_samples_go_to_unknown():
    agg = _aggregate(_s("http_req_duration", 99.0))
    assert list(agg.buckets) == [UNKNOWN_ENDPOINT]


def test_unrouted_metrics_create_no_bucket():
    agg = _aggregate(
        _s("vus", 10, endpoint="Apps"),
        _s("iterations", 1),
        _s("iteration_duration", 1000.0),
    )
    assert agg.buckets == {}
    assert agg.unrouted == 3
    assert agg.consumed == 3


def test_untagged_bytes_are_run_global_and_summed():
    agg = _aggregate(
        _s("http_reqs", 1, endpoint="Apps"),
        _s("data_received", 1000),
        _s("data_received", 500),
        _s("data_sent", 200),
    )
    assert agg.global_bytes_received == 1500
    assert agg.global_bytes_sent == 200
    assert agg.buckets["Apps"].bytes_received == 0


def test_load_levels_recorded():
    agg = _aggregate(
        _s("http_reqs", 1, endpoint="Apps", load_level="5"),
        _s("http_reqs", 1, endpoint="Apps", load_level="10.0"),
        _s("http_reqs", 1, endpoint="Apps", load_level="lots"),
        _s("http_req_duration", 100.0, endpoint="Apps", load_level="10"),
        _s("http_req_duration", 300.0, endpoint="Apps", load_level="10"),
        _s("http_req_duration", 50.0, endpoint="Apps"),
    )
    b = agg.buckets["Apps"]
    assert b.load_levels == {5, 10}
    assert b.durations_by_load_level == {10: [100.0, 300.0]}
    assert b.durations == [100.0, 300.0, 50.0]


def test_request_times_recorded():
    agg = _aggregate(_s("http_reqs", 1, endpoint="Apps"))
    assert len(agg.buckets["Apps"].request_times) == 1


def test_bucket_order_is_first_seen():
    agg = _aggregate(
        _s("http_reqs", 1, endpoint="User Profile"),
        _s("http_reqs", 1, endpoint="Apps"),
        _s("http_reqs", 1, endpoint="User Profile"),
        _s("http_reqs", 1, endpoint="Device Information"),
    )
    assert list(agg.buckets) == ["User Profile", "Apps", "Device Information"]
    assert agg.total_requests() == 4


def test_durations_keep_input_order():
    agg = _aggregate(*(_s("http_req_duration", v, endpoint="Apps") for v in (300.0, 100.0, 200.0)))
    assert agg.buckets["Apps"].durations == [300.0, 100.0, 200.0]
