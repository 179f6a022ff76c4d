"""
Unit tests – endpoint summaries, run summary, insights and grade.

Coverage:
  - The reference case: endpoint A, durations 100 and 200
  - Success rate with zero checks (0.0, never NaN) vs. all checks failed
  - Requests/sec over the request time span, peak response time by load level
  - Proportional distribution of run-global data volumes
  - Run roll-up: totals, fastest/slowest endpoint, grade
  - Insight thresholds and grade boundaries
  - summarize_file on a realistic run and on an empty file
"""

import math

import pytest

from tests.conftest import point, request, ts, write_ndjson
from tools.k6.aggregator import EndpointAggregator
from tools.k6.samples import sample_from_record
from tools.k6.summary import (
    ACCEPTABLE,
    EXCELLENT,
    GOOD,
    NEEDS_IMPROVEMENT,
    Insight,
    performance_grade,
    rate_average,
    rate_errors,
    rate_p95,
    summarize_endpoints,
    summarize_file,
    summarize_run,
)


def _aggregate(records):
    agg = EndpointAggregator()
    agg.consume(sample_from_record(r) for r in records)
    return agg


# ═══════════════════════════════════════════════════════════════════════
#  Endpoint summaries
# ═══════════════════════════════════════════════════════════════════════


def test_reference_case_two_durations():
    agg = _aggregate(
        [
            point("http_req_duration", 100, endpoint="A"),
            point("http_req_duration", 200, endpoint="A"),
        ]
    )
    s = summarize_endpoints(agg, generated_at="2025-09-12T15:32:09+00:00")["A"]
    assert s.min_ms == 100
    assert s.max_ms == 200
    assert s.avg_ms == 150
    assert s.median_ms == 200
    assert s.generated_at == "2025-09-12T15:32:09+00:00"


def test_zero_checks_reports_zero_success_rate():
    agg = _aggregate([point("http_req_duration", 100, endpoint="A")])
    s = summarize_endpoints(agg)["A"]
    assert s.success_rate_pct == 0.0
    assert s.checks_total == 0
    assert math.isfinite(s.success_rate_pct)


def test_all_checks_failed_is_distinguishable():
    agg = _aggregate([point("checks", 0, endpoint="A"), point("checks", 0, endpoint="A")])
    s = summarize_endpoints(agg)["A"]
    assert s.success_rate_pct == 0.0
    assert s.checks_total == 2


def test_success_rate_one_decimal():
    agg = _aggregate([point("checks", v, endpoint="A") for v in (1, 1, 0)])
    assert summarize_endpoints(agg)["A"].success_rate_pct == 66.7


def test_bucket_without_durations_reports_zero_times():
    agg = _aggregate([point("checks", 1, endpoint="A")])
    s = summarize_endpoints(agg)["A"]
    assert (s.min_ms, s.max_ms, s.avg_ms, s.median_ms, s.p95_ms, s.p99_ms) == (0, 0, 0, 0, 0, 0)
    assert s.duration_count == 0


def test_requests_per_second_over_time_span():
    records = []
    for i in range(5):
        records += request("Apps", 100.0, at=i * 0.5)
    s = summarize_endpoints(_aggregate(records))["Apps"]
    assert s.total_requests == 5
    assert s.requests_per_second == pytest.approx(2.5)
    assert s.peak_request_rate == 2.5


def test_requests_per_second_minimum_span_one_second():
    records = request("Apps", 100.0, at=0) + request("Apps", 100.0, at=0.2)
    s = summarize_endpoints(_aggregate(records))["Apps"]
    assert s.requests_per_second == 2.0


def test_response_time_at_peak_load_level():
    records = [
        point("http_reqs", 1, ts(0), endpoint="Apps", load_level="1"),
        point("http_reqs", 1, ts(1), endpoint="Apps", load_level="10"),
        point("http_req_duration", 50.0, ts(0), endpoint="Apps", load_level="1"),
        point("http_req_duration", 400.0, ts(1), endpoint="Apps", load_level="10"),
        point("http_req_duration", 600.0, ts(1), endpoint="Apps", load_level="10"),
    ]
    s = summarize_endpoints(_aggregate(records))["Apps"]
    assert s.max_load_level == 10
    assert s.response_time_at_peak_ms == 500.0


def test_no_load_level_reports_zero():
    s = summarize_endpoints(_aggregate(request("Apps", 100.0)))["Apps"]
    assert s.max_load_level == 0
    assert s.response_time_at_peak_ms == 0.0


def test_timing_phase_averages():
    records = [
        point("http_req_waiting", 100.0, endpoint="Apps"),
        point("http_req_waiting", 200.0, endpoint="Apps"),
        point("http_req_blocked", 3.0, endpoint="Apps"),
    ]
    s = summarize_endpoints(_aggregate(records))["Apps"]
    assert s.avg_waiting_ms == 150.0
    assert s.avg_blocked_ms == 3.0
    assert s.avg_connecting_ms == 0.0


def test_global_bytes_distributed_by_request_share():
    records = request("A", 100.0) * 1
    records += request("A", 100.0, at=1) + request("A", 100.0, at=2)
    records += request("B", 100.0)
    records += [point("data_received", 4096), point("data_sent", 1024, endpoint="B")]
    summaries = summarize_endpoints(_aggregate(records))
    assert summaries["A"].data_received_kb == pytest.approx(3.0)
    assert summaries["B"].data_received_kb == pytest.approx(1.0)
    assert summaries["A"].data_sent_kb == 0.0
    assert summaries["B"].data_sent_kb == pytest.approx(1.0)


def test_summary_order_follows_first_seen():
    records = request("Zeta", 1.0) + request("Alpha", 1.0)
    assert list(summarize_endpoints(_aggregate(records))) == ["Zeta", "Alpha"]


# ═══════════════════════════════════════════════════════════════════════
#  Insights & grade
# ═══════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    "avg, level",
    [(0, EXCELLENT), (199.9, EXCELLENT), (200, GOOD), (499, GOOD), (500, ACCEPTABLE), (999, ACCEPTABLE), (1000, NEEDS_IMPROVEMENT)],
)
def test_rate_average_thresholds(avg, level):
    assert rate_average(avg).level == level


@pytest.mark.parametrize("p95, level", [(499, EXCELLENT), (500, GOOD), (999, GOOD), (1000, ACCEPTABLE), (5000, ACCEPTABLE)])
def test_rate_p95_thresholds(p95, level):
    assert rate_p95(p95).level == level


@pytest.mark.parametrize("err, level", [(0, EXCELLENT), (0.99, EXCELLENT), (1, GOOD), (4.99, GOOD), (5, NEEDS_IMPROVEMENT)])
def test_rate_errors_thresholds(err, level):
    assert rate_errors(err).level == level


def _insights(*levels):
    return [Insight("t", level, "") for level in levels]


@pytest.mark.parametrize(
    "levels, grade",
    [
        ((EXCELLENT, EXCELLENT, EXCELLENT), "A"),
        ((EXCELLENT, EXCELLENT, GOOD), "A"),
        ((GOOD, GOOD, GOOD), "B"),
        ((EXCELLENT, GOOD, NEEDS_IMPROVEMENT), "C"),
        ((ACCEPTABLE, ACCEPTABLE, GOOD), "D"),
        ((NEEDS_IMPROVEMENT, ACCEPTABLE, NEEDS_IMPROVEMENT), "F"),
    ],
)
def test_performance_grade(levels, grade):
    assert performance_grade(_insights(*levels)) == grade


def test_performance_grade_without_insights():
    assert performance_grade([]) == "N/A"


# ═══════════════════════════════════════════════════════════════════════
#  Run summary
# ═══════════════════════════════════════════════════════════════════════


def test_run_summary_totals_and_extremes():
    records = request("Fast", 50.0) + request("Fast", 70.0, at=1)
    records += request("Slow", 900.0, ok=False, at=2)
    agg = _aggregate(records)
    run = summarize_run(agg, summarize_endpoints(agg))

    assert run.endpoints == 2
    assert run.total_requests == 3
    assert run.failed_requests == 1
    assert run.successful_requests == 2
    assert run.success_rate_pct == pytest.approx(66.67)
    assert run.error_rate_pct == pytest.approx(100 / 3)
    assert run.fastest_endpoint == "Fast"
    assert run.fastest_avg_ms == 60.0
    assert run.slowest_endpoint == "Slow"
    assert run.slowest_avg_ms == 900.0
    assert run.requests_per_second == pytest.approx(1.5)


def test_run_summary_empty():
    agg = EndpointAggregator()
    run = summarize_run(agg, {})
    assert run.total_requests == 0
    assert run.error_rate_pct == 0.0
    assert run.grade == "N/A"
    assert run.insights == ()


def test_summarize_file_realistic_run(results_file):
    results = summarize_file(results_file)

    assert list(results.endpoints) == ["Device Information", "Apps", "User Profile"]
    assert results.reader.ignored == 1
    assert results.aggregator.unrouted == 1

    device = results.endpoints["Device Information"]
    assert device.total_requests == 5
    assert device.min_ms == 98.0
    assert device.max_ms == 180.0
    assert device.avg_ms == pytest.approx(136.75)
    assert device.median_ms == 135.5
    assert device.p95_ms == 180.0
    assert device.success_rate_pct == 100.0
    assert device.requests_per_second == pytest.approx(2.5)
    assert device.avg_waiting_ms == 105.0
    assert device.max_load_level == 5
    assert device.response_time_at_peak_ms == pytest.approx(136.75)
    assert device.data_received_kb == pytest.approx(5.0)

    apps = results.endpoints["Apps"]
    assert apps.success_rate_pct == 75.0
    assert apps.failed_requests == 1
    assert apps.median_ms == 380.0

    run = results.run
    assert run.total_requests == 11
    assert run.failed_requests == 1
    assert run.success_rate_pct == pytest.approx(90.91)
    assert run.median_ms == 150.25
    assert run.p95_ms == 450.0
    assert run.fastest_endpoint == "User Profile"
    assert run.slowest_endpoint == "Apps"
    assert run.requests_per_second == pytest.approx(5.5)
    assert run.data_received_kb == pytest.approx(11.0)
    assert run.data_sent_kb == pytest.approx(2.0)
    assert [i.level for i in run.insights] == [GOOD, EXCELLENT, NEEDS_IMPROVEMENT]
    assert run.grade == "C"


def test_summarize_file_without_samples(tmp_path):
    path = write_ndjson(tmp_path / "empty.json", [{"type": "Metric", "metric": "vus", "data": {}}])
    results = summarize_file(path)
    assert results.endpoints == {}
    assert results.run.total_requests == 0
