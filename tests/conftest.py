"""Test fixtures for the k6 tools."""

import io
import json
import logging
import os

import pytest
from rich.console import Console

os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "INFO"

from tools.k6.config import K6Config

T0 = "2025-09-12T15:32:09.000000000Z"

_ENV_KEYS = [
    "INFLUXDB_HOST", "INFLUXDB_PORT", "INFLUXDB_DB", "INFLUXDB_USER", "INFLUXDB_PASSWORD",
    "INFLUXDB_RETENTION", "INFLUXDB_SCHEME",
    "GRAFANA_HOST", "GRAFANA_PORT", "GRAFANA_USER", "GRAFANA_PASSWORD", "GRAFANA_URL", "GRAFANA_API_TOKEN",
    "K6_OUTPUT_DIR", "K6_SCRIPT", "K6_SCENARIO", "K6_TRENDS_FILE", "K6_HISTORY_FILE",
    "K6_ENDPOINT_TAGS", "K6_CHECK_SEPARATOR", "K6_HTTP_TIMEOUT",
]


def ts(seconds: float = 0.0) -> str:
    """k6-style timestamp (nanosecond fraction) *seconds* after T0."""
    whole = int(seconds)
    frac = int(round((seconds - whole) * 1_000_000))
    return f"2025-09-12T15:32:{9 + whole:02d}.{frac:06d}789Z"


def point(metric: str, value, time: str | None = None, **tags) -> dict:
    """One k6 ``Point`` line."""
    return {
        "type": "Point",
        "metric": metric,
        "data": {"time": time or T0, "value": value, "tags": tags},
    }


def request(endpoint: str, duration: float, at: float = 0.0, ok: bool = True, **tags) -> list[dict]:
    """The lines k6 emits for one tagged HTTP request plus its check."""
    t = ts(at)
    tags = {"endpoint": endpoint, **tags}
    return [
        point("http_reqs", 1, t, **tags),
        point("http_req_duration", duration, t, **tags),
        point("http_req_failed", 0 if ok else 1, t, **tags),
        point("checks", 1 if ok else 0, t, check=f"{endpoint} - status is 200", **tags),
    ]


def write_ndjson(path, records) -> str:
    """Write records (dicts or raw strings) one per line."""
    with open(path, "w", encoding="utf-8") as f:
        for record in records:
            f.write(record if isinstance(record, str) else json.dumps(record))
            f.write("\n")
    return str(path)


# ── Realistic run: three endpoints of a device-management API ────────

DEVICE_INFO_DURATIONS = [120.0, 135.5, 150.25, 98.0, 180.0]
APPS_DURATIONS = [310.0, 295.0, 450.0, 380.0]
PROFILE_DURATIONS = [75.0, 82.0]


def sample_run_records() -> list[dict]:
    records: list[dict] = [
        {"type": "Metric", "metric": "http_reqs", "data": {"name": "http_reqs", "type": "counter"}},
        point("vus", 5, ts(0)),
    ]
    for i, d in enumerate(DEVICE_INFO_DURATIONS):
        records += request("Device Information", d, at=i * 0.5, load_level="5")
    for i, d in enumerate(APPS_DURATIONS):
        records += request("Apps", d, at=i * 0.5, ok=i != 3, load_level="5")
    for i, d in enumerate(PROFILE_DURATIONS):
        records += request("User Profile", d, at=i)
    records += [
        point("http_req_waiting", 100.0, ts(0), endpoint="Device Information"),
        point("http_req_waiting", 110.0, ts(1), endpoint="Device Information"),
        point("data_received", 11 * 1024, ts(2)),
        point("data_sent", 2 * 1024, ts(2)),
    ]
    return records


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config(tmp_path) -> K6Config:
    return K6Config(output_dir=str(tmp_path))


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None)


@pytest.fixture
def results_file(tmp_path):
    return write_ndjson(tmp_path / "k6-results.json", sample_run_records())
