"""
Centralised k6 tooling configuration.

Every value is overridable via environment variables so CI and local
invocations share the same tools with different knobs.

Hierarchy:  CLI flag → env var → default here.

``load_config()`` is called once per process; the resulting frozen
``K6Config`` is passed explicitly to every function that needs it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from common.config import env, env_float, env_int, env_list

# ── Defaults ─────────────────────────────────────────────────────────
DEFAULT_OUTPUT_DIR = "./test-results"
DEFAULT_SCRIPT = "k6_api_load_test.js"
DEFAULT_SCENARIO = "user_flow"
DEFAULT_TRENDS_FILE = "k6-api-metrics-trends.csv"
DEFAULT_HISTORY_FILE = "k6-api-performance-history.csv"
DEFAULT_CHECK_SEPARATOR = " - "


@dataclass(frozen=True)
class InfluxConfig:
    host: str = "localhost"
    port: int = 8086
    database: str = "k6_load_tests"
    username: str = "k6"
    password: str = "k6password"
    retention: str = "30d"
    scheme: str = "http"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def k6_output_url(self) -> str:
        """URL handed to ``k6 run --out influxdb=…`` (credentials inline)."""
        return f"{self.scheme}://{self.username}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class GrafanaConfig:
    host: str = "localhost"
    port: int = 3000
    username: str = "admin"
    password: str = "admin"
    api_token: str = ""
    url: str = ""

    @property
    def base_url(self) -> str:
        return (self.url or f"http://{self.host}:{self.port}").rstrip("/")


@dataclass(frozen=True)
class K6Config:
    output_dir: str = DEFAULT_OUTPUT_DIR
    script: str = DEFAULT_SCRIPT
    scenario: str = DEFAULT_SCENARIO
    trends_file: str = DEFAULT_TRENDS_FILE
    history_file: str = ""
    endpoint_tags: tuple[str, ...] = ("endpoint",)
    check_separator: str = DEFAULT_CHECK_SEPARATOR
    http_timeout: float = 10.0
    influxdb: InfluxConfig = field(default_factory=InfluxConfig)
    grafana: GrafanaConfig = field(default_factory=GrafanaConfig)

    @property
    def trends_path(self) -> str:
        return os.path.join(self.output_dir, self.trends_file)

    @property
    def history_path(self) -> str:
        return self.history_file or os.path.join(self.output_dir, DEFAULT_HISTORY_FILE)


def load_config() -> K6Config:
    """Build the configuration struct from the environment."""
    influx = InfluxConfig(
        host=env("INFLUXDB_HOST", "localhost"),
        port=env_int("INFLUXDB_PORT", 8086),
        database=env("INFLUXDB_DB", "k6_load_tests"),
        username=env("INFLUXDB_USER", "k6"),
        password=env("INFLUXDB_PASSWORD", "k6password"),
        retention=env("INFLUXDB_RETENTION", "30d"),
        scheme=env("INFLUXDB_SCHEME", "http"),
    )
    grafana = GrafanaConfig(
        host=env("GRAFANA_HOST", "localhost"),
        port=env_int("GRAFANA_PORT", 3000),
        username=env("GRAFANA_USER", "admin"),
        password=env("GRAFANA_PASSWORD", "admin"),
        api_token=env("GRAFANA_API_TOKEN", ""),
        url=env("GRAFANA_URL", ""),
    )
    return K6Config(
        output_dir=env("K6_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
        script=env("K6_SCRIPT", DEFAULT_SCRIPT),
        scenario=env("K6_SCENARIO", DEFAULT_SCENARIO),
        trends_file=env("K6_TRENDS_FILE", DEFAULT_TRENDS_FILE),
        history_file=env("K6_HISTORY_FILE", ""),
        endpoint_tags=env_list("K6_ENDPOINT_TAGS", ("endpoint",)),
        check_separator=env("K6_CHECK_SEPARATOR", DEFAULT_CHECK_SEPARATOR),
        http_timeout=env_float("K6_HTTP_TIMEOUT", 10.0),
        influxdb=influx,
        grafana=grafana,
    )
