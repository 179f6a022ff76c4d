"""
Streaming reader for k6 ``--out json=…`` files.

k6 writes one JSON object per line::

    {"type":"Point","metric":"http_req_duration",
     "data":{"time":"2025-09-12T15:32:09.123456789Z","value":123.4,
             "tags":{"endpoint":"Apps","check":"…"}}}

``SampleReader`` yields one :class:`Sample` per measurement line.  Broken
lines and non-finite values (``NaN``, ``Infinity``, ``1e400``) are skipped
and counted, never fatal; the counts are final once the iteration is
exhausted.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator

from common.errors import FileAccessError

logger = logging.getLogger(__name__)

# k6 emits nanosecond fractions; datetime only keeps microseconds.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


@dataclass(frozen=True)
class Sample:
    metric: str
    value: float
    endpoint: str | None = None
    time: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
    type: str | None = None

    @property
    def timestamp(self) -> datetime | None:
        return parse_time(self.time)


def parse_time(raw: str | None) -> datetime | None:
    """Parse a k6 ISO-8601 timestamp; ``None`` when absent or unparseable."""
    if not raw:
        return None
    text = _FRACTION_RE.sub(r"\1", raw.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def sample_from_record(record: dict[str, Any]) -> Sample | None:
    """Build a Sample from one decoded line, or ``None`` if it carries no measurement.

    Raises ``ValueError`` when the value is numeric but not finite.
    """
    metric = record.get("metric")
    data = record.get("data")
    if not isinstance(metric, str) or not isinstance(data, dict):
        return None
    value = data.get("value")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError as exc:
        raise ValueError(f"value out of range for {metric}") from exc
    if not math.isfinite(number):
        raise ValueError(f"non-finite value {number!r} for {metric}")

    raw_tags = data.get("tags")
    if not isinstance(raw_tags, dict):
        raw_tags = record.get("tags")
    tags = {str(k): str(v) for k, v in (raw_tags or {}).items() if v is not None}

    return Sample(
        metric=metric,
        value=number,
        endpoint=tags.get("endpoint") or None,
        time=data.get("time"),
        tags=tags,
        type=record.get("type"),
    )


class SampleReader:
    """Lazy iterable over the samples of one NDJSON file.

    ``skipped`` counts lines that are not JSON objects or carry a non-finite
    value, ``ignored`` counts well-formed records without a numeric value
    (k6 ``Metric`` declarations).
    """

    def __init__(self, path: str):
        self.path = path
        self.lines = 0
        self.samples = 0
        self.skipped = 0
        self.ignored = 0

    def __iter__(self) -> Iterator[Sample]:
        self.lines = self.samples = self.skipped = self.ignored = 0
        try:
            f = open(self.path, "r", encoding="utf-8", errors="replace")
        except OSError as exc:
            raise FileAccessError(f"Cannot open k6 results {self.path}: {exc.strerror or exc}") from exc

        with f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                self.lines += 1
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    self.skipped += 1
                    continue
                if not isinstance(record, dict):
                    self.skipped += 1
                    continue
                try:
                    sample = sample_from_record(record)
                except ValueError:
                    self.skipped += 1
                    continue
                if sample is None:
                    self.ignored += 1
                    continue
                self.samples += 1
                yield sample

        if self.skipped:
            logger.warning("Skipped %d malformed line(s) in %s", self.skipped, self.path)
        logger.info(
            "Read %d sample(s) from %s (%d non-sample record(s), %d skipped)",
            self.samples,
            self.path,
            self.ignored,
            self.skipped,
        )
