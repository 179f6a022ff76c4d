"""
Descriptive statistics over response-time sequences.

One percentile policy for every report in this package: nearest rank.

    index = ceil(k / 100 * n) - 1, clamped to [0, n - 1]

The product ``k * n / 100`` is computed in decimal arithmetic so values such
as ``7 * 100 / 100`` never round up to the next rank.  The median is the
element at ``floor(n / 2)`` (upper median for even ``n``).

All functions expect values already sorted ascending and raise
:class:`EmptyInputError` on an empty sequence.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence

from common.errors import EmptyInputError

PERCENTILES: tuple[int, ...] = (50, 90, 95, 99)


@dataclass(frozen=True)
class Distribution:
    """Summary of one sorted sequence.

    ``median`` is the upper median, ``p(50)`` the nearest-rank 50th
    percentile; for an even count they differ (100, 200 → median 200,
    p(50) 100).
    """

    count: int
    min: float
    max: float
    avg: float
    median: float
    percentiles: dict[int, float] = field(default_factory=dict)

    def p(self, k: int) -> float:
        return self.percentiles[k]


def _require(values: Sequence[float]) -> None:
    if not values:
        raise EmptyInputError("Cannot compute statistics of an empty sequence")


def percentile_index(n: int, k: float) -> int:
    rank = math.ceil(Decimal(str(k)) * n / 100)
    return min(max(rank - 1, 0), n - 1)


def percentile(sorted_values: Sequence[float], k: float) -> float:
    _require(sorted_values)
    return sorted_values[percentile_index(len(sorted_values), k)]


def median(sorted_values: Sequence[float]) -> float:
    _require(sorted_values)
    return sorted_values[len(sorted_values) // 2]


def mean(values: Sequence[float]) -> float:
    _require(values)
    return sum(values) / len(values)


def describe(sorted_values: Sequence[float], percentiles: Sequence[int] = PERCENTILES) -> Distribution:
    _require(sorted_values)
    return Distribution(
        count=len(sorted_values),
        min=sorted_values[0],
        max=sorted_values[-1],
        avg=mean(sorted_values),
        median=median(sorted_values),
        percentiles={k: percentile(sorted_values, k) for k in percentiles},
    )
