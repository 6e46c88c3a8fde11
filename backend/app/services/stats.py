"""Small numeric helpers shared by the analytics handlers. Rounding is half-up (2.5 -> 3)."""

import math
from collections.abc import Sequence

TREND_THRESHOLD = 0.1


def round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    return int(round_half_up(value))


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def population_std_dev(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    avg = mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def regression_slope(values: Sequence[float]) -> float:
    """Least-squares slope of values against their index 0..n-1."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = n * (n - 1) / 2
    sum_y = sum(values)
    sum_xy = sum(i * v for i, v in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))
    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def trend_label(values: Sequence[float]) -> str:
    """increasing / decreasing / stable by slope beyond +-0.1; fewer than two points is stable."""
    if len(values) < 2:
        return "stable"
    slope = regression_slope(values)
    if slope > TREND_THRESHOLD:
        return "increasing"
    if slope < -TREND_THRESHOLD:
        return "decreasing"
    return "stable"
