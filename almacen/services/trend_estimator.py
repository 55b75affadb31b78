from __future__ import annotations

import math
from typing import Sequence

from almacen.schemas.consumption import MonthlyBucket, RegressionResult


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fit_trend(buckets: Sequence[MonthlyBucket]) -> RegressionResult | None:
    """Ordinary least squares over the bucket series.

    The independent variable is the bucket index (0..n-1), not the calendar
    month, so missing months are simply not part of the series. Returns None
    for fewer than two buckets.
    """
    n = len(buckets)
    if n < 2:
        return None

    xs = range(n)
    ys = [b.total_quantity for b in buckets]

    sum_x = float(sum(xs))
    sum_y = float(sum(ys))
    sum_xy = float(sum(x * y for x, y in zip(xs, ys)))
    sum_xx = float(sum(x * x for x in xs))

    # Never zero for n >= 2 distinct indices.
    denominator = n * sum_xx - sum_x * sum_x
    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    total_ss = sum((y - mean_y) ** 2 for y in ys)
    residual_ss = sum((y - (slope * x + intercept)) ** 2 for x, y in zip(xs, ys))
    # Equal totals: R² is 0/0.
    r_squared = None if max(ys) == min(ys) or total_ss == 0 else 1 - residual_ss / total_ss

    predicted_next = slope * n + intercept

    return RegressionResult(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        predicted_next=predicted_next,
        predicted_next_rounded=round_half_up(predicted_next),
        equation=f"y = {slope:.2f}x + {intercept:.2f}",
    )


def fitted_values(regression: RegressionResult, count: int) -> list[float]:
    """Regression line evaluated at bucket indices 0..count-1."""
    return [regression.slope * i + regression.intercept for i in range(count)]
