"""
Naive linear trend extrapolation over a dense daily revenue series.
"""
from datetime import datetime, timedelta
from typing import List, Sequence, Tuple

import numpy as np

from .schemas import DailyTrendPoint, ForecastPoint


def fit_linear_trend(values: Sequence[float]) -> Tuple[float, float]:
    """
    Least-squares line through (day index, value).

    Returns:
        (slope, intercept). With fewer than two points the slope is 0 and
        the intercept is the mean of what is there (0 for no points).
    """
    if len(values) == 0:
        return 0.0, 0.0
    if len(values) == 1:
        return 0.0, float(values[0])

    x = np.arange(len(values), dtype=float)
    y = np.asarray(values, dtype=float)
    slope, intercept = np.polyfit(x, y, 1)
    return float(slope), float(intercept)


def forecast_linear_trend(history: List[DailyTrendPoint], horizon_days: int) -> Tuple[float, List[ForecastPoint]]:
    """
    Extend a daily revenue series `horizon_days` past its last day.

    Projected values are clipped at zero. The returned dates continue the
    history's calendar; an empty history yields no points.
    """
    if not history or horizon_days <= 0:
        return 0.0, []

    slope, intercept = fit_linear_trend([point.revenue for point in history])
    last_day = datetime.strptime(history[-1].date, "%Y-%m-%d").date()

    x = np.arange(len(history), len(history) + horizon_days, dtype=float)
    projected = np.clip(slope * x + intercept, a_min=0, a_max=None)

    forecast = [
        ForecastPoint(
            date=(last_day + timedelta(days=offset + 1)).strftime("%Y-%m-%d"),
            value=float(value)
        )
        for offset, value in enumerate(projected)
    ]
    return slope, forecast
