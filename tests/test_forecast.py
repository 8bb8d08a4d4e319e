"""
Unit tests for linear trend extrapolation.
"""
import pytest

from api.reports.forecast import fit_linear_trend, forecast_linear_trend
from api.reports.schemas import DailyTrendPoint


def _history(values, first_day=1):
    return [
        DailyTrendPoint(date=f"2025-04-{first_day + offset:02d}", revenue=value,
                        cost=0, profit=value, transactions=1, items=1)
        for offset, value in enumerate(values)
    ]


class TestFitLinearTrend:
    """Test the least-squares fit."""

    def test_perfect_line(self):
        slope, intercept = fit_linear_trend([10, 20, 30, 40])

        assert slope == pytest.approx(10)
        assert intercept == pytest.approx(10)

    def test_degenerate_inputs(self):
        assert fit_linear_trend([]) == (0.0, 0.0)
        assert fit_linear_trend([42]) == (0.0, 42.0)


class TestForecastLinearTrend:
    """Test projection past the history."""

    def test_projects_growth(self):
        slope, forecast = forecast_linear_trend(_history([100, 110, 120]), 2)

        assert slope == pytest.approx(10)
        assert [point.date for point in forecast] == ["2025-04-04", "2025-04-05"]
        assert forecast[0].value == pytest.approx(130)
        assert forecast[1].value == pytest.approx(140)

    def test_projection_is_clipped_at_zero(self):
        slope, forecast = forecast_linear_trend(_history([30, 20, 10]), 3)

        assert slope == pytest.approx(-10)
        assert [point.value for point in forecast] == pytest.approx([0, 0, 0])

    def test_dates_roll_over_month_end(self):
        _, forecast = forecast_linear_trend(_history([5, 5], first_day=29), 2)

        assert [point.date for point in forecast] == ["2025-05-01", "2025-05-02"]

    def test_flat_history(self):
        slope, forecast = forecast_linear_trend(_history([0] * 7), 7)

        assert slope == pytest.approx(0)
        assert len(forecast) == 7
        assert all(point.value == pytest.approx(0) for point in forecast)

    def test_empty_history(self):
        assert forecast_linear_trend([], 7) == (0.0, [])
