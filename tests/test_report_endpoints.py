"""
Integration tests for the report API endpoints.
"""
from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from api.reports.builders import (
    build_financial_report, build_inventory_report, build_performance_report,
    build_sales_report, build_top_products, build_trend_forecast, build_trends
)
from api.reports.routers import get_report_cache


@pytest.fixture
def rows(make_sale, make_item, make_product):
    sales = [
        make_sale("s1", 100, datetime(2025, 4, 10, 9, 0)),
        make_sale("s2", 500, datetime(2025, 4, 11, 9, 0), status="voided"),
    ]
    items = [make_item("s1", "p1", 1, 100)]
    products = [make_product("p1", name="Paracetamol", category="Analgesics",
                             cost_price=30, price=100, stock=5)]
    return sales, items, products


class TestRootEndpoint:
    """Test the service banner."""

    def test_read_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"message": "Pharmacy Reports API"}


class TestPeriodEndpoint:
    """Test period resolution over HTTP."""

    def test_token(self, client):
        response = client.get("/reports/period?period=7days")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["data"]["days"] == 7
        assert "T23:59:59.999" in data["data"]["end"]

    def test_explicit_pair(self, client):
        response = client.get("/reports/period?start_date=2025-04-01&end_date=2025-04-03")

        data = response.json()["data"]
        assert data["days"] == 3
        assert data["start"].startswith("2025-04-01T00:00:00")

    def test_half_pair_is_rejected(self, client):
        response = client.get("/reports/period?start_date=2025-04-01")

        assert response.status_code == 400
        assert "must be provided together" in response.json()["detail"]

    def test_unknown_token_falls_back(self, client):
        response = client.get("/reports/period?period=forever")

        assert response.json()["data"]["days"] == 30


class TestSalesEndpoint:
    """Test the sales report endpoint."""

    def test_success(self, client, rows, week):
        report = build_sales_report(*rows, week)

        with patch('api.reports.routers.get_sales_report', new_callable=AsyncMock) as mock_service:
            mock_service.return_value = report

            response = client.get("/reports/sales?period=7days&limit=5")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["data"]["summary"]["totalRevenue"] == 100
        assert data["data"]["summary"]["grossProfit"] == 70
        assert data["data"]["summary"]["profitMargin"] == pytest.approx(70.0)
        assert len(data["data"]["dailyTrends"]) == 7

        mock_service.assert_awaited_once_with("7days", limit=5, cache=None)

    def test_explicit_dates_are_forwarded(self, client, rows, week):
        with patch('api.reports.routers.get_sales_report', new_callable=AsyncMock) as mock_service:
            mock_service.return_value = build_sales_report(*rows, week)

            client.get("/reports/sales?start_date=2025-04-09&end_date=2025-04-15")

        mock_service.assert_awaited_once_with(
            {"startDate": "2025-04-09", "endDate": "2025-04-15"}, limit=10, cache=None
        )

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_out_of_range(self, client, limit):
        response = client.get(f"/reports/sales?limit={limit}")

        assert response.status_code == 422

    def test_service_http_error(self, client):
        with patch('api.reports.routers.get_sales_report', new_callable=AsyncMock) as mock_service:
            mock_service.side_effect = HTTPException(status_code=500, detail="Failed to fetch report data: down")

            response = client.get("/reports/sales")

        data = response.json()
        assert data["status"] == "error"
        assert data["code"] == 500
        assert data["message"] == "Failed to fetch report data: down"

    def test_unexpected_error(self, client):
        with patch('api.reports.routers.get_sales_report', new_callable=AsyncMock) as mock_service:
            mock_service.side_effect = RuntimeError("boom")

            response = client.get("/reports/sales")

        data = response.json()
        assert data["status"] == "error"
        assert data["code"] == 500
        assert data["message"] == "Failed to generate sales report: boom"

    def test_cache_dependency_is_injected(self, client, test_app, rows, week):
        cache = MagicMock()
        test_app.dependency_overrides[get_report_cache] = lambda: cache

        with patch('api.reports.routers.get_sales_report', new_callable=AsyncMock) as mock_service:
            mock_service.return_value = build_sales_report(*rows, week)

            client.get("/reports/sales")

        assert mock_service.await_args.kwargs["cache"] is cache


class TestOtherReportEndpoints:
    """Test the remaining report endpoints."""

    def test_financial(self, client, rows, week):
        with patch('api.reports.routers.get_financial_report', new_callable=AsyncMock) as mock_service:
            mock_service.return_value = build_financial_report(*rows, week)

            response = client.get("/reports/financial?period=7days")

        data = response.json()["data"]
        assert data["profit"]["gross"] == 70
        assert data["profit"]["marginBand"] == "Excellent"
        assert data["inventory"]["currentValue"] == 150

    def test_performance(self, client, rows, week):
        with patch('api.reports.routers.get_performance_report', new_callable=AsyncMock) as mock_service:
            mock_service.return_value = build_performance_report(*rows, week)

            response = client.get("/reports/performance?period=7days")

        data = response.json()["data"]
        assert data["summary"]["peakSalesDay"] == "2025-04-10"
        mock_service.assert_awaited_once_with("7days", limit=20, cache=None)

    def test_inventory(self, client, rows, tz):
        sales, items, products = rows
        with patch('api.reports.routers.get_inventory_report', new_callable=AsyncMock) as mock_service:
            mock_service.return_value = build_inventory_report(products, sales, items, date(2025, 4, 15), tz)

            response = client.get("/reports/inventory")

        data = response.json()["data"]
        assert data["generatedOn"] == "2025-04-15"
        assert data["stockLevels"] == {"outOfStock": 0, "lowStock": 1, "normalStock": 0}
        assert data["stockValuation"][0]["status"] == "lowStock"

    def test_trends(self, client, rows, week):
        with patch('api.reports.routers.get_sales_trends', new_callable=AsyncMock) as mock_service:
            mock_service.return_value = build_trends(*rows, week)

            response = client.get("/reports/trends?period=7days")

        assert len(response.json()["data"]["items"]) == 7

    def test_top_products(self, client, rows, week):
        with patch('api.reports.routers.get_top_products', new_callable=AsyncMock) as mock_service:
            mock_service.return_value = build_top_products(*rows, week, limit=3)

            response = client.get("/reports/top-products?period=7days&limit=3")

        assert response.json()["data"]["items"][0]["productId"] == "p1"
        mock_service.assert_awaited_once_with("7days", limit=3, cache=None)

    def test_forecast(self, client, rows, week):
        with patch('api.reports.routers.get_trend_forecast', new_callable=AsyncMock) as mock_service:
            mock_service.return_value = build_trend_forecast(*rows, week, horizon_days=3)

            response = client.get("/reports/forecast?period=7days&horizon=3")

        data = response.json()["data"]
        assert len(data["forecast"]) == 3
        assert len(data["historicalData"]) == 7
        mock_service.assert_awaited_once_with("7days", horizon_days=3, cache=None)

    def test_forecast_horizon_out_of_range(self, client):
        response = client.get("/reports/forecast?horizon=91")

        assert response.status_code == 422
