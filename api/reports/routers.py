"""
Reports routers.
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from api.common.cache import ReportCache
from api.common.config import TOP_PRODUCTS_LIMIT
from api.common.schemas import JSendResponse
from .builders import TOP_SELLING_LIMIT
from .periods import resolve_period
from .schemas import (
    FinancialReport, InventoryReport, PeriodRange, SalesPerformanceReport, SalesReport,
    TopProductsData, TrendForecast, TrendsData
)
from .services import (
    get_financial_report, get_inventory_report, get_performance_report, get_sales_report,
    get_sales_trends, get_top_products, get_trend_forecast
)

logger = logging.getLogger(__name__)

router = APIRouter()

PERIOD_DESCRIPTION = "Period token: 7days, 30days, 90days, 365days or thisYear. Unknown tokens use 30days."
START_DESCRIPTION = "Start date (YYYY-MM-DD or ISO datetime). Must be sent with end_date."
END_DESCRIPTION = "End date (YYYY-MM-DD or ISO datetime). Must be sent with start_date."


def get_report_cache(request: Request) -> Optional[ReportCache]:
    """
    Dependency returning the report cache configured at startup, if any.
    """
    return getattr(request.app.state, "report_cache", None)


def period_spec(
    period: Optional[str] = Query(None, description=PERIOD_DESCRIPTION),
    start_date: Optional[str] = Query(None, description=START_DESCRIPTION),
    end_date: Optional[str] = Query(None, description=END_DESCRIPTION)
) -> Any:
    """
    Dependency combining the period query parameters.

    An explicit date pair takes precedence over the period token.
    """
    if start_date or end_date:
        if not (start_date and end_date):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="start_date and end_date must be provided together"
            )
        return {"startDate": start_date, "endDate": end_date}
    return period


async def _respond(action: str, coroutine) -> JSendResponse:
    try:
        return JSendResponse.success(await coroutine)
    except HTTPException as e:
        return JSendResponse.error(
            message=str(e.detail),
            code=e.status_code
        )
    except Exception as e:
        logger.exception("Failed to %s", action)
        return JSendResponse.error(
            message=f"Failed to {action}: {str(e)}",
            code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


@router.get("/period", response_model=JSendResponse[PeriodRange])
async def resolve_report_period(spec: Any = Depends(period_spec)):
    """
    Resolve a period token or date pair into local day boundaries.

    Returns the start (00:00:00.000), end (23:59:59.999) and number of days
    that the other report endpoints would use.
    """
    return JSendResponse.success(resolve_period(spec))


@router.get("/sales", response_model=JSendResponse[SalesReport])
async def sales_report(
    spec: Any = Depends(period_spec),
    limit: int = Query(TOP_PRODUCTS_LIMIT, ge=1, le=100, description="Number of top products"),
    cache: Optional[ReportCache] = Depends(get_report_cache)
):
    """
    Get the sales report for a period.

    Includes revenue, cost and profit totals over completed sales, the
    payment method split, the category breakdown, a gap-free daily trend and
    the top products by revenue.
    """
    return await _respond("generate sales report", get_sales_report(spec, limit=limit, cache=cache))


@router.get("/financial", response_model=JSendResponse[FinancialReport])
async def financial_report(
    spec: Any = Depends(period_spec),
    cache: Optional[ReportCache] = Depends(get_report_cache)
):
    """
    Get the financial report for a period: profit, margin, ROI, inventory
    turnover and days of inventory.
    """
    return await _respond("generate financial report", get_financial_report(spec, cache=cache))


@router.get("/performance", response_model=JSendResponse[SalesPerformanceReport])
async def performance_report(
    spec: Any = Depends(period_spec),
    limit: int = Query(TOP_SELLING_LIMIT, ge=1, le=100, description="Number of best sellers"),
    cache: Optional[ReportCache] = Depends(get_report_cache)
):
    """Get peak day/hour, weekly pattern, brand and category performance."""
    return await _respond("generate performance report",
                          get_performance_report(spec, limit=limit, cache=cache))


@router.get("/inventory", response_model=JSendResponse[InventoryReport])
async def inventory_report(cache: Optional[ReportCache] = Depends(get_report_cache)):
    """Get stock levels, expiry analysis, valuation and movers as of today."""
    return await _respond("generate inventory report", get_inventory_report(cache=cache))


@router.get("/trends", response_model=JSendResponse[TrendsData])
async def sales_trends(
    spec: Any = Depends(period_spec),
    cache: Optional[ReportCache] = Depends(get_report_cache)
):
    """Get one revenue/transactions point per day of the period."""
    return await _respond("get sales trends", get_sales_trends(spec, cache=cache))


@router.get("/top-products", response_model=JSendResponse[TopProductsData])
async def top_products(
    spec: Any = Depends(period_spec),
    limit: int = Query(TOP_PRODUCTS_LIMIT, ge=1, le=100, description="Number of products"),
    cache: Optional[ReportCache] = Depends(get_report_cache)
):
    """Get the best selling products by revenue."""
    return await _respond("get top products", get_top_products(spec, limit=limit, cache=cache))


@router.get("/forecast", response_model=JSendResponse[TrendForecast])
async def trend_forecast(
    spec: Any = Depends(period_spec),
    horizon: int = Query(7, ge=1, le=90, description="Days to project past the period"),
    cache: Optional[ReportCache] = Depends(get_report_cache)
):
    """Get daily revenue history with a linear trend projection."""
    return await _respond("forecast sales trend",
                          get_trend_forecast(spec, horizon_days=horizon, cache=cache))
