"""
Services for fetching report rows from Firestore and building reports.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from firebase_admin import firestore

from api.common.cache import ReportCache, generate_cache_key
from api.common.config import (
    PRODUCTS_COLLECTION, SALE_ITEMS_COLLECTION, SALES_COLLECTION, TOP_PRODUCTS_LIMIT,
    get_report_timezone
)
from .builders import (
    build_financial_report, build_inventory_report, build_performance_report,
    build_sales_report, build_top_products, build_trend_forecast, build_trends,
    velocity_period, TOP_SELLING_LIMIT, VELOCITY_WINDOW_DAYS
)
from .ingest import ingest_line_items, ingest_products, ingest_sales
from .periods import resolve_period, to_local
from .schemas import (
    FinancialReport, InventoryReport, PeriodRange, Product, SaleLineItem, SaleRecord,
    SalesPerformanceReport, SalesReport, TopProductsData, TrendForecast, TrendsData
)

logger = logging.getLogger(__name__)

# Firestore caps the number of values in an "in" filter
IN_QUERY_LIMIT = 30


def get_firestore_client():
    """Get Firestore client instance."""
    return firestore.client()


def _doc_to_row(doc) -> Dict[str, Any]:
    row = doc.to_dict() or {}
    row.setdefault("id", doc.id)
    return row


def _fetch_sales_rows(period: PeriodRange) -> List[Dict[str, Any]]:
    db = get_firestore_client()
    query = (
        db.collection(SALES_COLLECTION)
        .where("createdAt", ">=", period.start)
        .where("createdAt", "<=", period.end)
    )
    return [_doc_to_row(doc) for doc in query.stream()]


def _fetch_line_item_rows(sale_ids: Sequence[str]) -> List[Dict[str, Any]]:
    db = get_firestore_client()
    rows = []
    for offset in range(0, len(sale_ids), IN_QUERY_LIMIT):
        chunk = list(sale_ids[offset:offset + IN_QUERY_LIMIT])
        query = db.collection(SALE_ITEMS_COLLECTION).where("saleId", "in", chunk)
        rows.extend(_doc_to_row(doc) for doc in query.stream())
    return rows


def _fetch_product_rows() -> List[Dict[str, Any]]:
    db = get_firestore_client()
    return [_doc_to_row(doc) for doc in db.collection(PRODUCTS_COLLECTION).stream()]


async def fetch_report_rows(period: PeriodRange) -> Tuple[List[SaleRecord], List[SaleLineItem], List[Product]]:
    """
    Fetch and normalize the sales, sale items and products of a period.

    Sales and products are fetched concurrently; line items are fetched for
    the completed sales found.

    Raises:
        HTTPException: If the backend query fails
    """
    try:
        sales_rows, product_rows = await asyncio.gather(
            asyncio.to_thread(_fetch_sales_rows, period),
            asyncio.to_thread(_fetch_product_rows)
        )

        sales = ingest_sales(sales_rows)
        sale_ids = [sale.id for sale in sales if sale.is_completed]
        item_rows = await asyncio.to_thread(_fetch_line_item_rows, sale_ids) if sale_ids else []
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to fetch report data for %s - %s", period.start_iso, period.end_iso)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch report data: {str(e)}"
        )

    line_items = ingest_line_items(item_rows)
    products = ingest_products(product_rows)
    logger.info("Fetched %d sales, %d sale items, %d products for %s - %s",
                len(sales), len(line_items), len(products), period.start_iso, period.end_iso)
    return sales, line_items, products


async def _cached(cache: Optional[ReportCache], key: str, model, build):
    """Return a cached report when present, otherwise build and store it."""
    if cache is not None:
        cached = await cache.get(key)
        if cached is not None:
            logger.debug("Report cache hit for %s", key)
            return model.model_validate(cached)

    report = await build()

    if cache is not None:
        await cache.set(key, report.model_dump(mode="json"))
    return report


def _period_key(kind: str, period: PeriodRange, **params) -> str:
    return generate_cache_key(kind, {
        "start": period.start_iso,
        "end": period.end_iso,
        **params
    })


async def get_sales_report(
    period_spec: Any = None,
    limit: int = TOP_PRODUCTS_LIMIT,
    cache: Optional[ReportCache] = None,
    now: Optional[datetime] = None
) -> SalesReport:
    """
    Generate the sales report for a period.

    Args:
        period_spec: Period token or explicit date pair (see resolve_period)
        limit: Number of top products to include
        cache: Optional report cache
        now: Reference time for relative periods

    Returns:
        SalesReport for the resolved period
    """
    period = resolve_period(period_spec, now=now)

    async def build():
        sales, line_items, products = await fetch_report_rows(period)
        return build_sales_report(sales, line_items, products, period, limit)

    return await _cached(cache, _period_key("sales", period, limit=limit), SalesReport, build)


async def get_financial_report(
    period_spec: Any = None,
    cache: Optional[ReportCache] = None,
    now: Optional[datetime] = None
) -> FinancialReport:
    """Generate the financial report for a period."""
    period = resolve_period(period_spec, now=now)

    async def build():
        sales, line_items, products = await fetch_report_rows(period)
        return build_financial_report(sales, line_items, products, period)

    return await _cached(cache, _period_key("financial", period), FinancialReport, build)


async def get_performance_report(
    period_spec: Any = None,
    limit: int = TOP_SELLING_LIMIT,
    cache: Optional[ReportCache] = None,
    now: Optional[datetime] = None
) -> SalesPerformanceReport:
    """Generate the sales performance report for a period."""
    period = resolve_period(period_spec, now=now)

    async def build():
        sales, line_items, products = await fetch_report_rows(period)
        return build_performance_report(sales, line_items, products, period, limit)

    return await _cached(cache, _period_key("performance", period, limit=limit),
                         SalesPerformanceReport, build)


async def get_inventory_report(
    cache: Optional[ReportCache] = None,
    now: Optional[datetime] = None
) -> InventoryReport:
    """
    Generate the inventory report as of today.

    Sales velocity uses completed sales of the trailing velocity window.
    """
    tz = get_report_timezone()
    today = to_local(now or datetime.now(tz), tz).date()
    window = velocity_period(today, tz, VELOCITY_WINDOW_DAYS)

    async def build():
        sales, line_items, products = await fetch_report_rows(window)
        return build_inventory_report(products, sales, line_items, today, tz)

    key = generate_cache_key("inventory", {"today": today.isoformat()})
    return await _cached(cache, key, InventoryReport, build)


async def get_sales_trends(
    period_spec: Any = None,
    cache: Optional[ReportCache] = None,
    now: Optional[datetime] = None
) -> TrendsData:
    """Dense daily revenue/transactions series for a period."""
    period = resolve_period(period_spec, now=now)

    async def build():
        sales, line_items, products = await fetch_report_rows(period)
        return build_trends(sales, line_items, products, period)

    return await _cached(cache, _period_key("trends", period), TrendsData, build)


async def get_top_products(
    period_spec: Any = None,
    limit: int = TOP_PRODUCTS_LIMIT,
    cache: Optional[ReportCache] = None,
    now: Optional[datetime] = None
) -> TopProductsData:
    """Best selling products by revenue for a period."""
    period = resolve_period(period_spec, now=now)

    async def build():
        sales, line_items, products = await fetch_report_rows(period)
        return build_top_products(sales, line_items, products, period, limit)

    return await _cached(cache, _period_key("top-products", period, limit=limit),
                         TopProductsData, build)


async def get_trend_forecast(
    period_spec: Any = None,
    horizon_days: int = 7,
    cache: Optional[ReportCache] = None,
    now: Optional[datetime] = None
) -> TrendForecast:
    """Daily revenue history of a period with a linear projection."""
    period = resolve_period(period_spec, now=now)

    async def build():
        sales, line_items, products = await fetch_report_rows(period)
        return build_trend_forecast(sales, line_items, products, period, horizon_days)

    return await _cached(cache, _period_key("forecast", period, horizon=horizon_days),
                         TrendForecast, build)
