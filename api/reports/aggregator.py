"""
Single-pass accumulation of sales rows into report sums.

Nothing here divides; ratios are derived from the sums in `metrics.py`.
Inputs are never mutated.
"""
import calendar
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .periods import day_key, iter_days, to_local
from .schemas import (
    AggregateSums, BrandBucket, CategoryBucket, DailyTrendPoint, DayBucket, HourBucket,
    PaymentBucket, PeriodRange, Product, ProductBucket, SaleLineItem, SaleRecord,
    UNCATEGORIZED, UNKNOWN_PRODUCT, GENERIC_BRAND, WeekdayBucket
)

logger = logging.getLogger(__name__)


def completed_sales_in_period(sale_records: Iterable[SaleRecord], period: PeriodRange) -> List[SaleRecord]:
    """
    Completed sales whose timestamp falls inside the period.

    The status filter is applied before any sum, even when the source query
    already filtered by status.
    """
    tz = period.tz
    return [
        sale for sale in sale_records
        if sale.is_completed and period.contains(to_local(sale.createdAt, tz))
    ]


def aggregate(
    sale_records: Iterable[SaleRecord],
    line_items_by_sale: Mapping[str, Sequence[SaleLineItem]],
    products_by_id: Mapping[str, Product],
    period: PeriodRange
) -> AggregateSums:
    """
    Accumulate revenue, cost and counts for the completed sales of a period.

    Args:
        sale_records: Sales of any status.
        line_items_by_sale: Line items keyed by sale id.
        products_by_id: Products keyed by id, used for cost, category and brand.
        period: The resolved reporting period.

    Returns:
        AggregateSums with totals plus per-day, per-payment-method,
        per-category, per-product, per-brand, per-hour and per-weekday buckets.
        Buckets keep first-seen order.
    """
    tz = period.tz
    daily: Dict[str, DayBucket] = {}
    payment_methods: Dict[str, PaymentBucket] = {}
    categories: Dict[str, CategoryBucket] = {}
    products: Dict[str, ProductBucket] = {}
    brands: Dict[str, BrandBucket] = {}
    hourly = [HourBucket(hour=hour) for hour in range(24)]
    weekdays = [WeekdayBucket(day=day, name=calendar.day_name[day]) for day in range(7)]
    customers = set()

    total_revenue = 0.0
    total_cost = 0.0
    total_items = 0
    transaction_count = 0

    for sale in completed_sales_in_period(sale_records, period):
        created_at = to_local(sale.createdAt, tz)
        date_key = created_at.strftime("%Y-%m-%d")
        revenue = sale.totalAmount

        total_revenue += revenue
        transaction_count += 1
        if sale.customerId:
            customers.add(sale.customerId)

        day = daily.setdefault(date_key, DayBucket(date=date_key))
        day.revenue += revenue
        day.transactions += 1

        method = payment_methods.setdefault(sale.paymentMethod, PaymentBucket(method=sale.paymentMethod))
        method.count += 1
        method.amount += revenue

        hourly[created_at.hour].sales += 1
        hourly[created_at.hour].revenue += revenue
        weekdays[created_at.weekday()].sales += 1
        weekdays[created_at.weekday()].revenue += revenue

        for item in line_items_by_sale.get(sale.id, ()):
            product = products_by_id.get(item.productId) if item.productId else None
            cost_price = product.costPrice if product else 0.0
            category_name = product.category if product else UNCATEGORIZED
            brand_name = product.brand if product else GENERIC_BRAND
            item_cost = cost_price * item.quantity
            item_revenue = item.totalPrice

            total_cost += item_cost
            total_items += item.quantity
            day.cost += item_cost
            day.items += item.quantity

            category = categories.setdefault(category_name, CategoryBucket(category=category_name))
            category.revenue += item_revenue
            category.cost += item_cost
            category.quantity += item.quantity
            category.sales += 1

            brand = brands.setdefault(brand_name, BrandBucket(brand=brand_name))
            brand.revenue += item_revenue
            brand.items += item.quantity
            brand.sales += 1

            product_key = item.productId or UNKNOWN_PRODUCT
            ranked = products.setdefault(product_key, ProductBucket(
                productId=product_key,
                name=product.name if product else UNKNOWN_PRODUCT,
                category=category_name,
                brand=brand_name
            ))
            ranked.quantity += item.quantity
            ranked.revenue += item_revenue
            ranked.cost += item_cost
            ranked.sales += 1

    logger.debug("Aggregated %d completed sales between %s and %s",
                 transaction_count, period.start_iso, period.end_iso)

    return AggregateSums(
        period=period,
        totalRevenue=total_revenue,
        totalCost=total_cost,
        transactionCount=transaction_count,
        totalItems=total_items,
        uniqueCustomers=len(customers),
        daily=daily,
        paymentMethods=payment_methods,
        categories=categories,
        products=products,
        brands=brands,
        hourly=hourly,
        weekdays=weekdays
    )


def daily_series(sums: AggregateSums) -> List[DailyTrendPoint]:
    """
    Dense day-by-day series covering the whole period.

    Days without sales are present with zero values, so the series always
    has one entry per calendar day in ascending order.
    """
    series = []
    for day in iter_days(sums.period):
        key = day_key(day)
        bucket = sums.daily.get(key) or DayBucket(date=key)
        series.append(DailyTrendPoint(
            date=key,
            revenue=bucket.revenue,
            cost=bucket.cost,
            profit=bucket.revenue - bucket.cost,
            transactions=bucket.transactions,
            items=bucket.items
        ))
    return series


def rank_categories(sums: AggregateSums) -> List[CategoryBucket]:
    """Categories by revenue, highest first; ties keep first-seen order."""
    return sorted(sums.categories.values(), key=lambda bucket: bucket.revenue, reverse=True)


def rank_products(sums: AggregateSums, limit: Optional[int] = None, by: str = "revenue") -> List[ProductBucket]:
    """
    Products by revenue (or quantity), highest first, capped at `limit`.

    The sort is stable, so ties keep first-seen order.
    """
    ranked = sorted(sums.products.values(), key=lambda bucket: getattr(bucket, by), reverse=True)
    if limit is None:
        return ranked
    return ranked[:max(0, limit)]


def rank_brands(sums: AggregateSums) -> List[BrandBucket]:
    return sorted(sums.brands.values(), key=lambda bucket: bucket.revenue, reverse=True)


def rank_payment_methods(sums: AggregateSums) -> List[PaymentBucket]:
    return sorted(sums.paymentMethods.values(), key=lambda bucket: bucket.amount, reverse=True)


def units_sold_by_product(
    sale_records: Iterable[SaleRecord],
    line_items_by_sale: Mapping[str, Sequence[SaleLineItem]],
    period: PeriodRange
) -> Dict[str, int]:
    """Units sold per product id across the completed sales of a period."""
    sold: Dict[str, int] = {}
    for sale in completed_sales_in_period(sale_records, period):
        for item in line_items_by_sale.get(sale.id, ()):
            if item.productId:
                sold[item.productId] = sold.get(item.productId, 0) + item.quantity
    return sold
