"""
Derived financial metrics, qualitative bands and stock classification.
"""
from datetime import date, timedelta
from typing import Iterable

from api.common.config import EXPIRY_WARNING_DAYS
from .schemas import AggregateSums, ExpiryStatus, Metrics, Product, StockStatus

DAYS_PER_YEAR = 365

# (lower bound, label), checked from the top
PROFIT_MARGIN_BANDS = (
    (30.0, "Excellent"),
    (20.0, "Good"),
    (15.0, "Fair"),
)
PROFIT_MARGIN_FLOOR = "Needs Improvement"

# Turns per year
TURNOVER_BANDS = (
    (12.0, "Excellent"),
    (6.0, "Good"),
    (3.0, "Fair"),
)
TURNOVER_FLOOR = "Poor"


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, returning 0 when the denominator is not positive."""
    if denominator is None or denominator <= 0:
        return 0.0
    return numerator / denominator


def percentage(part: float, whole: float) -> float:
    return safe_divide(part, whole) * 100


def current_inventory_value(products: Iterable[Product]) -> float:
    """Current stock valued at cost price."""
    return sum(product.cost_value for product in products)


def derive_metrics(sums: AggregateSums, days: int, inventory_value: float = 0.0) -> Metrics:
    """
    Derive ratios from aggregated sums.

    Args:
        sums: Output of `aggregate`.
        days: Length of the period in days; values below one count as one.
        inventory_value: Current stock valued at cost. Turnover uses this
            snapshot rather than an average over the period.

    Returns:
        Metrics where every ratio with a zero denominator is 0.
    """
    days = max(1, days or 1)
    revenue = sums.totalRevenue
    cost = sums.totalCost
    count = sums.transactionCount
    gross_profit = revenue - cost
    turnover = safe_divide(cost, inventory_value)

    return Metrics(
        days=days,
        transactionCount=count,
        totalRevenue=revenue,
        totalCost=cost,
        grossProfit=gross_profit,
        # No operating expenses are tracked, so net equals gross
        netProfit=gross_profit,
        profitMargin=percentage(gross_profit, revenue),
        averageTransaction=safe_divide(revenue, count),
        averageCost=safe_divide(cost, count),
        averageProfit=safe_divide(gross_profit, count),
        dailyRevenue=revenue / days,
        dailyCost=cost / days,
        dailyProfit=gross_profit / days,
        dailyTransactions=count / days,
        costPercentage=percentage(cost, revenue),
        roi=percentage(gross_profit, cost),
        inventoryValue=inventory_value,
        inventoryTurnover=turnover,
        daysInventory=safe_divide(DAYS_PER_YEAR, turnover)
    )


def _band(value: float, bands, floor: str) -> str:
    for lower_bound, label in bands:
        if value >= lower_bound:
            return label
    return floor


def profit_margin_band(margin: float) -> str:
    """Excellent ≥30%, Good ≥20%, Fair ≥15%, otherwise Needs Improvement."""
    return _band(margin, PROFIT_MARGIN_BANDS, PROFIT_MARGIN_FLOOR)


def turnover_band(turnover: float) -> str:
    """Excellent ≥12 turns/yr, Good ≥6, Fair ≥3, otherwise Poor."""
    return _band(turnover, TURNOVER_BANDS, TURNOVER_FLOOR)


def classify_stock(product: Product) -> StockStatus:
    """Out of stock at zero, low up to the reorder level, normal above it."""
    if product.stockInPieces <= 0:
        return StockStatus.OUT_OF_STOCK
    if product.stockInPieces <= product.reorderLevel:
        return StockStatus.LOW_STOCK
    return StockStatus.NORMAL_STOCK


def classify_expiry(product: Product, today: date, warning_days: int = EXPIRY_WARNING_DAYS) -> ExpiryStatus:
    """Expired before today, expiring within the warning window, valid otherwise."""
    if product.expiryDate is None:
        return ExpiryStatus.VALID
    if product.expiryDate < today:
        return ExpiryStatus.EXPIRED
    if product.expiryDate <= today + timedelta(days=warning_days):
        return ExpiryStatus.EXPIRING
    return ExpiryStatus.VALID


def unit_margin(product: Product) -> float:
    """Margin of selling price over cost price, in percent."""
    return percentage(product.pricePerPiece - product.costPrice, product.pricePerPiece)
