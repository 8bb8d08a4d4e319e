"""
Assembly of report objects from normalized rows.

Every function here is pure: rows in, report model out. All figures are
fully computed so exporters and dashboards never re-derive a metric.
"""
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from api.common.config import TOP_PRODUCTS_LIMIT
from .aggregator import (
    aggregate, daily_series, rank_brands, rank_categories, rank_payment_methods,
    rank_products, units_sold_by_product
)
from .forecast import forecast_linear_trend
from .ingest import group_line_items, index_products, reportable_products
from .metrics import (
    classify_expiry, classify_stock, current_inventory_value, derive_metrics, percentage,
    profit_margin_band, safe_divide, turnover_band, unit_margin
)
from .periods import end_of_day, start_of_day, count_days
from .schemas import (
    AggregateSums, CategoryBreakdownItem, CostBlock, DailyGrowthPoint, ExpiringProduct,
    ExpiryAnalysis, ExpiryStatus, FinancialReport, InventoryBlock, InventoryCategory,
    InventoryReport, InventorySummary, LowStockProduct, MovementItem, PaymentMethodSummary,
    PerformanceItem, PerformanceSummary, PeriodRange, Product, ProfitBlock, RevenueBlock,
    SaleLineItem, SaleRecord, SalesPerformanceReport, SalesReport, SalesSummary,
    StockLevels, StockStatus, StockValuationItem, TopProductItem, TopProductsData,
    TransactionBlock, TrendForecast, TrendsData
)

TOP_VALUE_LIMIT = 10
MOVEMENT_LIMIT = 20
TOP_SELLING_LIMIT = 20
VELOCITY_WINDOW_DAYS = 30
EXTENDED_EXPIRY_DAYS = 90
FAST_MOVING_VELOCITY = 1.0
SLOW_MOVING_VELOCITY = 0.1


def _aggregate_rows(
    sales: Iterable[SaleRecord],
    line_items: Iterable[SaleLineItem],
    products: Iterable[Product],
    period: PeriodRange
) -> AggregateSums:
    return aggregate(sales, group_line_items(line_items), index_products(products), period)


def category_breakdown(sums: AggregateSums) -> List[CategoryBreakdownItem]:
    return [
        CategoryBreakdownItem(
            category=bucket.category,
            revenue=bucket.revenue,
            cost=bucket.cost,
            profit=bucket.revenue - bucket.cost,
            margin=percentage(bucket.revenue - bucket.cost, bucket.revenue),
            quantity=bucket.quantity
        )
        for bucket in rank_categories(sums)
    ]


def payment_breakdown(sums: AggregateSums) -> List[PaymentMethodSummary]:
    return [
        PaymentMethodSummary(
            method=bucket.method,
            count=bucket.count,
            amount=bucket.amount,
            share=percentage(bucket.amount, sums.totalRevenue)
        )
        for bucket in rank_payment_methods(sums)
    ]


def top_products(sums: AggregateSums, limit: int = TOP_PRODUCTS_LIMIT, by: str = "revenue") -> List[TopProductItem]:
    """Top products, length min(limit, distinct products sold)."""
    return [
        TopProductItem(
            productId=bucket.productId,
            name=bucket.name,
            category=bucket.category,
            quantity=bucket.quantity,
            revenue=bucket.revenue,
            profit=bucket.revenue - bucket.cost,
            sales=bucket.sales
        )
        for bucket in rank_products(sums, limit, by=by)
    ]


def build_sales_report(
    sales: Iterable[SaleRecord],
    line_items: Iterable[SaleLineItem],
    products: Iterable[Product],
    period: PeriodRange,
    limit: int = TOP_PRODUCTS_LIMIT
) -> SalesReport:
    """
    Sales report for a period: totals, payment split, categories, dense
    daily trend and top products by revenue.
    """
    sums = _aggregate_rows(sales, line_items, products, period)
    metrics = derive_metrics(sums, period.days)

    summary = SalesSummary(
        totalRevenue=metrics.totalRevenue,
        totalCost=metrics.totalCost,
        grossProfit=metrics.grossProfit,
        profitMargin=metrics.profitMargin,
        profitMarginBand=profit_margin_band(metrics.profitMargin),
        transactionCount=metrics.transactionCount,
        averageTransaction=metrics.averageTransaction,
        averageCost=metrics.averageCost,
        averageProfit=metrics.averageProfit,
        uniqueCustomers=sums.uniqueCustomers,
        totalItems=sums.totalItems
    )

    return SalesReport(
        period=period,
        summary=summary,
        paymentMethods=payment_breakdown(sums),
        categoryBreakdown=category_breakdown(sums),
        dailyTrends=daily_series(sums),
        topProducts=top_products(sums, limit)
    )


def build_financial_report(
    sales: Iterable[SaleRecord],
    line_items: Iterable[SaleLineItem],
    products: Iterable[Product],
    period: PeriodRange,
    inventory_products: Optional[Iterable[Product]] = None
) -> FinancialReport:
    """
    Financial report: revenue, COGS, profit, ROI and inventory turnover.

    Args:
        inventory_products: Products whose current stock is valued for
            turnover. Defaults to the active, unarchived subset of `products`.
    """
    products = list(products)
    if inventory_products is None:
        inventory_products = reportable_products(products)

    sums = _aggregate_rows(sales, line_items, products, period)
    metrics = derive_metrics(sums, period.days, current_inventory_value(inventory_products))

    return FinancialReport(
        period=period,
        revenue=RevenueBlock(
            total=metrics.totalRevenue,
            average=metrics.averageTransaction,
            daily=metrics.dailyRevenue
        ),
        costs=CostBlock(
            total=metrics.totalCost,
            average=metrics.averageCost,
            daily=metrics.dailyCost,
            percentage=metrics.costPercentage
        ),
        profit=ProfitBlock(
            gross=metrics.grossProfit,
            net=metrics.netProfit,
            margin=metrics.profitMargin,
            marginBand=profit_margin_band(metrics.profitMargin),
            average=metrics.averageProfit,
            daily=metrics.dailyProfit,
            roi=metrics.roi
        ),
        inventory=InventoryBlock(
            currentValue=metrics.inventoryValue,
            turnover=metrics.inventoryTurnover,
            turnoverBand=turnover_band(metrics.inventoryTurnover),
            daysInventory=metrics.daysInventory
        ),
        transactions=TransactionBlock(
            count=metrics.transactionCount,
            averageValue=metrics.averageTransaction,
            dailyAverage=metrics.dailyTransactions
        ),
        categoryBreakdown=category_breakdown(sums),
        paymentMethods=payment_breakdown(sums),
        dailyTrends=daily_series(sums)
    )


def velocity_period(today: date, tz, window_days: int = VELOCITY_WINDOW_DAYS) -> PeriodRange:
    """Trailing window ending today, used for sales velocity."""
    start = start_of_day(today - timedelta(days=window_days - 1), tz)
    end = end_of_day(today, tz)
    return PeriodRange(start=start, end=end, days=count_days(start, end), timezone=tz.zone)


def build_inventory_report(
    products: Iterable[Product],
    sales: Iterable[SaleRecord],
    line_items: Iterable[SaleLineItem],
    today: date,
    tz,
    velocity_window_days: int = VELOCITY_WINDOW_DAYS
) -> InventoryReport:
    """
    Inventory report over active, unarchived products.

    Stock and expiry buckets are exclusive: each product lands in exactly one
    stock level and one expiry state. Sales velocity comes from completed
    sales of the trailing window.
    """
    products = reportable_products(products)
    window = velocity_period(today, tz, velocity_window_days)
    units_sold = units_sold_by_product(sales, group_line_items(line_items), window)

    stock_levels = StockLevels()
    expiry = ExpiryAnalysis()
    categories: Dict[str, InventoryCategory] = {}
    low_stock: List[LowStockProduct] = []
    expiring: List[ExpiringProduct] = []
    valuation: List[StockValuationItem] = []
    fast_moving: List[MovementItem] = []
    slow_moving: List[MovementItem] = []

    total_stock_value = 0.0
    total_cost_value = 0.0
    total_stock = 0

    for product in products:
        stock_value = product.stock_value
        stock_status = classify_stock(product)
        expiry_status = classify_expiry(product, today)

        total_stock_value += stock_value
        total_cost_value += product.cost_value
        total_stock += product.stockInPieces

        category = categories.setdefault(product.category, InventoryCategory(category=product.category))
        category.products += 1
        category.totalValue += stock_value
        category.totalStock += product.stockInPieces

        if stock_status == StockStatus.OUT_OF_STOCK:
            stock_levels.outOfStock += 1
            category.outOfStock += 1
        elif stock_status == StockStatus.LOW_STOCK:
            stock_levels.lowStock += 1
            category.lowStock += 1
            low_stock.append(LowStockProduct(
                productId=product.id,
                name=product.name,
                category=product.category,
                currentStock=product.stockInPieces,
                reorderLevel=product.reorderLevel,
                stockValue=stock_value
            ))
        else:
            stock_levels.normalStock += 1

        if expiry_status == ExpiryStatus.EXPIRED:
            expiry.expired += 1
        elif expiry_status == ExpiryStatus.EXPIRING:
            expiry.expiring += 1
            category.expiring += 1
            expiring.append(ExpiringProduct(
                productId=product.id,
                name=product.name,
                category=product.category,
                expiryDate=product.expiryDate,
                daysToExpiry=(product.expiryDate - today).days,
                stock=product.stockInPieces,
                value=stock_value
            ))
        else:
            expiry.valid += 1
            if product.expiryDate is not None and product.expiryDate <= today + timedelta(days=EXTENDED_EXPIRY_DAYS):
                expiry.expiring90 += 1

        valuation.append(StockValuationItem(
            productId=product.id,
            name=product.name,
            category=product.category,
            stock=product.stockInPieces,
            unitPrice=product.pricePerPiece,
            costPrice=product.costPrice,
            totalValue=stock_value,
            margin=unit_margin(product),
            status=stock_status
        ))

        total_sold = units_sold.get(product.id, 0)
        velocity = total_sold / velocity_window_days
        movement = MovementItem(
            productId=product.id,
            name=product.name,
            category=product.category,
            stock=product.stockInPieces,
            totalSold=total_sold,
            velocity=velocity,
            value=stock_value
        )
        if velocity > FAST_MOVING_VELOCITY:
            fast_moving.append(movement)
        elif velocity < SLOW_MOVING_VELOCITY:
            slow_moving.append(movement)

    low_stock.sort(key=lambda item: item.currentStock)
    expiring.sort(key=lambda item: item.expiryDate)
    valuation.sort(key=lambda item: item.totalValue, reverse=True)
    fast_moving.sort(key=lambda item: item.velocity, reverse=True)
    slow_moving.sort(key=lambda item: item.velocity)

    summary = InventorySummary(
        totalProducts=len(products),
        totalStockValue=total_stock_value,
        totalCostValue=total_cost_value,
        averageStockLevel=safe_divide(total_stock, len(products)),
        outOfStockItems=stock_levels.outOfStock,
        lowStockItems=stock_levels.lowStock,
        expiredItems=expiry.expired,
        expiringItems=expiry.expiring
    )

    return InventoryReport(
        generatedOn=today,
        summary=summary,
        stockLevels=stock_levels,
        expiryAnalysis=expiry,
        categoryAnalysis=sorted(categories.values(), key=lambda item: item.totalValue, reverse=True),
        lowStockProducts=low_stock,
        expiringProducts=expiring,
        topValueProducts=valuation[:TOP_VALUE_LIMIT],
        stockValuation=valuation,
        fastMovingProducts=fast_moving[:MOVEMENT_LIMIT],
        slowMovingProducts=slow_moving[:MOVEMENT_LIMIT]
    )


def build_performance_report(
    sales: Iterable[SaleRecord],
    line_items: Iterable[SaleLineItem],
    products: Iterable[Product],
    period: PeriodRange,
    limit: int = TOP_SELLING_LIMIT
) -> SalesPerformanceReport:
    """
    Sales performance: peaks, hourly and weekday patterns, category and
    brand performance, best sellers by quantity and day-over-day growth.
    """
    sums = _aggregate_rows(sales, line_items, products, period)
    series = daily_series(sums)

    # Strictly greater keeps the earliest day or hour on ties
    peak_day = None
    peak_revenue = 0.0
    for point in series:
        if point.revenue > peak_revenue:
            peak_day, peak_revenue = point.date, point.revenue

    peak_hour = None
    peak_revenue = 0.0
    for bucket in sums.hourly:
        if bucket.revenue > peak_revenue:
            peak_hour, peak_revenue = bucket.hour, bucket.revenue

    growth = []
    previous = None
    for point in series:
        change = percentage(point.revenue - previous, previous) if previous is not None else 0.0
        growth.append(DailyGrowthPoint(date=point.date, revenue=point.revenue, growth=change))
        previous = point.revenue

    summary = PerformanceSummary(
        totalSales=sums.transactionCount,
        totalRevenue=sums.totalRevenue,
        totalItems=sums.totalItems,
        averageOrderValue=safe_divide(sums.totalRevenue, sums.transactionCount),
        peakSalesDay=peak_day,
        peakSalesHour=peak_hour
    )

    return SalesPerformanceReport(
        period=period,
        summary=summary,
        hourlyPerformance=sums.hourly,
        weeklyPattern=sums.weekdays,
        categoryPerformance=[
            PerformanceItem(name=bucket.category, sales=bucket.sales,
                            revenue=bucket.revenue, items=bucket.quantity)
            for bucket in rank_categories(sums)
        ],
        brandPerformance=[
            PerformanceItem(name=bucket.brand, sales=bucket.sales,
                            revenue=bucket.revenue, items=bucket.items)
            for bucket in rank_brands(sums)
        ],
        topSellingProducts=top_products(sums, limit, by="quantity"),
        dailyGrowth=growth
    )


def build_trends(
    sales: Iterable[SaleRecord],
    line_items: Iterable[SaleLineItem],
    products: Iterable[Product],
    period: PeriodRange
) -> TrendsData:
    """Dense daily trend series for charting."""
    sums = _aggregate_rows(sales, line_items, products, period)
    return TrendsData(period=period, items=daily_series(sums))


def build_top_products(
    sales: Iterable[SaleRecord],
    line_items: Iterable[SaleLineItem],
    products: Iterable[Product],
    period: PeriodRange,
    limit: int = TOP_PRODUCTS_LIMIT
) -> TopProductsData:
    sums = _aggregate_rows(sales, line_items, products, period)
    return TopProductsData(period=period, items=top_products(sums, limit))


def build_trend_forecast(
    sales: Iterable[SaleRecord],
    line_items: Iterable[SaleLineItem],
    products: Iterable[Product],
    period: PeriodRange,
    horizon_days: int = 7
) -> TrendForecast:
    """Daily revenue history with a naive linear projection appended."""
    history = build_trends(sales, line_items, products, period).items
    slope, forecast = forecast_linear_trend(history, horizon_days)
    return TrendForecast(
        period=period,
        horizonDays=horizon_days,
        slope=slope,
        historicalData=history,
        forecast=forecast
    )
