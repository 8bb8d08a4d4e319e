"""
Schemas for report generation.

Input models describe the rows read from the backend (sales, sale items and
products) and carry every field default in one place, so the engine never
repeats `or 0` / `or "Uncategorized"` style fallbacks. Output models describe
the report objects handed to dashboards and exporters.
"""
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from api.common.config import DEFAULT_REORDER_LEVEL, get_report_timezone
from api.common.schemas import parse_timestamp

UNCATEGORIZED = "Uncategorized"
UNKNOWN_PRODUCT = "Unknown"
GENERIC_BRAND = "Generic"


class SaleStatus(str, Enum):
    """Lifecycle states of a sale."""
    PENDING = "pending"
    COMPLETED = "completed"
    VOIDED = "voided"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """Payment methods recorded at the counter."""
    CASH = "cash"
    CARD = "card"
    DIGITAL = "digital"
    GCASH = "gcash"
    REGISTRATION = "registration"


class StockStatus(str, Enum):
    """Mutually exclusive stock buckets."""
    OUT_OF_STOCK = "outOfStock"
    LOW_STOCK = "lowStock"
    NORMAL_STOCK = "normalStock"


class ExpiryStatus(str, Enum):
    """Mutually exclusive expiry buckets."""
    EXPIRED = "expired"
    EXPIRING = "expiring"
    VALID = "valid"


def _zero_if_missing(value):
    return 0 if value is None or value == "" else value


def _id_to_str(value):
    return str(value) if value is not None else value


# ---------------------------------------------------------------------------
# Input rows
# ---------------------------------------------------------------------------

class SaleRecord(BaseModel):
    """
    A sale header row.

    Only `status == completed` sales take part in revenue and profit figures.
    """
    model_config = ConfigDict(extra="ignore")

    id: str
    createdAt: datetime = Field(validation_alias=AliasChoices("createdAt", "created_at"))
    status: SaleStatus = SaleStatus.PENDING
    totalAmount: float = Field(0.0, validation_alias=AliasChoices("totalAmount", "total_amount"))
    paymentMethod: str = Field(
        PaymentMethod.CASH.value,
        validation_alias=AliasChoices("paymentMethod", "payment_method")
    )
    customerId: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("customerId", "customer_id", "user_id")
    )

    @field_validator("id", "customerId", mode="before")
    @classmethod
    def coerce_ids(cls, value):
        return _id_to_str(value)

    @field_validator("createdAt", mode="before")
    @classmethod
    def parse_created_at(cls, value):
        return parse_timestamp(value)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        if value is None:
            return SaleStatus.PENDING
        return str(value).strip().lower()

    @field_validator("totalAmount", mode="before")
    @classmethod
    def default_amount(cls, value):
        return _zero_if_missing(value)

    @field_validator("paymentMethod", mode="before")
    @classmethod
    def normalize_payment_method(cls, value):
        # Unfamiliar tenders are kept as-is so the sale still counts
        if value is None or not str(value).strip():
            return PaymentMethod.CASH.value
        return str(value).strip().lower()

    @property
    def is_completed(self) -> bool:
        return self.status == SaleStatus.COMPLETED


class SaleLineItem(BaseModel):
    """A single product line of a sale."""
    model_config = ConfigDict(extra="ignore")

    saleId: str = Field(validation_alias=AliasChoices("saleId", "sale_id"))
    productId: Optional[str] = Field(None, validation_alias=AliasChoices("productId", "product_id"))
    quantity: int = 0
    unitPrice: float = Field(0.0, validation_alias=AliasChoices("unitPrice", "unit_price"))
    totalPrice: Optional[float] = Field(
        None,
        validation_alias=AliasChoices("totalPrice", "total_price", "total_amount")
    )
    createdAt: Optional[datetime] = Field(None, validation_alias=AliasChoices("createdAt", "created_at"))

    @field_validator("saleId", "productId", mode="before")
    @classmethod
    def coerce_ids(cls, value):
        return _id_to_str(value)

    @field_validator("quantity", "unitPrice", mode="before")
    @classmethod
    def default_numbers(cls, value):
        return _zero_if_missing(value)

    @field_validator("createdAt", mode="before")
    @classmethod
    def parse_created_at(cls, value):
        return parse_timestamp(value)

    @model_validator(mode="after")
    def fill_total_price(self):
        # totalPrice may carry its own rounding; only derive it when absent
        if self.totalPrice is None:
            self.totalPrice = self.quantity * self.unitPrice
        return self


class Product(BaseModel):
    """A product row with stock and pricing."""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = UNKNOWN_PRODUCT
    category: str = UNCATEGORIZED
    brand: str = GENERIC_BRAND
    costPrice: float = Field(0.0, validation_alias=AliasChoices("costPrice", "cost_price"))
    pricePerPiece: float = Field(
        0.0,
        validation_alias=AliasChoices("pricePerPiece", "price_per_piece", "sellingPrice")
    )
    stockInPieces: int = Field(0, validation_alias=AliasChoices("stockInPieces", "stock_in_pieces"))
    reorderLevel: int = Field(
        DEFAULT_REORDER_LEVEL,
        validation_alias=AliasChoices("reorderLevel", "reorder_level")
    )
    expiryDate: Optional[date] = Field(None, validation_alias=AliasChoices("expiryDate", "expiry_date"))
    isActive: bool = Field(True, validation_alias=AliasChoices("isActive", "is_active"))
    isArchived: bool = Field(False, validation_alias=AliasChoices("isArchived", "is_archived"))

    @model_validator(mode="before")
    @classmethod
    def resolve_names(cls, data):
        """Pick the display name and brand from whichever naming fields the row carries."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        name = (data.get("name") or data.get("genericName") or data.get("generic_name")
                or data.get("brandName") or data.get("brand_name"))
        data["name"] = str(name).strip() if name else UNKNOWN_PRODUCT
        brand = data.get("brand") or data.get("brandName") or data.get("brand_name")
        if isinstance(brand, dict):
            brand = brand.get("name")
        data["brand"] = str(brand).strip() if brand else GENERIC_BRAND
        return data

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return _id_to_str(value)

    @field_validator("category", mode="before")
    @classmethod
    def default_category(cls, value):
        if isinstance(value, dict):
            value = value.get("name")
        if value is None or not str(value).strip():
            return UNCATEGORIZED
        return str(value).strip()

    @field_validator("costPrice", "pricePerPiece", "stockInPieces", mode="before")
    @classmethod
    def default_numbers(cls, value):
        return _zero_if_missing(value)

    @field_validator("reorderLevel", mode="before")
    @classmethod
    def default_reorder_level(cls, value):
        # A zero or missing level means "use the store default"
        return value or DEFAULT_REORDER_LEVEL

    @field_validator("expiryDate", mode="before")
    @classmethod
    def parse_expiry(cls, value):
        parsed = parse_timestamp(value)
        if isinstance(parsed, datetime):
            # Offset-carrying timestamps expire on the local calendar day
            if parsed.tzinfo is not None:
                return parsed.astimezone(get_report_timezone()).date()
            return parsed.date()
        return parsed

    @field_validator("isActive", "isArchived", mode="before")
    @classmethod
    def default_flags(cls, value, info):
        if value is None:
            return info.field_name == "isActive"
        return value

    @property
    def stock_value(self) -> float:
        """Stock valued at selling price."""
        return self.stockInPieces * self.pricePerPiece

    @property
    def cost_value(self) -> float:
        """Stock valued at cost price."""
        return self.stockInPieces * self.costPrice


# ---------------------------------------------------------------------------
# Period and aggregation
# ---------------------------------------------------------------------------

class PeriodRange(BaseModel):
    """A resolved reporting period, inclusive on both ends."""
    start: datetime
    end: datetime
    days: int
    timezone: str = "UTC"

    @property
    def tz(self):
        return get_report_timezone(self.timezone)

    @property
    def start_iso(self) -> str:
        return self.start.isoformat(timespec="milliseconds")

    @property
    def end_iso(self) -> str:
        return self.end.isoformat(timespec="milliseconds")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


class DayBucket(BaseModel):
    date: str
    revenue: float = 0.0
    cost: float = 0.0
    transactions: int = 0
    items: int = 0


class PaymentBucket(BaseModel):
    method: str
    count: int = 0
    amount: float = 0.0


class CategoryBucket(BaseModel):
    category: str
    revenue: float = 0.0
    cost: float = 0.0
    quantity: int = 0
    sales: int = 0


class ProductBucket(BaseModel):
    productId: str
    name: str
    category: str
    brand: str
    quantity: int = 0
    revenue: float = 0.0
    cost: float = 0.0
    sales: int = 0


class BrandBucket(BaseModel):
    brand: str
    revenue: float = 0.0
    items: int = 0
    sales: int = 0


class HourBucket(BaseModel):
    hour: int
    sales: int = 0
    revenue: float = 0.0


class WeekdayBucket(BaseModel):
    day: int
    name: str
    sales: int = 0
    revenue: float = 0.0


class AggregateSums(BaseModel):
    """Raw sums of one aggregation pass; every ratio is derived later."""
    period: PeriodRange
    totalRevenue: float = 0.0
    totalCost: float = 0.0
    transactionCount: int = 0
    totalItems: int = 0
    uniqueCustomers: int = 0
    daily: Dict[str, DayBucket] = {}
    paymentMethods: Dict[str, PaymentBucket] = {}
    categories: Dict[str, CategoryBucket] = {}
    products: Dict[str, ProductBucket] = {}
    brands: Dict[str, BrandBucket] = {}
    hourly: List[HourBucket] = []
    weekdays: List[WeekdayBucket] = []


class Metrics(BaseModel):
    """Derived ratios; every divide-by-zero resolves to 0."""
    days: int
    transactionCount: int
    totalRevenue: float
    totalCost: float
    grossProfit: float
    netProfit: float
    profitMargin: float
    averageTransaction: float
    averageCost: float
    averageProfit: float
    dailyRevenue: float
    dailyCost: float
    dailyProfit: float
    dailyTransactions: float
    costPercentage: float
    roi: float
    inventoryValue: float
    inventoryTurnover: float
    daysInventory: float


# ---------------------------------------------------------------------------
# Report building blocks
# ---------------------------------------------------------------------------

class CategoryBreakdownItem(BaseModel):
    category: str
    revenue: float
    cost: float
    profit: float
    margin: float
    quantity: int


class DailyTrendPoint(BaseModel):
    date: str = Field(..., description="Local calendar day in YYYY-MM-DD format")
    revenue: float
    cost: float
    profit: float
    transactions: int
    items: int


class TopProductItem(BaseModel):
    productId: str
    name: str
    category: str
    quantity: int
    revenue: float
    profit: float
    sales: int


class PaymentMethodSummary(BaseModel):
    method: str
    count: int
    amount: float
    share: float = Field(..., description="Percentage of total revenue")


# ---------------------------------------------------------------------------
# Sales report
# ---------------------------------------------------------------------------

class SalesSummary(BaseModel):
    totalRevenue: float
    totalCost: float
    grossProfit: float
    profitMargin: float
    profitMarginBand: str
    transactionCount: int
    averageTransaction: float
    averageCost: float
    averageProfit: float
    uniqueCustomers: int
    totalItems: int


class SalesReport(BaseModel):
    period: PeriodRange
    summary: SalesSummary
    paymentMethods: List[PaymentMethodSummary]
    categoryBreakdown: List[CategoryBreakdownItem]
    dailyTrends: List[DailyTrendPoint]
    topProducts: List[TopProductItem]


# ---------------------------------------------------------------------------
# Financial report
# ---------------------------------------------------------------------------

class RevenueBlock(BaseModel):
    total: float
    average: float
    daily: float


class CostBlock(BaseModel):
    total: float
    average: float
    daily: float
    percentage: float


class ProfitBlock(BaseModel):
    gross: float
    net: float
    margin: float
    marginBand: str
    average: float
    daily: float
    roi: float


class InventoryBlock(BaseModel):
    currentValue: float
    turnover: float
    turnoverBand: str
    daysInventory: float


class TransactionBlock(BaseModel):
    count: int
    averageValue: float
    dailyAverage: float


class FinancialReport(BaseModel):
    period: PeriodRange
    revenue: RevenueBlock
    costs: CostBlock
    profit: ProfitBlock
    inventory: InventoryBlock
    transactions: TransactionBlock
    categoryBreakdown: List[CategoryBreakdownItem]
    paymentMethods: List[PaymentMethodSummary]
    dailyTrends: List[DailyTrendPoint]


# ---------------------------------------------------------------------------
# Inventory report
# ---------------------------------------------------------------------------

class InventorySummary(BaseModel):
    totalProducts: int
    totalStockValue: float
    totalCostValue: float
    averageStockLevel: float
    outOfStockItems: int
    lowStockItems: int
    expiredItems: int
    expiringItems: int


class StockLevels(BaseModel):
    outOfStock: int = 0
    lowStock: int = 0
    normalStock: int = 0


class ExpiryAnalysis(BaseModel):
    expired: int = 0
    expiring: int = 0
    valid: int = 0
    expiring90: int = Field(0, description="Valid products expiring within 90 days; overlaps `valid`")


class InventoryCategory(BaseModel):
    category: str
    products: int = 0
    totalValue: float = 0.0
    totalStock: int = 0
    lowStock: int = 0
    outOfStock: int = 0
    expiring: int = 0


class LowStockProduct(BaseModel):
    productId: str
    name: str
    category: str
    currentStock: int
    reorderLevel: int
    stockValue: float


class ExpiringProduct(BaseModel):
    productId: str
    name: str
    category: str
    expiryDate: date
    daysToExpiry: int
    stock: int
    value: float


class StockValuationItem(BaseModel):
    productId: str
    name: str
    category: str
    stock: int
    unitPrice: float
    costPrice: float
    totalValue: float
    margin: float
    status: StockStatus


class MovementItem(BaseModel):
    productId: str
    name: str
    category: str
    stock: int
    totalSold: int
    velocity: float = Field(..., description="Units sold per day over the velocity window")
    value: float


class InventoryReport(BaseModel):
    generatedOn: date
    summary: InventorySummary
    stockLevels: StockLevels
    expiryAnalysis: ExpiryAnalysis
    categoryAnalysis: List[InventoryCategory]
    lowStockProducts: List[LowStockProduct]
    expiringProducts: List[ExpiringProduct]
    topValueProducts: List[StockValuationItem]
    stockValuation: List[StockValuationItem]
    fastMovingProducts: List[MovementItem]
    slowMovingProducts: List[MovementItem]


# ---------------------------------------------------------------------------
# Sales performance report
# ---------------------------------------------------------------------------

class PerformanceSummary(BaseModel):
    totalSales: int
    totalRevenue: float
    totalItems: int
    averageOrderValue: float
    peakSalesDay: Optional[str] = None
    peakSalesHour: Optional[int] = None


class PerformanceItem(BaseModel):
    name: str
    sales: int
    revenue: float
    items: int


class DailyGrowthPoint(BaseModel):
    date: str
    revenue: float
    growth: float


class SalesPerformanceReport(BaseModel):
    period: PeriodRange
    summary: PerformanceSummary
    hourlyPerformance: List[HourBucket]
    weeklyPattern: List[WeekdayBucket]
    categoryPerformance: List[PerformanceItem]
    brandPerformance: List[PerformanceItem]
    topSellingProducts: List[TopProductItem]
    dailyGrowth: List[DailyGrowthPoint]


# ---------------------------------------------------------------------------
# Trends and forecast
# ---------------------------------------------------------------------------

class TrendsData(BaseModel):
    period: PeriodRange
    items: List[DailyTrendPoint]


class TopProductsData(BaseModel):
    period: PeriodRange
    items: List[TopProductItem]


class ForecastPoint(BaseModel):
    date: str
    value: float


class TrendForecast(BaseModel):
    period: PeriodRange
    horizonDays: int
    slope: float = Field(..., description="Fitted revenue change per day")
    historicalData: List[DailyTrendPoint]
    forecast: List[ForecastPoint]
