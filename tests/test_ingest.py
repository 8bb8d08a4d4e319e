"""
Unit tests for row normalization at ingestion.
"""
from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from api.common.schemas import parse_timestamp
from api.reports.ingest import (
    group_line_items, index_products, ingest_line_items, ingest_products, ingest_sales,
    reportable_products
)
from api.reports.schemas import GENERIC_BRAND, UNCATEGORIZED, UNKNOWN_PRODUCT, Product, SaleRecord, SaleStatus


class TestParseTimestamp:
    """Test the accepted timestamp shapes."""

    def test_console_format(self):
        assert parse_timestamp("Apr 12, 2025 9:20:43 PM") == datetime(2025, 4, 12, 21, 20, 43)
        assert parse_timestamp("Apr 12, 2025 12:05:00 AM") == datetime(2025, 4, 12, 0, 5, 0)

    def test_iso_with_zulu_offset(self):
        parsed = parse_timestamp("2025-04-12T13:20:43.120Z")

        assert parsed.utcoffset().total_seconds() == 0
        assert parsed.hour == 13

    def test_date_only(self):
        assert parse_timestamp("2025-04-12") == datetime(2025, 4, 12)
        assert parse_timestamp(date(2025, 4, 12)) == datetime(2025, 4, 12)

    def test_free_form_string(self):
        assert parse_timestamp("12 April 2025") == datetime(2025, 4, 12)

    def test_unparseable_is_returned_unchanged(self):
        assert parse_timestamp("not a date") == "not a date"
        assert parse_timestamp("") is None


class TestSaleRecord:
    """Test sale header normalization."""

    def test_snake_case_row(self):
        sale = SaleRecord.model_validate({
            "id": 17,
            "created_at": "2025-04-12T13:20:43+08:00",
            "status": "Completed",
            "total_amount": "120.50",
            "payment_method": "GCash",
            "user_id": 4
        })

        assert sale.id == "17"
        assert sale.status == SaleStatus.COMPLETED
        assert sale.is_completed
        assert sale.totalAmount == 120.5
        assert sale.paymentMethod == "gcash"
        assert sale.customerId == "4"

    def test_defaults(self):
        sale = SaleRecord.model_validate({"id": "s1", "createdAt": "2025-04-12", "totalAmount": None})

        assert sale.status == SaleStatus.PENDING
        assert not sale.is_completed
        assert sale.totalAmount == 0
        assert sale.paymentMethod == "cash"

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError):
            SaleRecord.model_validate({"id": "s1", "createdAt": "2025-04-12", "status": "lost"})


class TestProduct:
    """Test product normalization."""

    def test_missing_fields_get_defaults(self):
        product = Product.model_validate({"id": "p1", "category": "  ", "costPrice": None})

        assert product.name == UNKNOWN_PRODUCT
        assert product.category == UNCATEGORIZED
        assert product.brand == GENERIC_BRAND
        assert product.costPrice == 0
        assert product.reorderLevel == 10
        assert product.expiryDate is None
        assert product.isActive is True
        assert product.isArchived is False

    def test_name_and_brand_resolution(self):
        product = Product.model_validate({
            "id": "p1",
            "genericName": "Paracetamol",
            "brand": {"name": "Biogesic"},
            "category": {"name": "Analgesics"},
            "expiryDate": "2026-01-31T00:00:00"
        })

        assert product.name == "Paracetamol"
        assert product.brand == "Biogesic"
        assert product.category == "Analgesics"
        assert product.expiryDate == date(2026, 1, 31)

    def test_utc_expiry_uses_local_calendar_day(self):
        """A UTC timestamp past local midnight expires on the Manila day."""
        product = Product.model_validate({"id": "p1", "expiryDate": "2025-04-14T17:00:00Z"})

        assert product.expiryDate == date(2025, 4, 15)

    def test_aware_datetime_expiry(self):
        product = Product.model_validate({
            "id": "p1", "expiryDate": datetime(2025, 4, 14, 16, 0, tzinfo=timezone.utc)
        })

        assert product.expiryDate == date(2025, 4, 15)

    def test_naive_expiry_keeps_its_date(self):
        product = Product.model_validate({"id": "p1", "expiryDate": datetime(2025, 4, 14, 17, 0)})

        assert product.expiryDate == date(2025, 4, 14)

    def test_stock_values(self):
        product = Product.model_validate({
            "id": "p1", "costPrice": 2, "sellingPrice": 5, "stockInPieces": 10
        })

        assert product.stock_value == 50
        assert product.cost_value == 20


class TestIngest:
    """Test batch ingestion."""

    def test_malformed_row_is_skipped(self, caplog):
        sales = ingest_sales([
            {"id": "s1", "createdAt": "2025-04-12", "status": "completed", "totalAmount": 10},
            {"id": "s2", "createdAt": "whenever", "status": "completed"},
            {"id": "s3", "createdAt": "2025-04-13", "status": "completed", "totalAmount": 20},
        ])

        assert [sale.id for sale in sales] == ["s1", "s3"]
        assert "Skipping malformed SaleRecord row s2" in caplog.text

    def test_models_pass_through(self):
        sale = SaleRecord(id="s1", createdAt=datetime(2025, 4, 12))

        assert ingest_sales([sale])[0] is sale

    def test_line_item_total_defaults_to_quantity_times_price(self):
        items = ingest_line_items([
            {"saleId": "s1", "productId": "p1", "quantity": 3, "unitPrice": 2.5},
            {"sale_id": "s1", "product_id": "p2", "quantity": 3, "unit_price": 3.33, "total_price": 10},
        ])

        assert items[0].totalPrice == 7.5
        assert items[1].totalPrice == 10

    def test_grouping_and_indexing(self):
        items = ingest_line_items([
            {"saleId": "s1", "productId": "p1", "quantity": 1, "unitPrice": 1},
            {"saleId": "s2", "productId": "p1", "quantity": 1, "unitPrice": 1},
            {"saleId": "s1", "productId": "p2", "quantity": 1, "unitPrice": 1},
        ])

        grouped = group_line_items(items)

        assert [item.productId for item in grouped["s1"]] == ["p1", "p2"]
        assert len(grouped["s2"]) == 1

        products = ingest_products([{"id": "p1", "name": "A"}, {"id": "p1", "name": "B"}])
        assert index_products(products)["p1"].name == "B"

    def test_reportable_products(self):
        products = ingest_products([
            {"id": "p1"},
            {"id": "p2", "isActive": False},
            {"id": "p3", "isArchived": True},
        ])

        assert [product.id for product in reportable_products(products)] == ["p1"]

    def test_empty_input(self):
        assert ingest_sales(None) == []
        assert ingest_products([]) == []
