"""
This module contains pytest fixtures and configuration for testing.
"""
from datetime import datetime
from unittest.mock import MagicMock, patch
import sys
from pathlib import Path

import pytest
import pytz
from fastapi.testclient import TestClient

# Add the project's root directory to the system path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

# Import the main app
from main import app
from api.reports.ingest import ingest_line_items, ingest_products, ingest_sales
from api.reports.periods import resolve_period


@pytest.fixture
def test_app():
    """
    Create a FastAPI test application.
    """
    return app


@pytest.fixture
def client(test_app):
    """
    Create a test client for the FastAPI application.

    The lifespan is not entered, so Firebase is never initialized and no
    report cache is configured.
    """
    yield TestClient(test_app)
    test_app.dependency_overrides.clear()


@pytest.fixture
def mock_firestore():
    """
    Create a mock for the Firestore client.
    """
    with patch('firebase_admin.firestore.client') as mock:
        # Configure the mock to provide the necessary methods and return values
        firestore_mock = MagicMock()
        mock.return_value = firestore_mock
        yield firestore_mock


@pytest.fixture
def tz():
    """Report timezone used across the tests."""
    return pytz.timezone("Asia/Manila")


@pytest.fixture
def now(tz):
    """A fixed reference time: Tuesday 15 April 2025, 14:30 Manila time."""
    return tz.localize(datetime(2025, 4, 15, 14, 30))


@pytest.fixture
def week(now, tz):
    """The 7-day period ending on the reference day (9-15 April 2025)."""
    return resolve_period("7days", now=now, tz=tz)


@pytest.fixture
def make_sale(tz):
    """Factory for validated sale records; `at` is a naive local datetime."""
    def _make(sale_id, amount, at, status="completed", payment_method="cash", customer_id=None):
        return ingest_sales([{
            "id": sale_id,
            "createdAt": tz.localize(at),
            "status": status,
            "totalAmount": amount,
            "paymentMethod": payment_method,
            "customerId": customer_id
        }])[0]
    return _make


@pytest.fixture
def make_item():
    """Factory for validated sale line items."""
    def _make(sale_id, product_id, quantity, unit_price, total_price=None):
        row = {
            "saleId": sale_id,
            "productId": product_id,
            "quantity": quantity,
            "unitPrice": unit_price
        }
        if total_price is not None:
            row["totalPrice"] = total_price
        return ingest_line_items([row])[0]
    return _make


@pytest.fixture
def make_product():
    """Factory for validated products."""
    def _make(product_id, **fields):
        row = {
            "id": product_id,
            "name": fields.pop("name", f"Product {product_id}"),
            "costPrice": fields.pop("cost_price", 0),
            "pricePerPiece": fields.pop("price", 0),
            "stockInPieces": fields.pop("stock", 0),
        }
        row.update(fields)
        return ingest_products([row])[0]
    return _make
