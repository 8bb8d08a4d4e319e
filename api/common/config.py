"""
Application settings read from environment variables.

Values are read once at import time; `main.py` loads a local `.env` file
before anything else is imported.
"""
import os

import pytz

# Timezone used for day boundaries and day bucketing in reports
REPORT_TIMEZONE_NAME = os.environ.get("REPORT_TIMEZONE", "Asia/Manila")

# Period used when a request names an unknown token or no period at all
DEFAULT_PERIOD = os.environ.get("DEFAULT_PERIOD", "30days")

TOP_PRODUCTS_LIMIT = int(os.environ.get("TOP_PRODUCTS_LIMIT", 10))
EXPIRY_WARNING_DAYS = int(os.environ.get("EXPIRY_WARNING_DAYS", 30))
DEFAULT_REORDER_LEVEL = int(os.environ.get("DEFAULT_REORDER_LEVEL", 10))

# Report cache is disabled unless a Redis URL is configured
REDIS_URL = os.environ.get("REDIS_URL")
REPORT_CACHE_TTL = int(os.environ.get("REPORT_CACHE_TTL", 300))
REPORT_CACHE_MAX_ENTRIES = int(os.environ.get("REPORT_CACHE_MAX_ENTRIES", 128))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Firestore collections
SALES_COLLECTION = os.environ.get("SALES_COLLECTION", "sales")
SALE_ITEMS_COLLECTION = os.environ.get("SALE_ITEMS_COLLECTION", "sale_items")
PRODUCTS_COLLECTION = os.environ.get("PRODUCTS_COLLECTION", "products")


def get_report_timezone(name: str = None):
    """
    Return the pytz timezone for report day boundaries.

    Falls back to UTC when the configured name is not a known zone.
    """
    try:
        return pytz.timezone(name or REPORT_TIMEZONE_NAME)
    except pytz.exceptions.UnknownTimeZoneError:
        return pytz.UTC
