"""
Normalization of raw backend rows into report input models.

This is the single place where row defaults are applied. A row that cannot be
coerced is logged and skipped; the rest of the batch is still reported.
"""
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .schemas import Product, SaleLineItem, SaleRecord

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _ingest(rows: Iterable[Any], model: Type[ModelT]) -> List[ModelT]:
    records = []
    skipped = 0
    for row in rows or []:
        if isinstance(row, model):
            records.append(row)
            continue
        try:
            records.append(model.model_validate(row))
        except ValidationError as e:
            skipped += 1
            row_id = row.get("id") if isinstance(row, Mapping) else None
            logger.warning("Skipping malformed %s row %s: %s",
                           model.__name__, row_id, e.errors()[0].get("msg"))
    if skipped:
        logger.info("Ingested %d %s rows, skipped %d", len(records), model.__name__, skipped)
    return records


def ingest_sales(rows: Iterable[Any]) -> List[SaleRecord]:
    """Validate sale rows of any status."""
    return _ingest(rows, SaleRecord)


def ingest_line_items(rows: Iterable[Any]) -> List[SaleLineItem]:
    """Validate sale item rows."""
    return _ingest(rows, SaleLineItem)


def ingest_products(rows: Iterable[Any]) -> List[Product]:
    """Validate product rows."""
    return _ingest(rows, Product)


def group_line_items(items: Iterable[SaleLineItem]) -> Dict[str, List[SaleLineItem]]:
    """Group line items by the sale they belong to, keeping row order."""
    grouped = defaultdict(list)
    for item in items:
        grouped[item.saleId].append(item)
    return dict(grouped)


def index_products(products: Iterable[Product]) -> Dict[str, Product]:
    """Index products by id; a later duplicate replaces an earlier one."""
    return {product.id: product for product in products}


def reportable_products(products: Iterable[Product]) -> List[Product]:
    """Products that are active and not archived."""
    return [product for product in products if product.isActive and not product.isArchived]
