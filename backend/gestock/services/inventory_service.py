# Overview: Quantity adjustments on stock-scoped products under row locks.

"""
Inventory Adjustments

WHY: Returns, exchanges, movements and (optionally) sales all change a
product's on-hand quantity. Every change goes through apply_delta so the
read-modify-write happens under a row lock and never drives a quantity
below zero.

SCOPE: only products whose stock_id equals the acting stock are adjusted.
Global products (stock_id NULL) carry the unlimited sentinel and are left
untouched, as are products owned by another stock.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Product
from ..validation import ConflictError
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)


class InsufficientStockError(ConflictError):
    """Decrement would make a product quantity negative."""


def lock_product(product_id: int, stock_id: int | None = None) -> Product | None:
    query = db.session.query(Product).filter(Product.id == product_id)
    if stock_id is not None:
        query = query.filter(Product.stock_id == stock_id)
    return lock_for_update(query).first()


def apply_delta(product_id: int, stock_id: int, delta: int) -> Product | None:
    """
    Add `delta` (may be negative) to the product's quantity at `stock_id`.

    Returns the locked product, or None when no stock-scoped row matches
    (global product or product of another stock), in which case nothing
    changes.

    Raises:
        InsufficientStockError: if the result would be negative
    """
    if delta == 0:
        return None

    product = lock_product(product_id, stock_id)
    if product is None:
        logger.debug(
            "No stock-scoped row for product %s at stock %s; quantity unchanged",
            product_id,
            stock_id,
        )
        return None

    new_quantity = product.quantity + delta
    if new_quantity < 0:
        raise InsufficientStockError(
            f"Stock insuffisant pour le produit {product.name} "
            f"(disponible: {product.quantity}, demandé: {-delta})",
            details={"product_id": product.id, "available": product.quantity},
        )

    product.quantity = new_quantity
    return product
