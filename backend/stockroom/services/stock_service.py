# Overview: Stock ledger primitives; the only code allowed to change Product.stock_quantity.

# backend/stockroom/services/stock_service.py
"""
Stock Ledger Invariants (authoritative)

- Product.stock_quantity is never negative (also a DB check constraint).
- commit(qty): fails with InsufficientStockError when on-hand < qty,
  otherwise on-hand -= qty.
- release(qty): on-hand += qty. max_stock is advisory and never enforced.
- Every change touches last_restocked.
- On-hand never exceeds MAX_INT_VALUE; a larger result is a ValidationError.

Atomicity:
- Each primitive re-reads the product under lock_for_update() and then
  flushes. The version_id column turns a concurrent write on the same product
  into StaleDataError at flush time, which run_with_retry() handles by
  rolling back and re-running the whole unit of work.
- commit_stock()/release_stock()/set_stock_level() never commit. They join the
  caller's transaction so a handover status change and its stock movement
  land together or not at all. adjust_stock() is a complete unit of work and
  commits itself.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product
from ..permissions import MANAGE_PRODUCTS
from ..time_utils import utcnow
from ..validation import MAX_INT_VALUE
from .concurrency import lock_for_update, run_with_retry
from .permission_service import require_actor

logger = logging.getLogger(__name__)


STOCK_OPERATION_ADD = "add"
STOCK_OPERATION_SUBTRACT = "subtract"
STOCK_OPERATIONS = (STOCK_OPERATION_ADD, STOCK_OPERATION_SUBTRACT)


def _require_positive_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer")
    if quantity > MAX_INT_VALUE:
        raise ValidationError(f"Quantity cannot exceed {MAX_INT_VALUE}")
    return quantity


def load_product_for_update(product_id: int) -> Product:
    """Fetch a product with a row lock, or raise NotFoundError."""
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _apply_delta(product: Product, delta: int) -> Product:
    new_quantity = product.stock_quantity + delta
    if new_quantity < 0:
        raise InsufficientStockError(
            f"Insufficient stock available. Current: {product.stock_quantity}, requested: {-delta}"
        )
    if new_quantity > MAX_INT_VALUE:
        raise ValidationError(f"Stock quantity cannot exceed {MAX_INT_VALUE}")
    product.stock_quantity = new_quantity
    product.last_restocked = utcnow()
    db.session.flush()
    logger.info("Stock %+d on product %s -> %s", delta, product.id, new_quantity)
    return product


def commit_stock(product_id: int, quantity: int) -> Product:
    """Take quantity out of circulation. Joins the caller's transaction."""
    quantity = _require_positive_quantity(quantity)
    product = load_product_for_update(product_id)
    return _apply_delta(product, -quantity)


def release_stock(product_id: int, quantity: int) -> Product:
    """Put quantity back into circulation. Joins the caller's transaction."""
    quantity = _require_positive_quantity(quantity)
    product = load_product_for_update(product_id)
    return _apply_delta(product, quantity)


def set_stock_level(product: Product, quantity: int) -> Product:
    """
    Set an absolute on-hand quantity (product edit form).

    The caller must have loaded `product` with load_product_for_update().
    Joins the caller's transaction.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise ValidationError("Stock quantity must be a non-negative integer")
    if quantity > MAX_INT_VALUE:
        raise ValidationError(f"Stock quantity cannot exceed {MAX_INT_VALUE}")
    if quantity == product.stock_quantity:
        return product
    return _apply_delta(product, quantity - product.stock_quantity)


def adjust_stock(
    *,
    product_id: int,
    operation: str,
    quantity: int,
    actor_user_id: int,
) -> Product:
    """
    Direct inventory adjustment ("add" or "subtract").

    Subtract goes through the same guard as a handover commit, so it can
    never take on-hand below zero.
    """
    if operation not in STOCK_OPERATIONS:
        raise ValidationError('Operation must be "add" or "subtract"')
    quantity = _require_positive_quantity(quantity)

    def _op():
        actor = require_actor(actor_user_id, MANAGE_PRODUCTS)
        if operation == STOCK_OPERATION_ADD:
            product = release_stock(product_id, quantity)
        else:
            product = commit_stock(product_id, quantity)
        product.updated_by_user_id = actor.id
        db.session.commit()
        return product

    return run_with_retry(_op)
