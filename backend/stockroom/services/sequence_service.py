# Overview: Human-facing product numbers and post-delete compaction.

"""
Product numbering

- Every product gets product_number from the "product" SequenceCounter row.
- After any product deletion the remaining products are renumbered to a dense
  1..N sequence ordered by creation time (created_at, then id), and the
  counter is reset to N.
- Allocation and compaction both write the counter row first. That row is
  the collection-level lock: a product creation can never interleave with a
  renumbering pass.

Neither function commits; they run inside the caller's transaction.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, SequenceCounter
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)


PRODUCT_COUNTER = "product"


def _create_counter(name: str) -> SequenceCounter:
    # Seed from existing data so a fresh counter never re-issues a live number
    start = db.session.query(func.coalesce(func.max(Product.product_number), 0)).scalar() or 0
    counter = SequenceCounter(name=name, value=int(start))
    try:
        with db.session.begin_nested():
            db.session.add(counter)
    except IntegrityError:
        # Another transaction created it first
        counter = db.session.query(SequenceCounter).filter_by(name=name).one()
    return counter


def acquire_counter(name: str = PRODUCT_COUNTER) -> SequenceCounter:
    """Lock (creating if needed) the named counter row."""
    counter = lock_for_update(db.session.query(SequenceCounter).filter_by(name=name)).first()
    if counter is None:
        counter = _create_counter(name)
    return counter


def next_product_number() -> int:
    """Atomically allocate the next product number."""
    stmt = (
        update(SequenceCounter)
        .where(SequenceCounter.name == PRODUCT_COUNTER)
        .values(value=SequenceCounter.value + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        _create_counter(PRODUCT_COUNTER)
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise RuntimeError("product sequence counter could not be created")

    current = (
        db.session.query(SequenceCounter.value)
        .filter_by(name=PRODUCT_COUNTER)
        .scalar()
    )
    return int(current)


def compact_product_numbers() -> int:
    """
    Renumber all products to 1..N in creation order and reset the counter to N.

    Returns the number of products whose number changed.

    Two passes: products that move are first parked on negative numbers so
    the unique constraint on product_number never sees a transient duplicate.
    """
    counter = acquire_counter(PRODUCT_COUNTER)

    products = (
        db.session.query(Product)
        .order_by(Product.created_at.asc(), Product.id.asc())
        .all()
    )

    moving = [
        (index, product)
        for index, product in enumerate(products, start=1)
        if product.product_number != index
    ]

    for _, product in moving:
        product.product_number = -product.id
    db.session.flush()

    for index, product in moving:
        product.product_number = index
    counter.value = len(products)
    db.session.flush()

    logger.info("Compacted product numbers: %d products, %d renumbered", len(products), len(moving))
    return len(moving)
