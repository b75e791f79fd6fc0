# backend/stockroom/services/products_service.py
"""
Products service.

- Product numbers come from the sequence counter and stay dense: every
  delete is followed by compaction in the same transaction.
- stock_quantity is written directly only at creation. After that it moves
  through stock_service (set_stock_level on edit, adjust_stock for the
  add/subtract endpoint).
- A product with items still pending or out on loan cannot be deleted.
"""
from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, NotFoundError
from ..models import HandOver, Product
from ..models.handovers import HANDOVER_STATUS_HANDED_OVER, HANDOVER_STATUS_PENDING
from ..permissions import ADD_PRODUCTS, DELETE_PRODUCTS, EDIT_PRODUCTS
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload
from .concurrency import run_with_retry
from .handover_queries import paginate
from .permission_service import require_actor
from .sequence_service import compact_product_numbers, next_product_number
from .stock_service import load_product_for_update, set_stock_level

logger = logging.getLogger(__name__)

OPEN_HANDOVER_STATUSES = (HANDOVER_STATUS_PENDING, HANDOVER_STATUS_HANDED_OVER)


PRODUCT_WRITABLE_FIELDS = frozenset({
    "name",
    "description",
    "cost_price_cents",
    "selling_price_cents",
    "currency",
    "stock_quantity",
    "min_stock",
    "max_stock",
    "unit",
    "location",
    "tags",
    "status",
    "expiry_date",
})

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_WRITABLE_FIELDS,
    required_on_create=frozenset({"name", "cost_price_cents", "selling_price_cents"}),
)

DEFAULT_PRODUCT_PAGE_LIMIT = 10


def validate_product_payload(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    return patch


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k == "stock_quantity" or k not in PRODUCT_WRITABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def list_products(
    *,
    search: str | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = DEFAULT_PRODUCT_PAGE_LIMIT,
) -> dict:
    """
    Newest-first product listing.

    search matches name or description (case-insensitive); an all-digit
    search also matches the product number exactly.
    """
    query = db.session.query(Product)

    if search and search.strip():
        term = search.strip()
        pattern = f"%{term}%"
        conditions = [Product.name.ilike(pattern), Product.description.ilike(pattern)]
        if term.isdigit():
            conditions.append(Product.product_number == int(term))
        query = query.filter(or_(*conditions))

    if status:
        query = query.filter(Product.status == status)

    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    products, pagination = paginate(query, page=page, limit=limit)
    return {"products": [p.to_dict() for p in products], "pagination": pagination}


def list_active_products() -> list[dict]:
    """All active products by name, for pickers."""
    products = (
        db.session.query(Product)
        .filter(Product.status == "active")
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return [p.to_summary() for p in products]


def create_product(*, payload: dict, actor_user_id: int) -> dict:
    """
    Create a product from a raw payload.

    Raises:
        ValidationError: bad payload
        ForbiddenError: actor lacks ADD_PRODUCTS
    """
    patch = validate_product_payload(payload, partial=False)

    def _op():
        actor = require_actor(actor_user_id, ADD_PRODUCTS)

        p = Product(
            product_number=next_product_number(),
            stock_quantity=patch.get("stock_quantity") or 0,
            created_by_user_id=actor.id,
            updated_by_user_id=actor.id,
        )
        apply_product_patch(p, patch)

        db.session.add(p)
        db.session.commit()
        logger.info("Product %s created as #%s by user %s", p.id, p.product_number, actor.id)
        return p.to_dict()

    return run_with_retry(_op)


def update_product(*, product_id: int, payload: dict, actor_user_id: int) -> dict:
    """Partial update; a changed stock_quantity goes through the stock ledger."""
    patch = validate_product_payload(payload, partial=True)

    def _op():
        actor = require_actor(actor_user_id, EDIT_PRODUCTS)
        p = load_product_for_update(product_id)

        apply_product_patch(p, patch)
        if patch.get("stock_quantity") is not None:
            set_stock_level(p, patch["stock_quantity"])
        p.updated_by_user_id = actor.id

        db.session.commit()
        return p.to_dict()

    return run_with_retry(_op)


def _open_handover_count(product_id: int) -> int:
    return (
        db.session.query(HandOver)
        .filter(
            HandOver.product_id == product_id,
            HandOver.status.in_(OPEN_HANDOVER_STATUSES),
        )
        .count()
    )


def delete_product(*, product_id: int, actor_user_id: int) -> dict:
    """
    Delete a product, drop its closed handover history, then compact numbers.

    Raises:
        ConflictError: pending or handed_over handovers still reference it
    """
    def _op():
        require_actor(actor_user_id, DELETE_PRODUCTS)
        p = load_product_for_update(product_id)

        open_count = _open_handover_count(p.id)
        if open_count:
            raise ConflictError(
                f"Product has {open_count} open handover(s); return or delete them first"
            )

        deleted = {"id": p.id, "product_number": p.product_number, "name": p.name}

        db.session.query(HandOver).filter(
            HandOver.product_id == p.id,
            HandOver.status.notin_(OPEN_HANDOVER_STATUSES),
        ).delete(synchronize_session="fetch")
        db.session.delete(p)
        try:
            db.session.flush()
        except IntegrityError:
            # A handover opened after the count still references the product
            raise ConflictError("Product has open handover(s); return or delete them first")

        compact_product_numbers()
        db.session.commit()
        logger.info("Product %s (%s) deleted", deleted["id"], deleted["name"])
        return deleted

    return run_with_retry(_op)
