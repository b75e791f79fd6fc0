# backend/stockroom/services/handover_service.py
"""
Handover lifecycle service.

WHY: Items lent to employees must leave and re-enter stock exactly once.
Every status change that moves stock is applied together with its stock
mutation in one transaction, so on-hand quantity always equals what was
received minus what is still out.

LIFECYCLE:
1. PENDING: Employee requested items (no stock moves yet)
2. HANDED_OVER: Items left the stockroom (direct issue or approval commits stock)
3. RETURNED: Everything came back (stock released)
4. REJECTED: Request declined before anything left

Transitions:
- direct issue        (none)      -> handed_over   commit(quantity)
- request             (none)      -> pending
- approve             pending     -> handed_over   commit(quantity)
- reject              pending     -> rejected
- manager return      handed_over -> returned      release(outstanding)
- borrower return     handed_over -> handed_over / returned   release(n)
- delete handed_over  releases outstanding, then removes the row

No stock is reserved for pending requests: approval re-checks availability.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..extensions import db
from ..errors import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from ..models import HandOver, Product, User
from ..models.handovers import (
    HANDOVER_STATUS_HANDED_OVER,
    HANDOVER_STATUS_PENDING,
    HANDOVER_STATUS_REJECTED,
    HANDOVER_STATUS_RETURNED,
    NOTES_MAX_LENGTH,
    PURPOSE_MAX_LENGTH,
)
from ..permissions import MANAGE_PRODUCTS, REQUEST_HANDOVER, RETURN_HANDOVER
from ..time_utils import utcnow
from ..validation import clean_text, parse_datetime_field, require_id, require_positive_int
from .concurrency import lock_for_update, run_with_retry
from .permission_service import require_actor
from .stock_service import commit_stock, load_product_for_update, release_stock

logger = logging.getLogger(__name__)


@dataclass
class Transition:
    """
    One lifecycle step: the status to write and the stock it moves.

    stock_delta < 0 commits stock (items leave), > 0 releases stock
    (items come back), 0 touches no stock.
    """
    handover: HandOver
    to_status: str
    stock_delta: int = 0

    def apply(self) -> HandOver:
        """Write stock and status into the current transaction. Does not commit."""
        if self.stock_delta < 0:
            commit_stock(self.handover.product_id, -self.stock_delta)
        elif self.stock_delta > 0:
            release_stock(self.handover.product_id, self.stock_delta)

        previous = self.handover.status
        self.handover.status = self.to_status
        db.session.flush()

        logger.info(
            "Handover %s: %s -> %s (stock %+d on product %s)",
            self.handover.id, previous, self.to_status, self.stock_delta, self.handover.product_id,
        )
        return self.handover


def _load_handover_for_update(handover_id: int) -> HandOver:
    handover = lock_for_update(db.session.query(HandOver).filter_by(id=handover_id)).first()
    if handover is None:
        raise NotFoundError("Handover not found")
    return handover


def _require_status(handover: HandOver, expected: str, event: str) -> None:
    if handover.status != expected:
        raise InvalidTransitionError(
            f"Cannot {event} handover in {handover.status} status (expected {expected})"
        )


def _require_product(product_id: int) -> Product:
    """Load the product under a row lock; product deletion takes the same lock."""
    return load_product_for_update(product_id)


def _require_employee(employee_id: int) -> User:
    employee = db.session.get(User, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    if not employee.is_active:
        raise ValidationError("Employee account is inactive")
    return employee


def get_handover(handover_id: int) -> HandOver:
    handover = db.session.get(HandOver, handover_id)
    if handover is None:
        raise NotFoundError("Handover not found")
    return handover


def create_direct_handover(
    *,
    product_id: int,
    employee_id: int,
    quantity: int,
    issuer_id: int,
    purpose: str | None = None,
    notes: str | None = None,
    expected_return_date: datetime | str | None = None,
) -> HandOver:
    """
    Hand items straight to an employee (manager/admin, no approval step).

    Raises:
        ForbiddenError: issuer lacks MANAGE_PRODUCTS
        NotFoundError: product or employee missing
        InsufficientStockError: on-hand < quantity
        ValidationError: malformed input
    """
    product_id = require_id(product_id, "product_id")
    employee_id = require_id(employee_id, "employee_id")
    quantity = require_positive_int(quantity, "quantity")
    purpose = clean_text(purpose, "purpose", PURPOSE_MAX_LENGTH)
    notes = clean_text(notes, "notes", NOTES_MAX_LENGTH)
    expected_return_date = parse_datetime_field(expected_return_date, "expected_return_date")

    def _op():
        issuer = require_actor(issuer_id, MANAGE_PRODUCTS)
        _require_product(product_id)
        _require_employee(employee_id)

        now = utcnow()
        handover = HandOver(
            product_id=product_id,
            employee_id=employee_id,
            handed_over_by_user_id=issuer.id,
            quantity=quantity,
            returned_quantity=0,
            status=HANDOVER_STATUS_PENDING,
            hand_over_date=now,
            expected_return_date=expected_return_date,
            purpose=purpose,
            notes=notes,
        )
        db.session.add(handover)
        db.session.flush()

        Transition(handover, HANDOVER_STATUS_HANDED_OVER, -quantity).apply()
        db.session.commit()
        return handover

    return run_with_retry(_op)


def create_handover_request(
    *,
    product_id: int,
    employee_id: int,
    quantity: int,
    reason: str,
) -> HandOver:
    """
    Employee asks for items. Nothing leaves stock until a manager approves.

    The requesting employee is the borrower; the reason is kept as purpose.
    """
    product_id = require_id(product_id, "product_id")
    quantity = require_positive_int(quantity, "quantity")
    reason = clean_text(reason, "reason", PURPOSE_MAX_LENGTH, required=True)

    def _op():
        employee = require_actor(employee_id, REQUEST_HANDOVER)
        _require_product(product_id)

        handover = HandOver(
            product_id=product_id,
            employee_id=employee.id,
            quantity=quantity,
            returned_quantity=0,
            status=HANDOVER_STATUS_PENDING,
            purpose=reason,
        )
        db.session.add(handover)
        db.session.commit()
        logger.info(
            "Handover %s requested: product %s x%s by user %s",
            handover.id, product_id, quantity, employee.id,
        )
        return handover

    return run_with_retry(_op)


def approve_handover(
    *,
    handover_id: int,
    approver_id: int,
    approval_notes: str | None = None,
) -> HandOver:
    """pending -> handed_over; commits the requested quantity."""
    approval_notes = clean_text(approval_notes, "approval_notes", NOTES_MAX_LENGTH)

    def _op():
        approver = require_actor(approver_id, MANAGE_PRODUCTS)
        handover = _load_handover_for_update(handover_id)
        _require_status(handover, HANDOVER_STATUS_PENDING, "approve")

        handover.handed_over_by_user_id = approver.id
        handover.hand_over_date = utcnow()
        handover.approval_notes = approval_notes

        Transition(handover, HANDOVER_STATUS_HANDED_OVER, -handover.quantity).apply()
        db.session.commit()
        return handover

    return run_with_retry(_op)


def reject_handover(
    *,
    handover_id: int,
    rejector_id: int,
    rejection_reason: str,
) -> HandOver:
    """pending -> rejected; no stock moves."""
    rejection_reason = clean_text(rejection_reason, "rejection_reason", NOTES_MAX_LENGTH, required=True)

    def _op():
        rejector = require_actor(rejector_id, MANAGE_PRODUCTS)
        handover = _load_handover_for_update(handover_id)
        _require_status(handover, HANDOVER_STATUS_PENDING, "reject")

        handover.rejected_by_user_id = rejector.id
        handover.rejection_reason = rejection_reason

        Transition(handover, HANDOVER_STATUS_REJECTED).apply()
        db.session.commit()
        return handover

    return run_with_retry(_op)


def return_handover(
    *,
    handover_id: int,
    returner_id: int,
    return_quantity: int,
    return_notes: str | None = None,
) -> HandOver:
    """
    Borrower gives back some or all of the outstanding items.

    The record becomes returned once returned_quantity reaches quantity;
    otherwise it stays handed_over.
    """
    return_quantity = require_positive_int(return_quantity, "return_quantity")
    return_notes = clean_text(return_notes, "return_notes", NOTES_MAX_LENGTH)

    def _op():
        returner = require_actor(returner_id, RETURN_HANDOVER)
        handover = _load_handover_for_update(handover_id)

        if handover.employee_id != returner.id:
            raise ForbiddenError("You can only return your own handovers")
        _require_status(handover, HANDOVER_STATUS_HANDED_OVER, "return")

        outstanding = handover.outstanding_quantity
        if return_quantity > outstanding:
            raise ValidationError(
                f"Return quantity cannot exceed outstanding quantity ({outstanding})"
            )

        handover.returned_quantity = handover.returned_quantity + return_quantity
        handover.returned_by_user_id = returner.id
        handover.actual_return_date = utcnow()
        handover.return_notes = return_notes

        to_status = (
            HANDOVER_STATUS_RETURNED
            if handover.returned_quantity >= handover.quantity
            else HANDOVER_STATUS_HANDED_OVER
        )
        Transition(handover, to_status, return_quantity).apply()
        db.session.commit()
        return handover

    return run_with_retry(_op)


def mark_returned_by_manager(
    *,
    handover_id: int,
    manager_id: int,
    return_notes: str | None = None,
) -> HandOver:
    """handed_over -> returned; releases whatever is still outstanding."""
    return_notes = clean_text(return_notes, "return_notes", NOTES_MAX_LENGTH)

    def _op():
        manager = require_actor(manager_id, MANAGE_PRODUCTS)
        handover = _load_handover_for_update(handover_id)
        _require_status(handover, HANDOVER_STATUS_HANDED_OVER, "return")

        outstanding = handover.outstanding_quantity
        handover.returned_quantity = handover.quantity
        handover.returned_by_user_id = manager.id
        handover.actual_return_date = utcnow()
        handover.return_notes = return_notes

        Transition(handover, HANDOVER_STATUS_RETURNED, outstanding).apply()
        db.session.commit()
        return handover

    return run_with_retry(_op)


def delete_handover(*, handover_id: int, actor_id: int) -> None:
    """
    Remove a handover record.

    A handed_over record gives its outstanding items back to stock first.
    Pending, rejected and returned records hold no stock.
    """
    def _op():
        require_actor(actor_id, MANAGE_PRODUCTS)
        handover = _load_handover_for_update(handover_id)

        outstanding = 0
        if handover.status == HANDOVER_STATUS_HANDED_OVER:
            outstanding = handover.outstanding_quantity
            if outstanding > 0:
                release_stock(handover.product_id, outstanding)

        db.session.delete(handover)
        db.session.commit()
        logger.info(
            "Handover %s deleted (status %s, released %d to product %s)",
            handover_id, handover.status, outstanding, handover.product_id,
        )

    run_with_retry(_op)
