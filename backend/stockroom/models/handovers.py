from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


HANDOVER_STATUS_PENDING = "pending"
HANDOVER_STATUS_HANDED_OVER = "handed_over"
HANDOVER_STATUS_RETURNED = "returned"
HANDOVER_STATUS_REJECTED = "rejected"

HANDOVER_STATUSES = (
    HANDOVER_STATUS_PENDING,
    HANDOVER_STATUS_HANDED_OVER,
    HANDOVER_STATUS_RETURNED,
    HANDOVER_STATUS_REJECTED,
)

# Free-text limits (characters)
PURPOSE_MAX_LENGTH = 200
NOTES_MAX_LENGTH = 500


class HandOver(db.Model):
    """
    Items lent from stock to an employee.

    LIFECYCLE (see services/handover_service.py):
    pending -> handed_over -> returned
    pending -> rejected
    (direct issue starts at handed_over)

    STOCK COUPLING:
    - quantity is fixed at creation.
    - Stock is committed when the record reaches handed_over and released as
      items come back; returned_quantity tracks what has come back.
    - outstanding = quantity - returned_quantity is what is still out.

    The record is its own history: the actor columns and dates below are the
    only trail of who moved it through which status.
    """
    __tablename__ = "handovers"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        db.CheckConstraint(
            "returned_quantity >= 0 AND returned_quantity <= quantity",
            name="returned_quantity_bounds",
        ),
        db.CheckConstraint(
            "status IN ('pending', 'handed_over', 'returned', 'rejected')",
            name="status_valid",
        ),
        db.Index("ix_handovers_product_employee_status", "product_id", "employee_id", "status"),
        db.Index("ix_handovers_status_expected_return", "status", "expected_return_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    handed_over_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    returned_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejected_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    returned_quantity = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=HANDOVER_STATUS_PENDING, index=True)

    hand_over_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    expected_return_date = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_return_date = db.Column(db.DateTime(timezone=True), nullable=True)

    purpose = db.Column(db.String(PURPOSE_MAX_LENGTH), nullable=True)
    notes = db.Column(db.String(NOTES_MAX_LENGTH), nullable=True)
    return_notes = db.Column(db.String(NOTES_MAX_LENGTH), nullable=True)
    rejection_reason = db.Column(db.String(NOTES_MAX_LENGTH), nullable=True)
    approval_notes = db.Column(db.String(NOTES_MAX_LENGTH), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", backref=db.backref("handovers", lazy=True))
    employee = db.relationship("User", foreign_keys=[employee_id])
    handed_over_by = db.relationship("User", foreign_keys=[handed_over_by_user_id])
    returned_by = db.relationship("User", foreign_keys=[returned_by_user_id])
    rejected_by = db.relationship("User", foreign_keys=[rejected_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<HandOver id={self.id} product_id={self.product_id} employee_id={self.employee_id} "
            f"status={self.status} qty={self.quantity} returned={self.returned_quantity}>"
        )

    @property
    def outstanding_quantity(self) -> int:
        return self.quantity - (self.returned_quantity or 0)

    def is_overdue(self, now=None) -> bool:
        if self.status != HANDOVER_STATUS_HANDED_OVER or self.expected_return_date is None:
            return False
        return self.expected_return_date < (now or utcnow())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": self.product.to_summary() if self.product else None,
            "employee_id": self.employee_id,
            "employee": self.employee.to_summary() if self.employee else None,
            "handed_over_by_user_id": self.handed_over_by_user_id,
            "handed_over_by": self.handed_over_by.to_summary() if self.handed_over_by else None,
            "returned_by_user_id": self.returned_by_user_id,
            "returned_by": self.returned_by.to_summary() if self.returned_by else None,
            "rejected_by_user_id": self.rejected_by_user_id,
            "rejected_by": self.rejected_by.to_summary() if self.rejected_by else None,
            "quantity": self.quantity,
            "returned_quantity": self.returned_quantity,
            "outstanding_quantity": self.outstanding_quantity,
            "status": self.status,
            "is_overdue": self.is_overdue(),
            "hand_over_date": to_utc_z(self.hand_over_date),
            "expected_return_date": to_utc_z(self.expected_return_date),
            "actual_return_date": to_utc_z(self.actual_return_date),
            "purpose": self.purpose,
            "notes": self.notes,
            "return_notes": self.return_notes,
            "rejection_reason": self.rejection_reason,
            "approval_notes": self.approval_notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
