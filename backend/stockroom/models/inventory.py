from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


PRODUCT_UNITS = ("pcs", "kg", "lbs", "liters", "meters", "boxes")
PRODUCT_STATUSES = ("active", "inactive", "discontinued")
PRODUCT_CURRENCY = "PKR"


class Product(db.Model):
    """
    Product master data plus its stock ledger.

    IDENTITY:
    - id is the internal handle: autoincrement, never reused, never changed.
    - product_number is the human-facing number. It is dense (1..N): after a
      delete, compaction renumbers the survivors in creation order
      (see services/sequence_service.py).

    STOCK:
    - stock_quantity is never negative (DB check constraint).
    - It only changes through services/stock_service.py, which locks the row
      and relies on version_id to detect concurrent writers.
    - min_stock / max_stock are advisory (alerts and display), not enforced.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="stock_quantity_non_negative"),
        db.CheckConstraint("min_stock >= 0", name="min_stock_non_negative"),
        db.CheckConstraint("max_stock >= 0", name="max_stock_non_negative"),
        db.CheckConstraint("cost_price_cents >= 0", name="cost_price_non_negative"),
        db.CheckConstraint("selling_price_cents >= 0", name="selling_price_non_negative"),
        db.Index("ix_products_name_status", "name", "status"),
        db.Index("ix_products_stock_status", "stock_quantity", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_number = db.Column(db.Integer, nullable=False, unique=True, index=True)

    name = db.Column(db.String(100), nullable=False, index=True)
    description = db.Column(db.String(500), nullable=True)

    # Authoritative storage in minor units
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(8), nullable=False, default=PRODUCT_CURRENCY)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    max_stock = db.Column(db.Integer, nullable=False, default=1000)
    unit = db.Column(db.String(16), nullable=False, default="pcs")
    location = db.Column(db.String(100), nullable=True)
    last_restocked = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    # Comma-separated, normalized on write
    tags = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    updated_by = db.relationship("User", foreign_keys=[updated_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} number={self.product_number} name={self.name!r} qty={self.stock_quantity}>"

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock_quantity == 0

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock

    @property
    def profit_margin(self) -> float:
        if self.cost_price_cents and self.cost_price_cents > 0:
            return round(
                (self.selling_price_cents - self.cost_price_cents) / self.cost_price_cents * 100, 2
            )
        return 0.0

    @property
    def tag_list(self) -> list[str]:
        if not self.tags:
            return []
        return [t for t in (part.strip() for part in self.tags.split(",")) if t]

    def to_summary(self) -> dict:
        """Compact form embedded in handover responses."""
        return {
            "id": self.id,
            "product_number": self.product_number,
            "name": self.name,
            "stock_quantity": self.stock_quantity,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_number": self.product_number,
            "name": self.name,
            "description": self.description,
            "price": {
                "cost_cents": self.cost_price_cents,
                "selling_cents": self.selling_price_cents,
                "currency": self.currency,
            },
            "stock": {
                "quantity": self.stock_quantity,
                "min_stock": self.min_stock,
                "max_stock": self.max_stock,
                "unit": self.unit,
                "location": self.location,
                "last_restocked": to_utc_z(self.last_restocked),
            },
            "tags": self.tag_list,
            "status": self.status,
            "expiry_date": to_utc_z(self.expiry_date),
            "is_out_of_stock": self.is_out_of_stock,
            "is_low_stock": self.is_low_stock,
            "profit_margin": self.profit_margin,
            "created_by_user_id": self.created_by_user_id,
            "updated_by_user_id": self.updated_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SequenceCounter(db.Model):
    """
    Named counters for human-facing numbers.

    WHY: Product numbers are allocated from the "product" row with an atomic
    UPDATE. Compaction rewrites the same row, so it also acts as the
    collection-level lock that keeps creation and renumbering from interleaving.
    """
    __tablename__ = "sequence_counters"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False, unique=True)
    value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
