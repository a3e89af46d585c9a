from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import event

from ..extensions import db
from app.time_utils import to_utc_z

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUSTMENT)

REFERENCE_SALE = "sale"
REFERENCE_PURCHASE = "purchase"
REFERENCE_ADJUSTMENT = "adjustment"
REFERENCE_TYPES = (REFERENCE_SALE, REFERENCE_PURCHASE, REFERENCE_ADJUSTMENT)


@dataclass(frozen=True)
class StockReference:
    """
    Tagged link from a movement to the document that caused it.

    - sale / purchase: id is required and points at sales.id / purchases.id
    - adjustment: manual correction, never carries an id
    - kind=None: free-standing movement with no originating document
    """
    kind: str | None = None
    id: int | None = None

    def __post_init__(self):
        if self.kind is not None and self.kind not in REFERENCE_TYPES:
            raise ValueError(f"reference kind must be one of: {', '.join(REFERENCE_TYPES)}")
        if self.kind in (REFERENCE_SALE, REFERENCE_PURCHASE) and self.id is None:
            raise ValueError(f"{self.kind} reference requires an id")
        if self.kind in (None, REFERENCE_ADJUSTMENT) and self.id is not None:
            raise ValueError("reference id is only allowed for sale and purchase references")

    @classmethod
    def sale(cls, sale_id: int) -> "StockReference":
        return cls(REFERENCE_SALE, sale_id)

    @classmethod
    def purchase(cls, purchase_id: int) -> "StockReference":
        return cls(REFERENCE_PURCHASE, purchase_id)

    @classmethod
    def adjustment(cls) -> "StockReference":
        return cls(REFERENCE_ADJUSTMENT)


NO_REFERENCE = StockReference()


class StockMovement(db.Model):
    """
    Ledger Store: one immutable row per stock change.

    QUANTITY SIGN CONVENTION:
    movement_type decides the direction. For 'in' and 'out' the quantity is
    a non-negative magnitude ('in' adds it, 'out' removes it). For
    'adjustment' the quantity is the signed delta. The row stores the
    quantity exactly as requested, even when the stock floor clamped the
    applied change, so signed_quantity is what the caller asked for.

    IMMUTABLE: rows are appended in the same DB transaction as the
    Product.stock_quantity write and are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("movement_type IN ('in', 'out', 'adjustment')", name="ck_stock_movements_type"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(16), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy=True))
    creator = db.relationship("User", foreign_keys=[created_by])

    @property
    def reference(self) -> StockReference:
        return StockReference(self.reference_type, self.reference_id)

    @property
    def signed_quantity(self) -> int:
        if self.movement_type == MOVEMENT_OUT:
            return -self.quantity
        return self.quantity

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} product_id={self.product_id} "
            f"type={self.movement_type} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class LedgerImmutableError(RuntimeError):
    """Raised when code tries to rewrite stock movement history."""


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise LedgerImmutableError(f"stock movement {target.id} is append-only")


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise LedgerImmutableError(f"stock movement {target.id} is append-only")
