from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

PURCHASE_STATUS_PENDING = "pending"
PURCHASE_STATUS_COMPLETED = "completed"
PURCHASE_STATUS_CANCELLED = "cancelled"


class Purchase(db.Model):
    """
    Supplier purchase header (stock receipt).

    Purchases are recorded as 'completed' the moment stock is received.
    'pending' and 'cancelled' are reserved statuses: nothing creates them and
    no transition logic exists for them.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.CheckConstraint("status IN ('pending', 'completed', 'cancelled')", name="ck_purchases_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    # Human-readable number (e.g., "PO-000007")
    purchase_number = db.Column(db.String(50), nullable=False, unique=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=PURCHASE_STATUS_PENDING, index=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    creator = db.relationship("User", foreign_keys=[created_by])

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} number={self.purchase_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "purchase_number": self.purchase_number,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseItem(db.Model):
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Quantity received (always positive)
    quantity = db.Column(db.Integer, nullable=False)

    unit_cost_cents = db.Column(db.Integer, nullable=False)

    # Line total (quantity * unit_cost_cents)
    total_cost_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase = db.relationship("Purchase", backref=db.backref("items", lazy=True, order_by="PurchaseItem.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "total_cost_cents": self.total_cost_cents,
            "created_at": to_utc_z(self.created_at),
        }
