# Overview: Service-layer operations for supplier purchases; encapsulates business logic.

"""
Purchase Receipt Service

WHY: Receiving stock from a supplier is a document (Purchase + items) plus
one 'in' movement per line. All of it is one transaction: a bad product id
on any line leaves no purchase, no items, and no stock change behind.

DESIGN:
- Supplier is REQUIRED on the purchase header, not per line
- Purchases are created 'completed'; no pending/cancel workflow exists
- No stock sufficiency check: purchases only add stock
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..extensions import db
from ..errors import ProductNotFoundError, SupplierNotFoundError, UserNotFoundError
from ..models import Product, Purchase, PurchaseItem, StockReference, Supplier, User
from ..models.inventory import MOVEMENT_IN
from ..models.purchases import PURCHASE_STATUS_COMPLETED
from ..validation import ValidationError
from .concurrency import lock_for_update, run_in_transaction
from .document_service import next_purchase_number
from .stock_service import record_movement_inner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurchaseLine:
    product_id: int
    quantity: int
    unit_cost_cents: int

    @property
    def total_cost_cents(self) -> int:
        return self.quantity * self.unit_cost_cents


def _validate_lines(items: list[PurchaseLine]) -> None:
    if not items:
        raise ValidationError("A purchase needs at least one item")
    for item in items:
        if item.quantity <= 0:
            raise ValidationError("quantity must be > 0")
        if item.unit_cost_cents < 0:
            raise ValidationError("unit_cost_cents must be >= 0")


def _create_purchase_locked(
    *,
    supplier_id: int,
    items: list[PurchaseLine],
    created_by: int,
) -> tuple[Purchase, list[PurchaseItem]]:
    supplier = db.session.query(Supplier).filter_by(id=supplier_id).first()
    if supplier is None:
        raise SupplierNotFoundError(supplier_id)
    if db.session.get(User, created_by) is None:
        raise UserNotFoundError(created_by)

    products: dict[int, Product] = {}
    for product_id in sorted({item.product_id for item in items}):
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is not None:
            products[product_id] = product
    for item in items:
        if item.product_id not in products:
            raise ProductNotFoundError(item.product_id)

    purchase = Purchase(
        supplier_id=supplier_id,
        purchase_number=next_purchase_number(),
        total_amount_cents=sum(item.total_cost_cents for item in items),
        status=PURCHASE_STATUS_COMPLETED,
        created_by=created_by,
    )
    db.session.add(purchase)
    db.session.flush()

    purchase_items = []
    for item in items:
        purchase_item = PurchaseItem(
            purchase_id=purchase.id,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_cost_cents=item.unit_cost_cents,
            total_cost_cents=item.total_cost_cents,
        )
        db.session.add(purchase_item)
        purchase_items.append(purchase_item)

        record_movement_inner(
            product_id=item.product_id,
            movement_type=MOVEMENT_IN,
            quantity=item.quantity,
            created_by=created_by,
            reference=StockReference.purchase(purchase.id),
            notes=f"Purchase {purchase.purchase_number}",
            product=products[item.product_id],
        )

    db.session.flush()
    return purchase, purchase_items


def create_purchase(
    *,
    supplier_id: int,
    items: list[PurchaseLine],
    created_by: int,
) -> tuple[Purchase, list[PurchaseItem]]:
    """
    Record a completed supplier purchase and receive its stock.

    Args:
        supplier_id: Supplier providing the stock (REQUIRED)
        items: Lines with product, quantity and unit cost
        created_by: User receiving the stock

    Returns:
        (Purchase, [PurchaseItem])

    Raises:
        SupplierNotFoundError: supplier does not exist
        UserNotFoundError: created_by is not a user
        ProductNotFoundError: any line names a missing product
    """
    _validate_lines(items)

    purchase, purchase_items = run_in_transaction(
        lambda: _create_purchase_locked(
            supplier_id=supplier_id,
            items=items,
            created_by=created_by,
        )
    )
    logger.info(
        "Purchase %s received from supplier %s: %d line(s), total=%d cents",
        purchase.purchase_number, supplier_id, len(purchase_items), purchase.total_amount_cents,
    )
    return purchase, purchase_items


def get_purchases(*, supplier_id: int | None = None) -> list[Purchase]:
    """Purchases newest first, optionally for one supplier."""
    q = db.session.query(Purchase)
    if supplier_id is not None:
        q = q.filter(Purchase.supplier_id == supplier_id)
    return q.order_by(Purchase.created_at.desc(), Purchase.id.desc()).all()


def get_purchase_by_id(purchase_id: int) -> tuple[Purchase, list[PurchaseItem]] | None:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        return None
    items = (
        db.session.query(PurchaseItem)
        .filter_by(purchase_id=purchase_id)
        .order_by(PurchaseItem.id)
        .all()
    )
    return purchase, items
