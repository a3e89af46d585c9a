"""
Sales Service - sale creation and cancellation

WHY: A sale is a single atomic unit. The header, its items, the stock
decrement for every line and the matching ledger rows either all land or
none do. Cancellation is the mirror image: restore stock per item, append
reverse movements, then mark the sale cancelled.

All amounts are integer cents.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import func

from ..extensions import db
from ..errors import (
    CancellerNotFoundError,
    CashierNotFoundError,
    InsufficientPaymentError,
    InsufficientStockError,
    InvalidStateTransitionError,
    ProductInactiveError,
    ProductNotFoundError,
    SaleNotFoundError,
)
from ..models import Product, Sale, SaleItem, StockReference, User
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT
from ..models.sales import PAYMENT_METHODS, SALE_STATUS_CANCELLED, SALE_STATUS_COMPLETED
from app.time_utils import day_bounds, utcnow
from ..validation import ValidationError
from .concurrency import lock_for_update, run_in_transaction
from .document_service import next_transaction_number
from .stock_service import record_movement_inner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartItem:
    """One requested sale line, as scanned at the register."""
    product_id: int
    barcode: str
    product_name: str
    quantity: int
    unit_price_cents: int

    @property
    def total_price_cents(self) -> int:
        return self.quantity * self.unit_price_cents


def _require_user(user_id: int, error_cls) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if user is None:
        raise error_cls(user_id)
    return user


def _lock_products(product_ids) -> dict[int, Product]:
    """
    Lock every product touched by a document in ascending id order.

    A fixed lock order keeps two multi-line sales from deadlocking each other
    on databases with row locks.
    """
    locked: dict[int, Product] = {}
    for product_id in sorted(set(product_ids)):
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is not None:
            locked[product_id] = product
    return locked


def _validate_lines(items: list[CartItem], products: dict[int, Product]) -> None:
    """
    Per-line checks in cart order: exists, active, enough stock.

    Stock is checked against the running total per product, so a cart that
    lists the same product twice cannot oversell it.
    """
    requested: dict[int, int] = {}
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            raise ProductNotFoundError(item.product_id)
        if not product.is_active:
            raise ProductInactiveError(product.id, product.name)

        requested[product.id] = requested.get(product.id, 0) + item.quantity
        if product.stock_quantity < requested[product.id]:
            raise InsufficientStockError(
                product.id, product.name, requested[product.id], product.stock_quantity
            )


def _validate_request(
    items: list[CartItem],
    discount_cents: int,
    tax_cents: int,
    payment_method: str,
    amount_paid_cents: int,
) -> None:
    if not items:
        raise ValidationError("A sale needs at least one item")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    for item in items:
        if item.quantity <= 0:
            raise ValidationError("quantity must be > 0")
        if item.unit_price_cents < 0:
            raise ValidationError("unit_price_cents must be >= 0")
    if discount_cents < 0 or tax_cents < 0:
        raise ValidationError("discount and tax must be >= 0")
    if amount_paid_cents < 0:
        raise ValidationError("amount_paid_cents must be >= 0")


def compute_totals(items: list[CartItem], discount_cents: int, tax_cents: int) -> tuple[int, int]:
    """Returns (subtotal_cents, total_amount_cents) computed from the lines."""
    subtotal = sum(item.total_price_cents for item in items)
    return subtotal, subtotal - discount_cents + tax_cents


def _create_sale_locked(
    *,
    cashier_id: int,
    items: list[CartItem],
    discount_cents: int,
    tax_cents: int,
    payment_method: str,
    amount_paid_cents: int,
) -> tuple[Sale, list[SaleItem]]:
    _require_user(cashier_id, CashierNotFoundError)

    products = _lock_products(item.product_id for item in items)
    _validate_lines(items, products)

    subtotal, total = compute_totals(items, discount_cents, tax_cents)
    if total < 0:
        raise ValidationError("total amount cannot be negative")
    if amount_paid_cents < total:
        raise InsufficientPaymentError(amount_paid_cents, total)

    sale = Sale(
        transaction_number=next_transaction_number(),
        cashier_id=cashier_id,
        subtotal_cents=subtotal,
        discount_amount_cents=discount_cents,
        tax_amount_cents=tax_cents,
        total_amount_cents=total,
        payment_method=payment_method,
        amount_paid_cents=amount_paid_cents,
        change_amount_cents=amount_paid_cents - total,
        status=SALE_STATUS_COMPLETED,
    )
    db.session.add(sale)
    db.session.flush()

    sale_items = []
    for item in items:
        sale_item = SaleItem(
            sale_id=sale.id,
            product_id=item.product_id,
            barcode=item.barcode,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            total_price_cents=item.total_price_cents,
        )
        db.session.add(sale_item)
        sale_items.append(sale_item)

        record_movement_inner(
            product_id=item.product_id,
            movement_type=MOVEMENT_OUT,
            quantity=item.quantity,
            created_by=cashier_id,
            reference=StockReference.sale(sale.id),
            notes=f"Sale transaction: {sale.transaction_number}",
            product=products[item.product_id],
        )

    db.session.flush()
    return sale, sale_items


def create_sale(
    *,
    cashier_id: int,
    items: list[CartItem],
    discount_cents: int = 0,
    tax_cents: int = 0,
    payment_method: str,
    amount_paid_cents: int,
) -> tuple[Sale, list[SaleItem]]:
    """
    Create a completed sale and take its stock out of inventory.

    Preconditions are checked in order and each fails fast before any write:
    cashier exists, then per line product exists / is active / has stock,
    then the total is not negative, then amount paid covers the total.
    A discount larger than the subtotal is fine as long as tax keeps the
    total at or above zero.

    Raises:
        CashierNotFoundError, ProductNotFoundError, ProductInactiveError,
        InsufficientStockError, InsufficientPaymentError
    """
    _validate_request(items, discount_cents, tax_cents, payment_method, amount_paid_cents)

    sale, sale_items = run_in_transaction(
        lambda: _create_sale_locked(
            cashier_id=cashier_id,
            items=items,
            discount_cents=discount_cents,
            tax_cents=tax_cents,
            payment_method=payment_method,
            amount_paid_cents=amount_paid_cents,
        )
    )
    logger.info(
        "Sale %s created by cashier %s: %d line(s), total=%d cents",
        sale.transaction_number, cashier_id, len(sale_items), sale.total_amount_cents,
    )
    return sale, sale_items


def _cancel_sale_locked(*, sale_id: int, cancelled_by: int, cancellation_reason: str) -> Sale:
    _require_user(cancelled_by, CancellerNotFoundError)

    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if sale is None:
        raise SaleNotFoundError(sale_id)

    if sale.status != SALE_STATUS_COMPLETED:
        raise InvalidStateTransitionError(
            "Only completed sales can be cancelled",
            {"sale_id": sale.id, "status": sale.status},
        )

    items = db.session.query(SaleItem).filter_by(sale_id=sale.id).order_by(SaleItem.id).all()
    products = _lock_products(item.product_id for item in items)

    for item in items:
        record_movement_inner(
            product_id=item.product_id,
            movement_type=MOVEMENT_IN,
            quantity=item.quantity,
            created_by=cancelled_by,
            reference=StockReference.sale(sale.id),
            notes=f"Sale cancellation: {sale.transaction_number} - {cancellation_reason}",
            product=products.get(item.product_id),
        )

    sale.status = SALE_STATUS_CANCELLED
    sale.cancelled_by = cancelled_by
    sale.cancelled_at = utcnow()
    sale.cancellation_reason = cancellation_reason
    sale.updated_at = utcnow()

    db.session.flush()
    return sale


def cancel_sale(*, sale_id: int, cancelled_by: int, cancellation_reason: str) -> Sale:
    """
    Cancel a completed sale and put its stock back.

    One-way: cancelled sales cannot be reopened.

    Raises:
        CancellerNotFoundError, SaleNotFoundError, InvalidStateTransitionError
    """
    sale = run_in_transaction(
        lambda: _cancel_sale_locked(
            sale_id=sale_id,
            cancelled_by=cancelled_by,
            cancellation_reason=cancellation_reason,
        )
    )
    logger.info("Sale %s cancelled by user %s", sale.transaction_number, cancelled_by)
    return sale


def get_sales(
    *,
    cashier_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Sale]:
    """Sales newest first. start/end are inclusive bounds on created_at."""
    q = db.session.query(Sale)
    if cashier_id is not None:
        q = q.filter(Sale.cashier_id == cashier_id)
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at <= end)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def get_sale_by_id(sale_id: int) -> tuple[Sale, list[SaleItem]] | None:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        return None
    items = db.session.query(SaleItem).filter_by(sale_id=sale_id).order_by(SaleItem.id).all()
    return sale, items


def get_daily_sales(day: date) -> dict:
    """Total and count of completed sales created on a UTC calendar day."""
    start, end = day_bounds(day)
    total, count = (
        db.session.query(
            func.coalesce(func.sum(Sale.total_amount_cents), 0),
            func.count(Sale.id),
        )
        .filter(
            Sale.status == SALE_STATUS_COMPLETED,
            Sale.created_at >= start,
            Sale.created_at < end,
        )
        .one()
    )
    return {
        "date": day.isoformat(),
        "total_sales_cents": int(total or 0),
        "transaction_count": int(count or 0),
    }
