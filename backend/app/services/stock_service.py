# Overview: Service-layer operations for stock; the only writer of Product.stock_quantity and the ledger.

"""
Stock Movement Engine invariants (authoritative)

Ownership:
- This module is the ONLY code allowed to change Product.stock_quantity or
  insert StockMovement rows. Both writes happen in the same DB transaction.

Quantity sign convention:
- movement_type decides direction.
- 'in'  : quantity is a non-negative magnitude, stock += quantity
- 'out' : quantity is a non-negative magnitude, stock -= quantity
- 'adjustment': quantity is a signed delta, stock += quantity
- The ledger row stores the quantity argument exactly as given.

Stock floor:
- stock_quantity never goes below 0. A movement that would push it negative
  lands on 0 instead. This is a defined side effect, not an error; the
  ledger still records the requested quantity.

References:
- sale / purchase references must name an existing document that includes
  the moved product. The actor in created_by must be an existing user.

Transactions:
- record_movement()/adjust_to() are standalone atomic operations.
- *_inner() variants only flush; sale and purchase engines call them so that
  every line of a document shares one transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, func

from ..extensions import db
from ..errors import (
    InvalidMovementError,
    ProductNotFoundError,
    PurchaseNotFoundError,
    SaleNotFoundError,
    UserNotFoundError,
)
from ..models import Product, Purchase, PurchaseItem, Sale, SaleItem, StockMovement, StockReference, User
from ..models.inventory import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    MOVEMENT_TYPES,
    NO_REFERENCE,
    REFERENCE_PURCHASE,
    REFERENCE_SALE,
)
from app.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)


def load_product(product_id: int, *, lock: bool = False) -> Product:
    """Fetch a product or raise ProductNotFoundError. lock=True reads FOR UPDATE."""
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def _delta_for(movement_type: str, quantity: int) -> int:
    if movement_type not in MOVEMENT_TYPES:
        raise InvalidMovementError(
            f"movement_type must be one of: {', '.join(MOVEMENT_TYPES)}",
            {"movement_type": movement_type},
        )
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidMovementError("quantity must be an integer", {"quantity": quantity})

    if movement_type == MOVEMENT_ADJUSTMENT:
        return quantity

    if quantity < 0:
        raise InvalidMovementError(
            f"quantity for '{movement_type}' movements is a magnitude and must be >= 0",
            {"movement_type": movement_type, "quantity": quantity},
        )
    return quantity if movement_type == MOVEMENT_IN else -quantity


def _check_actor(user_id: int) -> None:
    if db.session.get(User, user_id) is None:
        raise UserNotFoundError(user_id)


def _check_reference(reference: StockReference, product_id: int) -> None:
    """A document reference must exist and must list the product being moved."""
    if reference.kind == REFERENCE_SALE:
        if db.session.get(Sale, reference.id) is None:
            raise SaleNotFoundError(reference.id)
        on_document = (
            db.session.query(SaleItem.id)
            .filter_by(sale_id=reference.id, product_id=product_id)
            .first()
        )
    elif reference.kind == REFERENCE_PURCHASE:
        if db.session.get(Purchase, reference.id) is None:
            raise PurchaseNotFoundError(reference.id)
        on_document = (
            db.session.query(PurchaseItem.id)
            .filter_by(purchase_id=reference.id, product_id=product_id)
            .first()
        )
    else:
        return

    if on_document is None:
        raise InvalidMovementError(
            f"{reference.kind} {reference.id} does not include product {product_id}",
            {"reference_type": reference.kind, "reference_id": reference.id, "product_id": product_id},
        )


def record_movement_inner(
    *,
    product_id: int,
    movement_type: str,
    quantity: int,
    created_by: int,
    reference: StockReference | None = None,
    notes: str | None = None,
    product: Product | None = None,
) -> StockMovement:
    """Core movement logic without transaction handling or commit.

    Pass an already-locked product to skip the reload.
    """
    reference = reference or NO_REFERENCE
    delta = _delta_for(movement_type, quantity)

    if product is None:
        product = load_product(product_id, lock=True)
    _check_actor(created_by)
    _check_reference(reference, product.id)

    current = product.stock_quantity
    candidate = current + delta
    if candidate < 0:
        logger.warning(
            "Stock floor applied for product %s: %d %+d -> 0",
            product.id, current, delta,
        )
        candidate = 0

    product.stock_quantity = candidate
    product.updated_at = utcnow()

    movement = StockMovement(
        product_id=product.id,
        movement_type=movement_type,
        quantity=quantity,
        reference_type=reference.kind,
        reference_id=reference.id,
        notes=notes,
        created_by=created_by,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def record_movement(
    *,
    product_id: int,
    movement_type: str,
    quantity: int,
    created_by: int,
    reference: StockReference | None = None,
    notes: str | None = None,
) -> StockMovement:
    """
    Record one stock movement and apply it to the product.

    Raises:
        ProductNotFoundError: product_id does not exist
        InvalidMovementError: unknown type, negative magnitude for in/out, or a
            reference to a document that does not include the product
        UserNotFoundError: created_by is not a user
        SaleNotFoundError / PurchaseNotFoundError: referenced document is missing
    """
    def _op():
        return record_movement_inner(
            product_id=product_id,
            movement_type=movement_type,
            quantity=quantity,
            created_by=created_by,
            reference=reference,
            notes=notes,
        )

    movement = run_in_transaction(_op)
    logger.info(
        "Recorded %s movement %s for product %s (quantity=%d)",
        movement.movement_type, movement.id, movement.product_id, movement.quantity,
    )
    return movement


def adjust_to_inner(
    *,
    product_id: int,
    target_quantity: int,
    actor_id: int,
    notes: str | None = None,
) -> StockMovement:
    if isinstance(target_quantity, bool) or not isinstance(target_quantity, int):
        raise InvalidMovementError("target_quantity must be an integer", {"target_quantity": target_quantity})

    product = load_product(product_id, lock=True)
    delta = target_quantity - product.stock_quantity
    return record_movement_inner(
        product_id=product_id,
        movement_type=MOVEMENT_ADJUSTMENT,
        quantity=delta,
        created_by=actor_id,
        reference=StockReference.adjustment(),
        notes=notes,
        product=product,
    )


def adjust_to(
    *,
    product_id: int,
    target_quantity: int,
    actor_id: int,
    notes: str | None = None,
) -> StockMovement:
    """
    Set stock to an absolute count by recording the difference as an adjustment.

    A negative target still floors stock to 0, while the ledger row keeps
    the computed (negative) delta.
    """
    movement = run_in_transaction(
        lambda: adjust_to_inner(
            product_id=product_id,
            target_quantity=target_quantity,
            actor_id=actor_id,
            notes=notes,
        )
    )
    logger.info(
        "Adjusted product %s to %d (delta=%d)",
        product_id, target_quantity, movement.quantity,
    )
    return movement


def list_movements(*, product_id: int | None = None, limit: int | None = None) -> list[StockMovement]:
    """Stock movement history, newest first."""
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    q = q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def list_movements_for_reference(reference: StockReference) -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter_by(reference_type=reference.kind, reference_id=reference.id)
        .order_by(StockMovement.id.asc())
        .all()
    )


_SIGNED_QUANTITY = case(
    (StockMovement.movement_type == MOVEMENT_OUT, -StockMovement.quantity),
    else_=StockMovement.quantity,
)


def ledger_balance(product_id: int) -> int:
    """
    Sum of signed movement quantities for a product.

    Matches stock_quantity as long as no movement was floored and the
    product's opening stock was itself recorded as a movement.
    """
    total = (
        db.session.query(func.coalesce(func.sum(_SIGNED_QUANTITY), 0))
        .filter(StockMovement.product_id == product_id)
        .scalar()
    )
    return int(total or 0)


def reconcile_stock() -> list[dict]:
    """Products whose stored stock_quantity differs from the ledger balance."""
    balances = dict(
        db.session.query(StockMovement.product_id, func.sum(_SIGNED_QUANTITY))
        .group_by(StockMovement.product_id)
        .all()
    )

    mismatches = []
    for product in db.session.query(Product).order_by(Product.id).all():
        balance = int(balances.get(product.id) or 0)
        if balance != product.stock_quantity:
            mismatches.append({
                "product_id": product.id,
                "barcode": product.barcode,
                "stock_quantity": product.stock_quantity,
                "ledger_balance": balance,
                "difference": product.stock_quantity - balance,
            })
    return mismatches
