"""Purchase receipt engine tests."""

import pytest

from app.errors import ProductNotFoundError, SupplierNotFoundError, UserNotFoundError
from app.models import Product, Purchase, PurchaseItem, StockMovement, StockReference
from app.models.inventory import MOVEMENT_IN
from app.services import purchase_service, stock_service
from app.services.purchase_service import PurchaseLine
from app.validation import ValidationError


def _stock(db_session, product_id: int) -> int:
    db_session.expire_all()
    return db_session.get(Product, product_id).stock_quantity


def test_purchase_receives_stock(db_session, admin, supplier, product_a, product_b):
    purchase, items = purchase_service.create_purchase(
        supplier_id=supplier.id,
        items=[
            PurchaseLine(product_id=product_a.id, quantity=20, unit_cost_cents=400),
            PurchaseLine(product_id=product_b.id, quantity=3, unit_cost_cents=125),
        ],
        created_by=admin.id,
    )

    assert purchase.status == "completed"
    assert purchase.purchase_number == "PO-000001"
    assert purchase.total_amount_cents == 20 * 400 + 3 * 125
    assert [i.total_cost_cents for i in items] == [8000, 375]
    assert _stock(db_session, product_a.id) == 30
    assert _stock(db_session, product_b.id) == 8

    movements = stock_service.list_movements_for_reference(StockReference.purchase(purchase.id))
    assert [(m.movement_type, m.quantity) for m in movements] == [(MOVEMENT_IN, 20), (MOVEMENT_IN, 3)]
    assert movements[0].notes == f"Purchase {purchase.purchase_number}"
    assert stock_service.reconcile_stock() == []


def test_missing_product_rolls_back_whole_purchase(db_session, admin, supplier, product_a):
    ledger_rows = db_session.query(StockMovement).count()

    with pytest.raises(ProductNotFoundError):
        purchase_service.create_purchase(
            supplier_id=supplier.id,
            items=[
                PurchaseLine(product_id=product_a.id, quantity=5, unit_cost_cents=400),
                PurchaseLine(product_id=9999, quantity=5, unit_cost_cents=400),
            ],
            created_by=admin.id,
        )

    assert db_session.query(Purchase).count() == 0
    assert db_session.query(PurchaseItem).count() == 0
    assert db_session.query(StockMovement).count() == ledger_rows
    assert _stock(db_session, product_a.id) == 10


def test_unknown_supplier_is_rejected(db_session, admin, product_a):
    with pytest.raises(SupplierNotFoundError):
        purchase_service.create_purchase(
            supplier_id=9999,
            items=[PurchaseLine(product_id=product_a.id, quantity=1, unit_cost_cents=1)],
            created_by=admin.id,
        )

    assert _stock(db_session, product_a.id) == 10


def test_unknown_receiver_is_rejected(db_session, supplier, product_a):
    with pytest.raises(UserNotFoundError):
        purchase_service.create_purchase(
            supplier_id=supplier.id,
            items=[PurchaseLine(product_id=product_a.id, quantity=1, unit_cost_cents=1)],
            created_by=987654,
        )

    assert db_session.query(Purchase).count() == 0
    assert _stock(db_session, product_a.id) == 10


def test_purchase_requires_items(db_session, admin, supplier):
    with pytest.raises(ValidationError):
        purchase_service.create_purchase(supplier_id=supplier.id, items=[], created_by=admin.id)


def test_purchase_read_side(db_session, admin, supplier, product_a):
    first, _ = purchase_service.create_purchase(
        supplier_id=supplier.id,
        items=[PurchaseLine(product_id=product_a.id, quantity=1, unit_cost_cents=10)],
        created_by=admin.id,
    )
    second, _ = purchase_service.create_purchase(
        supplier_id=supplier.id,
        items=[PurchaseLine(product_id=product_a.id, quantity=2, unit_cost_cents=10)],
        created_by=admin.id,
    )

    assert [p.id for p in purchase_service.get_purchases()] == [second.id, first.id]
    assert purchase_service.get_purchases(supplier_id=supplier.id + 1) == []
    purchase, items = purchase_service.get_purchase_by_id(first.id)
    assert purchase.purchase_number == "PO-000001"
    assert [i.quantity for i in items] == [1]
    assert purchase_service.get_purchase_by_id(9999) is None
