"""Flask CLI command tests."""

from app.models import User
from app.models.inventory import MOVEMENT_OUT
from app.services import stock_service


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init", "--password", "secret12"])
    assert first.exit_code == 0, first.output
    assert "Created user: admin" in first.output
    assert {u.username for u in db_session.query(User).all()} == {"admin", "cashier"}

    second = runner.invoke(args=["system", "init", "--password", "secret12"])
    assert second.exit_code == 0
    assert "already exists" in second.output
    assert db_session.query(User).count() == 2


def test_stock_reconcile_reports_mismatches(app, db_session, admin, product_a):
    runner = app.test_cli_runner()

    clean = runner.invoke(args=["stock", "reconcile"])
    assert clean.exit_code == 0
    assert "matches" in clean.output

    stock_service.record_movement(
        product_id=product_a.id, movement_type=MOVEMENT_OUT, quantity=15, created_by=admin.id,
    )
    dirty = runner.invoke(args=["stock", "reconcile"])
    assert dirty.exit_code == 1
    assert "A-001" in dirty.output
    assert "1 product(s) out of balance" in dirty.output


def test_stock_low_lists_products(app, db_session, make_product):
    make_product(barcode="LOW-1", stock=1, minimum_stock=3)
    runner = app.test_cli_runner()

    result = runner.invoke(args=["stock", "low"])
    assert result.exit_code == 0
    assert "LOW-1" in result.output
