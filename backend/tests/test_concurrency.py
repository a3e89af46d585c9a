# Overview: Threaded concurrency tests for stock-mutating operations against a file-backed SQLite database.

"""
Concurrency tests.

An in-memory database shares one connection across threads, which hides
locking problems, so these tests run against a temporary SQLite file.
"""
import os
import tempfile
import threading
import unittest

from app import create_app
from app.errors import InsufficientStockError
from app.extensions import db
from app.models import Category, Product, Sale, StockMovement, User
from app.models.inventory import MOVEMENT_IN, MOVEMENT_OUT
from app.services import sales_service, stock_service
from app.services.sales_service import CartItem


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "TRANSACTION_RETRY_ATTEMPTS": 5,
            "TRANSACTION_RETRY_BACKOFF": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            user = User(
                username="concurrent_user",
                email="concurrent@example.com",
                password_hash="dummy",
                role="cashier",
                is_active=True,
            )
            category = Category(name="Concurrency")
            db.session.add_all([user, category])
            db.session.commit()
            self.user_id = user.id

            product = Product(
                barcode="CONCUR-1",
                name="Concurrent Product",
                category_id=category.id,
                purchase_price_cents=400,
                selling_price_cents=1000,
                stock_quantity=0,
                is_active=True,
            )
            db.session.add(product)
            db.session.commit()
            self.product_id = product.id

            stock_service.record_movement(
                product_id=self.product_id,
                movement_type=MOVEMENT_IN,
                quantity=10,
                created_by=self.user_id,
                notes="Seed inventory",
            )

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _cart(self, quantity):
        return [CartItem(
            product_id=self.product_id,
            barcode="CONCUR-1",
            product_name="Concurrent Product",
            quantity=quantity,
            unit_price_cents=1000,
        )]

    def _run_threads(self, target, count):
        threads = [threading.Thread(target=target) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    def test_transaction_numbers_stay_unique(self):
        created = []
        errors = []
        lock = threading.Lock()

        def worker():
            with self.app.app_context():
                try:
                    sale, _items = sales_service.create_sale(
                        cashier_id=self.user_id,
                        items=self._cart(1),
                        payment_method="cash",
                        amount_paid_cents=1000,
                    )
                    with lock:
                        created.append(sale.transaction_number)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        self._run_threads(worker, 8)

        self.assertFalse(errors)
        self.assertEqual(len(created), 8)
        self.assertEqual(len(created), len(set(created)))

        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            self.assertEqual(product.stock_quantity, 2)
            self.assertEqual(stock_service.reconcile_stock(), [])

    def test_concurrent_sales_cannot_oversell(self):
        results = []
        lock = threading.Lock()

        def worker():
            with self.app.app_context():
                try:
                    sales_service.create_sale(
                        cashier_id=self.user_id,
                        items=self._cart(6),
                        payment_method="cash",
                        amount_paid_cents=6000,
                    )
                    outcome = "ok"
                except InsufficientStockError:
                    outcome = "insufficient"
                finally:
                    db.session.remove()
                with lock:
                    results.append(outcome)

        self._run_threads(worker, 2)

        self.assertEqual(sorted(results), ["insufficient", "ok"])
        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            self.assertEqual(product.stock_quantity, 4)
            self.assertEqual(db.session.query(Sale).count(), 1)
            self.assertEqual(
                db.session.query(StockMovement).filter_by(movement_type=MOVEMENT_OUT).count(), 1
            )

    def test_concurrent_movements_lose_no_updates(self):
        errors = []
        lock = threading.Lock()

        def worker():
            with self.app.app_context():
                try:
                    stock_service.record_movement(
                        product_id=self.product_id,
                        movement_type=MOVEMENT_IN,
                        quantity=5,
                        created_by=self.user_id,
                    )
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        self._run_threads(worker, 6)

        self.assertFalse(errors)
        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            self.assertEqual(product.stock_quantity, 40)
            self.assertEqual(stock_service.ledger_balance(self.product_id), 40)


if __name__ == "__main__":
    unittest.main()
