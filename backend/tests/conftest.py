"""
Pytest fixtures for POS backend tests.

Provides test database setup, actors, a small catalog, and test client.
"""

import pytest
from app import create_app
from app.extensions import db
from app.models import Category, Product, Supplier, User
from app.services import stock_service
from app.services.auth_service import hash_password
from app.services.sales_service import CartItem
from app.models.inventory import MOVEMENT_IN


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(db_session, username: str, role: str) -> User:
    user = User(
        username=username,
        email=f"{username}@pos.test",
        password_hash=hash_password("Password123!", rounds=4),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier(db_session):
    return _make_user(db_session, "cashier", "cashier")


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Beverages", description="Drinks")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Acme Wholesale", contact_person="Pat", email="orders@acme.test")
    db_session.add(supplier)
    db_session.commit()
    return supplier


def _make_product(db_session, category, admin, *, barcode: str, stock: int = 0,
                  price_cents: int = 1000, is_active: bool = True, minimum_stock: int = 0) -> Product:
    """Create a product and seed its stock through the ledger."""
    product = Product(
        barcode=barcode,
        name=f"Product {barcode}",
        category_id=category.id,
        purchase_price_cents=price_cents // 2,
        selling_price_cents=price_cents,
        stock_quantity=0,
        minimum_stock=minimum_stock,
        is_active=is_active,
    )
    db_session.add(product)
    db_session.commit()
    if stock:
        stock_service.record_movement(
            product_id=product.id,
            movement_type=MOVEMENT_IN,
            quantity=stock,
            created_by=admin.id,
            notes="Seed stock",
        )
    return product


@pytest.fixture(scope='function')
def product_a(db_session, category, admin):
    """Active product with 10 on hand, sold at $10.00."""
    return _make_product(db_session, category, admin, barcode="A-001", stock=10, price_cents=1000)


@pytest.fixture(scope='function')
def product_b(db_session, category, admin):
    """Active product with 5 on hand, sold at $2.50."""
    return _make_product(db_session, category, admin, barcode="B-001", stock=5, price_cents=250)


@pytest.fixture(scope='function')
def inactive_product(db_session, category, admin):
    return _make_product(db_session, category, admin, barcode="X-001", stock=10, is_active=False)


def cart_line(product, quantity: int, unit_price_cents: int | None = None) -> CartItem:
    """Build a CartItem the way the register would scan it."""
    return CartItem(
        product_id=product.id,
        barcode=product.barcode,
        product_name=product.name,
        quantity=quantity,
        unit_price_cents=product.selling_price_cents if unit_price_cents is None else unit_price_cents,
    )


@pytest.fixture(scope='function')
def make_product(db_session, category, admin):
    """Factory fixture: make_product(barcode=..., stock=..., ...)."""
    def factory(**kwargs) -> Product:
        return _make_product(db_session, category, admin, **kwargs)
    return factory


@pytest.fixture(scope='function')
def line():
    """Factory fixture for cart lines."""
    return cart_line
