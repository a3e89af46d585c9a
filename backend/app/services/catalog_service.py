# Overview: Service-layer operations for categories, suppliers and products (record management).

"""
Catalog Service

Thin record management around the inventory engines. The one rule that
matters here: a product's stock is NOT written directly. The product is
inserted with stock 0 and the opening quantity is recorded as an 'in'
movement, so the ledger explains every unit on hand from day one. Updates
never touch stock_quantity either; later changes go through stock_service.

Deletes:
- categories and suppliers are hard-deleted, but only while nothing points
  at them (products, or purchases for suppliers)
- products are never hard-deleted; ledger rows and sale items keep
  referencing them, so "delete" deactivates the product
"""

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..errors import (
    CategoryNotFoundError,
    DuplicateBarcodeError,
    ProductNotFoundError,
    RecordInUseError,
    SupplierNotFoundError,
)
from ..models import Category, Product, Purchase, Supplier
from ..models.inventory import MOVEMENT_IN
from ..validation import ValidationError
from app.time_utils import utcnow
from .concurrency import run_in_transaction
from .stock_service import load_product, record_movement_inner

CATEGORY_MUTABLE_FIELDS = {"name", "description"}
SUPPLIER_MUTABLE_FIELDS = {"name", "contact_person", "phone", "email", "address"}
PRODUCT_MUTABLE_FIELDS = {
    "barcode",
    "name",
    "description",
    "category_id",
    "supplier_id",
    "purchase_price_cents",
    "selling_price_cents",
    "minimum_stock",
    "is_active",
}


def _apply_patch(record, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(record, k, v)


def _require_name(entity: str, name: str | None) -> None:
    if not name or not name.strip():
        raise ValidationError(f"{entity} name is required")


def _check_email(email: str | None) -> None:
    if email is not None and "@" not in email:
        raise ValidationError("email must be a valid address")


# --- Categories --------------------------------------------------------------

def create_category(*, name: str, description: str | None = None) -> Category:
    _require_name("Category", name)

    category = Category(name=name.strip(), description=description)
    db.session.add(category)
    db.session.commit()
    return category


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name, Category.id).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise CategoryNotFoundError(category_id)
    return category


def update_category(category_id: int, patch: dict) -> Category:
    category = get_category(category_id)
    if "name" in patch:
        _require_name("Category", patch["name"])

    _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
    category.updated_at = utcnow()
    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    """Delete an empty category. Raises RecordInUseError while products use it."""
    category = get_category(category_id)

    product_count = (
        db.session.query(func.count(Product.id))
        .filter(Product.category_id == category_id)
        .scalar()
    )
    if product_count:
        raise RecordInUseError("category", category_id, {"product_count": product_count})

    db.session.delete(category)
    db.session.commit()


# --- Suppliers ---------------------------------------------------------------

def create_supplier(
    *,
    name: str,
    contact_person: str | None = None,
    phone: str | None = None,
    email: str | None = None,
    address: str | None = None,
) -> Supplier:
    _require_name("Supplier", name)
    _check_email(email)

    supplier = Supplier(
        name=name.strip(),
        contact_person=contact_person,
        phone=phone,
        email=email,
        address=address,
    )
    db.session.add(supplier)
    db.session.commit()
    return supplier


def list_suppliers() -> list[Supplier]:
    return db.session.query(Supplier).order_by(Supplier.name, Supplier.id).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise SupplierNotFoundError(supplier_id)
    return supplier


def update_supplier(supplier_id: int, patch: dict) -> Supplier:
    supplier = get_supplier(supplier_id)
    if "name" in patch:
        _require_name("Supplier", patch["name"])
    _check_email(patch.get("email"))

    _apply_patch(supplier, patch, SUPPLIER_MUTABLE_FIELDS)
    supplier.updated_at = utcnow()
    db.session.commit()
    return supplier


def delete_supplier(supplier_id: int) -> None:
    """
    Delete a supplier nothing refers to.

    Products naming it as their default supplier and purchases received from
    it both block the delete.
    """
    supplier = get_supplier(supplier_id)

    product_count = (
        db.session.query(func.count(Product.id))
        .filter(Product.supplier_id == supplier_id)
        .scalar()
    )
    purchase_count = (
        db.session.query(func.count(Purchase.id))
        .filter(Purchase.supplier_id == supplier_id)
        .scalar()
    )
    if product_count or purchase_count:
        raise RecordInUseError(
            "supplier",
            supplier_id,
            {"product_count": product_count, "purchase_count": purchase_count},
        )

    db.session.delete(supplier)
    db.session.commit()


# --- Products ----------------------------------------------------------------

def _check_product_references(category_id: int | None, supplier_id: int | None) -> None:
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise CategoryNotFoundError(category_id)
    if supplier_id is not None and db.session.get(Supplier, supplier_id) is None:
        raise SupplierNotFoundError(supplier_id)


def create_product(
    *,
    barcode: str,
    name: str,
    category_id: int,
    purchase_price_cents: int,
    selling_price_cents: int,
    created_by: int | None = None,
    description: str | None = None,
    supplier_id: int | None = None,
    stock_quantity: int = 0,
    minimum_stock: int = 0,
    is_active: bool = True,
) -> Product:
    """
    Create a product and record its opening stock as an 'in' movement.

    Raises:
        CategoryNotFoundError / SupplierNotFoundError: bad references
        DuplicateBarcodeError: barcode already used by another product
    """
    if stock_quantity < 0:
        raise ValidationError("stock_quantity must be >= 0")
    if stock_quantity and created_by is None:
        raise ValidationError("created_by is required when opening stock is given")

    def _op() -> Product:
        _check_product_references(category_id, supplier_id)
        if db.session.query(Product).filter_by(barcode=barcode).first() is not None:
            raise DuplicateBarcodeError(barcode)

        product = Product(
            barcode=barcode,
            name=name,
            description=description,
            category_id=category_id,
            supplier_id=supplier_id,
            purchase_price_cents=purchase_price_cents,
            selling_price_cents=selling_price_cents,
            stock_quantity=0,
            minimum_stock=minimum_stock,
            is_active=is_active,
        )
        db.session.add(product)
        db.session.flush()

        if stock_quantity:
            record_movement_inner(
                product_id=product.id,
                movement_type=MOVEMENT_IN,
                quantity=stock_quantity,
                created_by=created_by,
                notes="Opening stock",
                product=product,
            )
        return product

    return run_in_transaction(_op)


def update_product(product_id: int, patch: dict) -> Product:
    """
    Update product master data.

    stock_quantity is not accepted here; use stock_service.adjust_to so the
    change lands in the ledger.

    Raises:
        ProductNotFoundError, CategoryNotFoundError, SupplierNotFoundError,
        DuplicateBarcodeError, ValidationError
    """
    if "stock_quantity" in patch:
        raise ValidationError("stock_quantity cannot be updated directly; record a stock movement instead")

    def _op() -> Product:
        product = load_product(product_id, lock=True)

        _check_product_references(patch.get("category_id"), patch.get("supplier_id"))
        if "barcode" in patch and patch["barcode"] != product.barcode:
            clash = (
                db.session.query(Product.id)
                .filter(Product.barcode == patch["barcode"], Product.id != product.id)
                .first()
            )
            if clash is not None:
                raise DuplicateBarcodeError(patch["barcode"])

        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        product.updated_at = utcnow()
        db.session.flush()
        return product

    return run_in_transaction(_op)


def deactivate_product(product_id: int) -> Product:
    """Soft-delete: the product stays for history but can no longer be sold."""
    return update_product(product_id, {"is_active": False})


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def get_product_by_barcode(barcode: str) -> Product | None:
    return db.session.query(Product).filter_by(barcode=barcode).first()


def search_products(
    *,
    query: str | None = None,
    category_id: int | None = None,
    is_active: bool | None = None,
) -> list[Product]:
    """All products by name; every filter is optional, so no arguments lists the catalog."""
    q = db.session.query(Product)
    if query:
        pattern = f"%{query}%"
        q = q.filter(or_(
            Product.name.ilike(pattern),
            Product.barcode.ilike(pattern),
            Product.description.ilike(pattern),
        ))
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    if is_active is not None:
        q = q.filter(Product.is_active.is_(is_active))
    return q.order_by(Product.name, Product.id).all()


def list_low_stock_products(*, limit: int = 100) -> list[Product]:
    """Active products at or below their minimum stock, emptiest first."""
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.stock_quantity <= Product.minimum_stock,
        )
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .limit(limit)
        .all()
    )
