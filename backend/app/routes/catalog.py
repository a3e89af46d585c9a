# Overview: Flask API routes for categories, suppliers and products; parses input and returns JSON responses.

# backend/app/routes/catalog.py
"""
Catalog routes.

Products are created and edited here, but their stock is not: the opening
quantity is recorded as an 'in' movement by the catalog service, and every
later change goes through /api/stock or the sale/purchase engines. Product
updates reject stock_quantity outright.
"""
from flask import Blueprint, current_app, jsonify, request

from ..models import Category, Product, Supplier
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    optional_bool_arg,
    optional_int,
    validate_payload,
)
from ..decorators import json_body, log_failures

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "phone", "email", "address"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "barcode",
        "name",
        "description",
        "category_id",
        "supplier_id",
        "purchase_price_cents",
        "selling_price_cents",
        "stock_quantity",
        "minimum_stock",
        "is_active",
    },
    required_on_create={"barcode", "name", "category_id", "purchase_price_cents", "selling_price_cents"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"stock_quantity"},
)

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.post("/categories")
@json_body
@log_failures("create category")
def create_category(payload: dict):
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    category = catalog_service.create_category(**patch)
    return jsonify({"category": category.to_dict()}), 201


@catalog_bp.get("/categories")
@log_failures("list categories")
def list_categories():
    categories = catalog_service.list_categories()
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@catalog_bp.put("/categories/<int:category_id>")
@json_body
@log_failures("update category")
def update_category(payload: dict, category_id: int):
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    category = catalog_service.update_category(category_id, patch)
    return jsonify({"category": category.to_dict()}), 200


@catalog_bp.delete("/categories/<int:category_id>")
@log_failures("delete category")
def delete_category(category_id: int):
    """Delete a category. 409 while any product still belongs to it."""
    catalog_service.delete_category(category_id)
    return jsonify({"ok": True}), 200


@catalog_bp.post("/suppliers")
@json_body
@log_failures("create supplier")
def create_supplier(payload: dict):
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    supplier = catalog_service.create_supplier(**patch)
    return jsonify({"supplier": supplier.to_dict()}), 201


@catalog_bp.get("/suppliers")
@log_failures("list suppliers")
def list_suppliers():
    suppliers = catalog_service.list_suppliers()
    return jsonify({"suppliers": [s.to_dict() for s in suppliers]}), 200


@catalog_bp.get("/suppliers/<int:supplier_id>")
@log_failures("get supplier")
def get_supplier(supplier_id: int):
    supplier = catalog_service.get_supplier(supplier_id)
    return jsonify({"supplier": supplier.to_dict()}), 200


@catalog_bp.put("/suppliers/<int:supplier_id>")
@json_body
@log_failures("update supplier")
def update_supplier(payload: dict, supplier_id: int):
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    supplier = catalog_service.update_supplier(supplier_id, patch)
    return jsonify({"supplier": supplier.to_dict()}), 200


@catalog_bp.delete("/suppliers/<int:supplier_id>")
@log_failures("delete supplier")
def delete_supplier(supplier_id: int):
    """Delete a supplier. 409 while products or purchases still reference it."""
    catalog_service.delete_supplier(supplier_id)
    return jsonify({"ok": True}), 200


@catalog_bp.post("/products")
@json_body
@log_failures("create product")
def create_product(payload: dict):
    """
    Create a product.

    Body: product fields plus created_by (required when stock_quantity > 0,
    it is recorded as the actor of the opening-stock movement).
    """
    payload = dict(payload)
    created_by = optional_int(payload, "created_by")
    payload.pop("created_by", None)

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    for key in ("purchase_price_cents", "selling_price_cents", "category_id"):
        if patch.get(key) is None:
            raise ValidationError(f"{key} cannot be null")

    product = catalog_service.create_product(created_by=created_by, **patch)
    return jsonify({"product": product.to_dict()}), 201


@catalog_bp.get("/products/low-stock")
@log_failures("list low-stock products")
def low_stock_products():
    """Active products at or below minimum stock (?limit=, default from config)."""
    limit = request.args.get("limit", type=int) or current_app.config["LOW_STOCK_DEFAULT_LIMIT"]
    if limit <= 0:
        raise ValidationError("limit must be > 0")

    products = catalog_service.list_low_stock_products(limit=limit)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@catalog_bp.get("/products")
@log_failures("search products")
def search_products():
    """
    List or search products. With no parameters this is the whole catalog.

    Query params:
    - q: substring of name, barcode or description (optional)
    - category_id: int (optional)
    - active: "true" / "false" (optional)
    """
    products = catalog_service.search_products(
        query=request.args.get("q"),
        category_id=request.args.get("category_id", type=int),
        is_active=optional_bool_arg(request.args, "active"),
    )
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@catalog_bp.get("/products/<int:product_id>")
@log_failures("get product")
def get_product(product_id: int):
    product = catalog_service.get_product(product_id)
    return jsonify({"product": product.to_dict()}), 200


@catalog_bp.get("/products/barcode/<string:barcode>")
@log_failures("get product by barcode")
def get_product_by_barcode(barcode: str):
    product = catalog_service.get_product_by_barcode(barcode)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()}), 200


@catalog_bp.put("/products/<int:product_id>")
@json_body
@log_failures("update product")
def update_product(payload: dict, product_id: int):
    """
    Update product master data (partial).

    stock_quantity is not writable here; use /api/stock/adjust.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)
    product = catalog_service.update_product(product_id, patch)
    return jsonify({"product": product.to_dict()}), 200


@catalog_bp.delete("/products/<int:product_id>")
@log_failures("deactivate product")
def deactivate_product(product_id: int):
    """Soft-delete: the product is deactivated, its history stays."""
    product = catalog_service.deactivate_product(product_id)
    return jsonify({"ok": True, "product": product.to_dict()}), 200
