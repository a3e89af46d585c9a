# Overview: Flask API routes for supplier purchases; parses input and returns JSON responses.

"""Purchase receipt routes."""

from flask import Blueprint, request, jsonify

from ..services import purchase_service
from ..validation import parse_purchase_items, require_int
from ..decorators import json_body, log_failures


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@json_body
@log_failures("create purchase")
def create_purchase_route(payload: dict):
    """
    Record a completed purchase and receive its stock.

    Body: supplier_id, created_by, items[] of {product_id, quantity, unit_cost_cents}
    """
    purchase, items = purchase_service.create_purchase(
        supplier_id=require_int(payload, "supplier_id"),
        items=parse_purchase_items(payload),
        created_by=require_int(payload, "created_by"),
    )
    return jsonify({
        "purchase": purchase.to_dict(),
        "items": [item.to_dict() for item in items],
    }), 201


@purchases_bp.get("")
@log_failures("list purchases")
def list_purchases_route():
    purchases = purchase_service.get_purchases(
        supplier_id=request.args.get("supplier_id", type=int),
    )
    return jsonify({"purchases": [p.to_dict() for p in purchases]}), 200


@purchases_bp.get("/<int:purchase_id>")
@log_failures("get purchase")
def get_purchase_route(purchase_id: int):
    result = purchase_service.get_purchase_by_id(purchase_id)
    if result is None:
        return jsonify({"error": "Purchase not found"}), 404

    purchase, items = result
    return jsonify({
        "purchase": purchase.to_dict(),
        "items": [item.to_dict() for item in items],
    }), 200
