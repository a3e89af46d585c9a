# Overview: Flask API routes for the stock ledger; manual movements, adjustments and history.

"""
Stock movement routes.

Manual movements go through the same engine as sales and purchases, so the
ledger stays the single explanation for every stock change.
"""

from flask import Blueprint, request, jsonify

from ..models import StockReference
from ..models.inventory import REFERENCE_PURCHASE, REFERENCE_SALE
from ..services import stock_service
from ..validation import ValidationError, optional_int, optional_text, require_field, require_int
from ..decorators import json_body, log_failures


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _reference_from_payload(payload: dict) -> StockReference:
    """Manual movements may be tagged as adjustments; document references belong to sales and purchases."""
    reference_type = optional_text(payload, "reference_type")
    reference_id = optional_int(payload, "reference_id")
    if reference_type in (REFERENCE_SALE, REFERENCE_PURCHASE):
        raise ValidationError(
            f"{reference_type} movements are recorded by the {reference_type} itself, not manually"
        )
    try:
        return StockReference(reference_type, reference_id)
    except ValueError as e:
        raise ValidationError(str(e))


@stock_bp.post("/movements")
@json_body
@log_failures("record stock movement")
def record_movement_route(payload: dict):
    """
    Record one stock movement.

    Body: product_id, movement_type (in/out/adjustment), quantity, created_by,
    reference_type (optional, "adjustment" only), notes (optional)

    quantity is a magnitude for in/out and a signed delta for adjustment.
    """
    movement_type = require_field(payload, "movement_type")
    if not isinstance(movement_type, str):
        raise ValidationError("movement_type must be a string")

    movement = stock_service.record_movement(
        product_id=require_int(payload, "product_id"),
        movement_type=movement_type,
        quantity=require_int(payload, "quantity"),
        created_by=require_int(payload, "created_by"),
        reference=_reference_from_payload(payload),
        notes=optional_text(payload, "notes"),
    )
    return jsonify({
        "movement": movement.to_dict(),
        "stock_quantity": movement.product.stock_quantity,
    }), 201


@stock_bp.get("/movements")
@log_failures("list stock movements")
def list_movements_route():
    """
    Ledger rows newest first.

    Query params:
    - product_id: int (optional)
    - limit: int (optional)
    """
    limit = request.args.get("limit", type=int)
    if limit is not None and limit <= 0:
        raise ValidationError("limit must be > 0")

    movements = stock_service.list_movements(
        product_id=request.args.get("product_id", type=int),
        limit=limit,
    )
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@stock_bp.post("/adjust")
@json_body
@log_failures("adjust stock")
def adjust_stock_route(payload: dict):
    """
    Set a product's stock to an absolute count.

    Body: product_id, target_quantity, actor_id, notes (optional)
    """
    movement = stock_service.adjust_to(
        product_id=require_int(payload, "product_id"),
        target_quantity=require_int(payload, "target_quantity"),
        actor_id=require_int(payload, "actor_id"),
        notes=optional_text(payload, "notes"),
    )
    return jsonify({
        "movement": movement.to_dict(),
        "stock_quantity": movement.product.stock_quantity,
    }), 201
