# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/app/routes/sales.py
"""Sales API routes: create, list, read, cancel, daily totals."""

from flask import Blueprint, request, jsonify

from ..services import sales_service
from ..validation import (
    ValidationError,
    optional_int,
    optional_text,
    parse_cart_items,
    require_field,
    require_int,
)
from ..decorators import json_body, log_failures
from app.time_utils import parse_iso_date, parse_iso_datetime, utcnow


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_response(sale, items) -> dict:
    return {
        "sale": sale.to_dict(),
        "items": [item.to_dict() for item in items],
    }


@sales_bp.post("")
@json_body
@log_failures("create sale")
def create_sale_route(payload: dict):
    """
    Create a completed sale and take its stock out of inventory.

    Body: cashier_id, items[], payment_method, amount_paid_cents,
    discount_cents (optional), tax_cents (optional)
    """
    payment_method = require_field(payload, "payment_method")
    if not isinstance(payment_method, str):
        raise ValidationError("payment_method must be a string")

    sale, items = sales_service.create_sale(
        cashier_id=require_int(payload, "cashier_id"),
        items=parse_cart_items(payload),
        discount_cents=optional_int(payload, "discount_cents", default=0, minimum=0),
        tax_cents=optional_int(payload, "tax_cents", default=0, minimum=0),
        payment_method=payment_method,
        amount_paid_cents=require_int(payload, "amount_paid_cents", minimum=0),
    )
    return jsonify(_sale_response(sale, items)), 201


@sales_bp.get("")
@log_failures("list sales")
def list_sales_route():
    """
    List sales newest first.

    Query params:
    - cashier_id: int (optional)
    - start_date / end_date: ISO-8601 datetimes (optional, inclusive)
    """
    try:
        start = parse_iso_datetime(request.args.get("start_date"))
        end = parse_iso_datetime(request.args.get("end_date"))
    except ValueError:
        raise ValidationError("start_date and end_date must be ISO-8601 datetimes")

    sales = sales_service.get_sales(
        cashier_id=request.args.get("cashier_id", type=int),
        start=start,
        end=end,
    )
    return jsonify({"sales": [sale.to_dict() for sale in sales]}), 200


@sales_bp.get("/daily")
@log_failures("compute daily sales")
def daily_sales_route():
    """Completed-sale totals for one UTC day (?date=YYYY-MM-DD, default today)."""
    raw = request.args.get("date")
    try:
        day = parse_iso_date(raw) if raw else utcnow().date()
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD")

    return jsonify(sales_service.get_daily_sales(day)), 200


@sales_bp.get("/<int:sale_id>")
@log_failures("get sale")
def get_sale_route(sale_id: int):
    result = sales_service.get_sale_by_id(sale_id)
    if result is None:
        return jsonify({"error": "Sale not found"}), 404

    sale, items = result
    return jsonify(_sale_response(sale, items)), 200


@sales_bp.post("/<int:sale_id>/cancel")
@json_body
@log_failures("cancel sale")
def cancel_sale_route(sale_id: int, payload: dict):
    """
    Cancel a completed sale and put its stock back.

    Body: cancelled_by, cancellation_reason
    """
    reason = optional_text(payload, "cancellation_reason")
    if not reason:
        raise ValidationError("cancellation_reason is required")

    sale = sales_service.cancel_sale(
        sale_id=sale_id,
        cancelled_by=require_int(payload, "cancelled_by"),
        cancellation_reason=reason,
    )
    return jsonify({"sale": sale.to_dict()}), 200
