# Overview: Flask API routes for read-only sales and stock reports.

"""Report routes. Nothing here writes."""

from flask import Blueprint, request, jsonify

from ..services import report_service
from ..validation import ValidationError, optional_bool_arg
from ..decorators import log_failures
from app.time_utils import parse_iso_date


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@log_failures("build sales report")
def sales_report():
    """
    Sales totals for a date range.

    Query params:
    - start_date / end_date: YYYY-MM-DD (required, inclusive)
    - cashier_id: int (optional)
    - product_id: int (optional, narrows top_products)
    """
    try:
        start_date = parse_iso_date(request.args.get("start_date"))
        end_date = parse_iso_date(request.args.get("end_date"))
    except ValueError:
        raise ValidationError("start_date and end_date must be YYYY-MM-DD")
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")

    report = report_service.sales_report(
        start_date=start_date,
        end_date=end_date,
        cashier_id=request.args.get("cashier_id", type=int),
        product_id=request.args.get("product_id", type=int),
    )
    return jsonify(report), 200


@reports_bp.get("/stock")
@log_failures("build stock report")
def stock_report():
    """
    Stock levels and value for active products.

    Query params:
    - category_id / supplier_id: int (optional)
    - low_stock_only: true / false (optional)
    """
    report = report_service.stock_report(
        category_id=request.args.get("category_id", type=int),
        supplier_id=request.args.get("supplier_id", type=int),
        low_stock_only=bool(optional_bool_arg(request.args, "low_stock_only")),
    )
    return jsonify(report), 200
