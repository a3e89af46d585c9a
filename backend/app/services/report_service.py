# Overview: Read-only reporting over completed sales and current stock levels.

"""
Reports never write. Sales figures count completed sales only, so a
cancelled sale drops out of every total. Money stays in integer cents.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from app.extensions import db
from app.models import Category, Product, Sale, SaleItem, Supplier
from app.models.sales import SALE_STATUS_COMPLETED
from app.time_utils import day_bounds
from app.validation import ValidationError

TOP_PRODUCTS_LIMIT = 10


def sales_report(
    *,
    start_date: date,
    end_date: date,
    cashier_id: int | None = None,
    product_id: int | None = None,
) -> dict:
    """
    Totals, top products by revenue and a per-day breakdown for an inclusive
    range of UTC calendar days.

    product_id narrows only the top-products list; the totals always cover
    whole sales.
    """
    if end_date < start_date:
        raise ValidationError("end_date must be on or after start_date")

    start, _ = day_bounds(start_date)
    _, end = day_bounds(end_date)
    conditions = [
        Sale.status == SALE_STATUS_COMPLETED,
        Sale.created_at >= start,
        Sale.created_at < end,
    ]
    if cashier_id is not None:
        conditions.append(Sale.cashier_id == cashier_id)

    total, count = (
        db.session.query(
            func.coalesce(func.sum(Sale.total_amount_cents), 0),
            func.count(Sale.id),
        )
        .filter(*conditions)
        .one()
    )
    total = int(total or 0)
    count = int(count or 0)

    revenue = func.sum(SaleItem.total_price_cents)
    top_query = (
        db.session.query(
            SaleItem.product_id,
            SaleItem.product_name,
            func.sum(SaleItem.quantity).label("quantity_sold"),
            revenue.label("revenue_cents"),
        )
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(*conditions)
    )
    if product_id is not None:
        top_query = top_query.filter(SaleItem.product_id == product_id)
    top_rows = (
        top_query.group_by(SaleItem.product_id, SaleItem.product_name)
        .order_by(revenue.desc(), SaleItem.product_id.asc())
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )

    sale_day = func.date(Sale.created_at)
    daily_rows = (
        db.session.query(
            sale_day.label("day"),
            func.coalesce(func.sum(Sale.total_amount_cents), 0).label("sales_cents"),
            func.count(Sale.id).label("transactions"),
        )
        .filter(*conditions)
        .group_by(sale_day)
        .order_by(sale_day)
        .all()
    )

    return {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "total_sales_cents": total,
        "total_transactions": count,
        "average_transaction_cents": round(total / count) if count else 0,
        "top_products": [
            {
                "product_id": row.product_id,
                "product_name": row.product_name,
                "quantity_sold": int(row.quantity_sold or 0),
                "revenue_cents": int(row.revenue_cents or 0),
            }
            for row in top_rows
        ],
        "daily_breakdown": [
            {
                "date": str(row.day),
                "sales_cents": int(row.sales_cents or 0),
                "transactions": int(row.transactions or 0),
            }
            for row in daily_rows
        ],
    }


def stock_report(
    *,
    category_id: int | None = None,
    supplier_id: int | None = None,
    low_stock_only: bool = False,
) -> dict:
    """Active products with on-hand quantity and value at selling price."""
    query = (
        db.session.query(Product, Category.name, Supplier.name)
        .join(Category, Category.id == Product.category_id)
        .outerjoin(Supplier, Supplier.id == Product.supplier_id)
        .filter(Product.is_active.is_(True))
    )
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)
    if low_stock_only:
        query = query.filter(Product.stock_quantity <= Product.minimum_stock)

    rows = []
    for product, category_name, supplier_name in query.order_by(Product.name, Product.id).all():
        rows.append({
            "id": product.id,
            "name": product.name,
            "barcode": product.barcode,
            "category": category_name,
            "supplier": supplier_name,
            "current_stock": product.stock_quantity,
            "minimum_stock": product.minimum_stock,
            "stock_value_cents": product.stock_quantity * product.selling_price_cents,
        })

    return {
        "total_products": len(rows),
        "low_stock_count": sum(1 for r in rows if r["current_stock"] <= r["minimum_stock"]),
        "total_stock_value_cents": sum(r["stock_value_cents"] for r in rows),
        "products": rows,
    }
