from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_price(key: str, value: int | None) -> None:
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_price("purchase_price_cents", patch.get("purchase_price_cents"))
    _check_price("selling_price_cents", patch.get("selling_price_cents"))

    for key in ("stock_quantity", "minimum_stock"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")


def require_field(payload: dict, key: str) -> Any:
    if key not in payload or payload[key] is None:
        raise ValidationError(f"{key} is required")
    return payload[key]


def require_int(payload: dict, key: str, *, minimum: int | None = None) -> int:
    value = coerce_int(key, require_field(payload, key))
    if minimum is not None and value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    return value


def optional_int(payload: dict, key: str, *, default: int | None = None, minimum: int | None = None) -> int | None:
    if payload.get(key) is None:
        return default
    return require_int(payload, key, minimum=minimum)


def optional_text(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip() or None


def optional_bool_arg(args, key: str) -> bool | None:
    """Query-string boolean: "true" / "false" (any case), or None when absent."""
    value = args.get(key)
    if value is None:
        return None
    if value.lower() not in ("true", "false"):
        raise ValidationError(f"{key} must be true or false")
    return value.lower() == "true"


def require_item_list(payload: dict, key: str = "items") -> list[dict]:
    items = require_field(payload, key)
    if not isinstance(items, list) or not items:
        raise ValidationError(f"{key} must be a non-empty list")
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError(f"each entry in {key} must be an object")
    return items


def parse_cart_items(payload: dict) -> list:
    """Turn the sale request's items into CartItem values (quantity >= 1, price >= 0)."""
    from .services.sales_service import CartItem

    cart = []
    for raw in require_item_list(payload):
        barcode = optional_text(raw, "barcode")
        product_name = optional_text(raw, "product_name")
        if not barcode or not product_name:
            raise ValidationError("barcode and product_name are required on each item")
        unit_price = require_int(raw, "unit_price_cents", minimum=0)
        _check_price("unit_price_cents", unit_price)
        cart.append(CartItem(
            product_id=require_int(raw, "product_id"),
            barcode=barcode,
            product_name=product_name,
            quantity=require_int(raw, "quantity", minimum=1),
            unit_price_cents=unit_price,
        ))
    return cart


def parse_purchase_items(payload: dict) -> list:
    """Turn the purchase request's items into PurchaseLine values."""
    from .services.purchase_service import PurchaseLine

    lines = []
    for raw in require_item_list(payload):
        unit_cost = require_int(raw, "unit_cost_cents", minimum=0)
        _check_price("unit_cost_cents", unit_cost)
        lines.append(PurchaseLine(
            product_id=require_int(raw, "product_id"),
            quantity=require_int(raw, "quantity", minimum=1),
            unit_cost_cents=unit_cost,
        ))
    return lines
