# Overview: Domain error taxonomy shared by the inventory engines and the API layer.

"""
Inventory error kinds (authoritative)

- NOT_FOUND: a referenced product, sale, purchase, supplier or user does not exist.
- INVALID_STATE: the entity exists but its current status forbids the operation.
- VALIDATION_FAILURE: a business rule rejects the request (stock, payment, inactive product).

Every error is raised before any write happens, or inside the write phase where
the enclosing transaction is rolled back. Stock floor clamping is NOT an error.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for all domain errors surfaced to callers."""

    kind = "INVENTORY_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "details": self.details,
        }


class NotFoundError(InventoryError):
    kind = "NOT_FOUND"
    status_code = 404


class InvalidStateError(InventoryError):
    kind = "INVALID_STATE"
    status_code = 409


class BusinessRuleError(InventoryError):
    kind = "VALIDATION_FAILURE"
    status_code = 409


# --- NOT_FOUND ---------------------------------------------------------------

class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: int):
        super().__init__(f"Product with ID {product_id} not found", {"product_id": product_id})


class CashierNotFoundError(NotFoundError):
    def __init__(self, cashier_id: int):
        super().__init__(f"Cashier with ID {cashier_id} not found", {"cashier_id": cashier_id})


class CancellerNotFoundError(NotFoundError):
    def __init__(self, user_id: int):
        super().__init__(f"Canceller user with ID {user_id} not found", {"cancelled_by": user_id})


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int):
        super().__init__(f"User with ID {user_id} not found", {"user_id": user_id})


class SaleNotFoundError(NotFoundError):
    def __init__(self, sale_id: int):
        super().__init__(f"Sale with ID {sale_id} not found", {"sale_id": sale_id})


class SupplierNotFoundError(NotFoundError):
    def __init__(self, supplier_id: int):
        super().__init__(f"Supplier with ID {supplier_id} not found", {"supplier_id": supplier_id})


class CategoryNotFoundError(NotFoundError):
    def __init__(self, category_id: int):
        super().__init__(f"Category with ID {category_id} not found", {"category_id": category_id})


class PurchaseNotFoundError(NotFoundError):
    def __init__(self, purchase_id: int):
        super().__init__(f"Purchase with ID {purchase_id} not found", {"purchase_id": purchase_id})


# --- INVALID_STATE -----------------------------------------------------------

class InvalidStateTransitionError(InvalidStateError):
    pass


class RecordInUseError(InvalidStateError):
    """Raised when deleting a category or supplier that other records still point at."""

    def __init__(self, entity: str, entity_id: int, blockers: dict):
        super().__init__(
            f"{entity.capitalize()} with ID {entity_id} is still in use",
            {f"{entity}_id": entity_id, **blockers},
        )


# --- VALIDATION_FAILURE ------------------------------------------------------

class ProductInactiveError(BusinessRuleError):
    def __init__(self, product_id: int, name: str):
        super().__init__(
            f"Product {name} (ID {product_id}) is not active",
            {"product_id": product_id},
        )


class InsufficientStockError(BusinessRuleError):
    def __init__(self, product_id: int, name: str, requested: int, on_hand: int):
        super().__init__(
            f"Insufficient stock for product {name} (ID {product_id})",
            {"product_id": product_id, "requested_quantity": requested, "on_hand": on_hand},
        )


class InsufficientPaymentError(BusinessRuleError):
    def __init__(self, amount_paid_cents: int, total_amount_cents: int):
        super().__init__(
            "Insufficient payment amount",
            {"amount_paid_cents": amount_paid_cents, "total_amount_cents": total_amount_cents},
        )


class InvalidMovementError(BusinessRuleError):
    """Raised when a movement breaks the quantity sign convention or reference shape."""


class DuplicateBarcodeError(BusinessRuleError):
    def __init__(self, barcode: str):
        super().__init__(f"Barcode {barcode!r} is already in use", {"barcode": barcode})


class DuplicateUserError(BusinessRuleError):
    pass
