from .auth import User
from .catalog import Category, Supplier, Product
from .inventory import StockMovement, StockReference
from .sales import Sale, SaleItem
from .purchases import Purchase, PurchaseItem
from .documents import DocumentSequence

__all__ = [
    'User',
    'Category', 'Supplier', 'Product',
    'StockMovement', 'StockReference',
    'Sale', 'SaleItem',
    'Purchase', 'PurchaseItem',
    'DocumentSequence',
]
