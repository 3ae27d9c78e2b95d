from .auth import User, SessionToken
from .security import SecurityEvent
from .catalog import ProductCategory, Product
from .inventory import InventoryItem
from .sales import Sale, SaleItem, PAYMENT_METHODS

__all__ = [
    'User', 'SessionToken', 'SecurityEvent',
    'ProductCategory', 'Product',
    'InventoryItem',
    'Sale', 'SaleItem', 'PAYMENT_METHODS',
]
