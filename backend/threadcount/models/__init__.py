from .tenancy import Account
from .inventory import Product, StockTransaction
from .orders import Order, OrderItem, OrderSequence

__all__ = [
    'Account',
    'Product', 'StockTransaction',
    'Order', 'OrderItem', 'OrderSequence',
]
