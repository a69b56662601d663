from .tenancy import Store
from .auth import User, SessionToken
from .subscriptions import Subscription
from .inventory import Product
from .customers import Customer
from .billing import Bill, BillLineItem, BillSequence

__all__ = [
    'Store',
    'User', 'SessionToken',
    'Subscription',
    'Product',
    'Customer',
    'Bill', 'BillLineItem', 'BillSequence',
]
