from .accounts import Account
from .catalog import Product
from .sales import Sale, SaleLineItem
from .expenses import Expense
from .subscriptions import SubscriptionRecord, Coupon

__all__ = [
    'Account',
    'Product',
    'Sale', 'SaleLineItem',
    'Expense',
    'SubscriptionRecord', 'Coupon',
]
