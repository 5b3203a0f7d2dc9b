from .sales import Sale, CartItem, SALE_STATUSES, TERMINAL_SALE_STATUSES, CART_ITEM_STATUSES
from .security import LoginAttempt

__all__ = [
    'Sale', 'CartItem',
    'SALE_STATUSES', 'TERMINAL_SALE_STATUSES', 'CART_ITEM_STATUSES',
    'LoginAttempt',
]
