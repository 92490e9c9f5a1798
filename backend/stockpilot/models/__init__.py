from .auth import User, USER_ROLES
from .customers import Customer
from .inventory import Product, ProductBatch, InventoryMovement, MOVEMENT_TYPES
from .orders import Order, OrderLine, OrderLineBatch, OrderSequence, ORDER_STATUSES, DISCOUNT_TYPES

__all__ = [
    'User', 'USER_ROLES',
    'Customer',
    'Product', 'ProductBatch', 'InventoryMovement', 'MOVEMENT_TYPES',
    'Order', 'OrderLine', 'OrderLineBatch', 'OrderSequence', 'ORDER_STATUSES', 'DISCOUNT_TYPES',
]
