from .retailers import Retailer, RETAILER_STATUSES
from .catalog import Product
from .orders import Order, OrderItem, OrderStatus, PaymentMethod, CancellationInfo
from .payments import Payment, PAYMENT_TYPES, PAYMENT_METHODS, PAYMENT_STATUSES
from .deliveries import Delivery, DeliveryStatus
from .audit import AuditLogEntry
from .cart import CartItem

__all__ = [
    'Retailer', 'RETAILER_STATUSES',
    'Product',
    'Order', 'OrderItem', 'OrderStatus', 'PaymentMethod', 'CancellationInfo',
    'Payment', 'PAYMENT_TYPES', 'PAYMENT_METHODS', 'PAYMENT_STATUSES',
    'Delivery', 'DeliveryStatus',
    'AuditLogEntry',
    'CartItem',
]
