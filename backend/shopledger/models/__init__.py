from .inventory import Product
from .customers import Customer
from .orders import Order, OrderItem, SettlementEvent
from .restocks import RestockEvent

__all__ = [
    'Product',
    'Customer',
    'Order', 'OrderItem', 'SettlementEvent',
    'RestockEvent',
]
