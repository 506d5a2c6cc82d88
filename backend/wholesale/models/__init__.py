from .tenancy import Store
from .inventory import Product, StoreStock, StockMovement
from .orders import Order, OrderItem, KitchenSheet, KitchenSheetItem
from .deliveries import Delivery, DeliveryProof
from .documents import DeliveryReturn, LedgerEvent, DocumentSequence
from .invoices import Invoice, Payment
from .communications import Notification, PaymentReminder
from .statuses import (
    OrderStatus,
    DeliveryStatus,
    KitchenSheetStatus,
    PaymentStatus,
    PaymentMethod,
    ReturnReason,
    StockReason,
    OrderSource,
    ReminderType,
)

__all__ = [
    'Store',
    'Product', 'StoreStock', 'StockMovement',
    'Order', 'OrderItem', 'KitchenSheet', 'KitchenSheetItem',
    'Delivery', 'DeliveryProof',
    'DeliveryReturn', 'LedgerEvent', 'DocumentSequence',
    'Invoice', 'Payment',
    'Notification', 'PaymentReminder',
    'OrderStatus', 'DeliveryStatus', 'KitchenSheetStatus', 'PaymentStatus', 'PaymentMethod',
    'ReturnReason', 'StockReason', 'OrderSource', 'ReminderType',
]
