from .tenancy import Business, Store
from .catalog import Product, ProductVariant, BookingSlot
from .customers import Customer
from .orders import Order, OrderItem
from .bookings import Booking
from .documents import TimelineEntry, RefundRecord, DocumentSequence
from .auth import StaffApiKey

__all__ = [
    'Business', 'Store',
    'Product', 'ProductVariant', 'BookingSlot',
    'Customer',
    'Order', 'OrderItem',
    'Booking',
    'TimelineEntry', 'RefundRecord', 'DocumentSequence',
    'StaffApiKey',
]
