from .tenancy import Store
from .auth import User, SessionToken
from .inventory import Product, InventoryTransaction
from .customers import Customer
from .billing import Bill, BillItem, DocumentSequence
from .activity import ActivityLog
from .invoice_templates import InvoiceTemplate

__all__ = [
    'Store',
    'User', 'SessionToken',
    'Product', 'InventoryTransaction',
    'Customer',
    'Bill', 'BillItem', 'DocumentSequence',
    'ActivityLog',
    'InvoiceTemplate',
]
