from .enums import CustomerTier, Brand, BRAND_DISPLAY_NAMES, DiscountType, InvoiceStatus, UserRole, UserStatus
from .catalog import Product, Variant, Category
from .customers import Customer
from .invoices import Invoice, InvoiceLine
from .inventory import StockMovement
from .documents import DocumentSequence
from .auth import User, SessionToken

__all__ = [
    'CustomerTier', 'Brand', 'BRAND_DISPLAY_NAMES', 'DiscountType', 'InvoiceStatus', 'UserRole', 'UserStatus',
    'Product', 'Variant', 'Category',
    'Customer',
    'Invoice', 'InvoiceLine',
    'StockMovement',
    'DocumentSequence',
    'User', 'SessionToken',
]
