from .auth import User
from .catalog import Category, Product, ProductCategory, ProductBarcode
from .inventory import StockLevel, StockMovement
from .customers import Customer, CreditAccountEntry
from .sales import Sale, SaleLine, Payment, Invoice, InvoiceSequence, SaleAudit
from .audit import AuditRecord

__all__ = [
    'User',
    'Category', 'Product', 'ProductCategory', 'ProductBarcode',
    'StockLevel', 'StockMovement',
    'Customer', 'CreditAccountEntry',
    'Sale', 'SaleLine', 'Payment', 'Invoice', 'InvoiceSequence', 'SaleAudit',
    'AuditRecord',
]
