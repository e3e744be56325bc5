from .catalog import Category, Product, Customer
from .orders import Order, OrderItem
from .transactions import CustomerTransaction
from .invoices import Invoice, InvoiceItem, InvoicePayment
from .ledger import LedgerEntry
from .documents import DocumentSequence

__all__ = [
    'Category', 'Product', 'Customer',
    'Order', 'OrderItem',
    'CustomerTransaction',
    'Invoice', 'InvoiceItem', 'InvoicePayment',
    'LedgerEntry',
    'DocumentSequence',
]
