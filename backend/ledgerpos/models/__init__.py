from .catalog import Category, Product
from .parties import Customer, Vendor
from .transactions import Transaction, TransactionItem
from .cash import DaySession, Account
from .purchasing import PurchaseOrder, PurchaseOrderItem
from .quotations import Quotation, QuotationItem

__all__ = [
    'Category', 'Product',
    'Customer', 'Vendor',
    'Transaction', 'TransactionItem',
    'DaySession', 'Account',
    'PurchaseOrder', 'PurchaseOrderItem',
    'Quotation', 'QuotationItem',
]
