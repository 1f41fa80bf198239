from .stocks import Stock
from .auth import User, ROLES, ROLE_ADMIN, ROLE_CASHIER, ROLE_SUPER_ADMIN
from .catalog import Product, Barcode, UNLIMITED_QUANTITY
from .parties import Client, Fournisseur, DEFAULT_PAYMENT_TERMS
from .sales import Sale, SaleItem
from .returns import ReturnTransaction, ReturnItem
from .movements import StockMovement, StockMovementItem
from .purchases import Achat
from .invoices import Invoice, InvoiceFile

__all__ = [
    'Stock',
    'User', 'ROLES', 'ROLE_ADMIN', 'ROLE_CASHIER', 'ROLE_SUPER_ADMIN',
    'Product', 'Barcode', 'UNLIMITED_QUANTITY',
    'Client', 'Fournisseur', 'DEFAULT_PAYMENT_TERMS',
    'Sale', 'SaleItem',
    'ReturnTransaction', 'ReturnItem',
    'StockMovement', 'StockMovementItem',
    'Achat',
    'Invoice', 'InvoiceFile',
]
