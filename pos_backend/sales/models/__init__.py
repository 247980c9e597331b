# sales/models/__init__.py

"""
SALES MODELS PACKAGE EXPORTS
"""

from .invoice_payment import InvoicePayment
from .sale import Sale
from .sale_item import SaleItem

__all__ = [
    "InvoicePayment",
    "Sale",
    "SaleItem",
]
