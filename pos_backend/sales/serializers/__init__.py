from .checkout import CheckoutInputSerializer, PaymentResultSerializer, PendingPaymentSerializer
from .invoice_payment import InvoicePaymentChargeInputSerializer, InvoicePaymentSerializer
from .sale import SaleSerializer, SyncStatusSummarySerializer
from .sale_item import SaleItemSerializer

__all__ = [
    "CheckoutInputSerializer",
    "InvoicePaymentChargeInputSerializer",
    "InvoicePaymentSerializer",
    "PaymentResultSerializer",
    "PendingPaymentSerializer",
    "SaleSerializer",
    "SaleItemSerializer",
    "SyncStatusSummarySerializer",
]
