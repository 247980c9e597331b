# sales/models/invoice_payment.py

"""
INVOICE / SALES ORDER PAYMENT

One stored-profile charge against an open ledger document (an invoice or a
sales order). Written only after the gateway approved the charge.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models

User = settings.AUTH_USER_MODEL


class InvoicePayment(models.Model):
    DOCUMENT_INVOICE = "invoice"
    DOCUMENT_SALES_ORDER = "salesorder"

    DOCUMENT_TYPE_CHOICES = [
        (DOCUMENT_INVOICE, "Invoice"),
        (DOCUMENT_SALES_ORDER, "Sales order"),
    ]

    PAYMENT_CARD = "card"
    PAYMENT_ACH = "ach"

    PAYMENT_TYPE_CHOICES = [
        (PAYMENT_CARD, "Card"),
        (PAYMENT_ACH, "ACH"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="invoice_payments",
    )
    store = models.ForeignKey(
        "store.Store",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoice_payments",
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoice_payments",
    )

    document_type = models.CharField(max_length=16, choices=DOCUMENT_TYPE_CHOICES)
    document_id = models.CharField(max_length=64, help_text="Ledger id of the invoice / sales order")
    document_number = models.CharField(max_length=64)

    amount = models.DecimalField(max_digits=12, decimal_places=2, help_text="Amount applied to the document")
    card_fee_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    amount_charged = models.DecimalField(max_digits=12, decimal_places=2, help_text="amount + card fee")

    payment_type = models.CharField(max_length=8, choices=PAYMENT_TYPE_CHOICES)
    payment_profile_id = models.CharField(max_length=64)
    external_transaction_id = models.CharField(max_length=128, unique=True)

    ledger_payment_id = models.CharField(max_length=64, null=True, blank=True)
    ledger_error = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer", "created_at"], name="sales_invpay_cust_created_idx"),
            models.Index(fields=["document_type", "document_id"], name="sales_invpay_document_idx"),
        ]

    @property
    def ledger_recorded(self) -> bool:
        return bool(self.ledger_payment_id)

    def __str__(self):
        return f"{self.document_type} {self.document_number} | {self.amount_charged}"
