# sales/models/sale.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class Sale(models.Model):
    """
    Represents one completed checkout.

    GUARANTEES:
    - Created only after the payment succeeded (cash/zelle/standalone carry a local id)
    - total_amount == subtotal_amount + tax_amount + card_fee_amount
    - Money, payment, and attribution fields are immutable once written
    - Only the ledger sync bookkeeping may change afterwards
    - Never deleted; a voided ledger receipt marks the sale cancelled
    """

    PAYMENT_CASH = "cash"
    PAYMENT_ZELLE = "zelle"
    PAYMENT_ACH = "ach"
    PAYMENT_CARD = "card"

    PAYMENT_METHOD_CHOICES = [
        (PAYMENT_CASH, "Cash"),
        (PAYMENT_ZELLE, "Zelle"),
        (PAYMENT_ACH, "ACH"),
        (PAYMENT_CARD, "Card"),
    ]

    SYNC_NOT_APPLICABLE = "not_applicable"
    SYNC_PENDING = "pending"
    SYNC_SYNCED = "synced"
    SYNC_FAILED = "failed"
    SYNC_CANCELLED = "cancelled"

    SYNC_STATUS_CHOICES = [
        (SYNC_NOT_APPLICABLE, "Not applicable"),
        (SYNC_PENDING, "Pending"),
        (SYNC_SYNCED, "Synced"),
        (SYNC_FAILED, "Failed"),
        (SYNC_CANCELLED, "Cancelled"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice_no = models.CharField(
        max_length=64,
        unique=True,
        blank=True,
        help_text="System-generated invoice / receipt number",
    )

    store = models.ForeignKey(
        "store.Store",
        on_delete=models.PROTECT,
        related_name="sales",
    )
    location_code = models.CharField(max_length=50, blank=True, default="")

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sales",
    )

    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sales",
        help_text="Cashier / staff who processed the sale",
    )

    subtotal_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_percentage = models.DecimalField(max_digits=6, decimal_places=3, default=Decimal("0.000"))
    card_fee_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    payment_method = models.CharField(max_length=16, choices=PAYMENT_METHOD_CHOICES)
    payment_channel = models.CharField(
        max_length=32,
        help_text="How the payment was collected: cash, zelle, ach, manual_entry, reader_token, stored_profile, terminal_standalone, terminal_cloud",
    )
    external_transaction_id = models.CharField(max_length=128, unique=True)

    sync_status = models.CharField(
        max_length=16,
        choices=SYNC_STATUS_CHOICES,
        default=SYNC_NOT_APPLICABLE,
        db_index=True,
    )
    ledger_receipt_id = models.CharField(max_length=64, null=True, blank=True)
    sync_error = models.TextField(null=True, blank=True)
    sync_attempts = models.PositiveIntegerField(default=0)
    last_synced_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["created_at"], name="sales_sale_created_idx"),
            models.Index(fields=["store", "created_at"], name="sales_sale_store_created_idx"),
        ]

    _IMMUTABLE_FIELDS = (
        "invoice_no",
        "store_id",
        "location_code",
        "user_id",
        "subtotal_amount",
        "tax_amount",
        "tax_percentage",
        "card_fee_amount",
        "total_amount",
        "payment_method",
        "payment_channel",
        "external_transaction_id",
        "notes",
        "created_at",
    )

    @staticmethod
    def generate_invoice_no() -> str:
        # Gateways cap invoice numbers at 20 characters.
        prefix = timezone.now().strftime("INV%Y%m%d")
        return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"

    def _validate_immutable(self, previous: "Sale"):
        for field in self._IMMUTABLE_FIELDS:
            if getattr(self, field) != getattr(previous, field):
                raise ValueError(f"Sale field '{field}' cannot be changed once recorded.")

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            previous = Sale.objects.filter(pk=self.pk).first()
            if previous is not None:
                self._validate_immutable(previous)

        if not self.invoice_no:
            self.invoice_no = self.generate_invoice_no()

        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.invoice_no} | {self.total_amount}"
