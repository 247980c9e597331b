# store/models/store.py

import uuid

from django.db import models
from django.db.models import Q


class Store(models.Model):
    """
    A physical selling location (register location).

    Tax configuration lives here:
    - tax_percentage, when set, is the authoritative sales tax rate
    - otherwise the display name may carry the rate, e.g. "Miami Dade Sales Tax (7%)"
    - tax_rule_id is the books ledger tax-rule reference for that rate (optional)

    terminal_number is the serial of the cloud card terminal paired with this location.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)

    code = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Location id shared with the books ledger. If set, must be unique.",
        db_index=True,
    )

    tax_percentage = models.DecimalField(
        max_digits=6,
        decimal_places=3,
        null=True,
        blank=True,
        help_text="Sales tax percent (e.g. 8.250). Leave blank to fall back to the name, then the default.",
    )
    tax_rule_id = models.CharField(max_length=64, null=True, blank=True)

    terminal_number = models.CharField(max_length=64, blank=True, default="")

    address = models.TextField(blank=True)
    phone = models.CharField(max_length=50, blank=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["code"],
                condition=Q(code__isnull=False) & ~Q(code=""),
                name="uniq_store_code_when_present",
            ),
        ]

    def __str__(self):
        c = (self.code or "").strip()
        if c:
            return f"{self.name} ({c})"
        return self.name
