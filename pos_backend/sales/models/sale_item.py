# sales/models/sale_item.py

"""
SALE ITEM (IMMUTABLE SNAPSHOT)

One priced line of a Sale, written together with the Sale and never edited.
Name, price and ledger item id are snapshots so later catalog edits do not
rewrite history.
"""

from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from .sale import Sale


class SaleItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sale = models.ForeignKey(
        Sale,
        on_delete=models.CASCADE,
        related_name="items",
    )

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )

    item_name = models.CharField(max_length=255)
    external_item_id = models.CharField(max_length=64, blank=True, default="")

    quantity = models.DecimalField(max_digits=10, decimal_places=2)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)

    line_subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    line_tax_amount = models.DecimalField(max_digits=12, decimal_places=2)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)

    external_tax_rule_id = models.CharField(max_length=64, null=True, blank=True)

    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sale", "position"]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("SaleItem records are immutable")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.item_name} x {self.quantity}"
