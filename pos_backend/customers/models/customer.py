# customers/models/customer.py

import uuid

from django.db import models


class Customer(models.Model):
    """
    A buyer known to the register.

    Ledger linkage:
    - external_contact_id is the books ledger contact; without it a sale cannot be synced
    - contact_type mirrors the ledger ("customer", "vendor", ...); only customers sync
    - tax_preference carries the exemption certificate marker

    Gateway linkage:
    - payment_profile_id is the gateway customer profile (cached once discovered)
    - default_payment_method_id is the preferred stored card/bank profile
    """

    TAX_EXEMPT_CERTIFICATE = "SALES TAX EXCEPTION CERTIFICATE"

    class ContactType(models.TextChoices):
        CUSTOMER = "customer", "Customer"
        VENDOR = "vendor", "Vendor"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255, db_index=True)
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")

    external_contact_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    contact_type = models.CharField(
        max_length=32,
        choices=ContactType.choices,
        default=ContactType.CUSTOMER,
    )
    tax_preference = models.CharField(max_length=128, blank=True, default="")

    payment_profile_id = models.CharField(max_length=64, blank=True, default="")
    default_payment_method_id = models.CharField(max_length=64, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def is_tax_exempt(self) -> bool:
        return (self.tax_preference or "").strip().upper() == self.TAX_EXEMPT_CERTIFICATE

    @property
    def is_ledger_eligible(self) -> bool:
        return bool((self.external_contact_id or "").strip()) and (
            self.contact_type == self.ContactType.CUSTOMER
        )
