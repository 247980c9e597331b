import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("store", "0001_initial"),
        ("customers", "0001_initial"),
        ("sales", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="InvoicePayment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("document_type", models.CharField(choices=[("invoice", "Invoice"), ("salesorder", "Sales order")], max_length=16)),
                ("document_id", models.CharField(help_text="Ledger id of the invoice / sales order", max_length=64)),
                ("document_number", models.CharField(max_length=64)),
                ("amount", models.DecimalField(decimal_places=2, help_text="Amount applied to the document", max_digits=12)),
                ("card_fee_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("amount_charged", models.DecimalField(decimal_places=2, help_text="amount + card fee", max_digits=12)),
                ("payment_type", models.CharField(choices=[("card", "Card"), ("ach", "ACH")], max_length=8)),
                ("payment_profile_id", models.CharField(max_length=64)),
                ("external_transaction_id", models.CharField(max_length=128, unique=True)),
                ("ledger_payment_id", models.CharField(blank=True, max_length=64, null=True)),
                ("ledger_error", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("customer", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoice_payments", to="customers.customer")),
                ("store", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="invoice_payments", to="store.store")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="invoice_payments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["customer", "created_at"], name="sales_invpay_cust_created_idx"),
                    models.Index(fields=["document_type", "document_id"], name="sales_invpay_document_idx"),
                ],
            },
        ),
    ]
