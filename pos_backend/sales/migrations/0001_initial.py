import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("store", "0001_initial"),
        ("products", "0001_initial"),
        ("customers", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Sale",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("invoice_no", models.CharField(blank=True, help_text="System-generated invoice / receipt number", max_length=64, unique=True)),
                ("location_code", models.CharField(blank=True, default="", max_length=50)),
                ("subtotal_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("tax_percentage", models.DecimalField(decimal_places=3, default=Decimal("0.000"), max_digits=6)),
                ("card_fee_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("payment_method", models.CharField(choices=[("cash", "Cash"), ("zelle", "Zelle"), ("ach", "ACH"), ("card", "Card")], max_length=16)),
                ("payment_channel", models.CharField(help_text="How the payment was collected: cash, zelle, ach, manual_entry, reader_token, stored_profile, terminal_standalone, terminal_cloud", max_length=32)),
                ("external_transaction_id", models.CharField(max_length=128, unique=True)),
                ("sync_status", models.CharField(choices=[("not_applicable", "Not applicable"), ("pending", "Pending"), ("synced", "Synced"), ("failed", "Failed"), ("cancelled", "Cancelled")], db_index=True, default="not_applicable", max_length=16)),
                ("ledger_receipt_id", models.CharField(blank=True, max_length=64, null=True)),
                ("sync_error", models.TextField(blank=True, null=True)),
                ("sync_attempts", models.PositiveIntegerField(default=0)),
                ("last_synced_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("customer", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sales", to="customers.customer")),
                ("store", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="sales", to="store.store")),
                ("user", models.ForeignKey(blank=True, help_text="Cashier / staff who processed the sale", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sales", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["created_at"], name="sales_sale_created_idx"),
                    models.Index(fields=["store", "created_at"], name="sales_sale_store_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SaleItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("item_name", models.CharField(max_length=255)),
                ("external_item_id", models.CharField(blank=True, default="", max_length=64)),
                ("quantity", models.DecimalField(decimal_places=2, max_digits=10)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("line_subtotal", models.DecimalField(decimal_places=2, max_digits=12)),
                ("line_tax_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("line_total", models.DecimalField(decimal_places=2, max_digits=12)),
                ("external_tax_rule_id", models.CharField(blank=True, max_length=64, null=True)),
                ("position", models.PositiveIntegerField(default=0)),
                ("product", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="products.product")),
                ("sale", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="sales.sale")),
            ],
            options={
                "ordering": ["sale", "position"],
            },
        ),
    ]
