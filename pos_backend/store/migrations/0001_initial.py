import uuid

from django.db import migrations, models
from django.db.models import Q


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Store",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                (
                    "code",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Location id shared with the books ledger. If set, must be unique.",
                        max_length=50,
                        null=True,
                    ),
                ),
                (
                    "tax_percentage",
                    models.DecimalField(
                        blank=True,
                        decimal_places=3,
                        help_text="Sales tax percent (e.g. 8.250). Leave blank to fall back to the name, then the default.",
                        max_digits=6,
                        null=True,
                    ),
                ),
                ("tax_rule_id", models.CharField(blank=True, max_length=64, null=True)),
                ("terminal_number", models.CharField(blank=True, default="", max_length=64)),
                ("address", models.TextField(blank=True)),
                ("phone", models.CharField(blank=True, max_length=50)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=Q(("code__isnull", False), Q(("code", ""), _negated=True)),
                        fields=("code",),
                        name="uniq_store_code_when_present",
                    )
                ],
            },
        ),
    ]
