import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                ("external_contact_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                (
                    "contact_type",
                    models.CharField(
                        choices=[("customer", "Customer"), ("vendor", "Vendor")],
                        default="customer",
                        max_length=32,
                    ),
                ),
                ("tax_preference", models.CharField(blank=True, default="", max_length=128)),
                ("payment_profile_id", models.CharField(blank=True, default="", max_length=64)),
                ("default_payment_method_id", models.CharField(blank=True, default="", max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["name"]},
        ),
    ]
