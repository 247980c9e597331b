from decimal import Decimal

from django.core.management.base import BaseCommand

from products.models import Product
from store.models import Store


class Command(BaseCommand):
    help = "Seed a demo register location and a handful of catalog items"

    def handle(self, *args, **options):
        self.stdout.write(self.style.WARNING("Seeding store and products..."))

        store, _ = Store.objects.get_or_create(
            code="MIA-01",
            defaults={"name": "Miami Dade Sales Tax (7%)"},
        )

        products_data = [
            ("BOLT-M8", "M8 Hex Bolt (box of 50)", "12.50"),
            ("TAPE-BLU", "Painter's Tape 2in", "6.99"),
            ("GLOVE-L", "Work Gloves Large", "14.00"),
            ("DRILL-BIT", "Drill Bit Set", "29.95"),
        ]

        created = 0
        for sku, name, price in products_data:
            _, was_created = Product.objects.get_or_create(
                sku=sku,
                defaults={"name": name, "unit_price": Decimal(price)},
            )
            created += int(was_created)

        self.stdout.write(
            self.style.SUCCESS(f"Seeded store {store} and {created} new products.")
        )
