from django.contrib import admin

from products.models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "unit_price", "external_item_id", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "sku", "external_item_id")
