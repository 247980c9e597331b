from django.contrib import admin

from store.models import Store


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "tax_percentage", "tax_rule_id", "terminal_number", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "code")
