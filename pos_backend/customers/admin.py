from django.contrib import admin

from customers.models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "email", "contact_type", "external_contact_id", "tax_preference")
    list_filter = ("contact_type",)
    search_fields = ("name", "email", "external_contact_id")
    readonly_fields = ("payment_profile_id", "created_at", "updated_at")
