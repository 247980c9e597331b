# sales/admin.py

from django.contrib import admin

from sales.models import InvoicePayment, Sale, SaleItem


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    can_delete = False
    fields = (
        "position",
        "item_name",
        "external_item_id",
        "quantity",
        "unit_price",
        "line_subtotal",
        "line_tax_amount",
        "line_total",
        "external_tax_rule_id",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


# ======================================================
# SALE ADMIN
# ======================================================


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = (
        "invoice_no",
        "store",
        "payment_method",
        "total_amount",
        "sync_status",
        "created_at",
    )
    readonly_fields = (
        "invoice_no",
        "store",
        "location_code",
        "customer",
        "user",
        "subtotal_amount",
        "tax_amount",
        "tax_percentage",
        "card_fee_amount",
        "total_amount",
        "payment_method",
        "payment_channel",
        "external_transaction_id",
        "sync_status",
        "ledger_receipt_id",
        "sync_error",
        "sync_attempts",
        "last_synced_at",
        "cancelled_at",
        "notes",
        "created_at",
    )
    search_fields = ("invoice_no", "external_transaction_id", "ledger_receipt_id")
    list_filter = ("sync_status", "payment_method", "store", "created_at")
    inlines = [SaleItemInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ======================================================
# INVOICE PAYMENT ADMIN
# ======================================================


@admin.register(InvoicePayment)
class InvoicePaymentAdmin(admin.ModelAdmin):
    list_display = (
        "document_number",
        "document_type",
        "customer",
        "amount_charged",
        "payment_type",
        "ledger_payment_id",
        "created_at",
    )
    readonly_fields = (
        "customer",
        "store",
        "user",
        "document_type",
        "document_id",
        "document_number",
        "amount",
        "card_fee_amount",
        "amount_charged",
        "payment_type",
        "payment_profile_id",
        "external_transaction_id",
        "ledger_payment_id",
        "ledger_error",
        "created_at",
    )
    search_fields = ("document_number", "external_transaction_id", "ledger_payment_id")
    list_filter = ("document_type", "payment_type", "created_at")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
