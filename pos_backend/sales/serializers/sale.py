# sales/serializers/sale.py

from rest_framework import serializers

from sales.models import Sale
from sales.serializers.sale_item import SaleItemSerializer


class SaleSerializer(serializers.ModelSerializer):
    """
    CANONICAL SALE SERIALIZER (READ-ONLY)

    Used by checkout responses, sales history and the sync endpoints.
    Money fields are rendered as strings with two decimals (DRF default for
    DecimalField), which is what the register prints.
    """

    store_id = serializers.UUIDField(read_only=True)
    store_name = serializers.CharField(source="store.name", read_only=True)
    customer_id = serializers.UUIDField(read_only=True, allow_null=True)
    customer_name = serializers.SerializerMethodField()
    cashier = serializers.SerializerMethodField()
    items = SaleItemSerializer(many=True, read_only=True)

    class Meta:
        model = Sale
        fields = [
            "id",
            "invoice_no",
            "store_id",
            "store_name",
            "location_code",
            "customer_id",
            "customer_name",
            "cashier",
            "subtotal_amount",
            "tax_percentage",
            "tax_amount",
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
            "items",
        ]
        read_only_fields = fields

    def get_customer_name(self, obj):
        c = getattr(obj, "customer", None)
        return getattr(c, "name", None)

    def get_cashier(self, obj):
        u = getattr(obj, "user", None)
        if u is None:
            return None
        return u.get_username()


class SyncStatusSummarySerializer(serializers.Serializer):
    days = serializers.IntegerField()
    total = serializers.IntegerField()
    synced = serializers.IntegerField()
    failed = serializers.IntegerField()
    pending = serializers.IntegerField()
    cancelled = serializers.IntegerField()
    not_applicable = serializers.IntegerField()
    no_customer = serializers.IntegerField()
    no_contact_id = serializers.IntegerField()
