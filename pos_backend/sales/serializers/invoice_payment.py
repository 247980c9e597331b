# sales/serializers/invoice_payment.py

from rest_framework import serializers

from sales.models import InvoicePayment


class InvoicePaymentChargeInputSerializer(serializers.Serializer):
    """
    Input for charging open invoices / sales orders.

    documents entries are validated one by one by the service so a single
    bad entry does not reject the batch:
        {"type": "invoice" | "salesorder", "id": "...", "number": "...", "amount": "12.34"}
    """

    customer_id = serializers.UUIDField()
    payment_profile_id = serializers.CharField(max_length=64)
    store_id = serializers.UUIDField(required=False, allow_null=True)
    documents = serializers.ListField(child=serializers.DictField(), allow_empty=False)


class InvoicePaymentSerializer(serializers.ModelSerializer):
    customer_id = serializers.UUIDField(read_only=True)
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    store_id = serializers.UUIDField(read_only=True, allow_null=True)
    ledger_recorded = serializers.BooleanField(read_only=True)

    class Meta:
        model = InvoicePayment
        fields = [
            "id",
            "customer_id",
            "customer_name",
            "store_id",
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
            "ledger_recorded",
            "created_at",
        ]
        read_only_fields = fields
