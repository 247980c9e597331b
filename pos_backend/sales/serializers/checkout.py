# sales/serializers/checkout.py

"""
Checkout input serializers.

Documents ONLY what the register is allowed to send. Totals, fees and tax
are never accepted from the client.
"""

from decimal import Decimal

from rest_framework import serializers

from integrations.contracts import PaymentResult


class CartLineInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))


class CardInputSerializer(serializers.Serializer):
    """Format checks (digits, expiry, account type) live in the payment method parser."""

    number = serializers.CharField(max_length=23)
    expiration = serializers.CharField(max_length=7, help_text="YYYY-MM or MM/YY")
    cvv = serializers.CharField(max_length=4, required=False, allow_blank=True, default="")
    zip_code = serializers.CharField(max_length=10, required=False, allow_blank=True, default="")


class BankInputSerializer(serializers.Serializer):
    routing_number = serializers.CharField(max_length=9)
    account_number = serializers.CharField(max_length=17)
    name_on_account = serializers.CharField(max_length=22)
    account_type = serializers.CharField(required=False, default="checking")


class OpaqueDataInputSerializer(serializers.Serializer):
    descriptor = serializers.CharField(required=False, allow_blank=True, default="COMMON.ACCEPT.INAPP.PAYMENT")
    value = serializers.CharField()


class TerminalInputSerializer(serializers.Serializer):
    transaction_id = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentInputSerializer(serializers.Serializer):
    """
    One payment variant per request. Precedence when several keys are sent:
    standalone_terminal > payment_profile_id > opaque_data > terminal > card > method.
    """

    method = serializers.ChoiceField(choices=["cash", "zelle", "ach", "card"])
    card_funding = serializers.ChoiceField(choices=["credit", "debit"], required=False)
    standalone_terminal = serializers.BooleanField(required=False, default=False)
    reference = serializers.CharField(required=False, allow_blank=True, default="")
    zelle_confirmation = serializers.CharField(required=False, allow_blank=True, default="")
    payment_profile_id = serializers.CharField(required=False, allow_blank=True, default="")
    opaque_data = OpaqueDataInputSerializer(required=False)
    terminal = TerminalInputSerializer(required=False)
    card = CardInputSerializer(required=False)
    bank = BankInputSerializer(required=False)


class CheckoutInputSerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    customer_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    lines = CartLineInputSerializer(many=True, allow_empty=False)
    payment = PaymentInputSerializer()
    tax_exempt = serializers.BooleanField(required=False, default=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="", max_length=1000)
    save_payment_method = serializers.BooleanField(required=False, default=False)


class PaymentResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    pending = serializers.BooleanField()
    external_transaction_id = serializers.CharField(allow_blank=True)
    message = serializers.CharField(allow_blank=True)
    error_code = serializers.CharField(allow_blank=True, allow_null=True)
    error_message = serializers.CharField(allow_blank=True, allow_null=True)

    @classmethod
    def from_result(cls, result: PaymentResult) -> dict:
        return cls(result).data


class PendingPaymentSerializer(serializers.Serializer):
    detail = serializers.CharField()
    transaction_id = serializers.CharField()
    payment = PaymentResultSerializer()
