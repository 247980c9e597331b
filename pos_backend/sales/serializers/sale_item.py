from rest_framework import serializers

from sales.models import SaleItem


class SaleItemSerializer(serializers.ModelSerializer):
    sku = serializers.SerializerMethodField()

    class Meta:
        model = SaleItem
        fields = [
            "id",
            "product",
            "sku",
            "item_name",
            "external_item_id",
            "quantity",
            "unit_price",
            "line_subtotal",
            "line_tax_amount",
            "line_total",
            "external_tax_rule_id",
            "position",
        ]
        read_only_fields = fields

    def get_sku(self, obj):
        p = getattr(obj, "product", None)
        return getattr(p, "sku", None)
