# sales/filters.py

import django_filters

from sales.models import InvoicePayment, Sale


class SaleFilter(django_filters.FilterSet):
    """
    Sales history filters:
        ?store_id=<uuid>&sync_status=failed&payment_method=card
        &date_from=YYYY-MM-DD&date_to=YYYY-MM-DD&q=<invoice fragment>
    """

    store_id = django_filters.UUIDFilter(field_name="store_id")
    customer_id = django_filters.UUIDFilter(field_name="customer_id")
    sync_status = django_filters.ChoiceFilter(choices=Sale.SYNC_STATUS_CHOICES)
    payment_method = django_filters.ChoiceFilter(choices=Sale.PAYMENT_METHOD_CHOICES)
    payment_channel = django_filters.CharFilter(field_name="payment_channel")
    date_from = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    date_to = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    q = django_filters.CharFilter(field_name="invoice_no", lookup_expr="icontains")

    class Meta:
        model = Sale
        fields = [
            "store_id",
            "customer_id",
            "sync_status",
            "payment_method",
            "payment_channel",
            "date_from",
            "date_to",
            "q",
        ]


class InvoicePaymentFilter(django_filters.FilterSet):
    customer_id = django_filters.UUIDFilter(field_name="customer_id")
    store_id = django_filters.UUIDFilter(field_name="store_id")
    document_type = django_filters.ChoiceFilter(choices=InvoicePayment.DOCUMENT_TYPE_CHOICES)
    document_number = django_filters.CharFilter(field_name="document_number")
    date_from = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    date_to = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")

    class Meta:
        model = InvoicePayment
        fields = [
            "customer_id",
            "store_id",
            "document_type",
            "document_number",
            "date_from",
            "date_to",
        ]
