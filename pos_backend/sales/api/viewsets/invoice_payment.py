# sales/api/viewsets/invoice_payment.py

"""
INVOICE PAYMENT HISTORY (READ-ONLY)

    GET /api/sales/invoice-payments/?customer_id=<uuid>&document_type=invoice
    GET /api/sales/invoice-payments/<uuid>/
"""

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from sales.filters import InvoicePaymentFilter
from sales.models import InvoicePayment
from sales.serializers import InvoicePaymentSerializer


class InvoicePaymentViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = InvoicePaymentSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_class = InvoicePaymentFilter

    def get_queryset(self):
        return InvoicePayment.objects.select_related("customer", "store").order_by("-created_at")
