# sales/views/invoice_payment.py

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from customers.models import Customer
from sales.serializers import InvoicePaymentChargeInputSerializer
from sales.services.exceptions import CheckoutValidationError, GatewayUnavailable
from sales.services.invoice_payments import charge_open_documents
from sales.services.registry import get_integrations
from store.models import Store


class InvoicePaymentChargeView(APIView):
    """
    Charge a customer's stored payment profile for open invoices / sales orders.

    200 with per-document results and errors, even when every document failed;
    400 / 503 only when the batch could not start.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=InvoicePaymentChargeInputSerializer,
        responses={
            200: OpenApiResponse(description="{customer, results, errors, summary{total, successful, failed}}"),
            400: OpenApiResponse(description="Unknown customer/store, or the payment profile is not the customer's"),
            503: OpenApiResponse(description="Payment gateway unavailable"),
        },
    )
    def post(self, request):
        serializer = InvoicePaymentChargeInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        customer = Customer.objects.filter(id=data["customer_id"]).first()
        if customer is None:
            return Response({"detail": "Invalid customer_id."}, status=status.HTTP_400_BAD_REQUEST)

        store = None
        if data.get("store_id"):
            store = Store.objects.filter(id=data["store_id"], is_active=True).first()
            if store is None:
                return Response(
                    {"detail": "Invalid store_id or store is inactive."},
                    status=status.HTTP_400_BAD_REQUEST,
                )

        integrations = get_integrations()
        try:
            outcome = charge_open_documents(
                customer=customer,
                payment_profile_id=data["payment_profile_id"],
                documents=data["documents"],
                store=store,
                user=request.user,
                gateway=integrations.gateway,
                ledger=integrations.ledger,
            )
        except CheckoutValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except GatewayUnavailable as exc:
            return Response(
                {"detail": f"Payment gateway unavailable: {exc}"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        return Response(
            {
                "customer": {"id": str(customer.id), "name": customer.name},
                "results": outcome.results,
                "errors": outcome.errors,
                "summary": outcome.summary,
            },
            status=status.HTTP_200_OK,
        )
