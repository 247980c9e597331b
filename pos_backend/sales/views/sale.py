# sales/views/sale.py

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from customers.models import Customer
from integrations.exceptions import IntegrationError
from sales.models import Sale
from sales.serializers import (
    CheckoutInputSerializer,
    PaymentResultSerializer,
    PendingPaymentSerializer,
    SaleSerializer,
)
from sales.services.checkout_orchestrator import checkout_sale
from sales.services.exceptions import (
    CheckoutValidationError,
    GatewayUnavailable,
    PaymentDeclined,
    SaleRecordingError,
)
from sales.services.registry import get_integrations
from store.models import Store


def _declined_payload(exc: PaymentDeclined) -> dict:
    return {
        "detail": str(exc),
        "payment": PaymentResultSerializer.from_result(exc.result),
    }


class CheckoutSaleView(APIView):
    """
    POS CHECKOUT ENDPOINT (AUTHORITATIVE)

    GUARANTEES:
    - Totals, tax and card fee computed server-side
    - Payment first, then Sale + SaleItems written atomically
    - A declined payment leaves nothing behind
    - Ledger sync failure never fails the checkout (see sale.sync_status)
    - Cloud terminal: 202 until the buyer finishes; re-submit with
      payment.terminal.transaction_id to record the sale
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=CheckoutInputSerializer,
        responses={
            201: SaleSerializer,
            202: PendingPaymentSerializer,
            400: OpenApiResponse(description="Invalid cart, store, customer or payment data"),
            402: OpenApiResponse(description="Payment declined"),
            503: OpenApiResponse(description="Payment gateway unavailable"),
            500: OpenApiResponse(description="Payment taken but sale could not be recorded"),
        },
        description="Charge the payment and record an immutable sale for the given store",
    )
    def post(self, request):
        serializer = CheckoutInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            store = Store.objects.get(id=data["store_id"], is_active=True)
        except Store.DoesNotExist:
            return Response(
                {"detail": "Invalid store_id or store is inactive."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        customer = None
        if data.get("customer_id"):
            customer = Customer.objects.filter(id=data["customer_id"]).first()
            if customer is None:
                return Response(
                    {"detail": "Invalid customer_id."},
                    status=status.HTTP_400_BAD_REQUEST,
                )

        try:
            outcome = checkout_sale(
                user=request.user,
                store=store,
                lines=data["lines"],
                payment_method=dict(data["payment"]),
                customer=customer,
                tax_exempt=data["tax_exempt"],
                notes=data["notes"],
                save_payment_method=data["save_payment_method"],
            )

        except CheckoutValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        except PaymentDeclined as exc:
            return Response(_declined_payload(exc), status=status.HTTP_402_PAYMENT_REQUIRED)

        except GatewayUnavailable as exc:
            return Response(
                {"detail": f"Payment gateway unavailable: {exc}"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        except SaleRecordingError as exc:
            return Response(
                {
                    "detail": "Payment was taken but the sale could not be recorded. Contact support.",
                    "external_transaction_id": exc.external_transaction_id,
                },
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        if outcome.pending:
            return Response(
                {
                    "detail": "Waiting for the buyer to complete payment on the terminal.",
                    "transaction_id": outcome.payment.external_transaction_id,
                    "payment": PaymentResultSerializer.from_result(outcome.payment),
                },
                status=status.HTTP_202_ACCEPTED,
            )

        return Response(
            SaleSerializer(outcome.sale).data,
            status=status.HTTP_200_OK if outcome.already_recorded else status.HTTP_201_CREATED,
        )


class TerminalStatusView(APIView):
    """
    Polling helper for cloud terminal payments.

    Read-only: reports the gateway status and, when the transaction is
    already recorded, the sale id. Recording still goes through checkout.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        responses={200: PaymentResultSerializer},
        description="Check whether a cloud terminal payment has completed",
    )
    def get(self, request, transaction_id: str):
        sale = Sale.objects.filter(external_transaction_id=transaction_id).only("id", "invoice_no").first()
        if sale is not None:
            return Response(
                {
                    "transaction_id": transaction_id,
                    "status": "recorded",
                    "sale_id": str(sale.id),
                    "invoice_no": sale.invoice_no,
                },
                status=status.HTTP_200_OK,
            )

        terminal = get_integrations().terminal
        if terminal is None:
            return Response(
                {"detail": "No cloud terminal is configured."},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        try:
            result = terminal.check_status(transaction_id)
        except IntegrationError as exc:
            return Response(
                {"detail": f"Payment gateway unavailable: {exc}"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        if result.pending:
            state = "pending"
        elif result.success:
            state = "approved"
        else:
            state = "declined"

        return Response(
            {
                "transaction_id": transaction_id,
                "status": state,
                "payment": PaymentResultSerializer.from_result(result),
            },
            status=status.HTTP_200_OK,
        )
