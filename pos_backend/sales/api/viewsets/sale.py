# sales/api/viewsets/sale.py

"""
======================================================
PATH: sales/api/viewsets/sale.py
======================================================
SALE VIEWSET (STAFF)

Purpose:
- Sales history: list + retrieve with filters (see sales.filters.SaleFilter).
- Ledger sync operations on one sale:
    POST /api/sales/sales/<id>/retry-sync/
    POST /api/sales/sales/<id>/void-sync/

Sync rules:
- Retry only from failed / not_applicable. Synced sales answer 409 and the
  ledger is never called.
- A retry that fails again answers 502 with the sale (sync_error filled).
- Void only from synced. A ledger that reports the receipt already void
  answers 409 and the sale is left untouched.
======================================================
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from sales.filters import SaleFilter
from sales.models import Sale
from sales.serializers import SaleSerializer
from sales.services import ledger_sync
from sales.services.exceptions import (
    AlreadySynced,
    LedgerSyncFailure,
    LedgerVoidRejected,
    SyncNotAllowed,
)
from sales.services.registry import get_integrations


class SaleViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = SaleSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_class = SaleFilter

    def get_queryset(self):
        return (
            Sale.objects.all()
            .select_related("store", "customer", "user")
            .prefetch_related("items__product")
            .order_by("-created_at")
        )

    # ======================================================
    # RETRY LEDGER SYNC
    # ======================================================

    @extend_schema(
        request=None,
        responses={
            200: SaleSerializer,
            409: OpenApiResponse(description="Sale is already synced, cancelled, or not eligible"),
            502: OpenApiResponse(description="Ledger rejected the receipt again"),
        },
    )
    @action(detail=True, methods=["post"], url_path="retry-sync")
    def retry_sync(self, request, pk=None):
        sale: Sale = self.get_object()

        try:
            sale = ledger_sync.retry_sync(sale, ledger=get_integrations().ledger)
        except AlreadySynced as exc:
            return Response(
                {"detail": str(exc), "code": "already_synced"},
                status=status.HTTP_409_CONFLICT,
            )
        except SyncNotAllowed as exc:
            return Response(
                {"detail": str(exc), "code": "sync_not_allowed"},
                status=status.HTTP_409_CONFLICT,
            )

        if sale.sync_status == Sale.SYNC_FAILED:
            return Response(
                {
                    "detail": f"Ledger sync failed: {sale.sync_error}",
                    "sale": SaleSerializer(sale).data,
                },
                status=status.HTTP_502_BAD_GATEWAY,
            )

        return Response(SaleSerializer(sale).data, status=status.HTTP_200_OK)

    # ======================================================
    # VOID LEDGER RECEIPT
    # ======================================================

    @extend_schema(
        request=None,
        responses={
            200: SaleSerializer,
            409: OpenApiResponse(description="Sale is not synced, or the ledger says it is already void"),
            502: OpenApiResponse(description="Ledger could not be reached"),
        },
    )
    @action(detail=True, methods=["post"], url_path="void-sync")
    def void_sync(self, request, pk=None):
        sale: Sale = self.get_object()

        try:
            sale = ledger_sync.void_sync(sale, ledger=get_integrations().ledger)
        except LedgerVoidRejected as exc:
            return Response(
                {"detail": str(exc), "code": "void_rejected"},
                status=status.HTTP_409_CONFLICT,
            )
        except SyncNotAllowed as exc:
            return Response(
                {"detail": str(exc), "code": "sync_not_allowed"},
                status=status.HTTP_409_CONFLICT,
            )
        except LedgerSyncFailure as exc:
            return Response(
                {"detail": f"Ledger void failed: {exc}"},
                status=status.HTTP_502_BAD_GATEWAY,
            )

        return Response(SaleSerializer(sale).data, status=status.HTTP_200_OK)
