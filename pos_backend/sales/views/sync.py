# sales/views/sync.py

import uuid

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from sales.serializers import SyncStatusSummarySerializer
from sales.services.ledger_sync import sync_status_summary
from store.models import Store


class SyncStatusSummaryView(APIView):
    """Ledger sync health for the last N days, optionally for one store."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        parameters=[
            OpenApiParameter("store_id", str, required=False),
            OpenApiParameter("days", int, required=False, description="Window size, default 30"),
        ],
        responses={200: SyncStatusSummarySerializer},
    )
    def get(self, request):
        store = None
        store_id = (request.query_params.get("store_id") or "").strip()
        if store_id:
            store = Store.objects.filter(id=store_id).first() if _is_uuid(store_id) else None
            if store is None:
                return Response({"detail": "Invalid store_id."}, status=status.HTTP_400_BAD_REQUEST)

        try:
            days = int(request.query_params.get("days") or 30)
        except ValueError:
            return Response({"detail": "days must be an integer."}, status=status.HTTP_400_BAD_REQUEST)
        if not 1 <= days <= 365:
            return Response({"detail": "days must be between 1 and 365."}, status=status.HTTP_400_BAD_REQUEST)

        summary = sync_status_summary(store=store, days=days)
        return Response(SyncStatusSummarySerializer(summary).data, status=status.HTTP_200_OK)


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True
