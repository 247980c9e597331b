# sales/api/urls.py

"""
SALES API URLS (CANONICAL)

Rules:
- Explicit non-PK routes (like "checkout") MUST be registered BEFORE router URLs,
  otherwise the router will treat "checkout" as a <pk> and you'll get 405.

Provides:
    POST /api/sales/checkout/
    GET  /api/sales/terminal/<transaction_id>/status/
    GET  /api/sales/sync-status/?store_id=<uuid>&days=30
    POST /api/sales/invoice-payments/charge/

    GET  /api/sales/sales/
    GET  /api/sales/sales/<uuid>/
    POST /api/sales/sales/<uuid>/retry-sync/
    POST /api/sales/sales/<uuid>/void-sync/

    GET  /api/sales/invoice-payments/
    GET  /api/sales/invoice-payments/<uuid>/
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from sales.api.viewsets.invoice_payment import InvoicePaymentViewSet
from sales.api.viewsets.sale import SaleViewSet
from sales.views.invoice_payment import InvoicePaymentChargeView
from sales.views.sale import CheckoutSaleView, TerminalStatusView
from sales.views.sync import SyncStatusSummaryView

router = DefaultRouter()
router.register(r"sales", SaleViewSet, basename="sales")
router.register(r"invoice-payments", InvoicePaymentViewSet, basename="invoice-payments")

urlpatterns = [
    path("checkout/", CheckoutSaleView.as_view(), name="sales-checkout"),
    path(
        "terminal/<str:transaction_id>/status/",
        TerminalStatusView.as_view(),
        name="sales-terminal-status",
    ),
    path("sync-status/", SyncStatusSummaryView.as_view(), name="sales-sync-status"),
    path(
        "invoice-payments/charge/",
        InvoicePaymentChargeView.as_view(),
        name="invoice-payments-charge",
    ),

    path("", include(router.urls)),
]
