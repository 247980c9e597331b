# sales/services/receipt_dispatcher.py

"""
RECEIPT DISPATCH (FIRE-AND-FORGET)

The snapshot is built on the request thread (plain strings, no ORM objects),
then delivery runs on a shared background pool. The caller never waits and
never sees a delivery error.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor

from django.conf import settings

from sales.services.exceptions import NotificationFailure

logger = logging.getLogger(__name__)

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            workers = int((getattr(settings, "RECEIPTS", {}) or {}).get("MAX_WORKERS") or 2)
            _executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="receipts")
        return _executor


def build_snapshot(sale, items=None) -> dict:
    items = list(items if items is not None else sale.items.all())
    customer = sale.customer
    return {
        "sale_id": str(sale.pk),
        "invoice_no": sale.invoice_no,
        "created_at": sale.created_at.isoformat() if sale.created_at else "",
        "store_name": getattr(sale.store, "name", ""),
        "customer_name": customer.name if customer else "",
        "customer_email": customer.email if customer else "",
        "payment_method": sale.payment_method,
        "payment_channel": sale.payment_channel,
        "external_transaction_id": sale.external_transaction_id,
        "subtotal_amount": str(sale.subtotal_amount),
        "tax_percentage": str(sale.tax_percentage),
        "tax_amount": str(sale.tax_amount),
        "card_fee_amount": str(sale.card_fee_amount),
        "total_amount": str(sale.total_amount),
        "notes": sale.notes,
        "items": [
            {
                "item_name": i.item_name,
                "quantity": str(i.quantity),
                "unit_price": str(i.unit_price),
                "line_total": str(i.line_total),
            }
            for i in items
        ],
    }


def _deliver(notifier, snapshot: dict) -> None:
    try:
        notifier.send(snapshot)
    except Exception as exc:  # error boundary for the background task
        failure = NotificationFailure(str(exc))
        logger.warning(
            "receipt.delivery_failed",
            extra={"invoice_no": snapshot.get("invoice_no"), "error": str(failure)},
            exc_info=exc,
        )


def dispatch_receipt(sale, *, notifier, executor: Executor | None = None, items=None) -> Future | None:
    if notifier is None:
        return None

    snapshot = build_snapshot(sale, items)
    try:
        return (executor or get_executor()).submit(_deliver, notifier, snapshot)
    except RuntimeError as exc:
        # Pool already shut down (process exiting).
        logger.warning(
            "receipt.dispatch_skipped",
            extra={"invoice_no": sale.invoice_no, "error": str(exc)},
        )
        return None
