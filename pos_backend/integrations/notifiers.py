# integrations/notifiers.py
"""
Receipt delivery.

Both notifiers take the immutable snapshot built at checkout time; neither
touches the database.
"""

from __future__ import annotations

import logging
from smtplib import SMTPException
from typing import Any

from django.conf import settings
from django.core.mail import send_mail

from integrations.contracts import ReceiptNotifier
from integrations.exceptions import NotifierError

logger = logging.getLogger(__name__)


def render_receipt_text(snapshot: dict[str, Any]) -> str:
    lines = [
        f"Receipt {snapshot.get('invoice_no', '')}",
        f"Store: {snapshot.get('store_name', '')}",
        "",
    ]
    for item in snapshot.get("items") or []:
        lines.append(
            f"{item['item_name']}  x{item['quantity']}  @ {item['unit_price']}  = {item['line_total']}"
        )
    lines += [
        "",
        f"Subtotal: {snapshot.get('subtotal_amount')}",
        f"Tax ({snapshot.get('tax_percentage')}%): {snapshot.get('tax_amount')}",
    ]
    if snapshot.get("card_fee_amount") not in (None, "0.00"):
        lines.append(f"Card fee: {snapshot.get('card_fee_amount')}")
    lines += [
        f"Total: {snapshot.get('total_amount')}",
        f"Paid by: {snapshot.get('payment_method')} ({snapshot.get('external_transaction_id')})",
    ]
    return "\n".join(lines)


class EmailReceiptNotifier(ReceiptNotifier):
    def __init__(self, *, from_email: str = ""):
        self.from_email = from_email

    @classmethod
    def from_settings(cls):
        cfg = getattr(settings, "RECEIPTS", {}) or {}
        return cls(from_email=cfg.get("FROM_EMAIL") or settings.DEFAULT_FROM_EMAIL)

    def send(self, snapshot: dict[str, Any]) -> None:
        to = (snapshot.get("customer_email") or "").strip()
        if not to:
            logger.info(
                "receipt.no_recipient",
                extra={"invoice_no": snapshot.get("invoice_no")},
            )
            return

        try:
            send_mail(
                subject=f"Your receipt {snapshot.get('invoice_no', '')}",
                message=render_receipt_text(snapshot),
                from_email=self.from_email or None,
                recipient_list=[to],
                fail_silently=False,
            )
        except (SMTPException, OSError) as exc:
            raise NotifierError(f"Receipt email failed: {exc}") from exc


class LogReceiptNotifier(ReceiptNotifier):
    """Writes the receipt to the log. Useful for registers without email."""

    @classmethod
    def from_settings(cls):
        return cls()

    def send(self, snapshot: dict[str, Any]) -> None:
        logger.info(
            "receipt.rendered\n%s",
            render_receipt_text(snapshot),
            extra={"invoice_no": snapshot.get("invoice_no")},
        )
