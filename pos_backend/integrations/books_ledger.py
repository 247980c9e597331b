# integrations/books_ledger.py
"""
Books ledger client (Zoho Books v3 style REST API).

- Auth: "Authorization: Zoho-oauthtoken <token>"
- Every request carries ?organization_id=
- Success bodies carry {"code": 0, ...}; anything else is a rejection
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from django.conf import settings

from integrations.contracts import ExternalLedger, LedgerContact
from integrations.exceptions import (
    IntegrationError,
    IntegrationNotConfigured,
    LedgerDocumentAlreadyVoid,
    LedgerError,
    UpstreamHTTPError,
)
from integrations.http import request_json

logger = logging.getLogger(__name__)

RATE_TOLERANCE = Decimal("0.0001")


def _is_already_void(message: str) -> bool:
    m = (message or "").lower()
    return "already" in m and "void" in m


class BooksLedgerClient(ExternalLedger):
    def __init__(self, *, base_url: str, access_token: str, organization_id: str, timeout: int = 25):
        self.base_url = (base_url or "").strip().rstrip("/")
        self.access_token = (access_token or "").strip()
        self.organization_id = (organization_id or "").strip()
        self.timeout = int(timeout or 25)

    @classmethod
    def from_settings(cls):
        cfg = (getattr(settings, "LEDGER", {}) or {}).get("BOOKS") or {}
        return cls(
            base_url=cfg.get("BASE_URL") or "",
            access_token=cfg.get("ACCESS_TOKEN") or "",
            organization_id=cfg.get("ORGANIZATION_ID") or "",
            timeout=cfg.get("TIMEOUT") or 25,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.access_token and self.organization_id)

    def _request(self, method: str, path: str, *, body: dict | None = None) -> dict[str, Any]:
        if not self.is_configured:
            raise IntegrationNotConfigured(
                "Books ledger is not configured. "
                "Expected settings.LEDGER['BOOKS'] BASE_URL / ACCESS_TOKEN / ORGANIZATION_ID."
            )

        try:
            parsed = request_json(
                method,
                f"{self.base_url}{path}",
                body=body,
                params={"organization_id": self.organization_id},
                headers={"Authorization": f"Zoho-oauthtoken {self.access_token}"},
                timeout=self.timeout,
                label="Books",
            )
        except UpstreamHTTPError as exc:
            message = str(exc.payload.get("message") or exc)
            if _is_already_void(message):
                raise LedgerDocumentAlreadyVoid(message) from exc
            raise LedgerError(message) from exc
        except IntegrationError as exc:
            raise LedgerError(str(exc)) from exc

        if parsed.get("code") not in (0, "0"):
            message = str(parsed.get("message") or "Books rejected request")
            if _is_already_void(message):
                raise LedgerDocumentAlreadyVoid(message)
            raise LedgerError(message)

        return parsed

    def create_receipt(self, payload: dict[str, Any]) -> str:
        parsed = self._request("POST", "/salesreceipts", body=payload)
        receipt = parsed.get("salesreceipt") or parsed.get("sales_receipt") or {}
        receipt_id = str(receipt.get("salesreceipt_id") or parsed.get("salesreceipt_id") or "")
        if not receipt_id:
            raise LedgerError("Books accepted the receipt but returned no salesreceipt_id")
        return receipt_id

    def void_receipt(self, receipt_id: str) -> None:
        if not receipt_id:
            raise LedgerError("Sales receipt id is required")
        self._request("POST", f"/salesreceipts/{receipt_id}/status/void")

    def lookup_tax_rule_id(self, percent: Decimal) -> str | None:
        try:
            pct = Decimal(str(percent))
        except (InvalidOperation, ValueError, TypeError):
            return None
        if not pct.is_finite() or pct <= 0:
            return None

        parsed = self._request("GET", "/settings/taxes")
        matches = []
        for tax in parsed.get("taxes") or []:
            try:
                tp = Decimal(str(tax.get("tax_percentage")))
            except (InvalidOperation, ValueError, TypeError):
                continue
            if abs(tp - pct) < RATE_TOLERANCE:
                matches.append(tax)

        if not matches:
            return None

        active = [t for t in matches if t.get("status", "active") == "active"]
        chosen = (active or matches)[0]
        return str(chosen.get("tax_id") or "") or None

    def lookup_contact(self, contact_id: str) -> LedgerContact | None:
        if not contact_id:
            return None
        parsed = self._request("GET", f"/contacts/{contact_id}")
        contact = parsed.get("contact") or {}
        if not contact:
            return None
        return LedgerContact(
            contact_id=str(contact.get("contact_id") or contact_id),
            contact_type=str(contact.get("contact_type") or "customer").lower(),
            place_of_contact=str(contact.get("place_of_contact") or ""),
        )

    def record_customer_payment(self, payload: dict[str, Any]) -> str:
        parsed = self._request("POST", "/customerpayments", body=payload)
        payment = parsed.get("payment") or parsed.get("customer_payment") or {}
        payment_id = str(payment.get("payment_id") or "")
        if not payment_id:
            raise LedgerError("Books accepted the payment but returned no payment_id")
        return payment_id
