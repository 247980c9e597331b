# sales/services/invoice_payments.py

"""
OPEN DOCUMENT CHARGING

Charges a customer's stored payment profile once per open invoice or sales
order and records each approved charge as an InvoicePayment.

Rules:
- The profile is resolved and ownership-checked ONCE, before any money moves
  (same path as a stored-profile checkout). Failing that rejects the batch.
- Documents are independent: a bad entry, a decline or an unreachable
  gateway becomes an error entry and the next document is still charged.
- Card profiles pay the card fee on top of the document amount; the ledger is
  told only the document amount.
- Invoice payments are mirrored to the ledger as customer payments.
  Best-effort: a ledger failure is kept on the row (ledger_error).
- A charge that cannot be recorded locally is logged CRITICAL with its
  transaction id. Money was taken.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.db import DatabaseError
from django.utils import timezone

from integrations.exceptions import IntegrationError
from sales.models import InvoicePayment
from sales.services.exceptions import CheckoutValidationError, GatewayUnavailable
from sales.services.fee_calculator import FeePolicy, card_fee
from sales.services.ledger_sync import PAYMENT_MODES
from sales.services.money import ZERO, money, to_decimal
from sales.services.payment_dispatcher import PaymentDispatcher
from sales.services.payment_methods import StoredProfile

logger = logging.getLogger(__name__)

# Gateways cap invoice numbers at 20 characters.
MAX_INVOICE_NUMBER = 20

DOCUMENT_TYPES = (InvoicePayment.DOCUMENT_INVOICE, InvoicePayment.DOCUMENT_SALES_ORDER)


@dataclass(frozen=True)
class OpenDocument:
    document_type: str
    document_id: str
    document_number: str
    amount: Decimal

    @property
    def is_invoice(self) -> bool:
        return self.document_type == InvoicePayment.DOCUMENT_INVOICE

    @property
    def invoice_number(self) -> str:
        number = self.document_number if self.is_invoice else f"SO-{self.document_number}"
        return number[:MAX_INVOICE_NUMBER]

    @property
    def description(self) -> str:
        label = "Invoice Payment" if self.is_invoice else "Sales Order Payment"
        return f"{label}: {self.document_number}"

    def ref(self) -> dict:
        return {
            "type": self.document_type,
            "id": self.document_id,
            "number": self.document_number,
        }


@dataclass
class DocumentChargeOutcome:
    results: list[dict] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    @property
    def summary(self) -> dict:
        return {
            "total": len(self.results) + len(self.errors),
            "successful": len(self.results),
            "failed": len(self.errors),
        }


def parse_document(raw) -> OpenDocument:
    if not isinstance(raw, dict):
        raise CheckoutValidationError("Each document must be an object")

    document_type = str(raw.get("type") or "").strip().lower()
    document_id = str(raw.get("id") or "").strip()
    number = str(raw.get("number") or "").strip()
    amount = to_decimal(raw.get("amount"))

    if not document_type or not document_id or not number or amount is None:
        raise CheckoutValidationError("Missing required fields: type, id, number, or amount")
    if document_type not in DOCUMENT_TYPES:
        raise CheckoutValidationError(f"Unknown document type: {document_type}")

    amount = money(amount)
    if amount <= ZERO:
        raise CheckoutValidationError("Amount must be greater than 0")

    return OpenDocument(
        document_type=document_type,
        document_id=document_id,
        document_number=number,
        amount=amount,
    )


def _raw_ref(raw) -> dict:
    if not isinstance(raw, dict):
        return {}
    return {"type": raw.get("type"), "id": raw.get("id"), "number": raw.get("number")}


def build_payment_payload(doc: OpenDocument, row: InvoicePayment, *, customer, store=None) -> dict:
    payload = {
        "customer_id": customer.external_contact_id,
        "payment_mode": PAYMENT_MODES.get(row.payment_type, "creditcard"),
        "amount": str(doc.amount),
        "date": timezone.localdate().isoformat(),
        "invoices": [{"invoice_id": doc.document_id, "amount_applied": str(doc.amount)}],
        "reference_number": row.external_transaction_id,
        "description": doc.description,
    }
    location = (getattr(store, "code", "") or "").strip()
    if location:
        payload["location_id"] = location
    return payload


def _record_in_ledger(doc: OpenDocument, row: InvoicePayment, *, customer, store, ledger) -> None:
    if not doc.is_invoice or ledger is None:
        return

    if not customer.external_contact_id:
        error = "Customer has no ledger contact"
    else:
        try:
            payment_id = ledger.record_customer_payment(
                build_payment_payload(doc, row, customer=customer, store=store)
            )
        except Exception as exc:  # error boundary: the charge already went through
            error = str(exc) or exc.__class__.__name__
            logger.warning(
                "invoice_payments.ledger_failed",
                extra={"invoice_payment_id": str(row.pk), "document_number": doc.document_number, "error": error},
                exc_info=exc,
            )
        else:
            InvoicePayment.objects.filter(pk=row.pk).update(ledger_payment_id=payment_id, ledger_error=None)
            row.ledger_payment_id = payment_id
            row.ledger_error = None
            return

    InvoicePayment.objects.filter(pk=row.pk).update(ledger_error=error)
    row.ledger_error = error


def _charge_one(doc: OpenDocument, *, plan, gateway, customer, store, user, policy, ledger, outcome: DocumentChargeOutcome) -> None:
    fee = card_fee(doc.amount, ZERO, plan=plan, policy=policy)
    charged = money(doc.amount + fee)

    try:
        result = gateway.charge_stored_profile(
            charged,
            customer_profile_id=plan.customer_profile_id,
            payment_profile_id=plan.payment_profile_id,
            invoice_number=doc.invoice_number,
            description=doc.description,
        )
    except IntegrationError as exc:
        logger.warning(
            "invoice_payments.gateway_unavailable",
            extra={"document_number": doc.document_number, "error": str(exc)},
        )
        outcome.errors.append({"item": doc.ref(), "error": f"Payment gateway unavailable: {exc}"})
        return

    if not result.success:
        outcome.errors.append(
            {"item": doc.ref(), "error": result.error_message, "error_code": result.error_code}
        )
        return

    txn_id = result.external_transaction_id
    try:
        row = InvoicePayment.objects.create(
            customer=customer,
            store=store,
            user=user,
            document_type=doc.document_type,
            document_id=doc.document_id,
            document_number=doc.document_number,
            amount=doc.amount,
            card_fee_amount=fee,
            amount_charged=charged,
            payment_type=plan.payment_method,
            payment_profile_id=plan.payment_profile_id,
            external_transaction_id=txn_id,
        )
    except DatabaseError as exc:
        logger.critical(
            "invoice_payments.recording_failed_after_payment",
            extra={
                "external_transaction_id": txn_id,
                "document_number": doc.document_number,
                "amount_charged": str(charged),
                "error": str(exc),
            },
            exc_info=exc,
        )
        outcome.errors.append(
            {
                "item": doc.ref(),
                "error": "Payment was taken but could not be recorded. Contact support.",
                "transaction_id": txn_id,
            }
        )
        return

    _record_in_ledger(doc, row, customer=customer, store=store, ledger=ledger)

    logger.info(
        "invoice_payments.charged",
        extra={
            "invoice_payment_id": str(row.pk),
            "document_number": doc.document_number,
            "external_transaction_id": txn_id,
            "amount_charged": str(charged),
        },
    )
    outcome.results.append(
        {
            **doc.ref(),
            "invoice_payment_id": str(row.pk),
            "amount": str(doc.amount),
            "card_fee_amount": str(fee),
            "amount_charged": str(charged),
            "transaction_id": txn_id,
            "message": result.message,
            "ledger_payment_id": row.ledger_payment_id,
            "ledger_error": row.ledger_error,
        }
    )


def charge_open_documents(
    *,
    customer,
    payment_profile_id: str,
    documents,
    store=None,
    user=None,
    gateway=None,
    ledger=None,
    policy: FeePolicy | None = None,
) -> DocumentChargeOutcome:
    """
    Charge each open document against one stored payment profile.

    Raises CheckoutValidationError when the batch cannot start (no customer,
    no documents, profile not owned by the customer) and GatewayUnavailable
    when the profile cannot be resolved. Per-document problems land in
    outcome.errors.
    """
    if customer is None:
        raise CheckoutValidationError("A customer is required to charge open documents")
    if not documents:
        raise CheckoutValidationError("At least one invoice or sales order must be provided")
    if not (payment_profile_id or "").strip():
        raise CheckoutValidationError("Payment profile ID is required")
    if gateway is None:
        raise GatewayUnavailable("No payment gateway is configured")

    plan = PaymentDispatcher(gateway=gateway).prepare(
        StoredProfile(payment_profile_id=payment_profile_id.strip()),
        customer=customer,
        store=store,
    )
    policy = policy or FeePolicy.from_settings()

    outcome = DocumentChargeOutcome()
    for raw in documents:
        try:
            doc = parse_document(raw)
        except CheckoutValidationError as exc:
            outcome.errors.append({"item": _raw_ref(raw), "error": str(exc)})
            continue

        _charge_one(
            doc,
            plan=plan,
            gateway=gateway,
            customer=customer,
            store=store,
            user=user,
            policy=policy,
            ledger=ledger,
            outcome=outcome,
        )

    logger.info(
        "invoice_payments.batch_done",
        extra={"customer_id": str(customer.pk), **outcome.summary},
    )
    return outcome
