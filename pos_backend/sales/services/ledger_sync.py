# sales/services/ledger_sync.py

"""
LEDGER SYNC RECONCILER

Mirrors recorded sales into the books ledger as sales receipts.

Rules:
- Never blocks or reverses the payment: a failed push is recorded on the Sale
  (sync_status=failed, sync_error), the checkout still succeeds.
- Every state change is a conditional UPDATE on the current sync_status, so
  two operators retrying the same sale cannot both push it.
- A sale already synced is never pushed again.
- A void the ledger reports as already done fails closed (state untouched).

See sales.services.sale_lifecycle for the transition table.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, F, Q
from django.utils import timezone

from customers.models import Customer
from integrations.exceptions import IntegrationError, LedgerDocumentAlreadyVoid
from sales.models import Sale
from sales.services.exceptions import (
    LedgerSyncFailure,
    LedgerVoidRejected,
    SyncNotAllowed,
)
from sales.services.money import ZERO
from sales.services.sale_lifecycle import RETRYABLE_STATES, validate_transition
from sales.services.tax_resolver import lookup_tax_rule_id

logger = logging.getLogger(__name__)

PAYMENT_MODES = {
    Sale.PAYMENT_CASH: "cash",
    Sale.PAYMENT_ZELLE: "banktransfer",
    Sale.PAYMENT_ACH: "banktransfer",
    Sale.PAYMENT_CARD: "creditcard",
}

CARD_FEE_DESCRIPTION = "Credit Card Processing Fee"


def is_eligible(customer) -> bool:
    return customer is not None and customer.is_ledger_eligible


def initial_sync_status(customer) -> str:
    return Sale.SYNC_PENDING if is_eligible(customer) else Sale.SYNC_NOT_APPLICABLE


def _refresh_contact(customer: Customer, ledger) -> str:
    """
    Re-read the ledger contact: keep contact_type current and return the
    place of contact (drives the ledger's own tax jurisdiction). Best-effort.
    """
    try:
        contact = ledger.lookup_contact(customer.external_contact_id)
    except IntegrationError as exc:
        logger.info(
            "ledger_sync.contact_lookup_failed",
            extra={"customer_id": str(customer.pk), "error": str(exc)},
        )
        return ""

    if contact is None:
        return ""

    if contact.contact_type and contact.contact_type != customer.contact_type:
        Customer.objects.filter(pk=customer.pk).update(contact_type=contact.contact_type)
        customer.contact_type = contact.contact_type

    return contact.place_of_contact


def _fallback_tax_rule_id(sale: Sale, ledger) -> str | None:
    store_rule = (getattr(sale.store, "tax_rule_id", None) or "").strip()
    if store_rule:
        return store_rule
    return lookup_tax_rule_id(ledger, Decimal(sale.tax_percentage or 0))


def build_receipt_payload(sale: Sale, items, *, place_of_contact: str = "", fallback_tax_rule_id: str | None = None) -> dict:
    tax_percentage = Decimal(sale.tax_percentage or 0)

    line_items = []
    for item in items:
        taxable = item.line_tax_amount > ZERO
        line = {
            "description": item.item_name,
            "rate": str(item.unit_price),
            "quantity": str(item.quantity),
            "is_taxable": taxable,
            "tax_percentage": str(tax_percentage) if taxable else "0",
        }
        if item.external_item_id:
            line["item_id"] = item.external_item_id
        else:
            line["name"] = item.item_name

        rule_id = item.external_tax_rule_id or fallback_tax_rule_id
        if taxable and rule_id:
            line["tax_id"] = rule_id
        line_items.append(line)

    payload = {
        "customer_id": sale.customer.external_contact_id,
        "salesreceipt_number": f"POS-{sale.invoice_no}",
        "date": timezone.localtime(sale.created_at).date().isoformat(),
        "payment_mode": PAYMENT_MODES.get(sale.payment_method, "cash"),
        "reference_number": sale.external_transaction_id,
        "line_items": line_items,
        "notes": sale.notes or f"Sale from POS - Location: {sale.location_code or sale.store_id}",
    }
    if sale.location_code:
        payload["location_id"] = sale.location_code
    if place_of_contact:
        payload["place_of_contact"] = place_of_contact
    if sale.card_fee_amount > ZERO:
        payload["adjustment"] = str(sale.card_fee_amount)
        payload["adjustment_description"] = CARD_FEE_DESCRIPTION
    return payload


def push_sale(sale: Sale, *, ledger) -> str:
    """Send one sale to the ledger. Returns the ledger receipt id."""
    customer = sale.customer
    place_of_contact = _refresh_contact(customer, ledger)
    if not customer.is_ledger_eligible:
        raise SyncNotAllowed(f"Ledger contact is a {customer.contact_type}, not a customer")

    items = list(sale.items.all())
    fallback_rule_id = None
    if any(i.line_tax_amount > ZERO and not i.external_tax_rule_id for i in items):
        fallback_rule_id = _fallback_tax_rule_id(sale, ledger)

    payload = build_receipt_payload(
        sale,
        items,
        place_of_contact=place_of_contact,
        fallback_tax_rule_id=fallback_rule_id,
    )
    try:
        return ledger.create_receipt(payload)
    except IntegrationError as exc:
        raise LedgerSyncFailure(str(exc)) from exc


def _finish(sale: Sale, *, status: str, receipt_id: str | None = None, error: str | None = None) -> bool:
    updated = Sale.objects.filter(pk=sale.pk, sync_status=Sale.SYNC_PENDING).update(
        sync_status=status,
        ledger_receipt_id=receipt_id,
        sync_error=error,
        sync_attempts=F("sync_attempts") + 1,
        last_synced_at=timezone.now(),
    )
    return bool(updated)


def _attempt(sale: Sale, *, ledger) -> None:
    if ledger is None:
        _finish(sale, status=Sale.SYNC_FAILED, error="Ledger sync is disabled")
        return

    try:
        receipt_id = push_sale(sale, ledger=ledger)
    except SyncNotAllowed as exc:
        _finish(sale, status=Sale.SYNC_NOT_APPLICABLE, error=str(exc))
        return
    except LedgerSyncFailure as exc:
        logger.warning(
            "ledger_sync.failed",
            extra={"sale_id": str(sale.pk), "invoice_no": sale.invoice_no, "error": str(exc)},
        )
        _finish(sale, status=Sale.SYNC_FAILED, error=str(exc))
        return
    except Exception as exc:  # error boundary: the sale is already recorded
        logger.warning(
            "ledger_sync.failed_unexpectedly",
            extra={"sale_id": str(sale.pk), "invoice_no": sale.invoice_no, "error": str(exc)},
            exc_info=exc,
        )
        _finish(sale, status=Sale.SYNC_FAILED, error=str(exc) or exc.__class__.__name__)
        return

    _finish(sale, status=Sale.SYNC_SYNCED, receipt_id=receipt_id)
    logger.info(
        "ledger_sync.synced",
        extra={"sale_id": str(sale.pk), "invoice_no": sale.invoice_no, "ledger_receipt_id": receipt_id},
    )


def sync_new_sale(sale: Sale, *, ledger) -> Sale:
    """Synchronous first attempt right after the sale is recorded."""
    if sale.sync_status == Sale.SYNC_PENDING:
        _attempt(sale, ledger=ledger)
        sale.refresh_from_db()
    return sale


def _current(sale: Sale) -> Sale:
    return Sale.objects.select_related("customer", "store").get(pk=sale.pk)


def stale_pending_after() -> timedelta:
    minutes = (getattr(settings, "POS", {}) or {}).get("SYNC_PENDING_STALE_MINUTES", 15)
    return timedelta(minutes=int(minutes))


def is_stale_pending(sale: Sale) -> bool:
    """A pending sale whose last attempt (or creation) is older than the stale window."""
    if sale.sync_status != Sale.SYNC_PENDING:
        return False
    started = sale.last_synced_at or sale.created_at
    return started is not None and started < timezone.now() - stale_pending_after()


def retry_sync(sale: Sale, *, ledger) -> Sale:
    """
    Operator retry for failed / not-applicable sales, and for pending sales
    whose attempt was interrupted (older than POS["SYNC_PENDING_STALE_MINUTES"]).

    Raises AlreadySynced for synced sales (no ledger call) and SyncNotAllowed
    when the customer is still ineligible or another retry won the claim.
    A retry that fails again returns the sale with sync_status=failed.
    """
    current = _current(sale)
    stale = is_stale_pending(current)
    if not stale:
        validate_transition(sale=current, target_status=Sale.SYNC_PENDING)

    if not is_eligible(current.customer):
        raise SyncNotAllowed("Sale has no customer with a ledger contact to sync against")
    if ledger is None:
        raise SyncNotAllowed("Ledger sync is disabled")

    if stale:
        # Restamping last_synced_at makes the claim visible to a concurrent retry.
        claimed = Sale.objects.filter(
            pk=current.pk,
            sync_status=Sale.SYNC_PENDING,
            last_synced_at=current.last_synced_at,
        ).update(sync_error=None, last_synced_at=timezone.now())
    else:
        claimed = Sale.objects.filter(pk=current.pk, sync_status__in=RETRYABLE_STATES).update(
            sync_status=Sale.SYNC_PENDING,
            sync_error=None,
        )
    if not claimed:
        raise SyncNotAllowed(f"Sale {current.invoice_no} is already being synced")

    current.sync_status = Sale.SYNC_PENDING
    _attempt(current, ledger=ledger)
    current.refresh_from_db()
    return current


def void_sync(sale: Sale, *, ledger) -> Sale:
    """Void the ledger receipt and mark the sale cancelled."""
    current = _current(sale)
    if current.sync_status == Sale.SYNC_CANCELLED:
        raise SyncNotAllowed(f"Sale {current.invoice_no} is already cancelled")
    validate_transition(sale=current, target_status=Sale.SYNC_CANCELLED)

    if ledger is None:
        raise SyncNotAllowed("Ledger sync is disabled")

    try:
        ledger.void_receipt(current.ledger_receipt_id)
    except LedgerDocumentAlreadyVoid as exc:
        logger.warning(
            "ledger_sync.void_rejected",
            extra={"sale_id": str(current.pk), "ledger_receipt_id": current.ledger_receipt_id},
        )
        raise LedgerVoidRejected(f"Ledger reports receipt {current.ledger_receipt_id} is already void") from exc
    except IntegrationError as exc:
        raise LedgerSyncFailure(str(exc)) from exc

    updated = Sale.objects.filter(pk=current.pk, sync_status=Sale.SYNC_SYNCED).update(
        sync_status=Sale.SYNC_CANCELLED,
        cancelled_at=timezone.now(),
    )
    if not updated:
        raise SyncNotAllowed(f"Sale {current.invoice_no} changed state during void")

    logger.info(
        "ledger_sync.voided",
        extra={"sale_id": str(current.pk), "ledger_receipt_id": current.ledger_receipt_id},
    )
    current.refresh_from_db()
    return current


def sync_status_summary(*, store=None, days: int = 30) -> dict:
    qs = Sale.objects.filter(created_at__gte=timezone.now() - timedelta(days=days))
    if store is not None:
        qs = qs.filter(store=store)

    counts = qs.aggregate(
        total=Count("id"),
        synced=Count("id", filter=Q(sync_status=Sale.SYNC_SYNCED)),
        failed=Count("id", filter=Q(sync_status=Sale.SYNC_FAILED)),
        pending=Count("id", filter=Q(sync_status=Sale.SYNC_PENDING)),
        cancelled=Count("id", filter=Q(sync_status=Sale.SYNC_CANCELLED)),
        not_applicable=Count("id", filter=Q(sync_status=Sale.SYNC_NOT_APPLICABLE)),
        no_customer=Count("id", filter=Q(customer__isnull=True)),
        no_contact_id=Count(
            "id",
            filter=Q(customer__isnull=False) & Q(customer__external_contact_id=""),
        ),
    )
    counts["days"] = days
    return counts
