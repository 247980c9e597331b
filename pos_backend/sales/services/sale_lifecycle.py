"""
SALE SYNC LIFECYCLE RULES

This module defines the ONLY allowed ledger sync transitions
for Sale entities.

DESIGN PRINCIPLES:
- No database writes
- No ledger calls
- Single source of truth for the state machine

    not_applicable --retry (customer now eligible)--> pending
    pending        --push ok--> synced
    pending        --push failed--> failed
    pending        --ledger contact is not a customer--> not_applicable
    failed         --retry--> pending
    pending        --retry (stale, see ledger_sync.is_stale_pending)--> pending
    synced         --void--> cancelled
"""

from sales.models import Sale
from sales.services.exceptions import AlreadySynced, SyncNotAllowed

TERMINAL_STATES = {
    Sale.SYNC_CANCELLED,
}

ALLOWED_TRANSITIONS = {
    Sale.SYNC_NOT_APPLICABLE: {Sale.SYNC_PENDING},
    Sale.SYNC_PENDING: {Sale.SYNC_SYNCED, Sale.SYNC_FAILED, Sale.SYNC_NOT_APPLICABLE},
    Sale.SYNC_FAILED: {Sale.SYNC_PENDING},
    Sale.SYNC_SYNCED: {Sale.SYNC_CANCELLED},
}

RETRYABLE_STATES = {
    Sale.SYNC_FAILED,
    Sale.SYNC_NOT_APPLICABLE,
}


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, sale: Sale, target_status: str):
    if sale.sync_status == Sale.SYNC_SYNCED and target_status == Sale.SYNC_PENDING:
        raise AlreadySynced(f"Sale {sale.invoice_no} is already synced to the ledger")

    if not can_transition(from_status=sale.sync_status, to_status=target_status):
        raise SyncNotAllowed(
            f"Sale {sale.invoice_no} cannot move from "
            f"'{sale.sync_status}' to '{target_status}'"
        )
