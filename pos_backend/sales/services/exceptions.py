# sales/services/exceptions.py

"""
CHECKOUT + LEDGER SYNC ERRORS

Policy:
- Anything raised BEFORE the payment succeeds is fatal and leaves no trace.
- Anything that goes wrong AFTER the payment succeeds is recorded and degraded,
  except SaleRecordingError, which is loud because money was taken.
"""

from __future__ import annotations


class CheckoutError(Exception):
    """Base exception for checkout failures."""


class CheckoutValidationError(CheckoutError):
    """Bad cart, missing payment data, unknown store/customer. No side effects."""


class PaymentDeclined(CheckoutError):
    """The chosen payment method failed. Nothing was persisted."""

    def __init__(self, result):
        super().__init__(result.error_message or "Payment declined")
        self.result = result


class GatewayUnavailable(CheckoutError):
    """The gateway or terminal could not be reached (or is not configured)."""


class SaleRecordingError(CheckoutError):
    """The payment succeeded but the Sale could not be written."""

    def __init__(self, message: str, *, external_transaction_id: str):
        super().__init__(message)
        self.external_transaction_id = external_transaction_id


class LedgerSyncError(Exception):
    """Base exception for ledger sync failures."""


class LedgerSyncFailure(LedgerSyncError):
    """The ledger push failed. Recorded on the Sale; never raised to checkout callers."""


class SyncNotAllowed(LedgerSyncError):
    """The sale's current sync state does not permit the requested transition."""


class AlreadySynced(SyncNotAllowed):
    """Retry requested on a sale whose ledger receipt already exists."""


class LedgerVoidRejected(LedgerSyncError):
    """The ledger refused the void (including: it says the receipt is already void)."""


class NotificationFailure(Exception):
    """Receipt delivery failed. Logged only."""


class DuplicateTransaction(CheckoutError):
    """A Sale already exists for this gateway transaction id."""

    def __init__(self, sale):
        super().__init__(f"Transaction {sale.external_transaction_id} is already recorded as {sale.invoice_no}")
        self.sale = sale
