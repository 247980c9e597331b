from types import SimpleNamespace

from django.test import SimpleTestCase

from sales.models import Sale
from sales.services.exceptions import AlreadySynced, SyncNotAllowed
from sales.services.sale_lifecycle import can_transition, validate_transition


class SyncLifecycleTests(SimpleTestCase):
    """
    Ledger sync state machine.

    GUARANTEES:
    - cancelled is terminal
    - synced can only move to cancelled
    - retry of a synced sale is reported as AlreadySynced
    """

    def _sale(self, status):
        return SimpleNamespace(sync_status=status, invoice_no="INV-1")

    def test_allowed_transitions(self):
        self.assertTrue(can_transition(from_status=Sale.SYNC_NOT_APPLICABLE, to_status=Sale.SYNC_PENDING))
        self.assertTrue(can_transition(from_status=Sale.SYNC_PENDING, to_status=Sale.SYNC_SYNCED))
        self.assertTrue(can_transition(from_status=Sale.SYNC_PENDING, to_status=Sale.SYNC_FAILED))
        self.assertTrue(can_transition(from_status=Sale.SYNC_FAILED, to_status=Sale.SYNC_PENDING))
        self.assertTrue(can_transition(from_status=Sale.SYNC_SYNCED, to_status=Sale.SYNC_CANCELLED))

    def test_cancelled_is_terminal(self):
        for target in (Sale.SYNC_PENDING, Sale.SYNC_SYNCED, Sale.SYNC_FAILED, Sale.SYNC_CANCELLED):
            self.assertFalse(can_transition(from_status=Sale.SYNC_CANCELLED, to_status=target))

    def test_void_requires_synced(self):
        for status in (Sale.SYNC_FAILED, Sale.SYNC_PENDING, Sale.SYNC_NOT_APPLICABLE):
            with self.assertRaises(SyncNotAllowed):
                validate_transition(sale=self._sale(status), target_status=Sale.SYNC_CANCELLED)

    def test_retry_of_synced_sale_is_already_synced(self):
        with self.assertRaises(AlreadySynced):
            validate_transition(sale=self._sale(Sale.SYNC_SYNCED), target_status=Sale.SYNC_PENDING)

    def test_retry_of_cancelled_sale_not_allowed(self):
        with self.assertRaises(SyncNotAllowed) as ctx:
            validate_transition(sale=self._sale(Sale.SYNC_CANCELLED), target_status=Sale.SYNC_PENDING)
        self.assertNotIsInstance(ctx.exception, AlreadySynced)
