from datetime import timedelta
from decimal import Decimal

from django.test import TestCase, override_settings
from django.utils import timezone

from customers.models import Customer
from integrations.contracts import LedgerContact
from integrations.exceptions import LedgerDocumentAlreadyVoid, LedgerError
from sales.models import Sale
from sales.services.exceptions import (
    AlreadySynced,
    LedgerSyncFailure,
    LedgerVoidRejected,
    SyncNotAllowed,
)
from sales.services.ledger_sync import (
    build_receipt_payload,
    retry_sync,
    sync_new_sale,
    sync_status_summary,
    void_sync,
)
from sales.tests.fakes import FakeLedger, make_customer, make_sale, make_store

D = Decimal


class RetrySyncTests(TestCase):
    """
    GUARANTEES:
    - synced sales are never pushed twice
    - a failed retry leaves the sale failed with the new error
    - a sale without a ledger-linked customer cannot be retried
    """

    def setUp(self):
        self.store = make_store()
        self.customer = make_customer()
        self.ledger = FakeLedger()

    def test_failed_sale_retried_to_synced(self):
        sale = make_sale(self.store, customer=self.customer, sync_error="boom", sync_attempts=1)

        sale = retry_sync(sale, ledger=self.ledger)

        self.assertEqual(sale.sync_status, Sale.SYNC_SYNCED)
        self.assertEqual(sale.ledger_receipt_id, "SR-1")
        self.assertIsNone(sale.sync_error)
        self.assertEqual(sale.sync_attempts, 2)
        self.assertIsNotNone(sale.last_synced_at)

    def test_retry_is_idempotent_once_synced(self):
        sale = make_sale(self.store, customer=self.customer)
        retry_sync(sale, ledger=self.ledger)

        with self.assertRaises(AlreadySynced):
            retry_sync(sale, ledger=self.ledger)

        self.assertEqual(len(self.ledger.receipts), 1)

    def test_retry_failure_stays_failed(self):
        self.ledger.create_error = LedgerError("Invalid tax")
        sale = make_sale(self.store, customer=self.customer)

        sale = retry_sync(sale, ledger=self.ledger)

        self.assertEqual(sale.sync_status, Sale.SYNC_FAILED)
        self.assertEqual(sale.sync_error, "Invalid tax")

    def test_retry_without_customer_rejected(self):
        sale = make_sale(self.store, customer=None, sync_status=Sale.SYNC_NOT_APPLICABLE)

        with self.assertRaises(SyncNotAllowed):
            retry_sync(sale, ledger=self.ledger)

        sale.refresh_from_db()
        self.assertEqual(sale.sync_status, Sale.SYNC_NOT_APPLICABLE)
        self.assertEqual(self.ledger.receipts, [])

    def test_not_applicable_retried_once_customer_linked(self):
        customer = make_customer(external_contact_id="")
        sale = make_sale(self.store, customer=customer, sync_status=Sale.SYNC_NOT_APPLICABLE)
        Customer.objects.filter(pk=customer.pk).update(external_contact_id="CONTACT-LATE")

        sale = retry_sync(sale, ledger=self.ledger)

        self.assertEqual(sale.sync_status, Sale.SYNC_SYNCED)
        self.assertEqual(self.ledger.receipts[0]["customer_id"], "CONTACT-LATE")

    def test_retry_with_ledger_disabled(self):
        sale = make_sale(self.store, customer=self.customer)

        with self.assertRaises(SyncNotAllowed):
            retry_sync(sale, ledger=None)

    def test_retry_of_pending_sale_rejected(self):
        sale = make_sale(self.store, customer=self.customer, sync_status=Sale.SYNC_PENDING)

        with self.assertRaises(SyncNotAllowed):
            retry_sync(sale, ledger=self.ledger)

    def test_interrupted_pending_sale_can_be_retried(self):
        sale = make_sale(self.store, customer=self.customer, sync_status=Sale.SYNC_PENDING)
        Sale.objects.filter(pk=sale.pk).update(created_at=timezone.now() - timedelta(hours=1))

        sale = retry_sync(sale, ledger=self.ledger)

        self.assertEqual(sale.sync_status, Sale.SYNC_SYNCED)
        self.assertEqual(len(self.ledger.receipts), 1)

    @override_settings(POS={"SYNC_PENDING_STALE_MINUTES": 120})
    def test_pending_within_stale_window_rejected(self):
        sale = make_sale(self.store, customer=self.customer, sync_status=Sale.SYNC_PENDING)
        Sale.objects.filter(pk=sale.pk).update(last_synced_at=timezone.now() - timedelta(hours=1))

        with self.assertRaises(SyncNotAllowed):
            retry_sync(sale, ledger=self.ledger)
        self.assertEqual(self.ledger.receipts, [])

    def test_unexpected_ledger_error_recorded_as_failed(self):
        self.ledger.create_error = RuntimeError("malformed books response")
        sale = make_sale(self.store, customer=self.customer)

        sale = retry_sync(sale, ledger=self.ledger)

        self.assertEqual(sale.sync_status, Sale.SYNC_FAILED)
        self.assertEqual(sale.sync_error, "malformed books response")

    def test_concurrent_claim_loses(self):
        sale = make_sale(self.store, customer=self.customer)
        stale = Sale.objects.get(pk=sale.pk)
        retry_sync(sale, ledger=self.ledger)

        # stale copy still says "failed"; the reloaded row does not
        with self.assertRaises(AlreadySynced):
            retry_sync(stale, ledger=self.ledger)
        self.assertEqual(len(self.ledger.receipts), 1)

    def test_vendor_contact_becomes_not_applicable(self):
        self.ledger.contacts[self.customer.external_contact_id] = LedgerContact(
            contact_id=self.customer.external_contact_id,
            contact_type="vendor",
        )
        sale = make_sale(self.store, customer=self.customer)

        sale = retry_sync(sale, ledger=self.ledger)

        self.assertEqual(sale.sync_status, Sale.SYNC_NOT_APPLICABLE)
        self.assertEqual(self.ledger.receipts, [])
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.contact_type, "vendor")


class SyncNewSaleTests(TestCase):
    def test_disabled_ledger_marks_failed(self):
        store = make_store()
        sale = make_sale(store, customer=make_customer(), sync_status=Sale.SYNC_PENDING)

        sale = sync_new_sale(sale, ledger=None)

        self.assertEqual(sale.sync_status, Sale.SYNC_FAILED)
        self.assertEqual(sale.sync_error, "Ledger sync is disabled")

    def test_unexpected_error_never_leaves_sale_pending(self):
        ledger = FakeLedger()
        ledger.create_error = RuntimeError("malformed books response")
        sale = make_sale(make_store(), customer=make_customer(), sync_status=Sale.SYNC_PENDING)

        with self.assertLogs("sales.services.ledger_sync", level="WARNING"):
            sale = sync_new_sale(sale, ledger=ledger)

        self.assertEqual(sale.sync_status, Sale.SYNC_FAILED)
        self.assertEqual(sale.sync_attempts, 1)

    def test_not_applicable_is_left_alone(self):
        ledger = FakeLedger()
        sale = make_sale(make_store(), sync_status=Sale.SYNC_NOT_APPLICABLE)

        sale = sync_new_sale(sale, ledger=ledger)

        self.assertEqual(sale.sync_status, Sale.SYNC_NOT_APPLICABLE)
        self.assertEqual(sale.sync_attempts, 0)


class VoidSyncTests(TestCase):
    def setUp(self):
        self.store = make_store()
        self.ledger = FakeLedger()
        self.sale = make_sale(
            self.store,
            customer=make_customer(),
            sync_status=Sale.SYNC_SYNCED,
            ledger_receipt_id="SR-77",
        )

    def test_void_cancels(self):
        sale = void_sync(self.sale, ledger=self.ledger)

        self.assertEqual(sale.sync_status, Sale.SYNC_CANCELLED)
        self.assertIsNotNone(sale.cancelled_at)
        self.assertEqual(self.ledger.voided, ["SR-77"])

    def test_void_of_cancelled_sale_rejected_without_ledger_call(self):
        void_sync(self.sale, ledger=self.ledger)

        with self.assertRaises(SyncNotAllowed):
            void_sync(self.sale, ledger=self.ledger)
        self.assertEqual(self.ledger.voided, ["SR-77"])

    def test_void_of_unsynced_sale_rejected(self):
        sale = make_sale(self.store, customer=make_customer())

        with self.assertRaises(SyncNotAllowed):
            void_sync(sale, ledger=self.ledger)
        self.assertEqual(self.ledger.voided, [])

    def test_ledger_already_void_fails_closed(self):
        self.ledger.void_error = LedgerDocumentAlreadyVoid("The sales receipt has already been voided.")

        with self.assertRaises(LedgerVoidRejected):
            void_sync(self.sale, ledger=self.ledger)

        self.sale.refresh_from_db()
        self.assertEqual(self.sale.sync_status, Sale.SYNC_SYNCED)
        self.assertIsNone(self.sale.cancelled_at)

    def test_ledger_unreachable(self):
        self.ledger.void_error = LedgerError("timeout")

        with self.assertRaises(LedgerSyncFailure):
            void_sync(self.sale, ledger=self.ledger)

        self.sale.refresh_from_db()
        self.assertEqual(self.sale.sync_status, Sale.SYNC_SYNCED)


class ReceiptPayloadTests(TestCase):
    def setUp(self):
        self.store = make_store(code="MIA-01", tax_rule_id=None)
        self.customer = make_customer()

    def test_payload_shape(self):
        sale = make_sale(self.store, customer=self.customer, notes="")

        payload = build_receipt_payload(sale, list(sale.items.all()), place_of_contact="FL", fallback_tax_rule_id="TR-9")

        self.assertEqual(payload["customer_id"], self.customer.external_contact_id)
        self.assertEqual(payload["salesreceipt_number"], f"POS-{sale.invoice_no}")
        self.assertEqual(payload["reference_number"], sale.external_transaction_id)
        self.assertEqual(payload["location_id"], "MIA-01")
        self.assertEqual(payload["place_of_contact"], "FL")
        self.assertEqual(payload["adjustment"], "3.25")
        self.assertEqual(payload["adjustment_description"], "Credit Card Processing Fee")
        [line] = payload["line_items"]
        self.assertTrue(line["is_taxable"])
        self.assertEqual(line["tax_id"], "TR-9")

    def test_missing_rule_id_backfilled_by_rate_lookup(self):
        ledger = FakeLedger()
        ledger.tax_rules[D("8.25")] = "TR-825"
        sale = make_sale(self.store, customer=self.customer)

        retry_sync(sale, ledger=ledger)

        self.assertEqual(ledger.receipts[0]["line_items"][0]["tax_id"], "TR-825")
        # backfill goes to the payload only; the snapshot is immutable
        self.assertIsNone(sale.items.get().external_tax_rule_id)

    def test_cash_sale_has_no_adjustment(self):
        sale = make_sale(
            self.store,
            customer=self.customer,
            card_fee_amount=D("0.00"),
            total_amount=D("108.25"),
            payment_method=Sale.PAYMENT_CASH,
            payment_channel="cash",
        )

        payload = build_receipt_payload(sale, list(sale.items.all()))

        self.assertNotIn("adjustment", payload)
        self.assertEqual(payload["payment_mode"], "cash")


class SyncStatusSummaryTests(TestCase):
    def test_counts(self):
        store = make_store()
        other = make_store()
        make_sale(store, customer=make_customer(), sync_status=Sale.SYNC_SYNCED)
        make_sale(store, customer=make_customer(), sync_status=Sale.SYNC_FAILED)
        make_sale(store, sync_status=Sale.SYNC_NOT_APPLICABLE)
        make_sale(store, customer=make_customer(external_contact_id=""), sync_status=Sale.SYNC_NOT_APPLICABLE)
        make_sale(other, sync_status=Sale.SYNC_NOT_APPLICABLE)

        summary = sync_status_summary(store=store)

        self.assertEqual(summary["total"], 4)
        self.assertEqual(summary["synced"], 1)
        self.assertEqual(summary["failed"], 1)
        self.assertEqual(summary["not_applicable"], 2)
        self.assertEqual(summary["no_customer"], 1)
        self.assertEqual(summary["no_contact_id"], 1)
        self.assertEqual(summary["days"], 30)
        self.assertEqual(sync_status_summary()["total"], 5)

    def test_window(self):
        store = make_store()
        old = make_sale(store, sync_status=Sale.SYNC_SYNCED)
        Sale.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=45))

        self.assertEqual(sync_status_summary(store=store, days=30)["total"], 0)
        self.assertEqual(sync_status_summary(store=store, days=60)["total"], 1)
