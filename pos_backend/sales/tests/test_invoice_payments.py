from decimal import Decimal as D
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from integrations.contracts import PaymentProfile, PaymentResult
from integrations.exceptions import GatewayTransportError, LedgerError
from sales.models import InvoicePayment
from sales.services import registry
from sales.services.exceptions import CheckoutValidationError, GatewayUnavailable
from sales.services.fee_calculator import FeePolicy
from sales.services.invoice_payments import charge_open_documents, parse_document
from sales.tests.fakes import FakeGateway, FakeLedger, make_customer, make_store

User = get_user_model()

INVOICE = {"type": "invoice", "id": "INV-ID-1", "number": "INV-000101", "amount": "100.00"}
SALES_ORDER = {"type": "salesorder", "id": "SO-ID-7", "number": "SO-00042", "amount": "40.00"}


def _profiles(gateway):
    gateway.profiles["CP-1"] = [
        PaymentProfile(payment_profile_id="PP-CARD", kind="card", last4="1111"),
        PaymentProfile(payment_profile_id="PP-BANK", kind="bank", last4="6789"),
    ]


class ParseDocumentTests(TestCase):
    def test_amount_rounded_to_cents(self):
        doc = parse_document({**INVOICE, "amount": "10.005"})
        self.assertEqual(doc.amount, D("10.01"))

    def test_sales_order_invoice_number_prefixed(self):
        doc = parse_document(SALES_ORDER)

        self.assertEqual(doc.invoice_number, "SO-SO-00042")
        self.assertEqual(doc.description, "Sales Order Payment: SO-00042")

    def test_invoice_number_capped_for_gateway(self):
        doc = parse_document({**INVOICE, "number": "INV-" + "9" * 30})
        self.assertEqual(len(doc.invoice_number), 20)

    def test_rejects_incomplete_or_non_positive(self):
        for raw in (
            {"type": "invoice", "id": "X", "amount": "5"},
            {**INVOICE, "amount": "0"},
            {**INVOICE, "amount": "-3"},
            {**INVOICE, "amount": "NaN"},
            {**INVOICE, "type": "estimate"},
            "INV-1",
        ):
            with self.assertRaises(CheckoutValidationError, msg=raw):
                parse_document(raw)


class ChargeOpenDocumentsTests(TestCase):
    def setUp(self):
        self.gateway = FakeGateway()
        self.ledger = FakeLedger()
        self.store = make_store(code="LOC-9")
        self.customer = make_customer(payment_profile_id="CP-1")
        self.policy = FeePolicy(percent=D("3.00"))
        _profiles(self.gateway)

    def charge(self, documents, profile="PP-CARD", **kwargs):
        params = {
            "customer": self.customer,
            "payment_profile_id": profile,
            "documents": documents,
            "store": self.store,
            "gateway": self.gateway,
            "ledger": self.ledger,
            "policy": self.policy,
        }
        params.update(kwargs)
        return charge_open_documents(**params)

    def test_card_profile_charges_fee_and_records_invoice_in_ledger(self):
        outcome = self.charge([INVOICE])

        self.assertEqual(outcome.summary, {"total": 1, "successful": 1, "failed": 0})
        [(kind, amount, details)] = self.gateway.calls
        self.assertEqual(kind, "stored")
        self.assertEqual(amount, D("103.00"))
        self.assertEqual(details["invoice_number"], "INV-000101")

        row = InvoicePayment.objects.get()
        self.assertEqual(row.amount, D("100.00"))
        self.assertEqual(row.card_fee_amount, D("3.00"))
        self.assertEqual(row.amount_charged, D("103.00"))
        self.assertEqual(row.payment_type, InvoicePayment.PAYMENT_CARD)
        self.assertEqual(row.ledger_payment_id, "CP-1")

        [payload] = self.ledger.payments
        self.assertEqual(payload["customer_id"], self.customer.external_contact_id)
        self.assertEqual(payload["payment_mode"], "creditcard")
        self.assertEqual(payload["amount"], "100.00")
        self.assertEqual(payload["invoices"], [{"invoice_id": "INV-ID-1", "amount_applied": "100.00"}])
        self.assertEqual(payload["reference_number"], row.external_transaction_id)
        self.assertEqual(payload["location_id"], "LOC-9")

    def test_bank_profile_has_no_fee(self):
        self.charge([INVOICE], profile="PP-BANK")

        row = InvoicePayment.objects.get()
        self.assertEqual(row.card_fee_amount, D("0.00"))
        self.assertEqual(row.amount_charged, D("100.00"))
        self.assertEqual(row.payment_type, InvoicePayment.PAYMENT_ACH)
        self.assertEqual(self.ledger.payments[0]["payment_mode"], "banktransfer")

    def test_sales_order_not_sent_to_ledger(self):
        outcome = self.charge([SALES_ORDER])

        self.assertEqual(outcome.summary["successful"], 1)
        self.assertEqual(self.gateway.calls[0][2]["invoice_number"], "SO-SO-00042")
        self.assertEqual(self.ledger.payments, [])
        self.assertIsNone(InvoicePayment.objects.get().ledger_payment_id)

    def test_bad_entry_does_not_stop_the_batch(self):
        outcome = self.charge([{**INVOICE, "amount": "0"}, SALES_ORDER])

        self.assertEqual(outcome.summary, {"total": 2, "successful": 1, "failed": 1})
        self.assertEqual(outcome.errors[0]["item"]["number"], "INV-000101")
        self.assertEqual(len(self.gateway.calls), 1)

    def test_decline_is_an_error_entry(self):
        self.gateway.result = PaymentResult.declined("This transaction has been declined.", error_code="2")

        outcome = self.charge([INVOICE, SALES_ORDER])

        self.assertEqual(outcome.summary["failed"], 2)
        self.assertEqual(outcome.errors[0]["error_code"], "2")
        self.assertFalse(InvoicePayment.objects.exists())

    def test_gateway_transport_error_is_an_error_entry(self):
        self.gateway.error = GatewayTransportError("timeout")

        outcome = self.charge([INVOICE])

        self.assertEqual(outcome.summary["failed"], 1)
        self.assertIn("unavailable", outcome.errors[0]["error"])

    def test_ledger_failure_kept_on_row(self):
        self.ledger.payment_error = LedgerError("Invoice is already paid")

        with self.assertLogs("sales.services.invoice_payments", level="WARNING"):
            outcome = self.charge([INVOICE])

        self.assertEqual(outcome.summary["successful"], 1)
        row = InvoicePayment.objects.get()
        self.assertIsNone(row.ledger_payment_id)
        self.assertEqual(row.ledger_error, "Invoice is already paid")
        self.assertEqual(outcome.results[0]["ledger_error"], "Invoice is already paid")

    def test_customer_without_ledger_contact(self):
        self.customer.external_contact_id = ""
        self.customer.save()

        self.charge([INVOICE])

        self.assertEqual(self.ledger.payments, [])
        self.assertEqual(InvoicePayment.objects.get().ledger_error, "Customer has no ledger contact")

    def test_recording_failure_reports_the_transaction(self):
        with mock.patch(
            "sales.services.invoice_payments.InvoicePayment.objects.create",
            side_effect=DatabaseError("disk full"),
        ):
            with self.assertLogs("sales.services.invoice_payments", level="CRITICAL"):
                outcome = self.charge([INVOICE])

        self.assertEqual(outcome.summary["failed"], 1)
        self.assertTrue(outcome.errors[0]["transaction_id"])
        self.assertEqual(len(self.gateway.calls), 1)
        self.assertEqual(self.ledger.payments, [])

    def test_profile_not_owned_rejects_batch_before_charging(self):
        with self.assertRaises(CheckoutValidationError):
            self.charge([INVOICE], profile="PP-OTHER")
        self.assertEqual(self.gateway.calls, [])

    def test_no_gateway(self):
        with self.assertRaises(GatewayUnavailable):
            self.charge([INVOICE], gateway=None)

    def test_empty_batch_rejected(self):
        with self.assertRaises(CheckoutValidationError):
            self.charge([])


class InvoicePaymentAPITests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="cashier", password="pass")
        self.client.force_authenticate(self.user)

        self.gateway = FakeGateway()
        self.ledger = FakeLedger()
        _profiles(self.gateway)

        original = registry.get_integrations()
        self.addCleanup(registry.configure, original)
        registry.configure(registry.Integrations(gateway=self.gateway, ledger=self.ledger))

        self.customer = make_customer(payment_profile_id="CP-1")
        self.url = reverse("invoice-payments-charge")

    def body(self, documents, **extra):
        data = {
            "customer_id": str(self.customer.id),
            "payment_profile_id": "PP-BANK",
            "documents": documents,
        }
        data.update(extra)
        return data

    def test_requires_authentication(self):
        self.client.force_authenticate(None)
        resp = self.client.post(self.url, self.body([INVOICE]), format="json")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_charge_reports_results_and_errors(self):
        resp = self.client.post(self.url, self.body([INVOICE, {"type": "invoice"}]), format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["summary"], {"total": 2, "successful": 1, "failed": 1})
        self.assertEqual(resp.data["results"][0]["amount_charged"], "100.00")
        self.assertEqual(resp.data["customer"]["id"], str(self.customer.id))
        self.assertEqual(InvoicePayment.objects.get().user, self.user)

    def test_unknown_customer(self):
        resp = self.client.post(
            self.url,
            self.body([INVOICE], customer_id="00000000-0000-0000-0000-000000000000"),
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_foreign_profile_rejected(self):
        resp = self.client.post(self.url, self.body([INVOICE], payment_profile_id="PP-OTHER"), format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.gateway.calls, [])

    def test_empty_documents_rejected(self):
        resp = self.client.post(self.url, self.body([]), format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_history_filtered_by_customer(self):
        self.client.post(self.url, self.body([INVOICE, SALES_ORDER]), format="json")
        other = make_customer()
        InvoicePayment.objects.create(
            customer=other,
            document_type=InvoicePayment.DOCUMENT_INVOICE,
            document_id="X",
            document_number="INV-X",
            amount=D("5.00"),
            amount_charged=D("5.00"),
            payment_type=InvoicePayment.PAYMENT_ACH,
            payment_profile_id="PP-9",
            external_transaction_id="6000999",
        )

        resp = self.client.get(
            reverse("invoice-payments-list"),
            {"customer_id": str(self.customer.id), "document_type": "invoice"},
        )

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["count"], 1)
        self.assertEqual(resp.data["results"][0]["document_number"], "INV-000101")
        self.assertTrue(resp.data["results"][0]["ledger_recorded"])
