import re
from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase

from customers.models import Customer
from integrations.contracts import PaymentProfile, PaymentResult
from integrations.exceptions import GatewayTransportError
from sales.models import Sale
from sales.services.exceptions import CheckoutValidationError, GatewayUnavailable
from sales.services.fee_calculator import FEE_KIND_CARD, FEE_KIND_NONE
from sales.services.payment_dispatcher import PaymentDispatcher, local_transaction_id
from sales.services.payment_methods import (
    ACH,
    Cash,
    ExternalGatewayInitiated,
    ExternalTerminalStandalone,
    ManualEntry,
    ReaderOpaqueToken,
    StoredProfile,
    Zelle,
    parse_payment_method,
)
from sales.tests.fakes import FakeGateway, FakeTerminal, make_customer, make_store

CARD = {"number": "4111 1111 1111 1111", "expiration": "12/30", "cvv": "123", "zip_code": "33101"}
BANK = {"routing_number": "121000358", "account_number": "123456789", "name_on_account": "Jane Buyer"}


class ParsePaymentMethodTests(SimpleTestCase):
    def test_cash_and_zelle(self):
        self.assertIsInstance(parse_payment_method({"method": "cash"}), Cash)

        zelle = parse_payment_method({"method": "zelle", "zelle_confirmation": " ab12-x9! "})
        self.assertEqual(zelle, Zelle(confirmation="AB12-X9"))

    def test_standalone_terminal_wins_over_everything(self):
        method = parse_payment_method(
            {"method": "card", "standalone_terminal": True, "reference": "R-77", "card": CARD, "payment_profile_id": "PP-1"}
        )
        self.assertEqual(method, ExternalTerminalStandalone(reference="R-77"))

    def test_stored_profile_before_direct_card(self):
        method = parse_payment_method({"method": "card", "payment_profile_id": "PP-1", "card": CARD})
        self.assertEqual(method, StoredProfile(payment_profile_id="PP-1"))

    def test_reader_token_before_terminal_and_card(self):
        method = parse_payment_method(
            {
                "method": "card",
                "card_funding": "debit",
                "opaque_data": {"descriptor": "COMMON.VCO.ONLINE.PAYMENT", "value": "tok-1"},
                "terminal": {},
                "card": CARD,
            }
        )
        self.assertIsInstance(method, ReaderOpaqueToken)
        self.assertEqual(method.token.value, "tok-1")
        self.assertTrue(method.is_debit)

    def test_terminal_with_and_without_transaction(self):
        self.assertEqual(parse_payment_method({"method": "card", "terminal": {}}), ExternalGatewayInitiated())
        self.assertEqual(
            parse_payment_method({"method": "card", "terminal": {"transaction_id": " 6001 "}}),
            ExternalGatewayInitiated(transaction_id="6001"),
        )

    def test_manual_entry_normalizes_card(self):
        method = parse_payment_method({"method": "card", "card": CARD})

        self.assertIsInstance(method, ManualEntry)
        self.assertEqual(method.card.number, "4111111111111111")
        self.assertEqual(method.card.expiration, "2030-12")
        self.assertFalse(method.is_debit)

    def test_card_without_details_rejected(self):
        with self.assertRaises(CheckoutValidationError):
            parse_payment_method({"method": "card"})

    def test_bad_card_rejected(self):
        with self.assertRaises(CheckoutValidationError):
            parse_payment_method({"method": "card", "card": {**CARD, "number": "4111"}})
        with self.assertRaises(CheckoutValidationError):
            parse_payment_method({"method": "card", "card": {**CARD, "expiration": "13/30"}})

    def test_ach(self):
        method = parse_payment_method({"method": "ach", "bank": {**BANK, "account_type": "BusinessChecking"}})

        self.assertIsInstance(method, ACH)
        self.assertEqual(method.account.account_type, "businessChecking")

    def test_ach_requires_valid_bank(self):
        with self.assertRaises(CheckoutValidationError):
            parse_payment_method({"method": "ach"})
        with self.assertRaises(CheckoutValidationError):
            parse_payment_method({"method": "ach", "bank": {**BANK, "routing_number": "12"}})

    def test_missing_method_is_never_cash(self):
        with self.assertRaises(CheckoutValidationError):
            parse_payment_method({})
        with self.assertRaises(CheckoutValidationError):
            parse_payment_method({"bank": BANK})

    def test_unknown_method(self):
        with self.assertRaises(CheckoutValidationError):
            parse_payment_method({"method": "barter"})


class LocalTransactionIdTests(SimpleTestCase):
    def test_format(self):
        self.assertRegex(local_transaction_id("CASH"), r"^CASH-\d{16,}$")


class PaymentDispatcherTests(TestCase):
    def setUp(self):
        self.gateway = FakeGateway()
        self.terminal = FakeTerminal()
        self.dispatcher = PaymentDispatcher(gateway=self.gateway, terminal=self.terminal)
        self.store = make_store(terminal_number="SN-1")

    def test_cash_is_local(self):
        plan = self.dispatcher.prepare(Cash(), store=self.store)
        result = self.dispatcher.charge(Decimal("10.00"), plan, invoice_number="INV-1")

        self.assertEqual(plan.payment_method, Sale.PAYMENT_CASH)
        self.assertEqual(plan.fee_kind, FEE_KIND_NONE)
        self.assertTrue(re.match(r"^CASH-\d+$", result.external_transaction_id))
        self.assertEqual(self.gateway.calls, [])

    def test_standalone_terminal_recorded_as_cash(self):
        plan = self.dispatcher.prepare(ExternalTerminalStandalone(reference="R-1"), store=self.store)
        result = self.dispatcher.charge(Decimal("10.00"), plan, invoice_number="INV-1")

        self.assertEqual(plan.payment_method, Sale.PAYMENT_CASH)
        self.assertEqual(plan.fee_kind, FEE_KIND_NONE)
        self.assertIn("manual card reader payment", plan.notes)
        self.assertTrue(result.external_transaction_id.startswith("MANUAL-"))

    def test_zelle_confirmation_becomes_transaction_id(self):
        plan = self.dispatcher.prepare(Zelle(confirmation="ABC123"), store=self.store)
        result = self.dispatcher.charge(Decimal("10.00"), plan, invoice_number="INV-1")

        self.assertEqual(result.external_transaction_id, "ZELLE-ABC123")

    def test_manual_entry_is_card_fee(self):
        method = parse_payment_method({"method": "card", "card": CARD})
        plan = self.dispatcher.prepare(method, store=self.store)
        self.dispatcher.charge(Decimal("10.00"), plan, invoice_number="INV-1")

        self.assertEqual(plan.fee_kind, FEE_KIND_CARD)
        self.assertEqual(self.gateway.calls[0][0], "card")

    def test_gateway_transport_error_becomes_unavailable(self):
        self.gateway.error = GatewayTransportError("timeout")
        method = parse_payment_method({"method": "card", "card": CARD})
        plan = self.dispatcher.prepare(method, store=self.store)

        with self.assertRaises(GatewayUnavailable):
            self.dispatcher.charge(Decimal("10.00"), plan, invoice_number="INV-1")

    def test_missing_gateway_is_unavailable(self):
        dispatcher = PaymentDispatcher(gateway=None, terminal=None)
        plan = dispatcher.prepare(parse_payment_method({"method": "card", "card": CARD}), store=self.store)

        with self.assertRaises(GatewayUnavailable):
            dispatcher.charge(Decimal("10.00"), plan, invoice_number="INV-1")

    def test_cloud_terminal_requires_store_terminal(self):
        store = make_store(terminal_number="")

        with self.assertRaises(CheckoutValidationError):
            self.dispatcher.prepare(ExternalGatewayInitiated(), store=store)

    def test_cloud_terminal_initiate_is_pending(self):
        plan = self.dispatcher.prepare(ExternalGatewayInitiated(), store=self.store)
        result = self.dispatcher.charge(Decimal("10.00"), plan, invoice_number="INV-1")

        self.assertTrue(result.pending)
        self.assertEqual(self.terminal.initiated, [(Decimal("10.00"), "SN-1", "INV-1")])


class StoredProfileResolutionTests(TestCase):
    """
    A stored profile resolves to card or bank BEFORE the fee is computed.
    """

    def setUp(self):
        self.gateway = FakeGateway()
        self.dispatcher = PaymentDispatcher(gateway=self.gateway)
        self.store = make_store()
        self.customer = make_customer(payment_profile_id="CP-1")
        self.gateway.profiles["CP-1"] = [
            PaymentProfile(payment_profile_id="PP-CARD", kind="card", last4="1111"),
            PaymentProfile(payment_profile_id="PP-BANK", kind="bank", last4="6789"),
            PaymentProfile(payment_profile_id="PP-DEBIT", kind="card", last4="2222", is_debit=True),
        ]

    def test_bank_profile_is_ach_without_fee(self):
        plan = self.dispatcher.prepare(StoredProfile("PP-BANK"), customer=self.customer, store=self.store)

        self.assertEqual(plan.payment_method, Sale.PAYMENT_ACH)
        self.assertEqual(plan.fee_kind, FEE_KIND_NONE)

    def test_card_profile_is_card_with_fee(self):
        plan = self.dispatcher.prepare(StoredProfile("PP-CARD"), customer=self.customer, store=self.store)

        self.assertEqual(plan.payment_method, Sale.PAYMENT_CARD)
        self.assertEqual(plan.fee_kind, FEE_KIND_CARD)
        self.assertFalse(plan.is_debit)

    def test_debit_profile_flagged(self):
        plan = self.dispatcher.prepare(StoredProfile("PP-DEBIT"), customer=self.customer, store=self.store)
        self.assertTrue(plan.is_debit)

    def test_foreign_profile_rejected(self):
        with self.assertRaises(CheckoutValidationError):
            self.dispatcher.prepare(StoredProfile("PP-OTHER"), customer=self.customer, store=self.store)

    def test_customer_required(self):
        with self.assertRaises(CheckoutValidationError):
            self.dispatcher.prepare(StoredProfile("PP-CARD"), customer=None, store=self.store)

    def test_profile_discovered_and_cached(self):
        customer = make_customer(payment_profile_id="")
        self.gateway.found_profile_id = "CP-1"

        self.dispatcher.prepare(StoredProfile("PP-CARD"), customer=customer, store=self.store)

        customer.refresh_from_db()
        self.assertEqual(customer.payment_profile_id, "CP-1")

    def test_no_profile_found(self):
        customer = make_customer(payment_profile_id="")

        with self.assertRaises(CheckoutValidationError):
            self.dispatcher.prepare(StoredProfile("PP-CARD"), customer=customer, store=self.store)


class SavePaymentMethodTests(TestCase):
    def test_manual_card_saved_and_profile_cached(self):
        gateway = FakeGateway()
        dispatcher = PaymentDispatcher(gateway=gateway)
        customer = make_customer(payment_profile_id="")
        plan = dispatcher.prepare(parse_payment_method({"method": "card", "card": CARD}), customer=customer)

        ref = dispatcher.save_payment_method(plan, PaymentResult.approved("6000"), customer=customer)

        self.assertEqual(ref.payment_profile_id, "PP-NEW")
        self.assertEqual(Customer.objects.get(pk=customer.pk).payment_profile_id, "CP-NEW")

    def test_cash_is_never_saved(self):
        gateway = FakeGateway()
        dispatcher = PaymentDispatcher(gateway=gateway)
        plan = dispatcher.prepare(Cash())

        self.assertIsNone(dispatcher.save_payment_method(plan, PaymentResult.approved("CASH-1"), customer=make_customer()))
        self.assertEqual(gateway.saved, [])

    def test_profile_cache_write_failure_is_swallowed(self):
        gateway = FakeGateway()
        dispatcher = PaymentDispatcher(gateway=gateway)
        customer = make_customer(payment_profile_id="")
        plan = dispatcher.prepare(parse_payment_method({"method": "card", "card": CARD}), customer=customer)

        with mock.patch(
            "sales.services.payment_dispatcher.Customer.objects.filter",
            side_effect=DatabaseError("customers table locked"),
        ):
            with self.assertLogs("sales.services.payment_dispatcher", level="WARNING"):
                ref = dispatcher.save_payment_method(plan, PaymentResult.approved("6000"), customer=customer)

        self.assertIsNone(ref)
        self.assertEqual(len(gateway.saved), 1)
