from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase, override_settings

from integrations.exceptions import LedgerError
from sales.services.fee_calculator import FEE_KIND_CARD, FEE_KIND_NONE, FeePolicy, card_fee
from sales.services.tax_resolver import (
    CartLine,
    TaxConfig,
    TaxResolution,
    compute_lines,
    rate_from_name,
    resolve_rate_percent,
    resolve_tax,
    sum_lines,
)
from sales.tests.fakes import FakeLedger

D = Decimal


def _store(name="Register", tax_percentage=None, tax_rule_id=None):
    return SimpleNamespace(name=name, tax_percentage=tax_percentage, tax_rule_id=tax_rule_id)


def _line(price, qty="1"):
    return CartLine(product=None, item_name="Item", quantity=D(qty), unit_price=D(price))


class TaxRateResolutionTests(SimpleTestCase):
    """
    Rate fallback chain:
    store.tax_percentage -> "(N%)" in the store name -> configured default.
    """

    config = TaxConfig(default_rate_percent=D("7.5"))

    def test_store_percentage_wins(self):
        store = _store(name="Miami Dade Sales Tax (7%)", tax_percentage=D("8.250"))
        self.assertEqual(resolve_rate_percent(store, self.config), D("8.250"))

    def test_zero_store_percentage_is_respected(self):
        self.assertEqual(resolve_rate_percent(_store(tax_percentage=D("0")), self.config), D("0"))

    def test_negative_store_percentage_falls_back_to_name(self):
        store = _store(name="Miami Dade Sales Tax (7%)", tax_percentage=D("-1"))
        self.assertEqual(resolve_rate_percent(store, self.config), D("7"))

    def test_rate_parsed_from_name(self):
        self.assertEqual(resolve_rate_percent(_store(name="Miami Dade Sales Tax (7%)"), self.config), D("7"))
        self.assertEqual(rate_from_name("County 6.75 % rate"), D("6.75"))

    def test_default_when_nothing_configured(self):
        self.assertEqual(resolve_rate_percent(_store(name="Main Street"), self.config), D("7.5"))

    def test_rate_from_name_without_percent(self):
        self.assertIsNone(rate_from_name("Store 7"))

    @override_settings(POS={"DEFAULT_TAX_PERCENT": "6.000"})
    def test_default_from_settings(self):
        self.assertEqual(TaxConfig.from_settings().default_rate_percent, D("6.000"))

    @override_settings(POS={"DEFAULT_TAX_PERCENT": "not-a-number"})
    def test_invalid_setting_falls_back(self):
        self.assertEqual(TaxConfig.from_settings().default_rate_percent, D("7.5"))


class ResolveTaxTests(SimpleTestCase):
    def test_exemption_forces_zero_and_skips_ledger(self):
        ledger = FakeLedger()
        tax = resolve_tax(_store(tax_percentage=D("8.25")), tax_exempt=True, ledger=ledger)

        self.assertEqual(tax.rate_percent, D("0"))
        self.assertTrue(tax.exempt)
        self.assertIsNone(tax.tax_rule_id)
        self.assertEqual(ledger.tax_lookups, [])

    def test_store_rule_id_preferred_over_lookup(self):
        ledger = FakeLedger()
        tax = resolve_tax(_store(tax_percentage=D("8.25"), tax_rule_id="TR-STORE"), ledger=ledger)

        self.assertEqual(tax.tax_rule_id, "TR-STORE")
        self.assertEqual(ledger.tax_lookups, [])

    def test_rule_id_looked_up_by_rate(self):
        ledger = FakeLedger()
        ledger.tax_rules[D("8.25")] = "TR-825"

        tax = resolve_tax(_store(tax_percentage=D("8.250")), ledger=ledger)

        self.assertEqual(tax.tax_rule_id, "TR-825")

    def test_lookup_failure_means_no_rule_id(self):
        class BrokenLedger(FakeLedger):
            def lookup_tax_rule_id(self, percent):
                raise LedgerError("books down")

        tax = resolve_tax(_store(tax_percentage=D("8.25")), ledger=BrokenLedger())

        self.assertEqual(tax.rate_percent, D("8.25"))
        self.assertIsNone(tax.tax_rule_id)


class LineMathTests(SimpleTestCase):
    """
    Rounding is per line (half-up to cents) and totals are exact sums of
    the rounded lines.
    """

    def test_worked_example(self):
        tax = TaxResolution(rate_percent=D("8.25"), tax_rule_id="TR-1")
        [line] = compute_lines([_line("100.00")], tax)

        self.assertEqual(line.line_subtotal, D("100.00"))
        self.assertEqual(line.line_tax_amount, D("8.25"))
        self.assertEqual(line.line_total, D("108.25"))
        self.assertEqual(line.external_tax_rule_id, "TR-1")

    def test_rounding_is_per_line_not_on_the_sum(self):
        # 3 lines of 0.10 at 7.5% tax: each line tax rounds 0.0075 -> 0.01
        tax = TaxResolution(rate_percent=D("7.5"))
        priced = compute_lines([_line("0.10") for _ in range(3)], tax)

        subtotal, tax_total = sum_lines(priced)

        self.assertEqual(subtotal, D("0.30"))
        self.assertEqual(tax_total, D("0.03"))

    def test_half_up_on_fractional_quantity(self):
        tax = TaxResolution(rate_percent=D("0"))
        [line] = compute_lines([_line("3.35", qty="1.5")], tax)

        # 5.025 -> 5.03
        self.assertEqual(line.line_subtotal, D("5.03"))

    def test_rule_id_kept_when_line_tax_rounds_to_zero(self):
        tax = TaxResolution(rate_percent=D("8.25"), tax_rule_id="TR-1")
        [line] = compute_lines([_line("0.05")], tax)

        self.assertEqual(line.line_tax_amount, D("0.00"))
        self.assertEqual(line.external_tax_rule_id, "TR-1")

    def test_no_rule_id_at_zero_rate(self):
        tax = TaxResolution(rate_percent=D("0"), tax_rule_id="TR-1")
        [line] = compute_lines([_line("10.00")], tax)

        self.assertIsNone(line.external_tax_rule_id)


class CardFeeTests(SimpleTestCase):
    policy = FeePolicy(percent=D("3.00"))

    def _plan(self, fee_kind=FEE_KIND_CARD, is_debit=False):
        return SimpleNamespace(fee_kind=fee_kind, is_debit=is_debit)

    def test_card_fee_on_subtotal_plus_tax(self):
        self.assertEqual(card_fee(D("100.00"), D("8.25"), plan=self._plan(), policy=self.policy), D("3.25"))

    def test_no_fee_for_non_card(self):
        self.assertEqual(
            card_fee(D("100.00"), D("8.25"), plan=self._plan(fee_kind=FEE_KIND_NONE), policy=self.policy),
            D("0.00"),
        )

    def test_debit_surcharged_by_default(self):
        self.assertEqual(
            card_fee(D("100.00"), D("0.00"), plan=self._plan(is_debit=True), policy=self.policy),
            D("3.00"),
        )

    def test_debit_exempt_when_policy_says_so(self):
        policy = FeePolicy(percent=D("3.00"), exempt_debit=True)
        self.assertEqual(card_fee(D("100.00"), D("0.00"), plan=self._plan(is_debit=True), policy=policy), D("0.00"))

    @override_settings(POS={"CARD_FEE_PERCENT": "2.5", "SURCHARGE_DEBIT_CARDS": False})
    def test_policy_from_settings(self):
        policy = FeePolicy.from_settings()

        self.assertEqual(policy.percent, D("2.5"))
        self.assertTrue(policy.exempt_debit)
