# sales/services/payment_dispatcher.py

"""
PAYMENT DISPATCHER

One strategy per payment variant. Each strategy has two steps:

- prepare(method, customer=, store=) -> ChargePlan
    validation + resolution (e.g. a stored profile turns out to be a bank
    account). Runs BEFORE the fee is computed, so the fee sees the resolved type.
- charge(amount, plan, invoice_number=) -> PaymentResult
    the only step that moves money.

Cash, Zelle and the standalone terminal never call the gateway; they mint a
local transaction id instead.

Gateway transport failures surface as GatewayUnavailable. Declines come back
as a failed PaymentResult; the orchestrator turns that into PaymentDeclined.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal

from customers.models import Customer
from integrations.contracts import PaymentResult, StoredProfileRef
from integrations.exceptions import IntegrationError
from sales.models import Sale
from sales.services.exceptions import CheckoutValidationError, GatewayUnavailable
from sales.services.fee_calculator import FEE_KIND_CARD, FEE_KIND_NONE
from sales.services.payment_methods import (
    ACH,
    Cash,
    ExternalGatewayInitiated,
    ExternalTerminalStandalone,
    ManualEntry,
    PaymentMethod,
    ReaderOpaqueToken,
    StoredProfile,
    Zelle,
)

logger = logging.getLogger(__name__)

STANDALONE_NOTE = "manual card reader payment"


def local_transaction_id(prefix: str) -> str:
    """<PREFIX>-<epoch millis><3 random digits>. Digits only after the dash."""
    return f"{prefix}-{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


@dataclass(frozen=True)
class ChargePlan:
    method: PaymentMethod
    payment_method: str
    channel: str
    fee_kind: str = FEE_KIND_NONE
    is_debit: bool = False
    customer_profile_id: str = ""
    payment_profile_id: str = ""
    terminal_number: str = ""
    notes: str = ""


class PaymentStrategy:
    def __init__(self, *, gateway=None, terminal=None):
        self.gateway = gateway
        self.terminal = terminal

    def _require_gateway(self):
        if self.gateway is None:
            raise GatewayUnavailable("No payment gateway is configured")
        return self.gateway

    def _require_terminal(self):
        if self.terminal is None:
            raise GatewayUnavailable("No cloud terminal is configured")
        return self.terminal

    def prepare(self, method, *, customer=None, store=None) -> ChargePlan:
        raise NotImplementedError

    def charge(self, amount: Decimal, plan: ChargePlan, *, invoice_number: str) -> PaymentResult:
        raise NotImplementedError


class CashStrategy(PaymentStrategy):
    def prepare(self, method, *, customer=None, store=None):
        return ChargePlan(method=method, payment_method=Sale.PAYMENT_CASH, channel=method.channel)

    def charge(self, amount, plan, *, invoice_number):
        return PaymentResult.approved(local_transaction_id("CASH"), message="Cash received")


class ZelleStrategy(PaymentStrategy):
    def _transaction_id(self, method: Zelle) -> str:
        if method.confirmation:
            return f"ZELLE-{method.confirmation}"
        return local_transaction_id("ZELLE")

    def prepare(self, method, *, customer=None, store=None):
        if method.confirmation and Sale.objects.filter(
            external_transaction_id=f"ZELLE-{method.confirmation}"
        ).exists():
            raise CheckoutValidationError(
                f"Zelle confirmation {method.confirmation} is already recorded on another sale"
            )
        return ChargePlan(method=method, payment_method=Sale.PAYMENT_ZELLE, channel=method.channel)

    def charge(self, amount, plan, *, invoice_number):
        return PaymentResult.approved(self._transaction_id(plan.method), message="Zelle transfer recorded")


class StandaloneTerminalStrategy(PaymentStrategy):
    """The cashier settles on hardware we do not control; record it like cash."""

    def prepare(self, method, *, customer=None, store=None):
        note = STANDALONE_NOTE
        if method.reference:
            note = f"{STANDALONE_NOTE} (ref {method.reference})"
        return ChargePlan(
            method=method,
            payment_method=Sale.PAYMENT_CASH,
            channel=method.channel,
            notes=note,
        )

    def charge(self, amount, plan, *, invoice_number):
        return PaymentResult.approved(local_transaction_id("MANUAL"), message=STANDALONE_NOTE)


class ACHStrategy(PaymentStrategy):
    def prepare(self, method, *, customer=None, store=None):
        return ChargePlan(method=method, payment_method=Sale.PAYMENT_ACH, channel=method.channel)

    def charge(self, amount, plan, *, invoice_number):
        return self._require_gateway().charge_ach(
            amount, plan.method.account, invoice_number=invoice_number, description="POS Sale - ACH"
        )


class ManualEntryStrategy(PaymentStrategy):
    def prepare(self, method, *, customer=None, store=None):
        return ChargePlan(
            method=method,
            payment_method=Sale.PAYMENT_CARD,
            channel=method.channel,
            fee_kind=FEE_KIND_CARD,
            is_debit=method.is_debit,
        )

    def charge(self, amount, plan, *, invoice_number):
        return self._require_gateway().charge_card(
            amount, plan.method.card, invoice_number=invoice_number, description="POS Sale - Card"
        )


class ReaderTokenStrategy(PaymentStrategy):
    def prepare(self, method, *, customer=None, store=None):
        return ChargePlan(
            method=method,
            payment_method=Sale.PAYMENT_CARD,
            channel=method.channel,
            fee_kind=FEE_KIND_CARD,
            is_debit=method.is_debit,
        )

    def charge(self, amount, plan, *, invoice_number):
        return self._require_gateway().charge_opaque_token(
            amount, plan.method.token, invoice_number=invoice_number, description="POS Sale - Card Reader"
        )


class StoredProfileStrategy(PaymentStrategy):
    def _customer_profile_id(self, customer: Customer) -> str:
        cached = (customer.payment_profile_id or "").strip()
        if cached:
            return cached

        found = self._require_gateway().find_customer_profile(
            name=customer.name,
            email=customer.email,
            merchant_customer_id=customer.external_contact_id,
        )
        if not found:
            raise CheckoutValidationError(f"No stored payment profile found for {customer.name}")

        Customer.objects.filter(pk=customer.pk).update(payment_profile_id=found)
        customer.payment_profile_id = found
        logger.info(
            "payments.profile_cached",
            extra={"customer_id": str(customer.pk), "customer_profile_id": found},
        )
        return found

    def prepare(self, method, *, customer=None, store=None):
        if customer is None:
            raise CheckoutValidationError("A customer is required to charge a stored payment profile")

        customer_profile_id = self._customer_profile_id(customer)
        profiles = self._require_gateway().get_payment_profiles(customer_profile_id)
        match = next(
            (p for p in profiles if p.payment_profile_id == method.payment_profile_id),
            None,
        )
        if match is None:
            raise CheckoutValidationError("Payment profile does not belong to this customer")

        if match.kind == "bank":
            return ChargePlan(
                method=method,
                payment_method=Sale.PAYMENT_ACH,
                channel=method.channel,
                customer_profile_id=customer_profile_id,
                payment_profile_id=match.payment_profile_id,
            )

        return ChargePlan(
            method=method,
            payment_method=Sale.PAYMENT_CARD,
            channel=method.channel,
            fee_kind=FEE_KIND_CARD,
            is_debit=match.is_debit,
            customer_profile_id=customer_profile_id,
            payment_profile_id=match.payment_profile_id,
        )

    def charge(self, amount, plan, *, invoice_number):
        return self._require_gateway().charge_stored_profile(
            amount,
            customer_profile_id=plan.customer_profile_id,
            payment_profile_id=plan.payment_profile_id,
            invoice_number=invoice_number,
            description="POS Sale - Stored Profile",
        )


class CloudTerminalStrategy(PaymentStrategy):
    """
    Two-phase:
    - no transaction id: push the amount to the store's terminal, result is pending
    - transaction id: ask the gateway whether the buyer finished on the device
    """

    def prepare(self, method, *, customer=None, store=None):
        terminal_number = (getattr(store, "terminal_number", "") or "").strip()
        if not method.transaction_id and not terminal_number:
            raise CheckoutValidationError("This store has no cloud terminal configured")

        return ChargePlan(
            method=method,
            payment_method=Sale.PAYMENT_CARD,
            channel=method.channel,
            fee_kind=FEE_KIND_CARD,
            is_debit=method.is_debit,
            terminal_number=terminal_number,
        )

    def charge(self, amount, plan, *, invoice_number):
        terminal = self._require_terminal()
        if plan.method.transaction_id:
            return terminal.check_status(plan.method.transaction_id)
        return terminal.initiate_payment(amount, plan.terminal_number, invoice_number)


class PaymentDispatcher:
    def __init__(self, *, gateway=None, terminal=None):
        kw = {"gateway": gateway, "terminal": terminal}
        self.gateway = gateway
        self._strategies: dict[type, PaymentStrategy] = {
            ExternalTerminalStandalone: StandaloneTerminalStrategy(**kw),
            StoredProfile: StoredProfileStrategy(**kw),
            ReaderOpaqueToken: ReaderTokenStrategy(**kw),
            ExternalGatewayInitiated: CloudTerminalStrategy(**kw),
            ManualEntry: ManualEntryStrategy(**kw),
            ACH: ACHStrategy(**kw),
            Zelle: ZelleStrategy(**kw),
            Cash: CashStrategy(**kw),
        }

    def strategy_for(self, method: PaymentMethod) -> PaymentStrategy:
        try:
            return self._strategies[type(method)]
        except KeyError:
            raise CheckoutValidationError(f"Unsupported payment method: {type(method).__name__}") from None

    def prepare(self, method: PaymentMethod, *, customer=None, store=None) -> ChargePlan:
        try:
            return self.strategy_for(method).prepare(method, customer=customer, store=store)
        except IntegrationError as exc:
            raise GatewayUnavailable(str(exc)) from exc

    def charge(self, amount: Decimal, plan: ChargePlan, *, invoice_number: str) -> PaymentResult:
        try:
            return self.strategy_for(plan.method).charge(amount, plan, invoice_number=invoice_number)
        except IntegrationError as exc:
            logger.warning(
                "payments.gateway_unavailable",
                extra={"channel": plan.channel, "invoice_number": invoice_number, "error": str(exc)},
            )
            raise GatewayUnavailable(str(exc)) from exc

    def save_payment_method(self, plan: ChargePlan, result: PaymentResult, *, customer) -> StoredProfileRef | None:
        """
        Opt-in: keep the instrument just charged on file for the customer.
        Best-effort. Errors are logged and swallowed; the sale already stands.
        """
        if customer is None or self.gateway is None:
            return None

        method = plan.method
        kwargs = {
            "customer_profile_id": (customer.payment_profile_id or "").strip(),
            "name": customer.name,
            "email": customer.email,
            "merchant_customer_id": customer.external_contact_id,
        }
        if isinstance(method, ManualEntry):
            kwargs["instrument"] = method.card
        elif isinstance(method, ACH):
            kwargs["instrument"] = method.account
        elif isinstance(method, ReaderOpaqueToken):
            kwargs["transaction_id"] = result.external_transaction_id
        else:
            return None

        try:
            ref = self.gateway.create_stored_profile(**kwargs)
            if ref.customer_profile_id and not kwargs["customer_profile_id"]:
                Customer.objects.filter(pk=customer.pk).update(payment_profile_id=ref.customer_profile_id)
                customer.payment_profile_id = ref.customer_profile_id
        except Exception as exc:  # error boundary: runs after the sale is recorded
            logger.warning(
                "payments.save_profile_failed",
                extra={"customer_id": str(customer.pk), "channel": plan.channel, "error": str(exc)},
                exc_info=exc,
            )
            return None

        logger.info(
            "payments.profile_saved",
            extra={"customer_id": str(customer.pk), "payment_profile_id": ref.payment_profile_id},
        )
        return ref
