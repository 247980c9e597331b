# integrations/contracts.py
"""
Narrow contracts the checkout services depend on.

Concrete adapters (Authorize.Net, books ledger, email) implement these; tests
substitute in-memory fakes. Value objects are frozen dataclasses so a result
cannot be mutated after a collaborator hands it back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any


# ---------------------------------------------------------
# Value objects
# ---------------------------------------------------------
@dataclass(frozen=True)
class PaymentResult:
    """Outcome of one payment attempt. Never persisted; folded into the Sale."""

    success: bool
    external_transaction_id: str = ""
    error_message: str = ""
    error_code: str = ""
    pending: bool = False
    message: str = ""

    @classmethod
    def approved(cls, transaction_id: str, message: str = "") -> "PaymentResult":
        return cls(success=True, external_transaction_id=str(transaction_id), message=message)

    @classmethod
    def declined(cls, error_message: str, error_code: str = "", transaction_id: str = "") -> "PaymentResult":
        return cls(
            success=False,
            external_transaction_id=str(transaction_id or ""),
            error_message=error_message or "Transaction declined",
            error_code=str(error_code or ""),
        )

    @classmethod
    def awaiting(cls, transaction_id: str, message: str = "") -> "PaymentResult":
        return cls(
            success=False,
            pending=True,
            external_transaction_id=str(transaction_id),
            message=message,
        )


@dataclass(frozen=True)
class CardDetails:
    number: str
    expiration: str  # YYYY-MM
    cvv: str = ""
    zip_code: str = ""


@dataclass(frozen=True)
class OpaqueToken:
    descriptor: str
    value: str


@dataclass(frozen=True)
class BankAccount:
    routing_number: str
    account_number: str
    name_on_account: str
    account_type: str = "checking"


@dataclass(frozen=True)
class PaymentProfile:
    """A stored payment instrument under a gateway customer profile."""

    payment_profile_id: str
    kind: str  # "card" | "bank"
    last4: str = ""
    label: str = ""
    is_debit: bool = False


@dataclass(frozen=True)
class StoredProfileRef:
    customer_profile_id: str
    payment_profile_id: str


@dataclass(frozen=True)
class LedgerContact:
    contact_id: str
    contact_type: str
    place_of_contact: str = ""


# ---------------------------------------------------------
# Contracts
# ---------------------------------------------------------
class PaymentGateway(ABC):
    """
    Card / bank charging.

    Declines come back as failed PaymentResult values. Transport problems
    raise GatewayTransportError (or IntegrationNotConfigured).
    """

    @abstractmethod
    def charge_card(self, amount: Decimal, card: CardDetails, *, invoice_number: str, description: str = "") -> PaymentResult:
        ...

    @abstractmethod
    def charge_opaque_token(self, amount: Decimal, token: OpaqueToken, *, invoice_number: str, description: str = "") -> PaymentResult:
        ...

    @abstractmethod
    def charge_stored_profile(
        self,
        amount: Decimal,
        *,
        customer_profile_id: str,
        payment_profile_id: str,
        invoice_number: str,
        description: str = "",
    ) -> PaymentResult:
        ...

    @abstractmethod
    def charge_ach(self, amount: Decimal, account: BankAccount, *, invoice_number: str, description: str = "") -> PaymentResult:
        ...

    @abstractmethod
    def create_stored_profile(
        self,
        *,
        customer_profile_id: str = "",
        instrument: CardDetails | BankAccount | None = None,
        transaction_id: str = "",
        name: str = "",
        email: str = "",
        merchant_customer_id: str = "",
    ) -> StoredProfileRef:
        ...

    @abstractmethod
    def find_customer_profile(self, *, name: str = "", email: str = "", merchant_customer_id: str = "") -> str | None:
        ...

    @abstractmethod
    def get_payment_profiles(self, customer_profile_id: str) -> list[PaymentProfile]:
        ...


class CloudTerminal(ABC):
    """A card terminal reached through the gateway's cloud routing."""

    @abstractmethod
    def initiate_payment(self, amount: Decimal, terminal_number: str, invoice_number: str) -> PaymentResult:
        ...

    @abstractmethod
    def check_status(self, transaction_id: str) -> PaymentResult:
        ...


class ExternalLedger(ABC):
    """The accounting system of record. All failures raise LedgerError."""

    @abstractmethod
    def create_receipt(self, payload: dict[str, Any]) -> str:
        ...

    @abstractmethod
    def void_receipt(self, receipt_id: str) -> None:
        ...

    @abstractmethod
    def lookup_tax_rule_id(self, percent: Decimal) -> str | None:
        ...

    @abstractmethod
    def lookup_contact(self, contact_id: str) -> LedgerContact | None:
        ...

    @abstractmethod
    def record_customer_payment(self, payload: dict[str, Any]) -> str:
        """Record money received against open invoices. Returns the ledger payment id."""
        ...


class ReceiptNotifier(ABC):
    @abstractmethod
    def send(self, snapshot: dict[str, Any]) -> None:
        ...
