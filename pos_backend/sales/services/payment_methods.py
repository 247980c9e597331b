# sales/services/payment_methods.py

"""
PAYMENT METHOD VARIANTS

Closed set of ways a sale can be paid:

    Cash | Zelle | ACH | Card{ ManualEntry | ReaderOpaqueToken | StoredProfile
                                | ExternalTerminalStandalone | ExternalGatewayInitiated }

parse_payment_method() turns request data into exactly one variant. Precedence
(first match wins):
    1) standalone terminal
    2) stored payment profile
    3) direct card: reader token, cloud terminal, manual entry
    4) ACH
    5) cash / zelle
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from integrations.contracts import BankAccount, CardDetails, OpaqueToken
from sales.services.exceptions import CheckoutValidationError

CHANNEL_CASH = "cash"
CHANNEL_ZELLE = "zelle"
CHANNEL_ACH = "ach"
CHANNEL_MANUAL_ENTRY = "manual_entry"
CHANNEL_READER_TOKEN = "reader_token"
CHANNEL_STORED_PROFILE = "stored_profile"
CHANNEL_TERMINAL_STANDALONE = "terminal_standalone"
CHANNEL_TERMINAL_CLOUD = "terminal_cloud"

DEFAULT_OPAQUE_DESCRIPTOR = "COMMON.ACCEPT.INAPP.PAYMENT"

_EXPIRY_PATTERN = re.compile(r"^(\d{4})-(\d{2})$|^(\d{2})/?(\d{2})$")


@dataclass(frozen=True)
class Cash:
    channel: ClassVar[str] = CHANNEL_CASH


@dataclass(frozen=True)
class Zelle:
    confirmation: str = ""
    channel: ClassVar[str] = CHANNEL_ZELLE


@dataclass(frozen=True)
class ACH:
    account: BankAccount
    channel: ClassVar[str] = CHANNEL_ACH


@dataclass(frozen=True)
class ManualEntry:
    card: CardDetails
    is_debit: bool = False
    channel: ClassVar[str] = CHANNEL_MANUAL_ENTRY


@dataclass(frozen=True)
class ReaderOpaqueToken:
    token: OpaqueToken
    is_debit: bool = False
    channel: ClassVar[str] = CHANNEL_READER_TOKEN


@dataclass(frozen=True)
class StoredProfile:
    payment_profile_id: str
    channel: ClassVar[str] = CHANNEL_STORED_PROFILE


@dataclass(frozen=True)
class ExternalTerminalStandalone:
    reference: str = ""
    channel: ClassVar[str] = CHANNEL_TERMINAL_STANDALONE


@dataclass(frozen=True)
class ExternalGatewayInitiated:
    """Cloud terminal. Without transaction_id: start a payment. With it: confirm one."""

    transaction_id: str = ""
    is_debit: bool = False
    channel: ClassVar[str] = CHANNEL_TERMINAL_CLOUD


PaymentMethod = Union[
    Cash,
    Zelle,
    ACH,
    ManualEntry,
    ReaderOpaqueToken,
    StoredProfile,
    ExternalTerminalStandalone,
    ExternalGatewayInitiated,
]


def _digits(value: Any) -> str:
    return re.sub(r"\D", "", str(value or ""))


def _normalize_expiration(raw: Any) -> str:
    """Accepts YYYY-MM, MM/YY, MMYY. Returns YYYY-MM."""
    s = str(raw or "").strip()
    m = _EXPIRY_PATTERN.match(s)
    if not m:
        raise CheckoutValidationError("Card expiration must be YYYY-MM or MM/YY")
    if m.group(1):
        year, month = m.group(1), m.group(2)
    else:
        month, year = m.group(3), f"20{m.group(4)}"
    if not 1 <= int(month) <= 12:
        raise CheckoutValidationError("Card expiration month is invalid")
    return f"{year}-{month}"


def _parse_card(card: dict) -> CardDetails:
    number = _digits(card.get("number"))
    if not 13 <= len(number) <= 19:
        raise CheckoutValidationError("Card number must be 13 to 19 digits")

    cvv = _digits(card.get("cvv"))
    if cvv and not 3 <= len(cvv) <= 4:
        raise CheckoutValidationError("Card security code must be 3 or 4 digits")

    return CardDetails(
        number=number,
        expiration=_normalize_expiration(card.get("expiration")),
        cvv=cvv,
        zip_code=str(card.get("zip_code") or "").strip(),
    )


def _parse_bank(bank: dict) -> BankAccount:
    routing = _digits(bank.get("routing_number"))
    account = _digits(bank.get("account_number"))
    name = str(bank.get("name_on_account") or "").strip()

    if len(routing) != 9:
        raise CheckoutValidationError("Routing number must be 9 digits")
    if not 4 <= len(account) <= 17:
        raise CheckoutValidationError("Account number must be 4 to 17 digits")
    if not name:
        raise CheckoutValidationError("Name on account is required for ACH")

    account_types = {"checking": "checking", "savings": "savings", "businesschecking": "businessChecking"}
    raw_type = str(bank.get("account_type") or "checking").strip().lower()
    if raw_type not in account_types:
        raise CheckoutValidationError("Account type must be checking, savings, or businessChecking")
    account_type = account_types[raw_type]

    return BankAccount(
        routing_number=routing,
        account_number=account,
        name_on_account=name,
        account_type=account_type,
    )


def parse_payment_method(data: dict | None) -> PaymentMethod:
    data = data or {}
    method = str(data.get("method") or "").strip().lower()
    is_debit = str(data.get("card_funding") or "").strip().lower() == "debit"

    # 1) standalone terminal
    if data.get("standalone_terminal"):
        return ExternalTerminalStandalone(reference=str(data.get("reference") or "").strip())

    # 2) stored payment profile
    profile_id = str(data.get("payment_profile_id") or "").strip()
    if profile_id:
        return StoredProfile(payment_profile_id=profile_id)

    # 3) direct card
    opaque = data.get("opaque_data") or {}
    if opaque.get("value"):
        return ReaderOpaqueToken(
            token=OpaqueToken(
                descriptor=str(opaque.get("descriptor") or DEFAULT_OPAQUE_DESCRIPTOR),
                value=str(opaque["value"]),
            ),
            is_debit=is_debit,
        )

    terminal = data.get("terminal")
    if terminal is not None:
        return ExternalGatewayInitiated(
            transaction_id=str((terminal or {}).get("transaction_id") or "").strip(),
            is_debit=is_debit,
        )

    card = data.get("card")
    if card:
        return ManualEntry(card=_parse_card(card), is_debit=is_debit)

    if method == "card":
        raise CheckoutValidationError(
            "Card payment requires a reader token, a terminal request, or card details"
        )

    # 4) ACH
    if method == "ach":
        bank = data.get("bank")
        if not bank:
            raise CheckoutValidationError("ACH payment requires bank account details")
        return ACH(account=_parse_bank(bank))

    # 5) cash / zelle
    if method == "zelle":
        confirmation = re.sub(r"[^A-Za-z0-9-]", "", str(data.get("zelle_confirmation") or ""))
        return Zelle(confirmation=confirmation.upper())
    if method == "cash":
        return Cash()

    raise CheckoutValidationError(f"Unsupported payment method: {method or '(none)'}")
