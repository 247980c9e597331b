# sales/services/fee_calculator.py

"""
CARD CONVENIENCE FEE

fee = round2(percent / 100 * (subtotal + tax)), only when the RESOLVED
payment type is a card. Stored profiles must be resolved to card vs bank
before this runs (PaymentDispatcher.prepare).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

from sales.services.money import ZERO, money, to_decimal

FEE_KIND_CARD = "card"
FEE_KIND_NONE = "none"


@dataclass(frozen=True)
class FeePolicy:
    percent: Decimal = Decimal("3.00")
    exempt_debit: bool = False

    @classmethod
    def from_settings(cls) -> "FeePolicy":
        pos = getattr(settings, "POS", {}) or {}
        percent = to_decimal(pos.get("CARD_FEE_PERCENT"))
        if percent is None or percent < 0:
            percent = Decimal("3.00")
        return cls(
            percent=percent,
            exempt_debit=not bool(pos.get("SURCHARGE_DEBIT_CARDS", True)),
        )


def card_fee(subtotal: Decimal, tax: Decimal, *, plan, policy: FeePolicy | None = None) -> Decimal:
    policy = policy or FeePolicy.from_settings()

    if plan.fee_kind != FEE_KIND_CARD:
        return ZERO
    if plan.is_debit and policy.exempt_debit:
        return ZERO

    return money(policy.percent / Decimal("100") * (money(subtotal) + money(tax)))
