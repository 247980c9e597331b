# sales/services/tax_resolver.py

"""
TAX RESOLUTION + LINE MATH

Rate fallback chain (order matters; downstream ledger expects it):
1) store.tax_percentage, if a valid finite number
2) a "NN.NN%" pattern in the store display name, e.g. "Miami Dade Sales Tax (7%)"
3) TaxConfig.default_rate_percent

Exemption wins over all of the above and forces 0.

Line math (ROUND_HALF_UP, cents, per line; never at the sum):
    line_subtotal = round2(unit_price * quantity)
    line_tax      = round2(line_subtotal * rate / 100)
    line_total    = line_subtotal + line_tax
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from django.conf import settings

from integrations.exceptions import IntegrationError
from sales.services.money import ZERO, money, to_decimal

logger = logging.getLogger(__name__)

NAME_RATE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*%")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class TaxConfig:
    default_rate_percent: Decimal = Decimal("7.5")

    @classmethod
    def from_settings(cls) -> "TaxConfig":
        pos = getattr(settings, "POS", {}) or {}
        rate = to_decimal(pos.get("DEFAULT_TAX_PERCENT"))
        if rate is None or rate < 0:
            return cls()
        return cls(default_rate_percent=rate)


@dataclass(frozen=True)
class TaxResolution:
    rate_percent: Decimal
    tax_rule_id: str | None = None
    exempt: bool = False


@dataclass(frozen=True)
class CartLine:
    """One requested cart line, priced from the catalog snapshot."""

    product: object
    item_name: str
    quantity: Decimal
    unit_price: Decimal
    external_item_id: str = ""


@dataclass(frozen=True)
class PricedLine:
    product: object
    item_name: str
    external_item_id: str
    quantity: Decimal
    unit_price: Decimal
    line_subtotal: Decimal
    line_tax_amount: Decimal
    line_total: Decimal
    external_tax_rule_id: str | None


def rate_from_name(name: str) -> Decimal | None:
    m = NAME_RATE_PATTERN.search(name or "")
    if not m:
        return None
    return to_decimal(m.group(1))


def resolve_rate_percent(store, config: TaxConfig) -> Decimal:
    configured = to_decimal(getattr(store, "tax_percentage", None))
    if configured is not None and configured >= 0:
        return configured

    parsed = rate_from_name(getattr(store, "name", ""))
    if parsed is not None:
        return parsed

    return config.default_rate_percent


def lookup_tax_rule_id(ledger, rate_percent: Decimal) -> str | None:
    """Ledger lookup by percentage. Failure means "no rule id", never an error."""
    if ledger is None or rate_percent <= 0:
        return None
    try:
        return ledger.lookup_tax_rule_id(rate_percent) or None
    except IntegrationError as exc:
        logger.warning(
            "tax.rule_lookup_failed",
            extra={"rate_percent": str(rate_percent), "error": str(exc)},
        )
        return None


def resolve_tax(store, *, tax_exempt: bool = False, ledger=None, config: TaxConfig | None = None) -> TaxResolution:
    if tax_exempt:
        return TaxResolution(rate_percent=Decimal("0"), tax_rule_id=None, exempt=True)

    config = config or TaxConfig.from_settings()
    rate = resolve_rate_percent(store, config)

    rule_id = (getattr(store, "tax_rule_id", None) or "").strip() or None
    if rule_id is None:
        rule_id = lookup_tax_rule_id(ledger, rate)

    return TaxResolution(rate_percent=rate, tax_rule_id=rule_id)


def price_line(line: CartLine, tax: TaxResolution) -> PricedLine:
    qty = Decimal(str(line.quantity))
    unit_price = money(line.unit_price)
    line_subtotal = money(unit_price * qty)
    line_tax = money(line_subtotal * tax.rate_percent / HUNDRED)

    return PricedLine(
        product=line.product,
        item_name=line.item_name,
        external_item_id=line.external_item_id or "",
        quantity=qty,
        unit_price=unit_price,
        line_subtotal=line_subtotal,
        line_tax_amount=line_tax,
        line_total=line_subtotal + line_tax,
        external_tax_rule_id=tax.tax_rule_id if tax.rate_percent > ZERO else None,
    )


def compute_lines(lines: Iterable[CartLine], tax: TaxResolution) -> list[PricedLine]:
    return [price_line(line, tax) for line in lines]


def sum_lines(priced: Iterable[PricedLine]) -> tuple[Decimal, Decimal]:
    """(subtotal, tax) as exact sums of the already-rounded line values."""
    subtotal = ZERO
    tax = ZERO
    for p in priced:
        subtotal += p.line_subtotal
        tax += p.line_tax_amount
    return subtotal, tax
