# sales/services/sale_ledger.py

"""
SALE LEDGER (LOCAL, ATOMIC)

Writes the Sale and all of its SaleItem rows as one unit, after the payment
has succeeded. Either everything exists or nothing does.

Not retried. A failure here means money was taken without a record, so it
is logged at CRITICAL with the gateway transaction id and re-raised as
SaleRecordingError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import DatabaseError, IntegrityError, transaction

from integrations.contracts import PaymentResult
from sales.models import Sale, SaleItem
from sales.services.exceptions import DuplicateTransaction, SaleRecordingError
from sales.services.tax_resolver import PricedLine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaleTotals:
    subtotal: Decimal
    tax: Decimal
    tax_percentage: Decimal
    card_fee: Decimal
    total: Decimal

    @classmethod
    def from_parts(cls, *, subtotal: Decimal, tax: Decimal, tax_percentage: Decimal, card_fee: Decimal) -> "SaleTotals":
        return cls(
            subtotal=subtotal,
            tax=tax,
            tax_percentage=tax_percentage,
            card_fee=card_fee,
            total=subtotal + tax + card_fee,
        )


@dataclass(frozen=True)
class SaleContext:
    store: object
    invoice_no: str
    payment_method: str
    payment_channel: str
    user: object = None
    customer: object = None
    notes: str = ""
    sync_status: str = Sale.SYNC_NOT_APPLICABLE


def _item_rows(sale: Sale, lines: list[PricedLine]) -> list[SaleItem]:
    return [
        SaleItem(
            sale=sale,
            product=line.product,
            item_name=line.item_name,
            external_item_id=line.external_item_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            line_subtotal=line.line_subtotal,
            line_tax_amount=line.line_tax_amount,
            line_total=line.line_total,
            external_tax_rule_id=line.external_tax_rule_id,
            position=idx,
        )
        for idx, line in enumerate(lines)
    ]


def commit_sale(*, totals: SaleTotals, payment: PaymentResult, lines: list[PricedLine], context: SaleContext) -> Sale:
    txn_id = payment.external_transaction_id
    store = context.store

    try:
        with transaction.atomic():
            sale = Sale.objects.create(
                invoice_no=context.invoice_no,
                store=store,
                location_code=(getattr(store, "code", "") or ""),
                customer=context.customer,
                user=context.user,
                subtotal_amount=totals.subtotal,
                tax_amount=totals.tax,
                tax_percentage=totals.tax_percentage,
                card_fee_amount=totals.card_fee,
                total_amount=totals.total,
                payment_method=context.payment_method,
                payment_channel=context.payment_channel,
                external_transaction_id=txn_id,
                sync_status=context.sync_status,
                notes=context.notes or "",
            )
            SaleItem.objects.bulk_create(_item_rows(sale, lines))
    except IntegrityError as exc:
        existing = Sale.objects.filter(external_transaction_id=txn_id).first()
        if existing is not None:
            logger.warning(
                "sale.duplicate_transaction",
                extra={"external_transaction_id": txn_id, "invoice_no": existing.invoice_no},
            )
            raise DuplicateTransaction(existing) from exc
        _alarm(txn_id, context, totals, exc)
        raise SaleRecordingError(
            f"Payment {txn_id} succeeded but the sale could not be recorded: {exc}",
            external_transaction_id=txn_id,
        ) from exc
    except (DatabaseError, ValueError) as exc:
        _alarm(txn_id, context, totals, exc)
        raise SaleRecordingError(
            f"Payment {txn_id} succeeded but the sale could not be recorded: {exc}",
            external_transaction_id=txn_id,
        ) from exc

    logger.info(
        "sale.recorded",
        extra={
            "sale_id": str(sale.pk),
            "invoice_no": sale.invoice_no,
            "external_transaction_id": txn_id,
            "total_amount": str(sale.total_amount),
        },
    )
    return sale


def _alarm(txn_id: str, context: SaleContext, totals: SaleTotals, exc: Exception) -> None:
    logger.critical(
        "sale.recording_failed_after_payment",
        extra={
            "external_transaction_id": txn_id,
            "invoice_no": context.invoice_no,
            "payment_channel": context.payment_channel,
            "total_amount": str(totals.total),
            "error": str(exc),
        },
        exc_info=exc,
    )
