# sales/services/checkout_orchestrator.py

"""
CHECKOUT ORCHESTRATOR (APPLICATION SERVICE)

Purpose:
- Turn a cart + payment method + customer into exactly one recorded Sale.

Order (each step depends on the previous one):
1) validate cart, batch-load products
2) resolve tax, price lines (cents per line)
3) prepare payment (resolves stored profile card vs bank)
4) card fee on the RESOLVED type, total
5) charge                          <- money moves here
6) record Sale + items atomically
7) first ledger sync attempt (failure recorded, never raised)
8) opt-in: keep the charged instrument on file (best-effort)
9) receipt dispatched in the background

Hard rules:
- Money values are computed server-side; the register never sends totals.
- Nothing before step 5 has side effects; nothing after step 5 may undo the sale.
- A cloud terminal payment that is still pending returns WITHOUT a Sale; the
  register re-submits with the terminal transaction id to confirm. Confirming
  an already-recorded transaction returns the existing Sale.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from integrations.contracts import PaymentResult
from products.models import Product
from sales.models import Sale
from sales.services.exceptions import CheckoutValidationError, DuplicateTransaction, PaymentDeclined
from sales.services.fee_calculator import FeePolicy, card_fee
from sales.services.ledger_sync import initial_sync_status, sync_new_sale
from sales.services.money import TWOPLACES, to_decimal
from sales.services.payment_dispatcher import PaymentDispatcher
from sales.services.payment_methods import ExternalGatewayInitiated, parse_payment_method
from sales.services.receipt_dispatcher import dispatch_receipt
from sales.services.registry import get_integrations
from sales.services.sale_ledger import SaleContext, SaleTotals, commit_sale
from sales.services.tax_resolver import CartLine, TaxConfig, compute_lines, resolve_tax, sum_lines

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutOutcome:
    sale: Sale | None
    payment: PaymentResult
    pending: bool = False
    already_recorded: bool = False

    @property
    def sync_status(self) -> str:
        return self.sale.sync_status if self.sale is not None else ""


def _parse_quantity(raw, *, position: int) -> Decimal:
    qty = to_decimal(raw)
    if qty is None or qty <= 0:
        raise CheckoutValidationError(f"Line {position + 1}: quantity must be greater than zero")
    if qty != qty.quantize(TWOPLACES):
        raise CheckoutValidationError(f"Line {position + 1}: quantity allows at most two decimals")
    return qty.quantize(TWOPLACES)


def _parse_product_id(raw, *, position: int) -> uuid.UUID:
    try:
        return raw if isinstance(raw, uuid.UUID) else uuid.UUID(str(raw))
    except (ValueError, TypeError, AttributeError):
        raise CheckoutValidationError(f"Line {position + 1}: invalid product id") from None


def load_cart(lines) -> list[CartLine]:
    """Validate requested lines and price them from one batched catalog read."""
    lines = list(lines or [])
    if not lines:
        raise CheckoutValidationError("Cart is empty")

    requested = [
        (_parse_product_id(line.get("product_id"), position=i), _parse_quantity(line.get("quantity"), position=i))
        for i, line in enumerate(lines)
    ]
    products = Product.objects.in_bulk([pid for pid, _ in requested])

    cart = []
    for i, (pid, qty) in enumerate(requested):
        product = products.get(pid)
        if product is None:
            raise CheckoutValidationError(f"Line {i + 1}: product {pid} does not exist")
        if not product.is_active:
            raise CheckoutValidationError(f"Line {i + 1}: {product.name} is not available for sale")
        cart.append(
            CartLine(
                product=product,
                item_name=product.name,
                quantity=qty,
                unit_price=product.unit_price,
                external_item_id=product.external_item_id or "",
            )
        )
    return cart


def _already_recorded(method) -> Sale | None:
    if isinstance(method, ExternalGatewayInitiated) and method.transaction_id:
        return Sale.objects.filter(external_transaction_id=method.transaction_id).first()
    return None


def checkout_sale(
    *,
    user,
    store,
    lines,
    payment_method,
    customer=None,
    tax_exempt: bool = False,
    notes: str = "",
    save_payment_method: bool = False,
    gateway=None,
    terminal=None,
    ledger=None,
    notifier=None,
    receipt_executor=None,
) -> CheckoutOutcome:
    configured = get_integrations()
    gateway = gateway or configured.gateway
    terminal = terminal or configured.terminal
    ledger = ledger or configured.ledger
    notifier = notifier or configured.notifier

    if store is None:
        raise CheckoutValidationError("A store is required for checkout")

    method = payment_method if not isinstance(payment_method, dict) else parse_payment_method(payment_method)

    existing = _already_recorded(method)
    if existing is not None:
        logger.info(
            "checkout.terminal_already_recorded",
            extra={"invoice_no": existing.invoice_no, "external_transaction_id": existing.external_transaction_id},
        )
        return CheckoutOutcome(
            sale=existing,
            payment=PaymentResult.approved(existing.external_transaction_id),
            already_recorded=True,
        )

    cart = load_cart(lines)

    exempt = bool(tax_exempt) or bool(customer is not None and customer.is_tax_exempt)
    tax = resolve_tax(store, tax_exempt=exempt, ledger=ledger, config=TaxConfig.from_settings())
    priced = compute_lines(cart, tax)
    subtotal, tax_amount = sum_lines(priced)

    dispatcher = PaymentDispatcher(gateway=gateway, terminal=terminal)
    plan = dispatcher.prepare(method, customer=customer, store=store)

    fee = card_fee(subtotal, tax_amount, plan=plan, policy=FeePolicy.from_settings())
    totals = SaleTotals.from_parts(
        subtotal=subtotal,
        tax=tax_amount,
        tax_percentage=tax.rate_percent,
        card_fee=fee,
    )

    invoice_no = Sale.generate_invoice_no()
    result = dispatcher.charge(totals.total, plan, invoice_number=invoice_no)

    if result.pending:
        logger.info(
            "checkout.payment_pending",
            extra={"invoice_no": invoice_no, "external_transaction_id": result.external_transaction_id},
        )
        return CheckoutOutcome(sale=None, payment=result, pending=True)

    if not result.success:
        logger.info(
            "checkout.payment_declined",
            extra={"invoice_no": invoice_no, "channel": plan.channel, "error_code": result.error_code},
        )
        raise PaymentDeclined(result)

    sale_notes = "\n".join(n for n in ((notes or "").strip(), plan.notes) if n)
    context = SaleContext(
        store=store,
        invoice_no=invoice_no,
        payment_method=plan.payment_method,
        payment_channel=plan.channel,
        user=user if getattr(user, "is_authenticated", False) else None,
        customer=customer,
        notes=sale_notes,
        sync_status=initial_sync_status(customer),
    )
    try:
        sale = commit_sale(totals=totals, payment=result, lines=priced, context=context)
    except DuplicateTransaction as dup:
        return CheckoutOutcome(sale=dup.sale, payment=result, already_recorded=True)

    sale = sync_new_sale(sale, ledger=ledger)
    if save_payment_method:
        dispatcher.save_payment_method(plan, result, customer=customer)
    dispatch_receipt(sale, notifier=notifier, executor=receipt_executor)

    return CheckoutOutcome(sale=sale, payment=result)


def confirm_terminal_payment(*, transaction_id: str, **kwargs) -> CheckoutOutcome:
    """Re-submit a cart whose cloud terminal payment was pending."""
    if not (transaction_id or "").strip():
        raise CheckoutValidationError("transaction_id is required to confirm a terminal payment")
    return checkout_sale(
        payment_method=ExternalGatewayInitiated(transaction_id=transaction_id.strip()),
        **kwargs,
    )
