"""
Order Item Calculator -- pure Decimal arithmetic for order lines and totals.

Responsibility:
    Computes line totals (with percentage discount), purchase order totals,
    and sales order subtotal / tax / total from an order's item set.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The order services
    call it explicitly after every item add/update/remove and after every
    receive/fulfill, then persist the header in the same transaction.

Invariants enforced:
    - Decimal only; float inputs are rejected by the callers' parsing.
    - Per-line totals are NOT rounded before summation.  Only the values
      handed to persistence are rounded, once, to two fractional digits with
      ROUND_HALF_UP via round_money().
    - Sales tax = tax_rate x unrounded subtotal; total = unrounded subtotal
      + unrounded tax + shipping, then rounded.  The rounded total may
      therefore differ by 0.01 from the sum of the rounded components; the
      total is the authoritative amount.

Failure modes:
    - InvalidAmountError on negative unit price, negative shipping, or a
      discount outside 0-100.
    - InvalidQuantityError on a non-positive quantity.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from inventory_kernel.db.types import HUNDRED, ZERO, round_money
from inventory_kernel.exceptions import InvalidAmountError, InvalidQuantityError

DEFAULT_SALES_TAX_RATE = Decimal("0.10")


@dataclass(frozen=True)
class PricedLine:
    """Calculator input: one order line."""
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal = ZERO


@dataclass(frozen=True)
class PurchaseTotals:
    total_amount: Decimal
    line_totals: tuple[Decimal, ...]


@dataclass(frozen=True)
class SalesTotals:
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    line_totals: tuple[Decimal, ...]


def validate_line(quantity: int, unit_price: Decimal, discount_percent: Decimal = ZERO) -> None:
    """Reject values no order line may hold."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity, "order line quantity must be a positive integer")
    if unit_price < ZERO:
        raise InvalidAmountError("unit_price", unit_price, "must not be negative")
    if discount_percent < ZERO or discount_percent > HUNDRED:
        raise InvalidAmountError("discount", discount_percent, "must be between 0 and 100")


def line_total(quantity: int, unit_price: Decimal, discount_percent: Decimal = ZERO) -> Decimal:
    """quantity x unit_price x (1 - discount/100), unrounded."""
    gross = Decimal(quantity) * unit_price
    if discount_percent == ZERO:
        return gross
    return gross * (HUNDRED - discount_percent) / HUNDRED


def purchase_totals(lines: Iterable[PricedLine]) -> PurchaseTotals:
    """Purchase order total = sum of unrounded line totals, rounded once."""
    raw = [line_total(l.quantity, l.unit_price) for l in lines]
    return PurchaseTotals(
        total_amount=round_money(sum(raw, ZERO)),
        line_totals=tuple(round_money(t) for t in raw),
    )


def sales_totals(
    lines: Iterable[PricedLine],
    shipping_cost: Decimal = ZERO,
    tax_rate: Decimal = DEFAULT_SALES_TAX_RATE,
) -> SalesTotals:
    """Sales order subtotal, tax, shipping and total."""
    if shipping_cost < ZERO:
        raise InvalidAmountError("shipping_cost", shipping_cost, "must not be negative")
    if tax_rate < ZERO:
        raise InvalidAmountError("tax_rate", tax_rate, "must not be negative")

    raw = [line_total(l.quantity, l.unit_price, l.discount_percent) for l in lines]
    subtotal = sum(raw, ZERO)
    tax = subtotal * tax_rate
    total = subtotal + tax + shipping_cost

    return SalesTotals(
        subtotal=round_money(subtotal),
        tax=round_money(tax),
        shipping_cost=round_money(shipping_cost),
        total_amount=round_money(total),
        line_totals=tuple(round_money(t) for t in raw),
    )
