"""
PricingEngine -- exact monetary arithmetic for an invoice.

Responsibility:
    Derive subtotal, tax and total from line items, tax category and
    discount.  Pure functions over ``Decimal``; no I/O, no clock.

Architecture position:
    Kernel > Domain.  Called by ``InvoiceLedger`` on create and update,
    before anything is written.

Invariants enforced:
    - Every monetary result is rounded half-up to two places.
    - The subtotal sums unrounded products and rounds once.
    - ``total == subtotal + tax - discount`` exactly, to the cent.
    - ``0 <= discount <= subtotal``.
    - Identical inputs always produce identical outputs.

Failure modes:
    - InvalidTaxCategoryError for a category outside the closed set.
    - InvalidDiscountError for a negative, oversized or sub-cent discount.
    - InvalidLineItemError when the subtotal or total cannot be stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from invoicing_kernel.db.types import (
    MONEY_INTEGER_DIGITS,
    ZERO,
    fits_money_column,
    has_cent_precision,
    round_money,
    to_money,
)
from invoicing_kernel.domain.values import LineItem, TaxCategory
from invoicing_kernel.exceptions import InvalidDiscountError, InvalidLineItemError

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PricingResult:
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


def subtotal(items: Iterable[LineItem]) -> Decimal:
    """Sum of quantity x unit price over all items, rounded once."""
    raw = sum((item.unit_price * item.quantity for item in items), Decimal(0))
    if fits_money_column(raw):
        rounded = round_money(raw)
        if fits_money_column(rounded):
            return rounded
    raise InvalidLineItemError(f"subtotal exceeds {MONEY_INTEGER_DIGITS} integer digits")


def tax(subtotal_amount: Decimal, category: TaxCategory | str) -> Decimal:
    """Tax on ``subtotal_amount`` at the category's percentage."""
    percentage = TaxCategory.parse(category).percentage
    return round_money(subtotal_amount * percentage / _HUNDRED)


def total(subtotal_amount: Decimal, tax_amount: Decimal, discount: Decimal) -> Decimal:
    return round_money(subtotal_amount + tax_amount - discount)


def validate_discount(discount: Decimal | int | str, subtotal_amount: Decimal) -> Decimal:
    """
    Check that ``discount`` lies in ``[0, subtotal]`` with cent precision.

    Returns:
        The discount rounded to two places (a no-op for valid input).
    """
    value = to_money(discount)
    if not value.is_finite():
        raise InvalidDiscountError(str(value), str(subtotal_amount), "discount must be a finite amount")
    if value < 0:
        raise InvalidDiscountError(str(value), str(subtotal_amount), "discount must not be negative")
    if not has_cent_precision(value):
        raise InvalidDiscountError(
            str(value), str(subtotal_amount), "discount has more than two decimal places"
        )
    if value > subtotal_amount:
        raise InvalidDiscountError(
            str(value),
            str(subtotal_amount),
            f"discount {value} exceeds subtotal {subtotal_amount}",
        )
    return round_money(value)


def price(
    items: Iterable[LineItem],
    category: TaxCategory | str,
    discount: Decimal | int | str = ZERO,
) -> PricingResult:
    """Compute all monetary fields of an invoice in one pass."""
    sub = subtotal(items)
    tax_amount = tax(sub, category)
    applied = validate_discount(discount, sub)
    if not fits_money_column(sub + tax_amount):
        raise InvalidLineItemError(f"total exceeds {MONEY_INTEGER_DIGITS} integer digits")
    grand_total = total(sub, tax_amount, applied)

    # Operands are all cent-exact, so the rounded total must match exactly
    assert grand_total == sub + tax_amount - applied

    return PricingResult(subtotal=sub, tax=tax_amount, discount=applied, total=grand_total)
