"""
Module: invoicing_kernel.db.types
Responsibility: Annotated type aliases and the rounding helpers for money.
    Centralizes precision and rounding so that every model, domain function
    and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money has two decimal places.  round_money() is the ONLY sanctioned
      rounding function for monetary values and always rounds half-up.
    - No floats anywhere.  to_money() refuses float input.
    - Stored amounts stay below MONEY_LIMIT (17 integer digits, matching
      Numeric(19, 2)).

Failure modes:
    - decimal.InvalidOperation on non-numeric strings passed to to_money().
    - TypeError when a float is passed to to_money().
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String, Text

# Monetary amount: 19 digits, 2 decimal places
Money = Annotated[Decimal, Numeric(19, 2)]

# PREFIX-YYYY-NNNN, NNNN may grow past four digits
DocumentNumberText = Annotated[str, String(40)]

# Encoded line-item list
EncodedItems = Annotated[str, Text()]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0.00")

# Numeric(19, 2) leaves 17 integer digits
MONEY_INTEGER_DIGITS = 17
MONEY_LIMIT = Decimal(10) ** MONEY_INTEGER_DIGITS


def to_money(value: Decimal | int | str) -> Decimal:
    """Coerce a Decimal, int or numeric string to Decimal, rejecting float."""
    if isinstance(value, float):
        raise TypeError("Monetary amounts must not be float")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def round_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """
    Round a monetary value half-up.

    Args:
        value: Amount to round.
        decimal_places: Number of fractional digits to keep.

    Returns:
        Decimal quantized to ``decimal_places`` with ROUND_HALF_UP.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=DEFAULT_ROUNDING)


def has_cent_precision(value: Decimal) -> bool:
    """True when ``value`` has no more than two significant fractional digits.

    Reads the digit tuple directly, so it never raises for large values.
    """
    _, digits, exponent = value.as_tuple()
    if not isinstance(exponent, int):
        return False
    if exponent >= -MONEY_DECIMAL_PLACES:
        return True
    significant = "".join(map(str, digits)).rstrip("0")
    if not significant:
        return True
    return len(digits) - len(significant) >= -MONEY_DECIMAL_PLACES - exponent


def fits_money_column(value: Decimal) -> bool:
    """True when ``value`` can be stored in a ``Money`` column."""
    return abs(value) < MONEY_LIMIT
