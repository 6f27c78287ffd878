"""
Module: ledger_kernel.db.types
Responsibility: Annotated column aliases and the money helpers every model,
    service and report uses.  Centralizes precision and rounding so that a
    balance check in the journal writer and a total on a statement agree.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and modules.  MUST NOT import from any of those.

Invariants enforced:
    - Monetary amounts are Decimal, stored as Numeric(38, 9).
    - round_money() is the ONLY rounding function for reported amounts
      (two places, ROUND_HALF_UP).
    - BALANCE_TOLERANCE (0.01) is the single threshold for "balanced".

Failure modes:
    - InvalidInputError (a ValueError) from to_money() on a non-numeric value.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String

from ledger_kernel.exceptions import InvalidInputError

Money = Annotated[Decimal, Numeric(38, 9)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0")
BALANCE_TOLERANCE = Decimal("0.01")


def to_money(value) -> Decimal:
    """
    Coerce an int, str, or Decimal into a Decimal amount.

    Floats go through ``str()`` so that 0.1 becomes Decimal("0.1") rather
    than its binary expansion.

    Raises:
        InvalidInputError: If value is None, a bool, or not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise InvalidInputError("amount", f"not a monetary amount: {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidInputError("amount", f"not a monetary amount: {value!r}") from exc


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return to_money(value).quantize(Decimal(quantize_str), rounding=rounding)


def is_within_tolerance(left: Decimal, right: Decimal) -> bool:
    """True when two amounts differ by less than one cent."""
    return abs(to_money(left) - to_money(right)) < BALANCE_TOLERANCE
