"""
Module: inventory_kernel.db.types
Responsibility: Annotated column type aliases and the money helpers shared by
    models, the order calculator, and request parsing.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  Money columns are Numeric(18, 2).
    - round_money() is the ONLY sanctioned rounding function for monetary
      values; it is applied at the point of persistence, never to
      intermediate line totals.

Failure modes:
    - ValueError on non-numeric input to money_from_str() / to_money().
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String

# Monetary amount persisted at two fractional digits
Money = Annotated[Decimal, Numeric(18, 2)]

# Percentage in [0, 100], e.g. a line discount
Percentage = Annotated[Decimal, Numeric(5, 2)]

# Short identifier strings (SKU, order numbers, location segments)
ShortCode = Annotated[str, String(50)]

# Long text for notes and descriptions
LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def money_from_str(value: str) -> Decimal:
    """
    Create a Money value from string.

    Not rounded; callers apply round_money() at persistence.

    Raises:
        ValueError: If value cannot be converted to Decimal.
    """
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc


def to_money(value) -> Decimal:
    """
    Coerce int / str / Decimal input to Decimal.

    Floats are converted through their shortest repr so 0.1 becomes
    Decimal("0.1"), not its binary expansion.

    Raises:
        ValueError: If value is None, a bool, or not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValueError(f"Not a decimal amount: {value!r}")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return money_from_str(repr(value))
    return money_from_str(str(value).strip())


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    This is the ONLY sanctioned rounding function for monetary values.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)
