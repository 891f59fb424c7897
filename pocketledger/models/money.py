"""
Fixed-point money types.

Amounts are Decimal with at most 19 digits and exactly 2 fractional
digits (DECIMAL(19,2)). Binary floats are never used for money.
"""

from decimal import Decimal, InvalidOperation
from typing import Annotated

from pydantic import Field


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

PositiveMoney = Annotated[
    Decimal,
    Field(gt=0, max_digits=19, decimal_places=2),
]
NonNegativeMoney = Annotated[
    Decimal,
    Field(ge=0, max_digits=19, decimal_places=2),
]


def parse_money(value) -> Decimal:
    """
    Convert ``value`` to a 2-place Decimal.

    Accepts Decimal, int and numeric strings. Floats are refused because
    they cannot represent cents exactly. Raises ValueError on anything
    that is not a finite amount with at most 2 fractional digits.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Unsupported amount type: {type(value).__name__}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        # More significant digits than the decimal context can hold.
        raise ValueError(f"Amount out of range: {value!r}")
    if quantized != amount:
        raise ValueError(f"Amount has more than 2 decimal places: {value!r}")
    return quantized
