"""Fixed-point money helpers.

Monetary values are ``Decimal`` with two places.  Floats are refused:
a float slipping into a total is a data-integrity bug.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyInput = Union[Decimal, int, str]


def to_money(value: MoneyInput) -> Decimal:
    """Convert *value* to a two-place ``Decimal``.

    Raises:
        TypeError: *value* is a float.
        ValueError: *value* is not a valid number.
    """
    if isinstance(value, float):
        raise TypeError("Monetary values must not be floats.")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid monetary value: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid monetary value: {value!r}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[MoneyInput]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_money(value)
    return to_money(total)
