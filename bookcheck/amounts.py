"""Monetary amount extraction and rounding.

Amounts arrive as `{amount, currency}` objects, bare numbers, numeric
strings, or not at all. Everything here treats an absent or unusable amount
as zero so fare arithmetic never has to branch on missing values.
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a scalar into a finite Decimal, or None if it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # repr keeps the shortest round-tripping form, e.g. 0.1 -> "0.1"
        result = Decimal(repr(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            logger.warning("Non-numeric amount %r treated as zero", value)
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def amount_or_zero(value: Any) -> Decimal:
    """Extract a decimal amount, returning zero for anything unusable.

    Accepts None, a number, a numeric string, a mapping with an "amount"
    key, or any object with an ``amount`` attribute (e.g. MoneyAmount).
    Never raises.
    """
    if isinstance(value, Mapping):
        value = value.get("amount")
    elif hasattr(value, "amount") and not isinstance(value, (str, bytes)):
        value = value.amount
    result = to_decimal(value)
    return result if result is not None else ZERO


def round2(value: Decimal) -> Decimal:
    """Round to two decimal places, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def sum_amounts(items: Optional[Iterable[Any]]) -> Decimal:
    """Sum the ``amount`` of each tax/fee line. None sums to zero."""
    total = ZERO
    for item in items or []:
        if isinstance(item, Mapping):
            total += amount_or_zero(item.get("amount"))
        else:
            total += amount_or_zero(getattr(item, "amount", None))
    return total


def is_zero_or_absent(value: Any) -> bool:
    """True when a money value is missing, null, or exactly zero."""
    if value is None:
        return True
    return amount_or_zero(value) == ZERO
