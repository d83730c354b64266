"""
Decimal Utilities
signal_engine/scoring/utils.py

Provides precision-safe decimal math for scoring calculations.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional


def to_decimal(value: Any, places: int = 4) -> Decimal:
    """Convert a number to Decimal with explicit precision."""
    return Decimal(str(value)).quantize(
        Decimal(10) ** -places, rounding=ROUND_HALF_UP
    )


def coerce_decimal(value: Any) -> Optional[Decimal]:
    """
    Best-effort conversion of an untrusted value to Decimal.

    Returns None for booleans, non-numeric strings, NaN and infinities.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def clamp(
    value: Decimal,
    min_val: Decimal = Decimal("0"),
    max_val: Decimal = Decimal("100"),
) -> Decimal:
    """Clamp value to range [min_val, max_val]."""
    return max(min_val, min(max_val, value))


def mean(values: Iterable[Decimal]) -> Optional[Decimal]:
    """
    Arithmetic mean, quantized to 4 places.

    Returns None for an empty input so callers can tell "unobserved" from 0.
    """
    items = list(values)
    if not items:
        return None
    total = sum(items, Decimal("0"))
    return to_decimal(total / Decimal(len(items)))


def round2(value: Decimal) -> Decimal:
    return to_decimal(value, 2)
