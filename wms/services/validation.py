"""Numeric input parsing shared by the ledger services."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from wms.services.errors import InvalidInputError

# Scale of the Numeric money and page columns
CENTS = Decimal('0.01')


def to_decimal(value: Any, field: str) -> Decimal:
    """Parse ``value`` as a finite Decimal or raise InvalidInputError."""
    if value is None or isinstance(value, bool):
        raise InvalidInputError(f"Invalid {field}")
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"Invalid {field}")
    if not parsed.is_finite():
        raise InvalidInputError(f"Invalid {field}")
    return parsed


def quantize_money(value: Decimal) -> Decimal:
    """Round to two places, half up, matching what the database stores."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_positive_decimal(value: Any, field: str) -> Decimal:
    """Parse a two-place amount that is still positive after rounding."""
    parsed = quantize_money(to_decimal(value, field))
    if parsed <= 0:
        raise InvalidInputError(f"{field.capitalize()} must be greater than zero")
    return parsed


def to_positive_int(value: Any, field: str) -> int:
    parsed = to_decimal(value, field)
    if parsed != parsed.to_integral_value() or parsed < 1:
        raise InvalidInputError(f"{field.capitalize()} must be a positive whole number")
    return int(parsed)


__all__ = ['CENTS', 'to_decimal', 'quantize_money', 'to_positive_decimal', 'to_positive_int']
