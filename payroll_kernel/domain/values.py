"""
Values -- Decimal helpers shared by every engine.

Responsibility:
    Validates caller-supplied monetary amounts and rates at the engine
    boundary and provides the single rounding rule used for published
    figures.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic: floats are rejected at the boundary, never
      silently converted.
    - Published monetary figures are rounded to 2 decimal places,
      half away from zero (``ROUND_HALF_UP`` in ``decimal`` terms).
    - NaN and Infinity never enter a calculation.

Failure modes:
    - InvalidInputError for float, non-numeric, non-finite or negative
      (where disallowed) values.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from payroll_kernel.exceptions import InvalidInputError

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def require_amount(
    value: Decimal | int | str,
    field: str,
    *,
    allow_negative: bool = False,
) -> Decimal:
    """
    Coerce ``value`` to a finite Decimal or raise InvalidInputError.

    Preconditions:
        - ``value`` is a Decimal, int, or numeric string.  Floats are
          refused because their binary representation cannot be audited.
    Postconditions:
        - Returns a finite Decimal, non-negative unless ``allow_negative``.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidInputError(field, value, "must be Decimal, int or str, not float")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).replace(",", "").strip())
        except InvalidOperation as exc:
            raise InvalidInputError(field, value, "is not a number") from exc
    else:
        raise InvalidInputError(field, value, f"unsupported type {type(value).__name__}")

    if not amount.is_finite():
        raise InvalidInputError(field, value, "must be finite")
    if not allow_negative and amount < ZERO:
        raise InvalidInputError(field, value, "must not be negative")
    return amount


def require_rate(value: Decimal | int | str, field: str) -> Decimal:
    """Coerce a rate expressed as a fraction (0.06 for 6%) and check it is in [0, 1]."""
    rate = require_amount(value, field)
    if rate > Decimal("1"):
        raise InvalidInputError(field, value, "rates are fractions; must be <= 1")
    return rate
