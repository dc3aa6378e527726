"""
Values -- Decimal coercion and rounding helpers.

Responsibility:
    Single place where quantities, rates and amounts enter the ledger as
    ``Decimal`` and where amounts are rounded to the configured precision.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Amounts and quantities are ``Decimal``; ``float`` is rejected so binary
      rounding noise never enters a certificate.
    - Rounding is explicit: callers pass the precision they were configured
      with, never an implicit default buried in arithmetic.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_AMOUNT_PRECISION = Decimal("0.01")


def to_decimal(value: Decimal | int | str | None, field: str = "value") -> Decimal:
    """
    Coerce a quantity, rate or amount to ``Decimal``.

    ``None`` becomes zero (optional deductions default to nothing).

    Raises:
        TypeError: If ``value`` is a float.
        ValueError: If ``value`` cannot be parsed or is not finite.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise TypeError(f"{field} must be numeric, got bool")
    if isinstance(value, float):
        raise TypeError(f"{field} must be Decimal, int or str, got float")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid {field}: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid {field}: {value!r}")
    return result


def round_amount(
    value: Decimal,
    precision: Decimal = DEFAULT_AMOUNT_PRECISION,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """Round an amount to ``precision`` (e.g. ``Decimal("0.01")``)."""
    return value.quantize(precision, rounding=rounding)


def extend(quantity: Decimal, rate: Decimal, precision: Decimal = DEFAULT_AMOUNT_PRECISION) -> Decimal:
    """Quantity x rate, rounded to the amount precision."""
    return round_amount(quantity * rate, precision)


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """``part`` as a percentage of ``whole``; zero when ``whole`` is zero."""
    if whole == ZERO:
        return ZERO
    return round_amount(part / whole * HUNDRED)
