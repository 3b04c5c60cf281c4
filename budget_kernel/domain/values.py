"""
Values -- Decimal-safe money arithmetic.

Responsibility:
    The single home for monetary arithmetic in the budget core. Every sum,
    difference, product and quotient of money amounts goes through these
    helpers; floats appear only as display ratios (usage rates).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every model and engine module.

Invariants enforced:
    - Decimal-only money: ``to_decimal`` rejects floats.
    - Division by zero never raises: ``safe_divide`` returns 0 and
      ``rate`` returns 0.0 for a non-positive denominator.
    - Arithmetic runs under a wide local decimal context so that sums of
      large household ledgers do not lose digits to the ambient context.

Failure modes:
    - TypeError from ``to_decimal`` when given a float or a non-numeric type.
    - decimal.InvalidOperation from ``to_decimal`` for malformed strings.

Usage:
    from budget_kernel.domain.values import safe_add, safe_divide

    monthly = safe_divide(Decimal("150000"), Decimal("12"))   # 12500
    total = safe_add(monthly, Decimal("500"))
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal, localcontext

ZERO = Decimal("0")

# Generous precision for intermediate results; yen amounts never come close.
_MONEY_CONTEXT = Context(prec=34, rounding=ROUND_HALF_UP)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Convert an int, str or Decimal into a Decimal money value."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Money values must not be {type(value).__name__}: {value!r}")
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")


def safe_add(left: Decimal, right: Decimal) -> Decimal:
    with localcontext(_MONEY_CONTEXT):
        return left + right


def safe_subtract(left: Decimal, right: Decimal) -> Decimal:
    with localcontext(_MONEY_CONTEXT):
        return left - right


def safe_multiply(left: Decimal, right: Decimal | int) -> Decimal:
    with localcontext(_MONEY_CONTEXT):
        return left * right


def safe_divide(dividend: Decimal, divisor: Decimal | int) -> Decimal:
    """Divide, returning 0 when the divisor is zero."""
    if divisor == 0:
        return ZERO
    with localcontext(_MONEY_CONTEXT):
        return dividend / Decimal(divisor)


def safe_sum(values) -> Decimal:
    """Sum an iterable of Decimals; an empty iterable sums to 0."""
    total = ZERO
    for value in values:
        total = safe_add(total, value)
    return total


def round_money(
    value: Decimal,
    decimal_places: int = 0,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """Quantize a money value (yen has no minor unit by default)."""
    quantum = Decimal(1).scaleb(-decimal_places)
    with localcontext(_MONEY_CONTEXT):
        return value.quantize(quantum, rounding=rounding)


def rate(numerator: Decimal, denominator: Decimal) -> float:
    """Ratio for display; 0.0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    return float(safe_divide(numerator, denominator))

