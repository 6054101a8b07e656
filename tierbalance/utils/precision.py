"""Fixed-point helpers for monetary amounts and percentages.

All money flowing through the planner is ``Decimal``. Floats are converted via
their shortest ``repr`` so that ``0.1`` becomes ``Decimal("0.1")`` rather than
its binary expansion. Any ``numbers.Integral`` or ``numbers.Real`` is accepted,
so numpy scalars pulled out of a pandas frame work like builtins.
"""

import numbers
from decimal import ROUND_HALF_EVEN, Context, Decimal, InvalidOperation, localcontext
from typing import Iterable, Optional, Union

Number = Union[int, float, str, Decimal]

DEFAULT_TRADE_UNIT = Decimal("0.01")

MIN_PRECISION = 34
MAX_PRECISION = 500
# Headroom for the percentage scaling (x100) and quotient digits
PRECISION_MARGIN = 10


def to_decimal(value: Number) -> Decimal:
    """Convert a number to ``Decimal`` without binary float noise.

    Args:
        value: Integral or real number (builtin or numpy scalar), numeric
            string or Decimal

    Returns:
        Decimal value (may be NaN or infinite; callers check ``is_finite()``)

    Raises:
        TypeError: If value is not a supported numeric type
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Expected a number, got bool {value!r}")
    if isinstance(value, numbers.Integral):
        return Decimal(int(value))
    if isinstance(value, numbers.Real):
        return Decimal(repr(float(value)))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as e:
            raise TypeError(f"Expected a numeric string, got {value!r}") from e
    raise TypeError(f"Expected a number, got {type(value).__name__}")


def decimal_context(amounts: Iterable[Decimal], unit: Optional[Decimal] = None) -> Context:
    """Half-even context wide enough to hold every amount to the unit exactly.

    The precision covers the span from the largest amount's leading digit down
    to the finest exponent among the amounts and the unit, with a margin, and
    never drops below 34 digits.

    Args:
        amounts: Finite amounts the computation will combine
        unit: Trade unit results are quantized to

    Returns:
        Context with ROUND_HALF_EVEN rounding

    Raises:
        ValueError: If the span needs more than MAX_PRECISION digits

    Example:
        >>> decimal_context([Decimal("1E+33")], Decimal("0.01")).prec
        45
    """
    nonzero = [a for a in amounts if a]
    top = max((a.adjusted() for a in nonzero), default=0)
    exponents = [a.as_tuple().exponent for a in nonzero]
    if unit is not None:
        exponents.append(unit.as_tuple().exponent)
    bottom = min(exponents, default=0)

    prec = max(MIN_PRECISION, max(top, 0) - min(bottom, 0) + PRECISION_MARGIN)
    if prec > MAX_PRECISION:
        raise ValueError(
            f"Amounts span {prec} significant digits, at most {MAX_PRECISION} supported"
        )
    return Context(prec=prec, rounding=ROUND_HALF_EVEN)


def quantize_to_unit(amount: Decimal, unit: Decimal = DEFAULT_TRADE_UNIT) -> Decimal:
    """Round an amount to a multiple of ``unit`` using round-half-to-even.

    Runs in the current decimal context; callers handling large amounts or
    fine units enter a ``decimal_context`` first.

    Args:
        amount: Amount to round
        unit: Smallest tradable unit (for example ``Decimal("0.01")`` or
            ``Decimal("5")``)

    Returns:
        Rounded amount, an exact multiple of unit

    Example:
        >>> quantize_to_unit(Decimal("10.005"))
        Decimal('10.00')
        >>> quantize_to_unit(Decimal("12.5"), Decimal("5"))
        Decimal('10')
    """
    steps = (amount / unit).quantize(Decimal("1"), rounding=ROUND_HALF_EVEN)
    # Decimal keeps a signed zero; normalise so -0.4 rounds to 0.00, not -0.00
    return steps * unit + 0


def exact_sum(amounts: Iterable[Decimal]) -> Decimal:
    """Sum finite amounts without rounding, whatever the caller's context.

    Raises:
        ValueError: If the amounts span more than MAX_PRECISION digits
    """
    amounts = list(amounts)
    with localcontext(decimal_context(amounts)):
        return sum(amounts, Decimal("0"))
