"""Decimal helpers shared by all money arithmetic.

Net worth, fees, revenue, spend and budgets are :class:`decimal.Decimal`
throughout the package, so the cash identity
``net_worth == initial_capital - fees + revenue - spend`` holds exactly no
matter how many days are simulated. Public methods accept ``int``, ``float``,
``str`` or ``Decimal`` and normalise through :func:`to_decimal`.

Example:
    Deriving ROAS from raw platform figures::

        from dropship_ledger.decimal_utils import safe_divide, to_decimal

        spend = to_decimal(125.0)
        roas = safe_divide(to_decimal(300.0), spend)  # Decimal('2.4'), 0 if spend is 0
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Union

from .exceptions import ValidationError

CURRENCY_PLACES = Decimal("0.01")

ZERO = Decimal("0.00")
PENNY = Decimal("0.01")

# Shape of every to_dict() / export payload handed to the reporting layer.
MetricsDict = Dict[str, Union[float, int, str, bool, None]]

# Anything to_decimal accepts as an amount.
Numeric = Union[Decimal, float, int, str]


def to_decimal(value: Union[float, int, str, Decimal, None]) -> Decimal:
    """Normalise a public money or ratio input to Decimal.

    Floats go through ``str`` after rounding to 10 places, so ``0.1``
    becomes ``Decimal('0.1')`` rather than its binary expansion. ``None``
    maps to zero; Decimals are returned as-is.

    Raises:
        TypeError: For ``bool``, which Python would otherwise treat as 0/1.

    Example:
        >>> to_decimal(49.99)
        Decimal('49.99')
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean values are not valid monetary amounts")
    if isinstance(value, float):
        return Decimal(str(round(value, 10)))
    return Decimal(value)


def to_float(value: Optional[Numeric]) -> Optional[float]:
    """Render a Decimal (or None) as a JSON-friendly float."""
    if value is None:
        return None
    return float(value)


def quantize_currency(value: Numeric) -> Decimal:
    """Round to whole cents, half up.

    Example:
        >>> quantize_currency(Decimal("87.125"))
        Decimal('87.13')
    """
    return to_decimal(value).quantize(CURRENCY_PLACES, rounding=ROUND_HALF_UP)


def sum_decimals(*values: Numeric) -> Decimal:
    """Total a set of amounts, for example all active campaign budgets."""
    return sum((to_decimal(v) for v in values), ZERO)


def safe_divide(numerator: Numeric, denominator: Numeric, default: Numeric = ZERO) -> Decimal:
    """Divide, returning ``default`` when the denominator is zero.

    Used for every ratio with a possibly empty base: ROAS before any spend,
    profit margin before any revenue, budget scaling factors.
    """
    denom = to_decimal(denominator)
    if denom == ZERO:
        return to_decimal(default)
    return to_decimal(numerator) / denom


def to_finite_decimal(value: Optional[Numeric], label: str) -> Decimal:
    """Like :func:`to_decimal`, but reject NaN and infinities.

    Every amount that enters the ledger or an entity goes through here, so
    the cash identity never picks up a non-finite term.

    Raises:
        ValidationError: If ``value`` is NaN or infinite.
    """
    amount = to_decimal(value)
    if not amount.is_finite():
        raise ValidationError(f"{label} must be a finite number, got {value}")
    return amount
