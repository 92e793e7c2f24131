"""
Money Module

Fixed-point monetary amounts for balances and job prices. Every amount is a
Decimal quantized to cents. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, ROUND_DOWN, InvalidOperation, getcontext
from dataclasses import dataclass
from typing import Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28

CENT = Decimal('0.01')


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation rounded to two decimal places.
    All balances and prices MUST use this class.
    """
    amount: Decimal

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            if isinstance(self.amount, float):
                raise TypeError("Money cannot be built from float, use str or Decimal")
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        if not self.amount.is_finite():
            raise ValueError(f"Money amount must be finite, got {self.amount}")

        object.__setattr__(self, 'amount', self.amount.quantize(CENT, rounding=ROUND_HALF_UP))

    @classmethod
    def zero(cls) -> 'Money':
        return cls(Decimal('0'))

    @classmethod
    def of(cls, value: Union[str, int, Decimal, 'Money']) -> 'Money':
        """
        Coerce a str/int/Decimal (or Money) into Money without rounding.

        Raises:
            ValueError: value is malformed or has fractions of a cent
        """
        if isinstance(value, Money):
            return value
        if isinstance(value, str):
            value = decimal_from_string(value)
        elif isinstance(value, int) and not isinstance(value, bool):
            value = Decimal(value)
        elif not isinstance(value, Decimal):
            raise TypeError(f"Cannot build Money from {type(value).__name__}")

        if not value.is_finite():
            raise ValueError(f"Money amount must be finite, got {value}")
        try:
            exact = value == value.quantize(CENT)
        except InvalidOperation:
            raise ValueError(f"Amount {value} is out of range")
        if not exact:
            raise ValueError(f"Amount {value} has more than two decimal places")
        return cls(value)

    def __add__(self, other: 'Money') -> 'Money':
        return Money(self.amount + other.amount)

    def __sub__(self, other: 'Money') -> 'Money':
        return Money(self.amount - other.amount)

    def __mul__(self, multiplier: Decimal) -> 'Money':
        if not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))
        return Money(self.amount * multiplier)

    def __neg__(self) -> 'Money':
        return Money(-self.amount)

    def __lt__(self, other: 'Money') -> bool:
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < Decimal('0')

    def to_string(self) -> str:
        """Format for display"""
        return f"{self.amount:,.2f}"

    def __str__(self) -> str:
        return str(self.amount)


def sum_money(amounts) -> Money:
    """Sum an iterable of Money values, zero when empty"""
    total = Decimal('0')
    for money in amounts:
        total += money.amount
    return Money(total)


def share_of(total: Money, ratio: Decimal) -> Money:
    """
    Take a ratio of an amount, rounding DOWN to the cent.

    A cent amount is <= the exact share iff it is <= the share rounded down,
    so limits derived this way never admit more than the exact ratio.
    """
    if not isinstance(ratio, Decimal):
        ratio = Decimal(str(ratio))
    return Money((total.amount * ratio).quantize(CENT, rounding=ROUND_DOWN))


# Optional sign, optional leading "$", digits with well-formed thousands
# commas, optional fraction. No exponents.
_AMOUNT_PATTERN = re.compile(r'[+-]?\$?(\d{1,3}(,\d{3})+|\d+)(\.\d+)?')


def decimal_from_string(value: str) -> Decimal:
    """
    Strictly convert a decimal amount string to Decimal

    Accepts plain decimals ("25", "-3.50"), a leading dollar sign and
    thousands commas ("$1,150.50"). Anything else, including exponents
    and embedded letters, is rejected rather than cleaned up.

    Args:
        value: String representation of number

    Returns:
        Decimal value

    Raises:
        ValueError: If string is not a well-formed decimal amount
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    clean_value = value.strip()
    if not _AMOUNT_PATTERN.fullmatch(clean_value):
        raise ValueError(f"Cannot convert '{value}' to Decimal")

    try:
        return Decimal(clean_value.replace('$', '').replace(',', ''))
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")
