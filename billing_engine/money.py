"""
Money in Integer Minor Units

Every monetary value in the engine is an integer count of cents. Decimal
strings coming from the outside are parsed exactly once, here, and nothing
downstream ever touches a float.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import InvalidMoneyError

MINOR_UNIT_EXPONENT = 2
_CENT = Decimal(1).scaleb(-MINOR_UNIT_EXPONENT)


def to_decimal(value, field_name: str = "value") -> Decimal:
    """Convert a non-monetary quantity (units, m², percentage) to Decimal.

    Floats are rejected for the same reason as in parse_money: the caller
    must hand over the original decimal text, not a binary approximation.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{field_name} must be str, int or Decimal, got {type(value).__name__}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as e:
        raise InvalidMoneyError(value, field_name) from e
    if not result.is_finite():
        raise InvalidMoneyError(value, field_name)
    return result


@dataclass(frozen=True, order=True)
class Money:
    """A monetary amount held as an integer number of minor units."""

    minor: int

    def __post_init__(self):
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise TypeError(f"Money.minor must be int, got {type(self.minor).__name__}")

    @classmethod
    def of(cls, value, field_name: str = "amount") -> "Money":
        return parse_money(value, field_name)

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @property
    def is_negative(self) -> bool:
        return self.minor < 0

    def to_decimal(self) -> Decimal:
        return Decimal(self.minor).scaleb(-MINOR_UNIT_EXPONENT).quantize(_CENT)

    @classmethod
    def rounded(cls, exact_minor: Decimal, rounding: str = ROUND_HALF_UP) -> "Money":
        """Round an exact amount of minor units to a whole minor unit."""
        return cls(int(exact_minor.to_integral_value(rounding=rounding)))

    def exact_times(self, factor: Decimal) -> Decimal:
        """Exact product in minor units, unrounded."""
        return Decimal(self.minor) * factor

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor + other.minor)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor - other.minor)

    def __str__(self) -> str:
        return format(self.to_decimal(), "f")

    def __repr__(self) -> str:
        return f"Money('{self}')"


def parse_money(value, field_name: str = "amount") -> Money:
    """
    Parse a decimal-formatted amount into Money.

    Accepts str ("1500.50", "1,500.50"), int and Decimal. More than two
    decimal places is rejected rather than rounded: a stored amount that
    cannot be represented in cents is a data defect.
    """
    if isinstance(value, Money):
        return value
    if isinstance(value, str):
        value = value.replace(",", "").replace("$", "")
    amount = to_decimal(value, field_name)
    scaled = amount.scaleb(MINOR_UNIT_EXPONENT)
    if scaled != scaled.to_integral_value():
        raise InvalidMoneyError(value, field_name, "more than two decimal places")
    return Money(int(scaled))


def fmt(value: Money) -> str:
    """Format Money as a currency string for descriptions."""
    return f"${value.to_decimal():,.2f}"
