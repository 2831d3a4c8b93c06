"""
Fixed-point currency arithmetic.

Amounts are held as an integer number of minor units (cents). Conversion
from decimal amounts and multiplication by a rate are the only places that
round, always half-up at the cent.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[int, float, str, Decimal]

CENT = Decimal("0.01")


def _decimal(value: Number) -> Decimal:
    # str() keeps 9.99 as 9.99 instead of the binary float expansion
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True, order=True)
class Money:
    cents: int = 0

    @classmethod
    def of(cls, amount: Number) -> "Money":
        """Build from a major-unit amount such as 19.99, rounding half-up."""
        quantized = _decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
        return cls(int(quantized * 100))

    @classmethod
    def sum(cls, values: Iterable["Money"]) -> "Money":
        total = 0
        for v in values:
            total += v.cents
        return cls(total)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.cents + other.cents)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.cents - other.cents)

    def __bool__(self) -> bool:
        return self.cents != 0

    def times(self, quantity: int) -> "Money":
        return Money(self.cents * int(quantity))

    def apply_rate(self, rate: Number) -> "Money":
        """Multiply by a rate (e.g. 0.08 tax) and round half-up to the cent."""
        raw = Decimal(self.cents) * _decimal(rate)
        return Money(int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP)))

    @property
    def amount(self) -> Decimal:
        return (Decimal(self.cents) / 100).quantize(CENT)

    def to_float(self) -> float:
        return float(self.amount)

    def format(self) -> str:
        return f"{self.amount:.2f}"

    def __str__(self) -> str:
        return f"${self.format()}"


ZERO = Money(0)
