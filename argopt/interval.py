"""
Closed real intervals for conservative parameter propagation.

A property parameter such as a smoothness constant is either known
exactly (a degenerate interval [L, L]) or only known to lie in a range.
Arithmetic on intervals returns an enclosure of every possible result.
"""

from dataclasses import dataclass
from typing import Union

NumberType = Union[int, float]


@dataclass(frozen=True)
class Interval:
    """
    A closed interval [lower, upper].

    Examples:
        Interval(1.0, 2.0) + Interval(0.5, 0.5)   # => Interval(1.5, 2.5)
        Interval(1.0, 2.0) - Interval(0.5, 1.0)   # => Interval(0.0, 1.5)
        abs(Interval(-3.0, 1.0))                  # => Interval(0.0, 3.0)
    """

    lower: float
    upper: float

    def __post_init__(self):
        lower = float(self.lower)
        upper = float(self.upper)
        if lower > upper:
            raise ValueError(f"Invalid interval: [{lower}, {upper}]")
        object.__setattr__(self, "lower", lower)
        object.__setattr__(self, "upper", upper)

    @classmethod
    def point(cls, value: NumberType) -> "Interval":
        """Create the degenerate interval [value, value]."""
        return cls(value, value)

    @classmethod
    def coerce(cls, value) -> "Interval":
        """Turn a number into a point interval; pass intervals through."""
        if isinstance(value, Interval):
            return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"Cannot build an interval from {value!r}")
        return cls.point(value)

    def __add__(self, other: "Interval") -> "Interval":
        other = Interval.coerce(other)
        return Interval(self.lower + other.lower, self.upper + other.upper)

    def __sub__(self, other: "Interval") -> "Interval":
        # [a, b] - [c, d] = [a - d, b - c]
        other = Interval.coerce(other)
        return Interval(self.lower - other.upper, self.upper - other.lower)

    def __neg__(self) -> "Interval":
        return Interval(-self.upper, -self.lower)

    def __mul__(self, other: "Interval") -> "Interval":
        other = Interval.coerce(other)
        products = (
            self.lower * other.lower,
            self.lower * other.upper,
            self.upper * other.lower,
            self.upper * other.upper,
        )
        return Interval(min(products), max(products))

    __radd__ = __add__
    __rmul__ = __mul__

    def __abs__(self) -> "Interval":
        if self.lower <= 0.0 <= self.upper:
            return Interval(0.0, max(-self.lower, self.upper))
        magnitudes = (abs(self.lower), abs(self.upper))
        return Interval(min(magnitudes), max(magnitudes))

    def square(self) -> "Interval":
        """Enclosure of {x^2 : x in self}."""
        magnitude = abs(self)
        return Interval(magnitude.lower ** 2, magnitude.upper ** 2)

    def __contains__(self, value: NumberType) -> bool:
        return self.lower <= value <= self.upper

    @property
    def is_point(self) -> bool:
        return self.lower == self.upper

    def __str__(self) -> str:
        if self.is_point:
            return f"{self.lower:g}"
        return f"[{self.lower:g}, {self.upper:g}]"
