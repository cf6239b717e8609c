"""
Mathematical spaces attached to expressions.

Spaces are only used for compatibility checks at construction time:
the scalar line R and n-dimensional vector spaces R^n, where n is either
a concrete positive integer or a symbolic dimension name.
"""

from typing import Union

DimensionType = Union[int, str]


class Space:
    """Base class for spaces."""

    __slots__ = ()

    def __eq__(self, other):
        return type(self) is type(other)

    def __hash__(self):
        return hash(type(self).__name__)


class Scalar(Space):
    """The real line R."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "Scalar()"

    def __str__(self) -> str:
        return "R"


class Vector(Space):
    """
    The vector space R^n.

    Examples:
        Vector(3)     # R^3
        Vector("n")   # R^n with a symbolic dimension
    """

    __slots__ = ("dimension",)

    def __init__(self, dimension: DimensionType):
        if isinstance(dimension, bool) or not isinstance(dimension, (int, str)):
            raise TypeError("Vector dimension must be an int or a symbolic name")
        if isinstance(dimension, int) and dimension <= 0:
            raise ValueError("Vector dimension must be positive")
        if isinstance(dimension, str) and not dimension:
            raise ValueError("Symbolic dimension name must be non-empty")
        object.__setattr__(self, "dimension", dimension)

    def __setattr__(self, name, value):
        raise AttributeError("Vector spaces are immutable")

    def __eq__(self, other):
        return isinstance(other, Vector) and self.dimension == other.dimension

    def __hash__(self):
        return hash(("Vector", self.dimension))

    def __repr__(self) -> str:
        return f"Vector({self.dimension!r})"

    def __str__(self) -> str:
        return f"R^{self.dimension}"


# Shorthands
R = Scalar()


def Rn(dimension: DimensionType) -> Vector:
    """Shorthand for Vector(dimension)."""
    return Vector(dimension)
