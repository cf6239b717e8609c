"""
Mathematical properties and the property registry.

A property is a provable fact about a function. Numeric parameters are
optional intervals: a missing parameter means the function has the
qualitative property but the bound is unknown.

    Convex()
    MonotonicallyIncreasing()
    StronglyConvex(mu)              - f - mu/2 |x|^2 is convex
    HypoConvex(rho)                 - f + rho/2 |x|^2 is convex
    Smooth(L)                       - gradient is L-Lipschitz
    Lipschitz(M)                    - f is M-Lipschitz
    Linear(lambda_min, lambda_max)  - linear operator with eigenvalue bounds
    Quadratic(lambda_min, lambda_max) - quadratic form with eigenvalue bounds

Parameters accept floats, which are stored as point intervals:

    StronglyConvex(2.0) == StronglyConvex(Interval(2.0, 2.0))   # => True
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, Optional, Set, Type, Union

from .interval import Interval

ParameterType = Union[Interval, int, float, None]


def _parameter(value: ParameterType) -> Optional[Interval]:
    if value is None:
        return None
    return Interval.coerce(value)


@dataclass(frozen=True)
class Property:
    """Base class for properties."""

    def __str__(self) -> str:
        fields = [str(v) for v in self.__dict__.values() if v is not None]
        if not fields:
            return type(self).__name__
        return f"{type(self).__name__}({', '.join(fields)})"


@dataclass(frozen=True)
class Convex(Property):
    pass


@dataclass(frozen=True)
class MonotonicallyIncreasing(Property):
    pass


@dataclass(frozen=True)
class StronglyConvex(Property):
    mu: Optional[Interval] = None

    def __post_init__(self):
        object.__setattr__(self, "mu", _parameter(self.mu))


@dataclass(frozen=True)
class HypoConvex(Property):
    rho: Optional[Interval] = None

    def __post_init__(self):
        object.__setattr__(self, "rho", _parameter(self.rho))


@dataclass(frozen=True)
class Smooth(Property):
    L: Optional[Interval] = None

    def __post_init__(self):
        object.__setattr__(self, "L", _parameter(self.L))


@dataclass(frozen=True)
class Lipschitz(Property):
    M: Optional[Interval] = None

    def __post_init__(self):
        object.__setattr__(self, "M", _parameter(self.M))


@dataclass(frozen=True)
class Linear(Property):
    lambda_min: Optional[Interval] = None
    lambda_max: Optional[Interval] = None

    def __post_init__(self):
        object.__setattr__(self, "lambda_min", _parameter(self.lambda_min))
        object.__setattr__(self, "lambda_max", _parameter(self.lambda_max))


@dataclass(frozen=True)
class Quadratic(Property):
    lambda_min: Optional[Interval] = None
    lambda_max: Optional[Interval] = None

    def __post_init__(self):
        object.__setattr__(self, "lambda_min", _parameter(self.lambda_min))
        object.__setattr__(self, "lambda_max", _parameter(self.lambda_max))


PROPERTY_TYPES = (
    Convex,
    MonotonicallyIncreasing,
    StronglyConvex,
    HypoConvex,
    Smooth,
    Lipschitz,
    Linear,
    Quadratic,
)

EMPTY: FrozenSet[Property] = frozenset()


def is_convex_or_better(prop: Property) -> bool:
    """Convex and StronglyConvex both guarantee convexity."""
    return isinstance(prop, (Convex, StronglyConvex))


# ============================================================
# Registry
# ============================================================

class PropertyRegistry:
    """
    Maps leaf function names to the properties declared for them.

    Example:
        registry = PropertyRegistry()
        registry.register("f", Convex(), Smooth(1.0))
        registry.get("f")            # => frozenset({Convex(), Smooth(L=...)})
        registry.has_property("f", Smooth)   # => True
        registry.get("unknown")      # => frozenset()
    """

    def __init__(self):
        self._facts: Dict[str, Set[Property]] = {}

    def register(self, name: str, *props: Property) -> "PropertyRegistry":
        """Add properties to the fact set of `name`."""
        for prop in props:
            if not isinstance(prop, Property):
                raise TypeError(f"Expected a Property, got {prop!r}")
        self._facts.setdefault(name, set()).update(props)
        return self

    def clear(self, name: str) -> "PropertyRegistry":
        """Forget every property of `name`."""
        self._facts.pop(name, None)
        return self

    def clear_all(self) -> "PropertyRegistry":
        self._facts = {}
        return self

    def get(self, name: str) -> FrozenSet[Property]:
        """Fact set of `name` (empty if unregistered)."""
        return frozenset(self._facts.get(name, ()))

    def has_property(self, name: str, variant: Type[Property]) -> bool:
        return any(isinstance(p, variant) for p in self._facts.get(name, ()))

    def get_property(self, name: str, variant: Type[Property]) -> Optional[Property]:
        """First registered property of the given variant, or None."""
        for prop in self._facts.get(name, ()):
            if isinstance(prop, variant):
                return prop
        return None

    def names(self):
        return list(self._facts)

    def copy(self) -> "PropertyRegistry":
        new_registry = PropertyRegistry()
        new_registry._facts = {name: set(props) for name, props in self._facts.items()}
        return new_registry

    def __contains__(self, name: str) -> bool:
        return name in self._facts

    def __len__(self) -> int:
        return len(self._facts)

    def __iter__(self) -> Iterator[str]:
        return iter(self._facts)

    def __repr__(self) -> str:
        return f"PropertyRegistry({len(self._facts)} functions)"
