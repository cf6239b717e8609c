"""
Cost models and exactness for oracle metadata.

Cost models describe how expensive an oracle call is as a function of
problem dimensions:

    ConstantCost(3.0)                          # O(1), 3 units
    DimensionalCost({"n": 2.0}, 0.5)           # 0.5 * n^2
    linear_cost("n") + quadratic_cost("n")     # CompositeCost(+)

    cost.evaluate({"n": 10})

Exactness says how precise an oracle's answer is:

    Exact()
    Inexact(1e-6)                    # absolute error bound
    Inexact(RelativeError(1e-3))
"""

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple, Union

NumberType = Union[int, float]

_OPERATIONS = {
    "+": math.fsum,
    "*": math.prod,
    "max": max,
}


# ============================================================
# Cost models
# ============================================================

class CostModel:
    """Base class for cost models. Supports + and * between models."""

    def evaluate(self, dims: Optional[Mapping[str, int]] = None) -> float:
        raise NotImplementedError

    def __add__(self, other: "CostModel") -> "CostModel":
        if not isinstance(other, CostModel):
            return NotImplemented
        return _add_costs(self, other)

    def __mul__(self, other: "CostModel") -> "CostModel":
        if not isinstance(other, CostModel):
            return NotImplemented
        return _mul_costs(self, other)


@dataclass(frozen=True, eq=True)
class ConstantCost(CostModel):
    """Fixed cost, independent of problem dimensions."""

    value: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "value", float(self.value))

    def evaluate(self, dims: Optional[Mapping[str, int]] = None) -> float:
        return self.value

    def __str__(self) -> str:
        return f"{self.value:g}"


@dataclass(frozen=True, eq=True)
class DimensionalCost(CostModel):
    """
    Cost that scales with problem dimensions: coefficient * prod(d ** e).

    `dims` maps dimension names to exponents. It is stored as a sorted
    tuple of pairs so the cost stays hashable.
    """

    dims: Tuple[Tuple[str, float], ...]
    coefficient: float = 1.0

    def __post_init__(self):
        dims = self.dims.items() if isinstance(self.dims, Mapping) else self.dims
        object.__setattr__(self, "dims", tuple(sorted((str(d), float(e)) for d, e in dims)))
        if self.coefficient < 0:
            raise ValueError("Coefficient must be non-negative")
        object.__setattr__(self, "coefficient", float(self.coefficient))

    @property
    def exponents(self) -> Dict[str, float]:
        return dict(self.dims)

    def evaluate(self, dims: Optional[Mapping[str, int]] = None) -> float:
        dims = dims or {}
        result = self.coefficient
        for name, exponent in self.dims:
            if name not in dims:
                raise KeyError(f"Dimension {name!r} not provided")
            result *= dims[name] ** exponent
        return result

    def __str__(self) -> str:
        factors = [name if e == 1 else f"{name}^{e:g}" for name, e in self.dims]
        body = "*".join(factors) or "1"
        if self.coefficient == 1:
            return body
        return f"{self.coefficient:g}*{body}"


@dataclass(frozen=True, eq=True)
class CompositeCost(CostModel):
    """A combination of component costs under "+", "*" or "max"."""

    components: Tuple[CostModel, ...]
    operation: str = "+"

    def __post_init__(self):
        components = tuple(self.components)
        if not components:
            raise ValueError("Components list cannot be empty")
        if self.operation not in _OPERATIONS:
            raise ValueError(f"Unknown cost operation: {self.operation!r}")
        object.__setattr__(self, "components", components)

    def evaluate(self, dims: Optional[Mapping[str, int]] = None) -> float:
        values = [c.evaluate(dims) for c in self.components]
        return float(_OPERATIONS[self.operation](values))

    def __str__(self) -> str:
        if self.operation == "max":
            return "max(" + ", ".join(str(c) for c in self.components) + ")"
        return "(" + f" {self.operation} ".join(str(c) for c in self.components) + ")"


def _add_costs(c1: CostModel, c2: CostModel) -> CostModel:
    if isinstance(c1, ConstantCost) and isinstance(c2, ConstantCost):
        return ConstantCost(c1.value + c2.value)
    if isinstance(c1, DimensionalCost) and isinstance(c2, DimensionalCost) and c1.dims == c2.dims:
        return DimensionalCost(c1.dims, c1.coefficient + c2.coefficient)
    return CompositeCost(_flatten(c1, "+") + _flatten(c2, "+"), "+")


def _mul_costs(c1: CostModel, c2: CostModel) -> CostModel:
    if isinstance(c1, ConstantCost) and isinstance(c2, ConstantCost):
        return ConstantCost(c1.value * c2.value)
    if isinstance(c1, ConstantCost) and isinstance(c2, DimensionalCost):
        return DimensionalCost(c2.dims, c2.coefficient * c1.value)
    if isinstance(c1, DimensionalCost) and isinstance(c2, ConstantCost):
        return DimensionalCost(c1.dims, c1.coefficient * c2.value)
    if isinstance(c1, DimensionalCost) and isinstance(c2, DimensionalCost):
        combined: Dict[str, float] = {}
        for name, exponent in c1.dims + c2.dims:
            combined[name] = combined.get(name, 0.0) + exponent
        return DimensionalCost(combined, c1.coefficient * c2.coefficient)
    return CompositeCost(_flatten(c1, "*") + _flatten(c2, "*"), "*")


def _flatten(cost: CostModel, operation: str) -> Tuple[CostModel, ...]:
    if isinstance(cost, CompositeCost) and cost.operation == operation:
        return cost.components
    return (cost,)


def constant_cost(value: NumberType = 1.0) -> ConstantCost:
    return ConstantCost(value)


def linear_cost(dim: str) -> DimensionalCost:
    """O(dim)."""
    return DimensionalCost({dim: 1.0})


def quadratic_cost(dim: str) -> DimensionalCost:
    """O(dim^2)."""
    return DimensionalCost({dim: 2.0})


def cubic_cost(dim: str) -> DimensionalCost:
    """O(dim^3)."""
    return DimensionalCost({dim: 3.0})


# ============================================================
# Exactness
# ============================================================

@dataclass(frozen=True)
class ErrorSpec:
    """Base class for error bounds."""

    epsilon: float

    def __post_init__(self):
        if self.epsilon < 0:
            raise ValueError("Error bound must be non-negative")
        object.__setattr__(self, "epsilon", float(self.epsilon))


@dataclass(frozen=True)
class AbsoluteError(ErrorSpec):
    """|f(x) - f_approx(x)| <= epsilon"""


@dataclass(frozen=True)
class RelativeError(ErrorSpec):
    """|f(x) - f_approx(x)| <= epsilon * |f(x)|"""


class Exactness:
    """Base class for exactness levels."""


@dataclass(frozen=True)
class Exact(Exactness):
    """Analytically precise computation."""

    def __str__(self) -> str:
        return "Exact"


@dataclass(frozen=True)
class Inexact(Exactness):
    """
    Approximate computation with an error bound.

    A bare number is read as an absolute error bound:
        Inexact(1e-6) == Inexact(AbsoluteError(1e-6))   # => True
    """

    error: ErrorSpec

    def __post_init__(self):
        if isinstance(self.error, (int, float)) and not isinstance(self.error, bool):
            object.__setattr__(self, "error", AbsoluteError(self.error))
        elif not isinstance(self.error, ErrorSpec):
            raise TypeError(f"Expected an error bound, got {self.error!r}")

    def __str__(self) -> str:
        kind = "relative" if isinstance(self.error, RelativeError) else "absolute"
        return f"Inexact({kind} {self.error.epsilon:g})"


def is_exact(exactness: Exactness) -> bool:
    return isinstance(exactness, Exact)


def error_bound(exactness: Exactness) -> float:
    """Error bound of an exactness level (0.0 for Exact)."""
    if isinstance(exactness, Inexact):
        return exactness.error.epsilon
    return 0.0


def is_relative(exactness: Exactness) -> bool:
    return isinstance(exactness, Inexact) and isinstance(exactness.error, RelativeError)
