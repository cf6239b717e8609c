"""
Combination tables for property inference.

Each table maps an ordered pair of property variants to a rule. A rule
receives the two property values and returns the derived property, or
None when the pair proves nothing. Pairs missing from a table prove
nothing either.

    ADDITION_TABLE[(Convex, StronglyConvex)](Convex(), StronglyConvex(2.0))
    # => StronglyConvex(2.0)

    combine_add(Smooth(1.0), Convex())      # => HypoConvex(1.0)
    combine_sub(Smooth(1.0), Smooth(2.0))   # => Smooth(3.0)
    combine_comp(Convex(), Linear(1.0, 2.0))  # => Convex()

Linear operators live in a different space from scalar functions, so
adding or subtracting a Linear fact and any other kind of fact raises
DimensionMismatch.

Composition additionally has a set-level rule that needs the outer and
inner fact sets at once (`combine_comp_sets`).
"""

from typing import Callable, Dict, FrozenSet, Iterable, Optional, Tuple, Type

from .errors import DimensionMismatch
from .interval import Interval
from .properties import (
    PROPERTY_TYPES,
    Convex,
    HypoConvex,
    Linear,
    Lipschitz,
    MonotonicallyIncreasing,
    Property,
    Quadratic,
    Smooth,
    StronglyConvex,
    is_convex_or_better,
)

Rule = Callable[[Property, Property], Optional[Property]]
TableType = Dict[Tuple[Type[Property], Type[Property]], Rule]

ADDITION_TABLE: TableType = {}
SUBTRACTION_TABLE: TableType = {}
COMPOSITION_TABLE: TableType = {}


def _rule(table: TableType, left: Type[Property], right: Type[Property],
          symmetric: bool = False):
    """Register a rule for (left, right), and for (right, left) if symmetric."""
    def decorator(func: Rule) -> Rule:
        table[(left, right)] = func
        if symmetric and left is not right:
            table[(right, left)] = lambda p, q: func(q, p)
        return func
    return decorator


# ============================================================
# Shared helpers
# ============================================================

def classify_curvature(curvature: Interval) -> Property:
    """
    Turn a lower curvature bound into a curvature property.

    Positive bounds give strong convexity, zero gives convexity and
    negative bounds give hypoconvexity with modulus |curvature|.
    """
    if curvature.lower > 0:
        return StronglyConvex(curvature)
    if curvature.lower == 0:
        return Convex()
    return HypoConvex(abs(curvature))


def _spectral_bound(q: Quadratic) -> Optional[Interval]:
    """Bound on max |eigenvalue| of a quadratic form (its smoothness constant)."""
    if q.lambda_max is None:
        return None
    bound = abs(q.lambda_max)
    if q.lambda_min is not None:
        low = abs(q.lambda_min)
        bound = Interval(max(bound.lower, low.lower), max(bound.upper, low.upper))
    return bound


def _weyl_sum(p, q, cls):
    """Eigenvalue bounds of A + B from bounds on A and B (Weyl's inequalities)."""
    lambda_min = None
    lambda_max = None
    if p.lambda_min is not None and q.lambda_min is not None and q.lambda_max is not None:
        lambda_min = Interval(p.lambda_min.lower + q.lambda_min.lower,
                              p.lambda_min.upper + q.lambda_max.upper)
    if p.lambda_max is not None and q.lambda_min is not None and q.lambda_max is not None:
        lambda_max = Interval(p.lambda_max.lower + q.lambda_min.lower,
                              p.lambda_max.upper + q.lambda_max.upper)
    return cls(lambda_min, lambda_max)


def _negated(q):
    """Eigenvalue bounds of -B."""
    lambda_min = -q.lambda_max if q.lambda_max is not None else None
    lambda_max = -q.lambda_min if q.lambda_min is not None else None
    return type(q)(lambda_min, lambda_max)


def _sum_or_unknown(cls, left: Optional[Interval], right: Optional[Interval]) -> Property:
    if left is None or right is None:
        return cls()
    return cls(left + right)


def _dimension_mismatch(p: Property, q: Property) -> Optional[Property]:
    raise DimensionMismatch(
        f"Cannot combine {p} with {q}: a linear operator and a scalar "
        f"function live in different spaces"
    )


for _other in PROPERTY_TYPES:
    if _other is not Linear:
        for _table in (ADDITION_TABLE, SUBTRACTION_TABLE):
            _table[(Linear, _other)] = _dimension_mismatch
            _table[(_other, Linear)] = _dimension_mismatch


# ============================================================
# Addition: f + g
# ============================================================

@_rule(ADDITION_TABLE, Convex, Convex)
def _add_convex_convex(p, q):
    return Convex()


@_rule(ADDITION_TABLE, Convex, StronglyConvex, symmetric=True)
def _add_convex_strongly(p, q):
    return q


@_rule(ADDITION_TABLE, Convex, HypoConvex, symmetric=True)
def _add_convex_hypo(p, q):
    return q


@_rule(ADDITION_TABLE, Convex, Smooth, symmetric=True)
def _add_convex_smooth(p, q):
    # an L-smooth function is L-hypoconvex
    return HypoConvex(q.L)


@_rule(ADDITION_TABLE, Convex, Quadratic, symmetric=True)
def _add_convex_quadratic(p, q):
    if q.lambda_min is None:
        return None
    return classify_curvature(q.lambda_min)


@_rule(ADDITION_TABLE, StronglyConvex, StronglyConvex)
def _add_strongly_strongly(p, q):
    if p.mu is None:
        return q
    if q.mu is None:
        return p
    return StronglyConvex(p.mu + q.mu)


@_rule(ADDITION_TABLE, StronglyConvex, HypoConvex, symmetric=True)
def _add_strongly_hypo(p, q):
    if p.mu is None or q.rho is None:
        return None
    return classify_curvature(p.mu - q.rho)


@_rule(ADDITION_TABLE, StronglyConvex, Smooth, symmetric=True)
def _add_strongly_smooth(p, q):
    if p.mu is None or q.L is None:
        return None
    return classify_curvature(p.mu - q.L)


@_rule(ADDITION_TABLE, StronglyConvex, Quadratic, symmetric=True)
def _add_strongly_quadratic(p, q):
    if p.mu is None or q.lambda_min is None:
        return None
    return classify_curvature(p.mu + q.lambda_min)


@_rule(ADDITION_TABLE, HypoConvex, HypoConvex)
def _add_hypo_hypo(p, q):
    return _sum_or_unknown(HypoConvex, p.rho, q.rho)


@_rule(ADDITION_TABLE, HypoConvex, Smooth, symmetric=True)
def _add_hypo_smooth(p, q):
    return _sum_or_unknown(HypoConvex, p.rho, q.L)


@_rule(ADDITION_TABLE, HypoConvex, Quadratic, symmetric=True)
def _add_hypo_quadratic(p, q):
    if q.lambda_min is None:
        return None
    return combine_add(p, classify_curvature(q.lambda_min))


@_rule(ADDITION_TABLE, Smooth, Smooth)
def _add_smooth_smooth(p, q):
    return _sum_or_unknown(Smooth, p.L, q.L)


@_rule(ADDITION_TABLE, Smooth, Quadratic, symmetric=True)
def _add_smooth_quadratic(p, q):
    bound = _spectral_bound(q)
    if p.L is None or bound is None:
        return None
    return Smooth(p.L + bound)


@_rule(ADDITION_TABLE, Lipschitz, Lipschitz)
def _add_lipschitz_lipschitz(p, q):
    return _sum_or_unknown(Lipschitz, p.M, q.M)


@_rule(ADDITION_TABLE, Linear, Linear)
def _add_linear_linear(p, q):
    return _weyl_sum(p, q, Linear)


@_rule(ADDITION_TABLE, Quadratic, Quadratic)
def _add_quadratic_quadratic(p, q):
    return _weyl_sum(p, q, Quadratic)


@_rule(ADDITION_TABLE, MonotonicallyIncreasing, MonotonicallyIncreasing)
def _add_monotone_monotone(p, q):
    return MonotonicallyIncreasing()


# ============================================================
# Subtraction: f - g
# ============================================================

# -g is only bounded below when g has an upper curvature bound
# (Smooth or Quadratic), so most rules need a smooth subtrahend.

@_rule(SUBTRACTION_TABLE, Convex, Smooth)
def _sub_convex_smooth(p, q):
    return HypoConvex(q.L)


@_rule(SUBTRACTION_TABLE, Convex, Quadratic)
def _sub_convex_quadratic(p, q):
    if q.lambda_max is None:
        return None
    return classify_curvature(-q.lambda_max)


@_rule(SUBTRACTION_TABLE, StronglyConvex, Smooth)
def _sub_strongly_smooth(p, q):
    if p.mu is None or q.L is None:
        return None
    return classify_curvature(p.mu - q.L)


@_rule(SUBTRACTION_TABLE, StronglyConvex, Quadratic)
def _sub_strongly_quadratic(p, q):
    if p.mu is None or q.lambda_max is None:
        return None
    return classify_curvature(p.mu - q.lambda_max)


@_rule(SUBTRACTION_TABLE, HypoConvex, Smooth)
def _sub_hypo_smooth(p, q):
    return _sum_or_unknown(HypoConvex, p.rho, q.L)


@_rule(SUBTRACTION_TABLE, HypoConvex, Quadratic)
def _sub_hypo_quadratic(p, q):
    if p.rho is None or q.lambda_max is None:
        return None
    return classify_curvature(-p.rho - q.lambda_max)


@_rule(SUBTRACTION_TABLE, Smooth, Smooth)
def _sub_smooth_smooth(p, q):
    return _sum_or_unknown(Smooth, p.L, q.L)


@_rule(SUBTRACTION_TABLE, Smooth, Quadratic, symmetric=True)
def _sub_smooth_quadratic(p, q):
    # f - g and g - f share the smoothness bound
    bound = _spectral_bound(q)
    if p.L is None or bound is None:
        return None
    return Smooth(p.L + bound)


@_rule(SUBTRACTION_TABLE, Lipschitz, Lipschitz)
def _sub_lipschitz_lipschitz(p, q):
    return _sum_or_unknown(Lipschitz, p.M, q.M)


@_rule(SUBTRACTION_TABLE, Linear, Linear)
def _sub_linear_linear(p, q):
    return _weyl_sum(p, _negated(q), Linear)


@_rule(SUBTRACTION_TABLE, Quadratic, Quadratic)
def _sub_quadratic_quadratic(p, q):
    return _weyl_sum(p, _negated(q), Quadratic)


# ============================================================
# Composition: outer o inner
# ============================================================

@_rule(COMPOSITION_TABLE, Convex, Linear)
def _comp_convex_linear(p, q):
    return Convex()


@_rule(COMPOSITION_TABLE, StronglyConvex, Linear)
def _comp_strongly_linear(p, q):
    if p.mu is None or q.lambda_min is None or q.lambda_min.lower <= 0:
        return Convex()
    return StronglyConvex(p.mu + q.lambda_min.square())


@_rule(COMPOSITION_TABLE, HypoConvex, Linear)
def _comp_hypo_linear(p, q):
    if p.rho is None or q.lambda_max is None:
        return HypoConvex()
    return HypoConvex(p.rho * q.lambda_max.square())


@_rule(COMPOSITION_TABLE, Smooth, Lipschitz)
def _comp_smooth_lipschitz(p, q):
    if p.L is None or q.M is None:
        return Smooth()
    return Smooth(p.L * q.M.square())


@_rule(COMPOSITION_TABLE, Smooth, Linear)
def _comp_smooth_linear(p, q):
    if p.L is None or q.lambda_max is None:
        return Smooth()
    return Smooth(p.L * q.lambda_max.square())


@_rule(COMPOSITION_TABLE, Lipschitz, Lipschitz)
def _comp_lipschitz_lipschitz(p, q):
    if p.M is None or q.M is None:
        return Lipschitz()
    return Lipschitz(p.M * q.M)


@_rule(COMPOSITION_TABLE, Lipschitz, Linear)
def _comp_lipschitz_linear(p, q):
    if p.M is None or q.lambda_max is None:
        return Lipschitz()
    return Lipschitz(p.M * abs(q.lambda_max))


@_rule(COMPOSITION_TABLE, Linear, Lipschitz)
def _comp_linear_lipschitz(p, q):
    if p.lambda_max is None or q.M is None:
        return Lipschitz()
    return Lipschitz(abs(p.lambda_max) * q.M)


@_rule(COMPOSITION_TABLE, Linear, Linear)
def _comp_linear_linear(p, q):
    # TODO: propagate eigenvalue bounds through products of operators
    return Linear()


@_rule(COMPOSITION_TABLE, Quadratic, Linear)
def _comp_quadratic_linear(p, q):
    return Quadratic()


# ============================================================
# Lookup
# ============================================================

def _lookup(table: TableType, p: Property, q: Property) -> Optional[Property]:
    rule = table.get((type(p), type(q)))
    if rule is None:
        return None
    return rule(p, q)


def combine_add(p: Property, q: Property) -> Optional[Property]:
    """Property of f + g given a property p of f and q of g."""
    return _lookup(ADDITION_TABLE, p, q)


def combine_sub(p: Property, q: Property) -> Optional[Property]:
    """Property of f - g given a property p of f and q of g."""
    return _lookup(SUBTRACTION_TABLE, p, q)


def combine_comp(outer: Property, inner: Property) -> Optional[Property]:
    """Property of outer o inner given one property of each side."""
    return _lookup(COMPOSITION_TABLE, outer, inner)


def combine_comp_sets(outer_props: Iterable[Property],
                      inner_props: Iterable[Property]) -> FrozenSet[Property]:
    """
    Composition rules that need whole fact sets.

    An increasing convex function of a convex function is convex.
    """
    outer_props = list(outer_props)
    inner_props = list(inner_props)
    monotone = any(isinstance(p, MonotonicallyIncreasing) for p in outer_props)
    convex_outer = any(is_convex_or_better(p) for p in outer_props)
    convex_inner = any(is_convex_or_better(p) for p in inner_props)
    if monotone and convex_outer and convex_inner:
        return frozenset({Convex()})
    return frozenset()
