"""
Property inference by structural recursion over an expression.

    registry = PropertyRegistry()
    registry.register("f", StronglyConvex(2.0))
    registry.register("g", Convex())

    infer_properties(f(x) + g(x), registry)
    # => frozenset({StronglyConvex(2)})

Nothing is assumed about variables, literals or unregistered functions, so
any sum containing such a term proves nothing. Combining a linear operator
with a scalar function raises DimensionMismatch.
"""

from typing import Callable, FrozenSet, Iterable, Optional

from .combinations import combine_add, combine_comp, combine_comp_sets, combine_sub
from .expression import (
    Addition,
    Composition,
    Expression,
    FunctionCall,
    Literal,
    Maximum,
    Minimum,
    Subtraction,
    Variable,
)
from .properties import EMPTY, Property, PropertyRegistry

PropertySet = FrozenSet[Property]


def infer_properties(expr: Expression, registry: PropertyRegistry) -> PropertySet:
    """
    Infer the set of properties `expr` provably has.

    Args:
        expr: Expression to analyze
        registry: Facts declared for leaf functions

    Returns:
        Frozen set of properties (empty when nothing can be proved)

    Raises:
        DimensionMismatch: If a linear operator is added to or subtracted
            from a scalar function
    """
    if isinstance(expr, (Literal, Variable)):
        return EMPTY

    if isinstance(expr, FunctionCall):
        if expr.is_leaf_call:
            return registry.get(expr.function)
        return infer_properties(expr.function, registry)

    if isinstance(expr, Addition):
        return _fold(expr.terms, registry, combine_add)

    if isinstance(expr, Subtraction):
        # the first term enters the fold as-is, every later one is subtracted
        return _fold(expr.terms, registry, combine_sub)

    if isinstance(expr, Composition):
        outer = infer_properties(expr.outer, registry)
        inner = infer_properties(expr.inner, registry)
        if not outer or not inner:
            return EMPTY
        derived = set(combine_comp_sets(outer, inner))
        derived.update(_pairwise(outer, inner, combine_comp))
        return frozenset(derived)

    if isinstance(expr, (Maximum, Minimum)):
        # TODO: max of convex functions is convex; add a table once smoothness
        # and strong convexity propagation through max/min are settled
        return EMPTY

    raise TypeError(f"Not an expression: {expr!r}")


def _pairwise(left: Iterable[Property], right: Iterable[Property],
              combine: Callable[[Property, Property], Optional[Property]]) -> PropertySet:
    right = list(right)
    derived = set()
    for p in left:
        for q in right:
            result = combine(p, q)
            if result is not None:
                derived.add(result)
    return frozenset(derived)


def _fold(terms, registry: PropertyRegistry, combine) -> PropertySet:
    """Left-to-right pairwise fold over the terms of a sum or difference."""
    term_sets = [infer_properties(term, registry) for term in terms]
    if any(not props for props in term_sets):
        return EMPTY
    running = term_sets[0]
    for props in term_sets[1:]:
        running = _pairwise(running, props, combine)
        if not running:
            return EMPTY
    return running
