"""
Built-in reformulation strategies.

    commutativity       reorder the terms of +, max and min
    rebalancing         flatten and regroup sums, differences and compositions
    structure_loss      hide a subexpression behind a fresh opaque function
    monotone_transform  wrap a convex objective in sqrt or log(1 + .)

Every strategy is a function `strategy(expr, engine)` returning equivalent
expressions. Wrapped in a FunctionStrategy they yield Reformulations.
"""

import hashlib
import logging
from typing import Dict, Iterator, List, Sequence

from .expression import (
    COMMUTATIVE_TYPES,
    Addition,
    Composition,
    Expression,
    FunctionCall,
    Subtraction,
    expr_key,
    free_variables,
    is_atomic,
    positions,
    replace_at,
)
from .properties import is_convex_or_better
from .reformulation import FunctionStrategy, StrategyRegistry
from .spaces import Scalar
from .special_functions import log_plus_one, sqrt_function

logger = logging.getLogger(__name__)

ABSTRACT_PREFIX = "__abstract_"


# ============================================================
# Commutativity
# ============================================================

def _swaps(expr) -> Iterator[Expression]:
    """Every adjacent transposition of the term list, then nested ones."""
    terms = expr.terms
    cls = type(expr)
    for i in range(len(terms) - 1):
        swapped = terms[:i] + (terms[i + 1], terms[i]) + terms[i + 2:]
        yield cls(swapped, expr.space)
    for index, term in enumerate(terms):
        if type(term) is cls:
            for variant in _swaps(term):
                yield cls(terms[:index] + (variant,) + terms[index + 1:], expr.space)


def commutativity(expr: Expression, engine) -> List[Expression]:
    """Original plus adjacent swaps of a commutative operator's terms."""
    if not isinstance(expr, COMMUTATIVE_TYPES):
        return []
    return [expr] + list(_swaps(expr))


# ============================================================
# Rebalancing
# ============================================================

def _flatten_sum(terms: Sequence[Expression]) -> List[Expression]:
    flat = []
    for term in terms:
        if isinstance(term, Addition):
            flat.extend(_flatten_sum(term.terms))
        else:
            flat.append(term)
    return flat


def _flatten_difference(expr: Subtraction) -> List[Expression]:
    # only the leading term of a difference can be folded in
    first, rest = expr.terms[0], list(expr.terms[1:])
    if isinstance(first, Subtraction):
        return _flatten_difference(first) + rest
    return [first] + rest


def _group(cls, terms: Sequence[Expression], space) -> Expression:
    if len(terms) == 1:
        return terms[0]
    return cls(tuple(terms), space)


def rebalancing(expr: Expression, engine) -> List[Expression]:
    """
    Regroup chains of the same operator.

    (a + b) + c  ->  a + b + c,  a + (b + c)
    (a - b) - c  ->  a - b - c,  a - (b + c)
    (f o g) o h  <-> f o (g o h)
    """
    results: List[Expression] = []

    if isinstance(expr, Addition):
        terms = _flatten_sum(expr.terms)
        results.append(Addition(tuple(terms), expr.space))
        for i in range(1, len(terms)):
            left = _group(Addition, terms[:i], expr.space)
            right = _group(Addition, terms[i:], expr.space)
            results.append(Addition((left, right), expr.space))

    elif isinstance(expr, Subtraction):
        terms = _flatten_difference(expr)
        results.append(Subtraction(tuple(terms), expr.space))
        for i in range(1, len(terms)):
            left = _group(Subtraction, terms[:i], expr.space)
            right = _group(Addition, terms[i:], expr.space)
            results.append(Subtraction((left, right), expr.space))

    elif isinstance(expr, Composition):
        if isinstance(expr.outer, Composition):
            f, g, h = expr.outer.outer, expr.outer.inner, expr.inner
            results.append(Composition(f, Composition(g, h), expr.space))
        if isinstance(expr.inner, Composition):
            f, g, h = expr.outer, expr.inner.outer, expr.inner.inner
            results.append(Composition(Composition(f, g), h, expr.space))

    return [r for r in results if r != expr]


# ============================================================
# Structure loss
# ============================================================

def abstract_name(expr: Expression) -> str:
    """Deterministic name for the opaque function standing in for `expr`."""
    digest = hashlib.sha1(repr(expr_key(expr)).encode("utf-8")).hexdigest()
    return f"{ABSTRACT_PREFIX}{digest[:10]}"


def abstract(expr: Expression, engine) -> FunctionCall:
    """
    Replace `expr` by a call of a fresh function over its free variables.

    The fresh function is registered in the engine with the properties and
    oracles computed for `expr`.
    """
    name = abstract_name(expr)
    properties = engine.infer_properties(expr)
    oracles = engine.available_oracles(expr)
    engine.clear_properties(name)
    engine.clear_oracles(name)
    if properties:
        engine.register_property(name, *properties)
    for kind, oracle in oracles.items():
        engine.register_oracle(name, kind, oracle)
    logger.debug("Abstracted %s as %s (%d properties, %d oracles)",
                 expr, name, len(properties), len(oracles))
    return FunctionCall(name, tuple(free_variables(expr)), expr.space)


def structure_loss(expr: Expression, engine) -> List[Expression]:
    """One variant per non-atomic subexpression, with that subtree abstracted."""
    results = []
    for path, sub in list(positions(expr)):
        if is_atomic(sub):
            continue
        results.append(replace_at(expr, path, abstract(sub, engine)))
    return results


# ============================================================
# Monotone transform
# ============================================================

def monotone_transform(expr: Expression, engine) -> List[Expression]:
    """
    sqrt(f) and log(1 + f) for a convex scalar objective f.

    Both transforms are increasing, so the minimizers are unchanged.
    """
    if not isinstance(expr.space, Scalar):
        return []
    if not any(is_convex_or_better(p) for p in engine.infer_properties(expr)):
        return []
    return [sqrt_function(expr), log_plus_one(expr)]


BUILTIN_STRATEGIES: Dict[str, object] = {
    "commutativity": commutativity,
    "rebalancing": rebalancing,
    "structure_loss": structure_loss,
    "monotone_transform": monotone_transform,
}


def register_builtin_strategies(registry: StrategyRegistry) -> StrategyRegistry:
    for name, func in BUILTIN_STRATEGIES.items():
        registry.register(name, FunctionStrategy(func, name=name))
    return registry
