"""
Oracle composition: build oracles for composite expressions out of the
oracles registered for their leaf functions.

    oracles = OracleRegistry()
    oracles.register("f", EvaluationOracle, lambda x: x ** 2)
    oracles.register("g", EvaluationOracle, math.sin)

    get_oracle_for_expression(f(x) + g(x), EvaluationOracle, oracles)(2.0)
    # => 4.0 + sin(2.0)

Covered rules:
    leaf call          registry lookup
    f(e)               chain rule when e is not a variable or literal
    outer o inner      chain rule (evaluation and derivative)
    t1 + ... + tn      sum of term oracles (evaluation and derivative)
    t1 - ... - tn      first term minus the rest (evaluation and derivative)
    max / min          pointwise max / min (evaluation only)

Registered special combinations take precedence over every generic rule.
An oracle that cannot be built is reported as None.
"""

import functools
import logging
from typing import Callable, List, Optional, Sequence

import numpy as np

from .expression import (
    Addition,
    Composition,
    Expression,
    FunctionCall,
    Literal,
    Maximum,
    Minimum,
    NaryExpression,
    Subtraction,
    Variable,
)
from .oracles import (
    DerivativeOracle,
    EvaluationOracle,
    Oracle,
    OracleKind,
    OracleRegistry,
    combine_metadata,
)

logger = logging.getLogger(__name__)

OracleLookup = Callable[[OracleKind], Optional[Oracle]]


def get_oracle_for_expression(expr: Expression, kind: OracleKind,
                              registry: OracleRegistry) -> Optional[Oracle]:
    """
    Get an oracle of `kind` for `expr`.

    Args:
        expr: Expression to build an oracle for
        kind: EvaluationOracle, DerivativeOracle or ProximalOracle
        registry: Leaf oracles and special combinations

    Returns:
        An oracle of `kind`, or None if it cannot be built
    """
    special = _special_combination(expr, kind, registry)
    if special is not None:
        return special

    if isinstance(expr, FunctionCall):
        if not expr.is_leaf_call:
            return get_oracle_for_expression(expr.function, kind, registry)
        if len(expr.args) == 1 and not isinstance(expr.args[0], (Variable, Literal)):
            inner = expr.args[0]
            return _chain(
                lambda k: registry.get(expr.function, k),
                lambda k: get_oracle_for_expression(inner, k, registry),
                kind,
            )
        oracle = registry.get(expr.function, kind)
        if oracle is None:
            logger.debug("No %s registered for %s", kind.__name__, expr.function)
        return oracle

    if isinstance(expr, Composition):
        return _chain(
            lambda k: get_oracle_for_expression(expr.outer, k, registry),
            lambda k: get_oracle_for_expression(expr.inner, k, registry),
            kind,
        )

    if isinstance(expr, (Addition, Subtraction)):
        return _linear_combination(expr, kind, registry)

    if isinstance(expr, (Maximum, Minimum)):
        return _pointwise_extremum(expr, kind, registry)

    if isinstance(expr, (Literal, Variable)):
        return None

    raise TypeError(f"Not an expression: {expr!r}")


def _special_combination(expr: Expression, kind: OracleKind,
                         registry: OracleRegistry) -> Optional[Oracle]:
    if isinstance(expr, NaryExpression):
        if not all(isinstance(t, FunctionCall) and t.is_leaf_call for t in expr.terms):
            return None
        names = [t.function for t in expr.terms]
    elif isinstance(expr, Composition):
        parts = (expr.outer, expr.inner)
        if not all(isinstance(p, FunctionCall) and p.is_leaf_call for p in parts):
            return None
        names = [p.function for p in parts]
    else:
        return None

    handler = registry.get_special_combination(type(expr), names, kind)
    if handler is None:
        return None
    result = handler(expr)
    if result is None:
        return None
    logger.debug("Special combination for %s on %s", kind.__name__, expr)
    if isinstance(result, Oracle):
        return result
    return kind(result)


def _chain(outer_for: OracleLookup, inner_for: OracleLookup,
           kind: OracleKind) -> Optional[Oracle]:
    """outer(inner(x)) and its derivative outer'(inner(x)) * inner'(x)."""
    if kind is EvaluationOracle:
        outer = outer_for(EvaluationOracle)
        inner = inner_for(EvaluationOracle)
        if outer is None or inner is None:
            logger.debug("Chain evaluation unavailable: missing outer or inner oracle")
            return None
        return EvaluationOracle(
            lambda *args: outer(inner(*args)),
            combine_metadata([outer, inner]),
        )

    if kind is DerivativeOracle:
        outer_derivative = outer_for(DerivativeOracle)
        inner_value = inner_for(EvaluationOracle)
        inner_derivative = inner_for(DerivativeOracle)
        required = [outer_derivative, inner_value, inner_derivative]
        if any(o is None for o in required):
            logger.debug("Chain rule unavailable: missing one of three sub-oracles")
            return None
        return DerivativeOracle(
            lambda *args: outer_derivative(inner_value(*args)) * inner_derivative(*args),
            combine_metadata(required),
        )

    logger.debug("No composition rule for %s", kind.__name__)
    return None


def _term_oracles(terms: Sequence[Expression], kind: OracleKind,
                  registry: OracleRegistry) -> Optional[List[Oracle]]:
    oracles = []
    for term in terms:
        oracle = get_oracle_for_expression(term, kind, registry)
        if oracle is None:
            logger.debug("Term %s has no %s", term, kind.__name__)
            return None
        oracles.append(oracle)
    return oracles


def _linear_combination(expr: NaryExpression, kind: OracleKind,
                        registry: OracleRegistry) -> Optional[Oracle]:
    if kind not in (EvaluationOracle, DerivativeOracle):
        logger.debug("%s is not additive; no generic rule for %s",
                     kind.__name__, type(expr).__name__)
        return None
    oracles = _term_oracles(expr.terms, kind, registry)
    if oracles is None:
        return None
    subtract = isinstance(expr, Subtraction)
    first, rest = oracles[0], oracles[1:]

    def implementation(*args):
        total = first(*args)
        for oracle in rest:
            if subtract:
                total = total - oracle(*args)
            else:
                total = total + oracle(*args)
        return total

    return kind(implementation, combine_metadata(oracles))


def _pointwise_extremum(expr: NaryExpression, kind: OracleKind,
                        registry: OracleRegistry) -> Optional[Oracle]:
    if kind is not EvaluationOracle:
        logger.debug("Only evaluation is defined for %s", type(expr).__name__)
        return None
    oracles = _term_oracles(expr.terms, kind, registry)
    if oracles is None:
        return None
    reducer = np.maximum if isinstance(expr, Maximum) else np.minimum

    def implementation(*args):
        return functools.reduce(reducer, [oracle(*args) for oracle in oracles])

    return EvaluationOracle(implementation, combine_metadata(oracles))
