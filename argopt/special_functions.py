"""
Special functions shipped with every engine.

    sqrt_function(u)   sqrt(u), increasing on u >= 0
    log_plus_one(u)    log(1 + u), increasing on u > -1
    l1_norm(x)         sum |x_i|
    l2_norm(x)         Euclidean norm

Each comes with its properties and evaluation / derivative (and, for the
norms, proximal) oracles, implemented with numpy so they work elementwise
on arrays. The increasing transforms are what the monotone-transform
strategy wraps around convex objectives.

A sum of l1 norms of the same argument also gets a proximal oracle:
prox of n * |x|_1 is soft thresholding at n * t.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .expression import Addition, Expression, FunctionCall
from .oracles import DerivativeOracle, EvaluationOracle, OracleKind, OracleRegistry, ProximalOracle
from .properties import Convex, Lipschitz, MonotonicallyIncreasing, Property, PropertyRegistry
from .spaces import R

_EPS = np.finfo(float).eps


@dataclass(frozen=True)
class SpecialFunction:
    """Description of a pre-registered function."""

    name: str
    description: str
    properties: Tuple[Property, ...] = ()
    oracles: Dict[OracleKind, Callable] = field(default_factory=dict, hash=False, compare=False)

    def __call__(self, arg: Expression) -> FunctionCall:
        return FunctionCall(self.name, (arg,), R)


# ============================================================
# Implementations
# ============================================================

def _sqrt_derivative(u):
    return 0.5 / np.maximum(np.sqrt(u), _EPS)


def _log1p_derivative(u):
    return 1.0 / (1.0 + np.asarray(u, dtype=float))


def _soft_threshold(x, t):
    x = np.asarray(x, dtype=float)
    return np.sign(x) * np.maximum(np.abs(x) - t, 0.0)


def _l1(x):
    return float(np.sum(np.abs(x)))


def _l2(x):
    return float(np.linalg.norm(np.ravel(x)))


def _l2_gradient(x):
    x = np.asarray(x, dtype=float)
    norm = np.linalg.norm(np.ravel(x))
    if norm < _EPS:
        return np.zeros_like(x)
    return x / norm


def _l2_prox(x, t):
    # block soft thresholding
    x = np.asarray(x, dtype=float)
    norm = np.linalg.norm(np.ravel(x))
    if norm <= t:
        return np.zeros_like(x)
    return x * (1.0 - t / norm)


SQRT = SpecialFunction(
    "sqrt_function",
    "Square root (monotone increasing for u >= 0)",
    (MonotonicallyIncreasing(),),
    {EvaluationOracle: np.sqrt, DerivativeOracle: _sqrt_derivative},
)

LOG_PLUS_ONE = SpecialFunction(
    "log_plus_one",
    "Logarithm of one plus the argument (monotone increasing for u > -1)",
    (MonotonicallyIncreasing(),),
    {EvaluationOracle: np.log1p, DerivativeOracle: _log1p_derivative},
)

L1_NORM = SpecialFunction(
    "l1_norm",
    "L1 norm (sum of absolute values)",
    (Convex(),),
    {EvaluationOracle: _l1, DerivativeOracle: np.sign, ProximalOracle: _soft_threshold},
)

L2_NORM = SpecialFunction(
    "l2_norm",
    "L2 norm (Euclidean norm)",
    (Convex(), Lipschitz(1.0)),
    {EvaluationOracle: _l2, DerivativeOracle: _l2_gradient, ProximalOracle: _l2_prox},
)

SPECIAL_FUNCTIONS: Tuple[SpecialFunction, ...] = (SQRT, LOG_PLUS_ONE, L1_NORM, L2_NORM)


def sqrt_function(arg: Expression) -> FunctionCall:
    """sqrt(arg) as a call of the registered special function."""
    return SQRT(arg)


def log_plus_one(arg: Expression) -> FunctionCall:
    """log(1 + arg) as a call of the registered special function."""
    return LOG_PLUS_ONE(arg)


def l1_norm(arg: Expression) -> FunctionCall:
    return L1_NORM(arg)


def l2_norm(arg: Expression) -> FunctionCall:
    return L2_NORM(arg)


def list_special_functions() -> List[Tuple[str, str]]:
    """(name, description) of every shipped special function."""
    return [(sf.name, sf.description) for sf in SPECIAL_FUNCTIONS]


def get_special_function(name: str) -> Optional[SpecialFunction]:
    for sf in SPECIAL_FUNCTIONS:
        if sf.name == name:
            return sf
    return None


# ============================================================
# Special combinations
# ============================================================

def l1_sum_proximal(expr: Addition):
    """
    Proximal map of l1_norm(x) + ... + l1_norm(x).

    Returns None when the terms act on different arguments, in which case
    no closed form is known.
    """
    arguments = {term.args for term in expr.terms}
    if len(arguments) != 1:
        return None
    weight = len(expr.terms)
    return lambda x, t: _soft_threshold(x, weight * t)


def register_special_functions(properties: PropertyRegistry, oracles: OracleRegistry) -> None:
    """Register every special function and the l1 sum combinations."""
    for sf in SPECIAL_FUNCTIONS:
        properties.register(sf.name, *sf.properties)
        for kind, implementation in sf.oracles.items():
            oracles.register(sf.name, kind, implementation)
    for count in (2, 3):
        oracles.register_special_combination(
            Addition, [L1_NORM.name] * count, ProximalOracle, l1_sum_proximal)
