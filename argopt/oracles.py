"""
Oracles and the oracle registry.

An oracle is a computational capability attached to a function: evaluate
it, differentiate it, or compute its proximal map. Oracles are callable
and carry metadata (cost model and exactness).

Example:
    registry = OracleRegistry()
    registry.register("f", EvaluationOracle, lambda x: x ** 2)
    registry.register("f", DerivativeOracle, lambda x: 2 * x,
                      OracleMetadata(cost=linear_cost("n")))

    registry.get("f", EvaluationOracle)(3.0)    # => 9.0
    registry.get("f", ProximalOracle)           # => None
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type, Union

from .costs import (
    AbsoluteError,
    CostModel,
    Exact,
    Exactness,
    Inexact,
    error_bound,
    is_exact,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OracleMetadata:
    """Cost model (None when unknown) and exactness of an oracle."""

    cost: Optional[CostModel] = None
    exactness: Exactness = Exact()

    def __str__(self) -> str:
        cost = "unknown cost" if self.cost is None else f"cost {self.cost}"
        return f"{self.exactness}, {cost}"


class Oracle:
    """
    Base class for oracle kinds. Calling an oracle calls its implementation.

    `metadata` may be an OracleMetadata, a bare Exactness, or None (exact,
    unknown cost).
    """

    def __init__(self, implementation: Callable,
                 metadata: Union[OracleMetadata, Exactness, None] = None):
        if not callable(implementation):
            raise TypeError(f"Oracle implementation must be callable, got {implementation!r}")
        if metadata is None:
            metadata = OracleMetadata()
        elif isinstance(metadata, Exactness):
            metadata = OracleMetadata(exactness=metadata)
        elif not isinstance(metadata, OracleMetadata):
            raise TypeError(f"Expected OracleMetadata, got {metadata!r}")
        self.implementation = implementation
        self.metadata = metadata

    def __call__(self, *args, **kwargs):
        return self.implementation(*args, **kwargs)

    @property
    def exactness(self) -> Exactness:
        return self.metadata.exactness

    @property
    def cost(self) -> Optional[CostModel]:
        return self.metadata.cost

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.metadata})"


class EvaluationOracle(Oracle):
    """Computes f(x)."""


class DerivativeOracle(Oracle):
    """Computes the gradient of f at x."""


class ProximalOracle(Oracle):
    """Computes prox_{t f}(x) = argmin_y f(y) + |y - x|^2 / (2t). Called as prox(x, t)."""


OracleKind = Type[Oracle]

DEFAULT_ORACLE_KINDS: Tuple[OracleKind, ...] = (
    EvaluationOracle,
    DerivativeOracle,
    ProximalOracle,
)


def _check_kind(kind) -> None:
    if not (isinstance(kind, type) and issubclass(kind, Oracle) and kind is not Oracle):
        raise TypeError(f"Expected an oracle kind, got {kind!r}")


# ============================================================
# Metadata propagation
# ============================================================

def combine_costs(costs: Iterable[Optional[CostModel]]) -> Optional[CostModel]:
    """Sum of costs, or None if any cost is unknown."""
    total = None
    for cost in costs:
        if cost is None:
            return None
        total = cost if total is None else total + cost
    return total


def combine_exactness(levels: Iterable[Exactness]) -> Exactness:
    """
    Exact only if every level is exact; otherwise Inexact with the sum of
    the error bounds as an absolute bound.
    """
    levels = list(levels)
    if all(is_exact(level) for level in levels):
        return Exact()
    return Inexact(AbsoluteError(sum(error_bound(level) for level in levels)))


def combine_metadata(oracles: Sequence[Oracle]) -> OracleMetadata:
    """Metadata of an oracle assembled from `oracles`."""
    return OracleMetadata(
        cost=combine_costs(o.cost for o in oracles),
        exactness=combine_exactness(o.exactness for o in oracles),
    )


# ============================================================
# Registry
# ============================================================

SpecialKey = Tuple[type, Tuple[str, ...], OracleKind]
SpecialHandler = Callable[..., object]


class OracleRegistry:
    """
    Maps (function name, oracle kind) to oracles, and holds special
    combinations for closed-form oracles of specific expressions.

    A special combination is keyed by the operator variant, the names of
    the leaf functions involved (order does not matter) and the oracle
    kind:

        registry.register_special_combination(
            Addition, ["l1_norm", "l1_norm"], ProximalOracle, handler)

    The handler receives the matching expression and returns an oracle
    (or a plain callable, which gets wrapped in the requested kind).
    """

    def __init__(self):
        self._oracles: Dict[Tuple[str, OracleKind], Oracle] = {}
        self._specials: Dict[SpecialKey, SpecialHandler] = {}

    def register(self, name: str, kind: OracleKind, implementation: Union[Callable, Oracle],
                 metadata: Union[OracleMetadata, Exactness, None] = None) -> Oracle:
        """
        Register an oracle of `kind` for the leaf function `name`.

        Args:
            name: Leaf function name
            kind: EvaluationOracle, DerivativeOracle or ProximalOracle
            implementation: Plain callable, or an already built oracle of `kind`
            metadata: Optional metadata (ignored when an oracle is passed)

        Returns:
            The stored oracle
        """
        _check_kind(kind)
        if isinstance(implementation, Oracle):
            if not isinstance(implementation, kind):
                raise TypeError(
                    f"Cannot register a {type(implementation).__name__} as {kind.__name__}"
                )
            oracle = implementation
        else:
            oracle = kind(implementation, metadata)
        self._oracles[(name, kind)] = oracle
        return oracle

    def get(self, name: str, kind: OracleKind) -> Optional[Oracle]:
        return self._oracles.get((name, kind))

    def has(self, name: str, kind: OracleKind) -> bool:
        return (name, kind) in self._oracles

    def kinds(self, name: str) -> List[OracleKind]:
        """Oracle kinds registered for `name`."""
        return [kind for (n, kind) in self._oracles if n == name]

    def names(self) -> List[str]:
        seen: Dict[str, None] = {}
        for name, _ in self._oracles:
            seen.setdefault(name)
        return list(seen)

    def clear(self, name: str) -> "OracleRegistry":
        """Forget every oracle of `name`."""
        for key in [k for k in self._oracles if k[0] == name]:
            del self._oracles[key]
        return self

    def clear_all(self) -> "OracleRegistry":
        """Forget every oracle and every special combination."""
        self._oracles = {}
        self._specials = {}
        return self

    # ----- special combinations -----

    @staticmethod
    def special_key(operator: type, names: Iterable[str], kind: OracleKind) -> SpecialKey:
        return (operator, tuple(sorted(names)), kind)

    def register_special_combination(self, operator: type, names: Iterable[str],
                                     kind: OracleKind, handler: SpecialHandler) -> SpecialHandler:
        _check_kind(kind)
        if not callable(handler):
            raise TypeError("Special combination handler must be callable")
        key = self.special_key(operator, names, kind)
        if key in self._specials:
            logger.debug("Replacing special combination %s", key)
        self._specials[key] = handler
        return handler

    def get_special_combination(self, operator: type, names: Iterable[str],
                                kind: OracleKind) -> Optional[SpecialHandler]:
        return self._specials.get(self.special_key(operator, names, kind))

    def has_special_combination(self, operator: type, names: Iterable[str],
                                kind: OracleKind) -> bool:
        return self.special_key(operator, names, kind) in self._specials

    def copy(self) -> "OracleRegistry":
        new_registry = OracleRegistry()
        new_registry._oracles = dict(self._oracles)
        new_registry._specials = dict(self._specials)
        return new_registry

    def __len__(self) -> int:
        return len(self._oracles)

    def __repr__(self) -> str:
        return (f"OracleRegistry({len(self._oracles)} oracles, "
                f"{len(self._specials)} special combinations)")
