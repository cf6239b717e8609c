"""
The Engine: registries plus every analysis that reads them.

An Engine owns one PropertyRegistry, one OracleRegistry (including its
special combinations) and one StrategyRegistry. Engines never share
state, so tests and applications can build as many isolated ones as
they like:

    from argopt import Engine, E, Convex, Smooth, EvaluationOracle

    engine = Engine()
    engine.register_property("f", Convex(), Smooth(1.0))
    engine.register_oracle("f", EvaluationOracle, lambda x: x ** 2)

    x = E.var("x")
    f = E.func("f")
    engine.infer_properties(f(x))
    engine.get_oracle_for_expression(f(x), EvaluationOracle)(3.0)   # => 9.0
    engine.generate_reformulations(f(x) + f(x), max_iterations=2)

The module-level functions (`infer_properties`, `register_property`, ...)
operate on a process-wide default engine created on first use.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from .composition import get_oracle_for_expression as _compose_oracle
from .costs import Exactness
from .expression import Expression
from .inference import infer_properties as _infer
from .oracles import (
    DEFAULT_ORACLE_KINDS,
    Oracle,
    OracleKind,
    OracleMetadata,
    OracleRegistry,
)
from .properties import Property, PropertyRegistry
from .reformulation import (
    Reformulation,
    Strategy,
    StrategyRegistry,
    apply_all_strategies as _apply_all,
    generate_reformulations as _generate,
)
from .special_functions import register_special_functions
from .strategies import register_builtin_strategies

logger = logging.getLogger(__name__)


class Engine:
    """
    Analysis context for expressions.

    Args:
        properties: Property registry to use (a new one if None)
        oracles: Oracle registry to use (a new one if None)
        strategies: Strategy registry to use (a new one if None)
        builtin_strategies: Register commutativity, rebalancing,
            structure_loss and monotone_transform
        special_functions: Register sqrt_function, log_plus_one,
            l1_norm and l2_norm
        oracle_kinds: Oracle kinds collected into every Reformulation
    """

    def __init__(self, properties: Optional[PropertyRegistry] = None,
                 oracles: Optional[OracleRegistry] = None,
                 strategies: Optional[StrategyRegistry] = None,
                 builtin_strategies: bool = True,
                 special_functions: bool = True,
                 oracle_kinds: Tuple[OracleKind, ...] = DEFAULT_ORACLE_KINDS):
        self.properties = properties if properties is not None else PropertyRegistry()
        self.oracles = oracles if oracles is not None else OracleRegistry()
        self.strategies = strategies if strategies is not None else StrategyRegistry()
        self.oracle_kinds = tuple(oracle_kinds)
        if special_functions:
            register_special_functions(self.properties, self.oracles)
        if builtin_strategies:
            register_builtin_strategies(self.strategies)

    # ----- properties -----

    def register_property(self, name: str, *props: Property) -> 'Engine':
        """Declare properties of the leaf function `name`."""
        self.properties.register(name, *props)
        return self

    def clear_properties(self, name: str) -> 'Engine':
        self.properties.clear(name)
        return self

    def get_properties(self, name: str):
        return self.properties.get(name)

    def infer_properties(self, expr: Expression):
        """Properties `expr` provably has (see argopt.inference)."""
        return _infer(expr, self.properties)

    # ----- oracles -----

    def register_oracle(self, name: str, kind: OracleKind,
                        implementation: Union[Callable, Oracle],
                        metadata: Union[OracleMetadata, Exactness, None] = None) -> Oracle:
        """Attach an oracle of `kind` to the leaf function `name`."""
        return self.oracles.register(name, kind, implementation, metadata)

    def clear_oracles(self, name: str) -> 'Engine':
        self.oracles.clear(name)
        return self

    def register_special_combination(self, operator: type, names: Iterable[str],
                                     kind: OracleKind, handler: Callable) -> Callable:
        return self.oracles.register_special_combination(operator, names, kind, handler)

    def get_oracle_for_expression(self, expr: Expression, kind: OracleKind) -> Optional[Oracle]:
        """Oracle of `kind` for `expr`, or None (see argopt.composition)."""
        return _compose_oracle(expr, kind, self.oracles)

    def available_oracles(self, expr: Expression) -> Dict[OracleKind, Oracle]:
        """Every oracle kind in `oracle_kinds` that can be built for `expr`."""
        found = {}
        for kind in self.oracle_kinds:
            oracle = self.get_oracle_for_expression(expr, kind)
            if oracle is not None:
                found[kind] = oracle
        return found

    def create_reformulation(self, expr: Expression, strategy: Optional[str] = None,
                             source: Optional[Expression] = None) -> Reformulation:
        """Analyze `expr` into a Reformulation."""
        return Reformulation(
            expr,
            self.infer_properties(expr),
            self.available_oracles(expr),
            strategy=strategy,
            source=source,
        )

    # ----- strategies -----

    def register_strategy(self, name: str, strategy: Union[Strategy, Callable],
                          description: Optional[str] = None) -> Strategy:
        """
        Register a strategy under `name`.

        `strategy` is a Strategy or a plain function `func(expr, engine)`
        returning expressions or Reformulations.
        """
        return self.strategies.register(name, strategy, description)

    def list_strategies(self) -> List[str]:
        return self.strategies.names()

    def get_strategy(self, name: str) -> Strategy:
        """Raises StrategyNotFound for unknown names."""
        return self.strategies.get(name)

    def clear_strategies(self) -> 'Engine':
        self.strategies.clear()
        return self

    def apply_strategy(self, name: str, expr: Expression) -> List[Reformulation]:
        """Apply one strategy by name. Raises StrategyNotFound for unknown names."""
        return self.strategies.get(name)(expr, self)

    def apply_all_strategies(self, expr: Expression) -> List[Reformulation]:
        return _apply_all(expr, self)

    def generate_reformulations(self, expr: Expression, max_iterations: int = 1,
                                trace: bool = False):
        """
        Breadth-first search for reformulations of `expr`.

        Args:
            expr: Expression to start from
            max_iterations: Maximum number of strategy rounds
            trace: If True, return (reformulations, DiscoveryTrace)

        Returns:
            List of reformulations, the original first.
        """
        return _generate(expr, self, max_iterations=max_iterations, trace=trace)

    # ----- misc -----

    def copy(self) -> 'Engine':
        """An engine with independent copies of every registry."""
        return Engine(
            properties=self.properties.copy(),
            oracles=self.oracles.copy(),
            strategies=self.strategies.copy(),
            builtin_strategies=False,
            special_functions=False,
            oracle_kinds=self.oracle_kinds,
        )

    def __repr__(self) -> str:
        return (f"Engine({len(self.properties)} functions with properties, "
                f"{len(self.oracles)} oracles, {len(self.strategies)} strategies)")


# ============================================================
# Default engine and module-level API
# ============================================================

_default_engine: Optional[Engine] = None


def get_default_engine() -> Engine:
    """The process-wide engine used by the module-level functions."""
    global _default_engine
    if _default_engine is None:
        logger.debug("Creating default engine")
        _default_engine = Engine()
    return _default_engine


def reset_default_engine() -> None:
    """Drop the default engine; the next call creates a fresh one."""
    global _default_engine
    _default_engine = None


def register_property(name: str, *props: Property) -> Engine:
    return get_default_engine().register_property(name, *props)


def clear_properties(name: str) -> Engine:
    return get_default_engine().clear_properties(name)


def get_properties(name: str):
    return get_default_engine().get_properties(name)


def infer_properties(expr: Expression):
    return get_default_engine().infer_properties(expr)


def register_oracle(name: str, kind: OracleKind, implementation: Union[Callable, Oracle],
                    metadata: Union[OracleMetadata, Exactness, None] = None) -> Oracle:
    return get_default_engine().register_oracle(name, kind, implementation, metadata)


def clear_oracles(name: str) -> Engine:
    return get_default_engine().clear_oracles(name)


def register_special_combination(operator: type, names: Iterable[str],
                                 kind: OracleKind, handler: Callable) -> Callable:
    return get_default_engine().register_special_combination(operator, names, kind, handler)


def get_oracle_for_expression(expr: Expression, kind: OracleKind) -> Optional[Oracle]:
    return get_default_engine().get_oracle_for_expression(expr, kind)


def available_oracles(expr: Expression) -> Dict[OracleKind, Oracle]:
    return get_default_engine().available_oracles(expr)


def create_reformulation(expr: Expression, strategy: Optional[str] = None,
                         source: Optional[Expression] = None) -> Reformulation:
    return get_default_engine().create_reformulation(expr, strategy, source)


def register_strategy(name: str, strategy: Union[Strategy, Callable],
                      description: Optional[str] = None) -> Strategy:
    return get_default_engine().register_strategy(name, strategy, description)


def list_strategies() -> List[str]:
    return get_default_engine().list_strategies()


def get_strategy(name: str) -> Strategy:
    return get_default_engine().get_strategy(name)


def clear_strategies() -> Engine:
    return get_default_engine().clear_strategies()


def apply_strategy(name: str, expr: Expression) -> List[Reformulation]:
    return get_default_engine().apply_strategy(name, expr)


def apply_all_strategies(expr: Expression) -> List[Reformulation]:
    return get_default_engine().apply_all_strategies(expr)


def generate_reformulations(expr: Expression, max_iterations: int = 1,
                            trace: bool = False) -> Any:
    return get_default_engine().generate_reformulations(
        expr, max_iterations=max_iterations, trace=trace)
