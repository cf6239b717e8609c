"""
Reformulations, strategies and the breadth-first discovery driver.

A Reformulation pairs an expression with the properties and oracles
inferred for it. A Strategy turns one expression into equivalent ones.
`generate_reformulations` applies every registered strategy to every newly
discovered expression until nothing new appears or the iteration bound is
reached.

Strategies are called as `strategy(expr, engine)`; the engine supplies
the registries used to analyze the expressions they produce.

Example:
    def swap_first_two(expr, engine):
        if isinstance(expr, Addition) and len(expr.terms) > 1:
            t = expr.terms
            return [Addition((t[1], t[0]) + t[2:])]
        return []

    engine.register_strategy("swap", swap_first_two)
    results = engine.generate_reformulations(f(x) + g(x), max_iterations=2)
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from .errors import StrategyNotFound
from .expression import Expression, expr_key, format_expr
from .properties import Property

logger = logging.getLogger(__name__)


class Reformulation:
    """
    An expression together with its inferred properties and oracles.

    `strategy` and `source` record how it was found (both None for the
    expression a search started from).
    """

    def __init__(self, expr: Expression, properties: Iterable[Property] = (),
                 oracles: Optional[Dict[type, Any]] = None,
                 strategy: Optional[str] = None, source: Optional[Expression] = None):
        self.expr = expr
        self.properties = frozenset(properties)
        self.oracles = dict(oracles or {})
        self.strategy = strategy
        self.source = source

    @property
    def key(self):
        """Structural key of the expression, used for deduplication."""
        return expr_key(self.expr)

    def has_property(self, variant: type) -> bool:
        return any(isinstance(p, variant) for p in self.properties)

    def has_oracle(self, kind: type) -> bool:
        return kind in self.oracles

    def oracle(self, kind: type):
        """Oracle of `kind`, or None."""
        return self.oracles.get(kind)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Reformulation):
            return NotImplemented
        return self.expr == other.expr and self.properties == other.properties

    def __hash__(self) -> int:
        return hash(self.expr)

    def __repr__(self) -> str:
        props = ", ".join(sorted(str(p) for p in self.properties)) or "none"
        kinds = ", ".join(sorted(k.__name__ for k in self.oracles)) or "none"
        return f"Reformulation({self.expr}; properties: {props}; oracles: {kinds})"


# ============================================================
# Strategies
# ============================================================

class Strategy:
    """
    Base class for reformulation strategies.

    Subclasses implement `rewrite(expr, engine)`, returning equivalent
    expressions (or ready-made Reformulations). Calling the strategy
    analyzes each result and drops structural duplicates.
    """

    name: str = "strategy"
    description: Optional[str] = None

    def rewrite(self, expr: Expression, engine) -> Iterable[Union[Expression, Reformulation]]:
        raise NotImplementedError

    def __call__(self, expr: Expression, engine) -> List[Reformulation]:
        results: List[Reformulation] = []
        seen = set()
        for item in self.rewrite(expr, engine):
            if isinstance(item, Reformulation):
                reformulation = item
            else:
                reformulation = engine.create_reformulation(item, strategy=self.name, source=expr)
            if reformulation.key in seen:
                continue
            seen.add(reformulation.key)
            results.append(reformulation)
        return results

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class FunctionStrategy(Strategy):
    """Adapts a plain `func(expr, engine)` to the Strategy interface."""

    def __init__(self, func: Callable, name: Optional[str] = None,
                 description: Optional[str] = None):
        if not callable(func):
            raise TypeError(f"Strategy must be callable, got {func!r}")
        self.func = func
        self.name = name or getattr(func, "__name__", "strategy")
        self.description = description if description is not None else func.__doc__

    def rewrite(self, expr: Expression, engine):
        return self.func(expr, engine) or ()


class StrategyRegistry:
    """
    Named strategies, kept in registration order.

    Example:
        registry = StrategyRegistry()
        registry.register("commutativity", commutativity)
        "commutativity" in registry      # => True
        registry.get("missing")          # raises StrategyNotFound
    """

    def __init__(self):
        self._strategies: Dict[str, Strategy] = {}

    def register(self, name: str, strategy: Union[Strategy, Callable],
                 description: Optional[str] = None) -> Strategy:
        """Register `strategy` under `name`, replacing any previous one."""
        if not isinstance(strategy, Strategy):
            strategy = FunctionStrategy(strategy, name=name, description=description)
        if name in self._strategies:
            logger.debug("Replacing strategy %s", name)
        else:
            logger.debug("Registering strategy %s", name)
        self._strategies[name] = strategy
        return strategy

    def get(self, name: str) -> Strategy:
        if name not in self._strategies:
            raise StrategyNotFound(f"Strategy '{name}' not found")
        return self._strategies[name]

    def unregister(self, name: str) -> "StrategyRegistry":
        self.get(name)
        del self._strategies[name]
        return self

    def names(self) -> List[str]:
        return list(self._strategies)

    def clear(self) -> "StrategyRegistry":
        self._strategies = {}
        return self

    def copy(self) -> "StrategyRegistry":
        new_registry = StrategyRegistry()
        new_registry._strategies = dict(self._strategies)
        return new_registry

    def items(self) -> List[Tuple[str, Strategy]]:
        return list(self._strategies.items())

    def __contains__(self, name: str) -> bool:
        return name in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)

    def __iter__(self):
        return iter(self._strategies)

    def __repr__(self) -> str:
        return f"StrategyRegistry({', '.join(self._strategies) or 'empty'})"


# ============================================================
# Discovery trace
# ============================================================

class DiscoveryStep:
    """One newly discovered expression: which strategy found it, from what."""

    def __init__(self, iteration: int, strategy: str,
                 source: Expression, result: Expression):
        self.iteration = iteration
        self.strategy = strategy
        self.source = source
        self.result = result

    def __repr__(self) -> str:
        return f"[{self.iteration}] {self.strategy}: {self.source} → {self.result}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "iteration": self.iteration,
            "strategy": self.strategy,
            "source": format_expr(self.source),
            "result": format_expr(self.result),
        }


class DiscoveryTrace:
    """
    A trace of every expression discovered by generate_reformulations.

    Provides multiple formatting options:
        - Default repr: verbose multi-line format
        - format("compact"): single line summary
        - format("strategies"): just the strategy names, in discovery order
        - format("iterations"): discoveries grouped by iteration
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self, initial: Optional[Expression] = None):
        self.steps: List[DiscoveryStep] = []
        self.initial = initial
        self.iterations = 0

    def add_step(self, step: DiscoveryStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace in different styles.

        Args:
            style: One of "verbose", "compact", "strategies", "iterations"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            return (f"{self.initial} --[{len(self.steps)} discoveries in "
                    f"{self.iterations} iterations]-->")

        elif style == "strategies":
            names = self.strategies_applied()
            return " -> ".join(names) if names else "(nothing discovered)"

        elif style == "iterations":
            lines = [f"Initial: {self.initial}"]
            for iteration in range(1, self.iterations + 1):
                found = [s for s in self.steps if s.iteration == iteration]
                lines.append(f"Iteration {iteration}: {len(found)} new")
                lines.extend(f"  {s.result}  ({s.strategy})" for s in found)
            return "\n".join(lines)

        else:  # verbose (default)
            return repr(self)

    def __repr__(self) -> str:
        lines = [f"Initial: {self.initial}"]
        for i, step in enumerate(self.steps, 1):
            lines.append(f"  {i}. {step}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if anything new was discovered."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """Convert trace to dictionary for JSON serialization."""
        return {
            "initial": format_expr(self.initial) if self.initial is not None else None,
            "iterations": self.iterations,
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }

    def strategy_counts(self) -> Dict[str, int]:
        """Count how many discoveries each strategy made."""
        counts: Dict[str, int] = {}
        for step in self.steps:
            counts[step.strategy] = counts.get(step.strategy, 0) + 1
        return counts

    def strategies_applied(self) -> List[str]:
        return [s.strategy for s in self.steps]

    def summary(self) -> str:
        """Get a brief summary of the search."""
        if not self.steps:
            return "No reformulations discovered"
        counts = self.strategy_counts()
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} reformulations in {self.iterations} iterations "
                f"using {len(counts)} strategies. Most productive: "
                f"{most_used[0]} ({most_used[1]}x)")


# ============================================================
# Drivers
# ============================================================

def apply_all_strategies(expr: Expression, engine) -> List[Reformulation]:
    """The expression itself plus one round of every strategy, deduplicated."""
    results = [engine.create_reformulation(expr)]
    seen = {results[0].key}
    for name in engine.strategies.names():
        for reformulation in engine.strategies.get(name)(expr, engine):
            if reformulation.key not in seen:
                seen.add(reformulation.key)
                results.append(reformulation)
    return results


def generate_reformulations(expr: Expression, engine, max_iterations: int = 1,
                            trace: bool = False):
    """
    Breadth-first search for equivalent reformulations.

    Starting from `expr`, each iteration applies every registered strategy
    to every expression discovered in the previous iteration and keeps the
    structurally new results. The search stops when an iteration finds
    nothing new or after `max_iterations` iterations.

    Args:
        expr: Expression to start from
        engine: Engine supplying strategies and registries
        max_iterations: Maximum number of strategy rounds
        trace: If True, also return a DiscoveryTrace

    Returns:
        List of reformulations, the original first, in discovery order.
        If trace=True, returns (reformulations, trace).
    """
    if max_iterations < 0:
        raise ValueError(f"max_iterations must be non-negative, got {max_iterations}")

    results = [engine.create_reformulation(expr)]
    seen = {results[0].key}
    applied: Dict[Any, set] = {results[0].key: set()}
    frontier = [expr]
    discovery = DiscoveryTrace(expr)

    for iteration in range(1, max_iterations + 1):
        next_frontier: List[Expression] = []
        for current in frontier:
            done = applied.setdefault(expr_key(current), set())
            for name in engine.strategies.names():
                if name in done:
                    continue
                done.add(name)
                for reformulation in engine.strategies.get(name)(current, engine):
                    key = reformulation.key
                    if key in seen:
                        continue
                    seen.add(key)
                    applied[key] = set()
                    results.append(reformulation)
                    next_frontier.append(reformulation.expr)
                    discovery.add_step(DiscoveryStep(iteration, name, current, reformulation.expr))

        logger.debug("Iteration %d: %d new reformulations", iteration, len(next_frontier))
        discovery.iterations = iteration
        if not next_frontier:
            break
        frontier = next_frontier

    if trace:
        return results, discovery
    return results
