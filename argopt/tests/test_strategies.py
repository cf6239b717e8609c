"""Tests for the built-in reformulation strategies."""

import math

import pytest

from argopt import (
    Addition,
    Composition,
    Convex,
    DerivativeOracle,
    E,
    Engine,
    EvaluationOracle,
    FunctionCall,
    MonotonicallyIncreasing,
    Rn,
    StronglyConvex,
    Subtraction,
    compose,
    expr_key,
    log_plus_one,
    sqrt_function,
)
from argopt.strategies import ABSTRACT_PREFIX, abstract_name, commutativity


def expressions(reformulations):
    return [r.expr for r in reformulations]


class TestCommutativity:
    """Tests for the commutativity strategy."""

    def setup_method(self):
        """Set up an engine and symbols."""
        self.engine = Engine()
        self.x = E.var("x")
        self.f, self.g, self.h = E.funcs("f", "g", "h")

    def test_two_terms(self):
        """A 2-term sum yields itself and its swap."""
        f, g, x = self.f, self.g, self.x
        results = expressions(self.engine.apply_strategy("commutativity", f(x) + g(x)))
        assert results == [f(x) + g(x), g(x) + f(x)]

    def test_three_terms_adjacent_swaps(self):
        """One application yields the original plus each adjacent swap."""
        f, g, h, x = self.f, self.g, self.h, self.x
        results = expressions(self.engine.apply_strategy("commutativity", f(x) + g(x) + h(x)))
        assert results == [
            f(x) + g(x) + h(x),
            g(x) + f(x) + h(x),
            f(x) + h(x) + g(x),
        ]

    def test_three_terms_all_permutations(self):
        """Repeated application reaches all 6 permutations."""
        engine = Engine(builtin_strategies=False)
        engine.register_strategy("commutativity", commutativity)
        f, g, h, x = self.f, self.g, self.h, self.x
        results = engine.generate_reformulations(f(x) + g(x) + h(x), max_iterations=10)
        assert len(results) == 6
        assert len({expr_key(r.expr) for r in results}) == 6

    def test_maximum(self):
        """max is commutative too."""
        f, g, x = self.f, self.g, self.x
        results = expressions(self.engine.apply_strategy("commutativity", E.max(f(x), g(x))))
        assert E.max(g(x), f(x)) in results

    def test_nested_same_operator(self):
        """Nested sums are commuted in place."""
        f, g, h, x = self.f, self.g, self.h, self.x
        expr = E.add(f(x), E.add(g(x), h(x)))
        results = expressions(self.engine.apply_strategy("commutativity", expr))
        assert E.add(f(x), E.add(h(x), g(x))) in results
        assert E.add(E.add(g(x), h(x)), f(x)) in results
        assert len(results) == 3

    def test_subtraction_not_commutative(self):
        """Differences are left alone."""
        f, g, x = self.f, self.g, self.x
        assert self.engine.apply_strategy("commutativity", f(x) - g(x)) == []

    def test_records_strategy_and_source(self):
        """Reformulations remember how they were made."""
        f, g, x = self.f, self.g, self.x
        expr = f(x) + g(x)
        swapped = self.engine.apply_strategy("commutativity", expr)[1]
        assert swapped.strategy == "commutativity"
        assert swapped.source == expr


class TestRebalancing:
    """Tests for the rebalancing strategy."""

    def setup_method(self):
        """Set up an engine and symbols."""
        self.engine = Engine()
        self.x = E.var("x")
        self.f, self.g, self.h = E.funcs("f", "g", "h")

    def test_flat_sum_splits(self):
        """A flat sum yields every binary grouping."""
        f, g, h, x = self.f, self.g, self.h, self.x
        results = expressions(self.engine.apply_strategy("rebalancing", f(x) + g(x) + h(x)))
        assert results == [
            E.add(f(x), E.add(g(x), h(x))),
            E.add(E.add(f(x), g(x)), h(x)),
        ]

    def test_nested_sum_flattens(self):
        """Nested sums are flattened."""
        f, g, h, x = self.f, self.g, self.h, self.x
        expr = E.add(E.add(f(x), g(x)), h(x))
        results = expressions(self.engine.apply_strategy("rebalancing", expr))
        assert E.add(f(x), g(x), h(x)) in results
        assert E.add(f(x), E.add(g(x), h(x))) in results

    def test_difference_regroups(self):
        """(a - b) - c becomes a - b - c and a - (b + c)."""
        f, g, h, x = self.f, self.g, self.h, self.x
        expr = E.sub(E.sub(f(x), g(x)), h(x))
        results = expressions(self.engine.apply_strategy("rebalancing", expr))
        assert E.sub(f(x), g(x), h(x)) in results
        assert E.sub(f(x), E.add(g(x), h(x))) in results

    def test_composition_associativity(self):
        """(f o g) o h <-> f o (g o h)."""
        f, g, h, x = self.f, self.g, self.h, self.x
        left = compose(compose(f(x), g(x)), h(x))
        right = compose(f(x), compose(g(x), h(x)))
        assert expressions(self.engine.apply_strategy("rebalancing", left)) == [right]
        assert expressions(self.engine.apply_strategy("rebalancing", right)) == [left]

    def test_leaf_unchanged(self):
        """Nothing to rebalance in a single call."""
        assert self.engine.apply_strategy("rebalancing", self.f(self.x)) == []

    @pytest.mark.parametrize("point", [0.5, 1.0, 2.0])
    def test_preserves_value(self, calculus_engine, x, point):
        """Every reformulation of f + g + h evaluates like the original."""
        f, g, h = E.funcs("f", "g", "h")
        expr = f(x) + g(x) + h(x)
        original = calculus_engine.get_oracle_for_expression(expr, EvaluationOracle)
        results = calculus_engine.generate_reformulations(expr, max_iterations=2)
        assert len(results) > 1
        for reformulation in results:
            oracle = reformulation.oracle(EvaluationOracle)
            assert oracle is not None
            assert abs(oracle(point) - original(point)) <= 1e-10


class TestStructureLoss:
    """Tests for the structure-loss strategy."""

    def setup_method(self):
        """Set up an engine with facts and oracles."""
        self.engine = Engine()
        self.x = E.var("x")
        self.f, self.g, self.h = E.funcs("f", "g", "h")
        self.engine.register_property("f", StronglyConvex(1.0))
        self.engine.register_property("g", Convex())
        self.engine.register_oracle("f", EvaluationOracle, lambda u: u ** 2)
        self.engine.register_oracle("g", EvaluationOracle, abs)

    def test_abstracts_whole_sum(self):
        """A sum of atomic calls collapses into one opaque call."""
        f, g, x = self.f, self.g, self.x
        results = expressions(self.engine.apply_strategy("structure_loss", f(x) + g(x)))
        assert len(results) == 1
        call = results[0]
        assert isinstance(call, FunctionCall)
        assert call.function.startswith(ABSTRACT_PREFIX)
        assert call.args == (x,)

    def test_abstraction_keeps_capabilities(self):
        """The opaque function carries the subtree's facts and oracles."""
        f, g, x = self.f, self.g, self.x
        reformulation = self.engine.apply_strategy("structure_loss", f(x) + g(x))[0]
        name = reformulation.expr.function
        assert self.engine.get_properties(name) == {StronglyConvex(1.0)}
        assert reformulation.properties == {StronglyConvex(1.0)}
        assert reformulation.oracle(EvaluationOracle)(-2.0) == pytest.approx(6.0)

    def test_every_non_atomic_position(self):
        """Inner and outer non-atomic subtrees are each abstracted once."""
        f, g, h, x = self.f, self.g, self.h, self.x
        expr = h(f(x) + g(x))
        results = expressions(self.engine.apply_strategy("structure_loss", expr))
        assert len(results) == 2
        assert isinstance(results[0], FunctionCall) and results[0].function.startswith(ABSTRACT_PREFIX)
        assert results[1].function == "h"
        assert results[1].args[0].function.startswith(ABSTRACT_PREFIX)

    def test_atomic_expression(self):
        """Atomic expressions have nothing to abstract."""
        assert self.engine.apply_strategy("structure_loss", self.f(self.x)) == []

    def test_free_variables_become_arguments(self):
        """The opaque call takes the sorted free variables."""
        x, y = E.vars("x", "y")
        expr = E.call("f", y) + E.call("g", x)
        call = self.engine.apply_strategy("structure_loss", expr)[0].expr
        assert call.args == (x, y)

    def test_names_are_deterministic(self):
        """The same subtree always gets the same name."""
        f, g, x = self.f, self.g, self.x
        assert abstract_name(f(x) + g(x)) == abstract_name(f(x) + g(x))
        assert abstract_name(f(x) + g(x)) != abstract_name(g(x) + f(x))

    def test_names_depend_on_spaces(self):
        """Subtrees that differ only in their spaces get different names."""
        f, g = self.f, self.g
        scalar, vector = E.var("x"), E.var("x", Rn(3))
        assert abstract_name(f(scalar) + g(scalar)) != abstract_name(f(vector) + g(vector))


class TestMonotoneTransform:
    """Tests for the monotone-transform strategy."""

    def setup_method(self):
        """Set up an engine where f(x) = x^2 is convex."""
        self.engine = Engine()
        self.x = E.var("x")
        self.f = E.func("f")
        self.engine.register_oracle("f", EvaluationOracle, lambda u: u ** 2)
        self.engine.register_oracle("f", DerivativeOracle, lambda u: 2 * u)

    def test_convex_objective(self):
        """Convex objectives get sqrt and log(1 + .) variants."""
        self.engine.register_property("f", Convex())
        f, x = self.f, self.x
        results = expressions(self.engine.apply_strategy("monotone_transform", f(x)))
        assert results == [sqrt_function(f(x)), log_plus_one(f(x))]

    def test_transforms_are_increasing(self):
        """The wrapped objectives are known to be increasing transforms."""
        self.engine.register_property("f", StronglyConvex(2.0))
        results = self.engine.apply_strategy("monotone_transform", self.f(self.x))
        for reformulation in results:
            assert MonotonicallyIncreasing() in reformulation.properties

    def test_transformed_oracles(self):
        """sqrt(f(x)) evaluates and differentiates through the chain rule."""
        self.engine.register_property("f", Convex())
        reformulation = self.engine.apply_strategy("monotone_transform", self.f(self.x))[0]
        assert reformulation.oracle(EvaluationOracle)(2.0) == pytest.approx(2.0)
        assert reformulation.oracle(DerivativeOracle)(2.0) == pytest.approx(1.0)

    def test_non_convex_objective(self):
        """Nothing is emitted without convexity."""
        assert self.engine.apply_strategy("monotone_transform", self.f(self.x)) == []

    def test_transformed_sum_oracles(self):
        """sqrt(f(x) + g(x)) evaluates and differentiates the whole sum."""
        self.engine.register_property("f", Convex())
        self.engine.register_property("g", Convex())
        self.engine.register_oracle("g", EvaluationOracle, lambda u: u ** 4)
        self.engine.register_oracle("g", DerivativeOracle, lambda u: 4 * u ** 3)
        g = E.func("g")
        expr = self.f(self.x) + g(self.x)
        sqrt_sum, log_sum = self.engine.apply_strategy("monotone_transform", expr)
        assert sqrt_sum.oracle(EvaluationOracle)(2.0) == pytest.approx(math.sqrt(20.0))
        assert sqrt_sum.oracle(DerivativeOracle)(2.0) == pytest.approx(36.0 / (2 * math.sqrt(20.0)))
        assert log_sum.oracle(EvaluationOracle)(2.0) == pytest.approx(math.log1p(20.0))


def convex_engine():
    """Engine where f(x) = x^2, g(x) = |x| and h(x) = x^4 are convex."""
    engine = Engine()
    for name, value, derivative in [
        ("f", lambda u: u ** 2, lambda u: 2 * u),
        ("g", abs, lambda u: math.copysign(1.0, u)),
        ("h", lambda u: u ** 4, lambda u: 4 * u ** 3),
    ]:
        engine.register_property(name, Convex())
        engine.register_oracle(name, EvaluationOracle, value)
        engine.register_oracle(name, DerivativeOracle, derivative)
    return engine


TRANSFORMS = {"sqrt_function": math.sqrt, "log_plus_one": math.log1p}


class TestDiscoveredOracles:
    """Every discovered reformulation computes the objective or a monotone transform of it."""

    @pytest.mark.parametrize("point", [0.5, 1.0, 2.0])
    @pytest.mark.parametrize("build", [
        lambda f, g, h, x: f(x) + g(x) + h(x),
        lambda f, g, h, x: f(x) + g(x),
        lambda f, g, h, x: E.add(f(x), E.add(g(x), h(x))),
    ])
    def test_values_preserved(self, build, point):
        """Rewrites match the objective; transforms match sqrt or log1p of it."""
        engine = convex_engine()
        x = E.var("x")
        expr = build(*E.funcs("f", "g", "h"), x)
        value = engine.get_oracle_for_expression(expr, EvaluationOracle)(point)
        results = engine.generate_reformulations(expr, max_iterations=2)
        transformed = [r for r in results
                       if isinstance(r.expr, FunctionCall) and r.expr.function in TRANSFORMS]
        assert transformed
        allowed = [value] + [t(value) for t in TRANSFORMS.values()]
        for reformulation in results:
            oracle = reformulation.oracle(EvaluationOracle)
            assert oracle is not None
            got = oracle(point)
            if reformulation in transformed:
                expected = TRANSFORMS[reformulation.expr.function](value)
                assert got == pytest.approx(expected)
            elif reformulation.strategy in ("commutativity", "rebalancing"):
                assert got == pytest.approx(value)
            else:
                assert any(got == pytest.approx(a) for a in allowed)
