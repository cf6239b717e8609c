"""Tests for oracles, the oracle registry and oracle composition."""

import math

import numpy as np
import pytest

from argopt import (
    Addition,
    DerivativeOracle,
    E,
    Engine,
    EvaluationOracle,
    Exact,
    Inexact,
    OracleMetadata,
    OracleRegistry,
    ProximalOracle,
    compose,
    constant_cost,
    error_bound,
    is_exact,
    linear_cost,
)


class TestOracleRegistry:
    """Tests for OracleRegistry."""

    def setup_method(self):
        """Set up a registry."""
        self.registry = OracleRegistry()

    def test_register_and_call(self):
        """Registered oracles are callable."""
        self.registry.register("f", EvaluationOracle, lambda x: x ** 2)
        oracle = self.registry.get("f", EvaluationOracle)
        assert isinstance(oracle, EvaluationOracle)
        assert oracle(3.0) == 9.0

    def test_missing_oracle_is_none(self):
        """Lookups of unregistered oracles return None."""
        assert self.registry.get("f", EvaluationOracle) is None
        assert not self.registry.has("f", EvaluationOracle)

    def test_default_metadata(self):
        """Oracles are exact with unknown cost by default."""
        oracle = self.registry.register("f", EvaluationOracle, abs)
        assert oracle.exactness == Exact()
        assert oracle.cost is None

    def test_exactness_as_metadata(self):
        """A bare exactness level is accepted as metadata."""
        oracle = self.registry.register("f", EvaluationOracle, abs, Inexact(0.1))
        assert oracle.metadata == OracleMetadata(exactness=Inexact(0.1))

    def test_clear(self):
        """clear removes every oracle of one function."""
        self.registry.register("f", EvaluationOracle, abs)
        self.registry.register("f", DerivativeOracle, np.sign)
        self.registry.register("g", EvaluationOracle, abs)
        self.registry.clear("f")
        assert self.registry.kinds("f") == []
        assert self.registry.has("g", EvaluationOracle)

    def test_rejects_non_callable(self):
        """Implementations must be callable."""
        with pytest.raises(TypeError):
            self.registry.register("f", EvaluationOracle, 3.0)

    def test_rejects_wrong_oracle_kind(self):
        """A prebuilt oracle must match the requested kind."""
        with pytest.raises(TypeError):
            self.registry.register("f", DerivativeOracle, EvaluationOracle(abs))

    def test_special_combination_key_ignores_order(self):
        """Special combinations are keyed by the sorted name list."""
        handler = lambda expr: None
        self.registry.register_special_combination(Addition, ["g", "f"], ProximalOracle, handler)
        assert self.registry.has_special_combination(Addition, ["f", "g"], ProximalOracle)
        assert self.registry.get_special_combination(Addition, ["f", "g"], ProximalOracle) is handler
        assert not self.registry.has_special_combination(Addition, ["f", "g"], EvaluationOracle)


class TestOracleComposition:
    """Tests for get_oracle_for_expression."""

    def test_sum_evaluation(self, calculus_engine, x):
        """(f + g)(2) = 4 + sin(2)."""
        f, g = E.funcs("f", "g")
        oracle = calculus_engine.get_oracle_for_expression(f(x) + g(x), EvaluationOracle)
        assert oracle(2.0) == pytest.approx(4.0 + math.sin(2.0))

    def test_sum_derivative(self, calculus_engine, x):
        """(f + g)'(2) = 4 + cos(2)."""
        f, g = E.funcs("f", "g")
        oracle = calculus_engine.get_oracle_for_expression(f(x) + g(x), DerivativeOracle)
        assert oracle(2.0) == pytest.approx(4.0 + math.cos(2.0))

    def test_difference(self, calculus_engine, x):
        """The first term is added, later ones subtracted."""
        f, g, h = E.funcs("f", "g", "h")
        oracle = calculus_engine.get_oracle_for_expression(f(x) - g(x) - h(x), EvaluationOracle)
        assert oracle(2.0) == pytest.approx(4.0 - math.sin(2.0) - 7.0)

    def test_nested_call_evaluation(self, calculus_engine, x):
        """f(g(x)) evaluates as f(g(x))."""
        f, g = E.funcs("f", "g")
        oracle = calculus_engine.get_oracle_for_expression(f(g(x)), EvaluationOracle)
        assert oracle(2.0) == pytest.approx(math.sin(2.0) ** 2)

    def test_nested_call_chain_rule(self, calculus_engine, x):
        """d/dx f(g(x)) = 2 sin(x) cos(x)."""
        f, g = E.funcs("f", "g")
        oracle = calculus_engine.get_oracle_for_expression(f(g(x)), DerivativeOracle)
        assert oracle(2.0) == pytest.approx(2 * math.sin(2.0) * math.cos(2.0))

    def test_call_of_sum_chain_rule(self, calculus_engine, x):
        """f(g(x) + h(x)) composes f with the whole sum."""
        f, g, h = E.funcs("f", "g", "h")
        expr = f(g(x) + h(x))
        value = calculus_engine.get_oracle_for_expression(expr, EvaluationOracle)
        derivative = calculus_engine.get_oracle_for_expression(expr, DerivativeOracle)
        inner = math.sin(2.0) + 7.0
        assert value(2.0) == pytest.approx(inner ** 2)
        assert derivative(2.0) == pytest.approx(2 * inner * (math.cos(2.0) + 3.0))

    def test_explicit_composition_chain_rule(self, calculus_engine, x):
        """compose(g, h) differentiates as g'(h(x)) h'(x)."""
        g, h = E.funcs("g", "h")
        oracle = calculus_engine.get_oracle_for_expression(compose(g(x), h(x)), DerivativeOracle)
        assert oracle(2.0) == pytest.approx(math.cos(7.0) * 3.0)

    def test_chain_rule_needs_inner_evaluation(self, x):
        """Without the inner evaluation oracle there is no chain rule."""
        engine = Engine(builtin_strategies=False, special_functions=False)
        engine.register_oracle("f", DerivativeOracle, lambda u: 2 * u)
        engine.register_oracle("g", DerivativeOracle, math.cos)
        f, g = E.funcs("f", "g")
        assert engine.get_oracle_for_expression(f(g(x)), DerivativeOracle) is None

    def test_maximum_evaluation(self, calculus_engine, x):
        """max evaluates pointwise."""
        f, h = E.funcs("f", "h")
        oracle = calculus_engine.get_oracle_for_expression(E.max(f(x), h(x)), EvaluationOracle)
        assert oracle(2.0) == pytest.approx(7.0)
        assert oracle(5.0) == pytest.approx(25.0)

    def test_minimum_evaluation(self, calculus_engine, x):
        """min evaluates pointwise."""
        f, h = E.funcs("f", "h")
        oracle = calculus_engine.get_oracle_for_expression(E.min(f(x), h(x)), EvaluationOracle)
        assert oracle(2.0) == pytest.approx(4.0)

    def test_maximum_has_no_derivative(self, calculus_engine, x):
        """Derivatives of max are not assembled."""
        f, h = E.funcs("f", "h")
        expr = E.max(f(x), h(x))
        assert calculus_engine.get_oracle_for_expression(expr, DerivativeOracle) is None

    def test_missing_term_oracle(self, calculus_engine, x):
        """A sum with an unknown term has no oracle."""
        f, q = E.funcs("f", "q")
        expr = f(x) + q(x)
        assert calculus_engine.get_oracle_for_expression(expr, EvaluationOracle) is None

    def test_proximal_of_sum_unavailable(self, calculus_engine, x):
        """Proximal maps of generic sums are not assembled."""
        f, g = E.funcs("f", "g")
        expr = f(x) + g(x)
        assert calculus_engine.get_oracle_for_expression(expr, ProximalOracle) is None

    def test_variable_has_no_oracle(self, calculus_engine, x):
        """Bare variables have no oracles."""
        assert calculus_engine.get_oracle_for_expression(x, EvaluationOracle) is None

    def test_special_combination_takes_precedence(self, calculus_engine, x):
        """A registered special handler overrides the generic rule."""
        f, g = E.funcs("f", "g")
        calculus_engine.register_special_combination(
            Addition, ["g", "f"], EvaluationOracle, lambda expr: (lambda u: 42.0))
        oracle = calculus_engine.get_oracle_for_expression(f(x) + g(x), EvaluationOracle)
        assert isinstance(oracle, EvaluationOracle)
        assert oracle(2.0) == 42.0

    def test_l1_sum_proximal(self, x):
        """l1_norm + l1_norm has a closed-form proximal map."""
        engine = Engine()
        l1 = E.func("l1_norm")
        oracle = engine.get_oracle_for_expression(l1(x) + l1(x), ProximalOracle)
        result = oracle(np.array([3.0, -0.5, 1.5]), 1.0)
        np.testing.assert_allclose(result, [1.0, 0.0, 0.0])

    def test_l1_sum_over_different_arguments(self, x):
        """The closed form only applies to a shared argument."""
        engine = Engine()
        l1 = E.func("l1_norm")
        y = E.var("y")
        assert engine.get_oracle_for_expression(l1(x) + l1(y), ProximalOracle) is None


class TestMetadataPropagation:
    """Tests for cost and exactness propagation."""

    def setup_method(self):
        """Set up an engine with annotated oracles."""
        self.engine = Engine(builtin_strategies=False, special_functions=False)
        self.x = E.var("x")
        self.f, self.g = E.funcs("f", "g")
        self.engine.register_oracle(
            "f", EvaluationOracle, abs, OracleMetadata(cost=linear_cost("n")))
        self.engine.register_oracle(
            "g", EvaluationOracle, abs, OracleMetadata(cost=constant_cost(2.0)))

    def test_costs_add(self):
        """Costs of a sum add up."""
        oracle = self.engine.get_oracle_for_expression(
            self.f(self.x) + self.g(self.x), EvaluationOracle)
        assert oracle.cost.evaluate({"n": 10}) == pytest.approx(12.0)

    def test_exact_sum_is_exact(self):
        """Exact terms give an exact sum."""
        oracle = self.engine.get_oracle_for_expression(
            self.f(self.x) + self.g(self.x), EvaluationOracle)
        assert is_exact(oracle.exactness)

    def test_error_bounds_add(self):
        """Inexact terms add their error bounds."""
        self.engine.register_oracle("f", EvaluationOracle, abs, Inexact(0.1))
        self.engine.register_oracle("g", EvaluationOracle, abs, Inexact(0.2))
        oracle = self.engine.get_oracle_for_expression(
            self.f(self.x) - self.g(self.x), EvaluationOracle)
        assert not is_exact(oracle.exactness)
        assert error_bound(oracle.exactness) == pytest.approx(0.3)

    def test_unknown_cost_propagates(self):
        """One unknown cost makes the total unknown."""
        self.engine.register_oracle("g", EvaluationOracle, abs)
        oracle = self.engine.get_oracle_for_expression(
            self.f(self.x) + self.g(self.x), EvaluationOracle)
        assert oracle.cost is None

    def test_composition_costs_add(self):
        """Composition costs are additive."""
        oracle = self.engine.get_oracle_for_expression(
            compose(self.f(self.x), self.g(self.x)), EvaluationOracle)
        assert oracle.cost.evaluate({"n": 3}) == pytest.approx(5.0)
