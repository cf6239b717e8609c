"""Shared fixtures."""

import math

import pytest

from argopt import DerivativeOracle, E, Engine, EvaluationOracle, reset_default_engine


@pytest.fixture(autouse=True)
def fresh_default_engine():
    """Every test starts and ends with a fresh default engine."""
    reset_default_engine()
    yield
    reset_default_engine()


@pytest.fixture
def engine():
    """An isolated engine with built-in strategies and special functions."""
    return Engine()


@pytest.fixture
def calculus_engine():
    """Engine where f(x) = x^2, g(x) = sin(x), h(x) = 3x + 1."""
    engine = Engine()
    engine.register_oracle("f", EvaluationOracle, lambda x: x ** 2)
    engine.register_oracle("f", DerivativeOracle, lambda x: 2 * x)
    engine.register_oracle("g", EvaluationOracle, math.sin)
    engine.register_oracle("g", DerivativeOracle, math.cos)
    engine.register_oracle("h", EvaluationOracle, lambda x: 3 * x + 1)
    engine.register_oracle("h", DerivativeOracle, lambda x: 3.0)
    return engine


@pytest.fixture
def x():
    return E.var("x")
