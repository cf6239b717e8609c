"""
ARGOPT - Algebraic Reasoning for Guaranteed OPTimization

Symbolic expressions over named functions, with mechanically derived
guarantees: which properties an expression provably has, which oracles
(evaluate, differentiate, proximal map) can be assembled for it, and which
equivalent reformulations exist.

Quick Start:
    from argopt import Engine, E, Convex, StronglyConvex, Smooth
    from argopt import EvaluationOracle, DerivativeOracle

    engine = Engine()
    engine.register_property("f", StronglyConvex(2.0), Smooth(4.0))
    engine.register_property("g", Convex())
    engine.register_oracle("f", EvaluationOracle, lambda x: x ** 2)
    engine.register_oracle("g", EvaluationOracle, abs)

    x = E.var("x")
    f, g = E.funcs("f", "g")
    objective = f(x) + g(x)

    engine.infer_properties(objective)      # => {StronglyConvex(2), HypoConvex(4)}
    engine.get_oracle_for_expression(objective, EvaluationOracle)(-3.0)   # => 12.0

    for r in engine.generate_reformulations(objective, max_iterations=2):
        print(r)

Expressions:
    E.var("x"), E.var("v", Rn("n"))   - variables
    E.const(2.0)                      - literals
    f = E.func("f"); f(x)             - leaf function calls
    a + b, a - b                      - sums and differences
    E.max(a, b), E.min(a, b)          - pointwise max / min
    E.compose(a, b)                   - a o b

Properties:
    Convex, MonotonicallyIncreasing, StronglyConvex(mu), HypoConvex(rho),
    Smooth(L), Lipschitz(M), Linear(lambda_min, lambda_max),
    Quadratic(lambda_min, lambda_max)

    Numeric parameters are Intervals; plain numbers become point intervals.

Built-in strategies:
    commutativity, rebalancing, structure_loss, monotone_transform
"""

import logging

__version__ = "0.1.0"

# Errors
from .errors import (
    ArgoptError,
    SpaceMismatch,
    DimensionMismatch,
    StrategyNotFound,
)

# Spaces and intervals
from .spaces import Space, Scalar, Vector, R, Rn
from .interval import Interval

# Expressions
from .expression import (
    Expression,
    Literal,
    Variable,
    FunctionCall,
    NaryExpression,
    Addition,
    Subtraction,
    Maximum,
    Minimum,
    Composition,
    FunctionSymbol,
    E,
    compose,
    maximum,
    minimum,
    format_expr,
    to_infix,
    expr_key,
    children,
    free_variables,
    leaf_function_names,
    is_atomic,
    positions,
    replace_at,
)

# Properties
from .properties import (
    Property,
    Convex,
    MonotonicallyIncreasing,
    StronglyConvex,
    HypoConvex,
    Smooth,
    Lipschitz,
    Linear,
    Quadratic,
    PropertyRegistry,
)
from .combinations import combine_add, combine_sub, combine_comp, combine_comp_sets

# Oracles
from .costs import (
    CostModel,
    ConstantCost,
    DimensionalCost,
    CompositeCost,
    constant_cost,
    linear_cost,
    quadratic_cost,
    cubic_cost,
    Exactness,
    Exact,
    Inexact,
    AbsoluteError,
    RelativeError,
    is_exact,
    error_bound,
    is_relative,
)
from .oracles import (
    Oracle,
    EvaluationOracle,
    DerivativeOracle,
    ProximalOracle,
    OracleMetadata,
    OracleRegistry,
    DEFAULT_ORACLE_KINDS,
)

# Reformulation
from .reformulation import (
    Reformulation,
    Strategy,
    FunctionStrategy,
    StrategyRegistry,
    DiscoveryStep,
    DiscoveryTrace,
)
from .special_functions import (
    sqrt_function,
    log_plus_one,
    l1_norm,
    l2_norm,
    list_special_functions,
)

# Engine and module-level API
from .engine import (
    Engine,
    get_default_engine,
    reset_default_engine,
    register_property,
    clear_properties,
    get_properties,
    infer_properties,
    register_oracle,
    clear_oracles,
    register_special_combination,
    get_oracle_for_expression,
    available_oracles,
    create_reformulation,
    register_strategy,
    list_strategies,
    get_strategy,
    clear_strategies,
    apply_strategy,
    apply_all_strategies,
    generate_reformulations,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [
    # Version
    "__version__",
    # Errors
    "ArgoptError",
    "SpaceMismatch",
    "DimensionMismatch",
    "StrategyNotFound",
    # Spaces
    "Space",
    "Scalar",
    "Vector",
    "R",
    "Rn",
    "Interval",
    # Expressions
    "Expression",
    "Literal",
    "Variable",
    "FunctionCall",
    "NaryExpression",
    "Addition",
    "Subtraction",
    "Maximum",
    "Minimum",
    "Composition",
    "FunctionSymbol",
    "E",
    "compose",
    "maximum",
    "minimum",
    "format_expr",
    "to_infix",
    "expr_key",
    "children",
    "free_variables",
    "leaf_function_names",
    "is_atomic",
    "positions",
    "replace_at",
    # Properties
    "Property",
    "Convex",
    "MonotonicallyIncreasing",
    "StronglyConvex",
    "HypoConvex",
    "Smooth",
    "Lipschitz",
    "Linear",
    "Quadratic",
    "PropertyRegistry",
    "combine_add",
    "combine_sub",
    "combine_comp",
    "combine_comp_sets",
    # Costs and exactness
    "CostModel",
    "ConstantCost",
    "DimensionalCost",
    "CompositeCost",
    "constant_cost",
    "linear_cost",
    "quadratic_cost",
    "cubic_cost",
    "Exactness",
    "Exact",
    "Inexact",
    "AbsoluteError",
    "RelativeError",
    "is_exact",
    "error_bound",
    "is_relative",
    # Oracles
    "Oracle",
    "EvaluationOracle",
    "DerivativeOracle",
    "ProximalOracle",
    "OracleMetadata",
    "OracleRegistry",
    "DEFAULT_ORACLE_KINDS",
    # Reformulation
    "Reformulation",
    "Strategy",
    "FunctionStrategy",
    "StrategyRegistry",
    "DiscoveryStep",
    "DiscoveryTrace",
    # Special functions
    "sqrt_function",
    "log_plus_one",
    "l1_norm",
    "l2_norm",
    "list_special_functions",
    # Engine
    "Engine",
    "get_default_engine",
    "reset_default_engine",
    "register_property",
    "clear_properties",
    "get_properties",
    "infer_properties",
    "register_oracle",
    "clear_oracles",
    "register_special_combination",
    "get_oracle_for_expression",
    "available_oracles",
    "create_reformulation",
    "register_strategy",
    "list_strategies",
    "get_strategy",
    "clear_strategies",
    "apply_strategy",
    "apply_all_strategies",
    "generate_reformulations",
]
