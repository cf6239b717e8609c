"""
Expression trees for argopt.

An expression is an immutable tree whose nodes all carry the space their
value lives in. Variants:

    Literal(value, space)                 - numeric constant
    Variable(name, space)                 - free variable
    FunctionCall(function, args, space)   - call of a named leaf function,
                                            or of a composed function when
                                            `function` is itself an Expression
    Addition(terms, space)                - t1 + t2 + ... + tn
    Subtraction(terms, space)             - t1 - t2 - ... - tn
    Composition(outer, inner, space)      - outer o inner
    Maximum(terms, space)                 - max(t1, ..., tn)
    Minimum(terms, space)                 - min(t1, ..., tn)

Equality and hashing are structural: two trees are equal when they have the
same variants, the same leaf names and values, and the same spaces.

Quick Start:
    from argopt import E

    x = E.var("x")
    f, g = E.funcs("f", "g")

    expr = f(x) + g(x)          # Addition((f(x), g(x)))
    nested = f(g(x))            # call of f on the call g(x)
    chained = E.compose(f(x), g(x))

    str(expr)                   # => "f(x) + g(x)"
    format_expr(expr)           # => "(+ (f x) (g x))"
"""

from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union

from .errors import SpaceMismatch
from .spaces import R, Space

NumberType = Union[int, float]
PathType = Tuple[int, ...]


# ============================================================
# Expression variants
# ============================================================

@dataclass(frozen=True)
class Expression:
    """Base class for all expression variants."""

    def __add__(self, other) -> "Addition":
        other = _coerce(other, self.space)
        left = self.terms if isinstance(self, Addition) else (self,)
        right = other.terms if isinstance(other, Addition) else (other,)
        return Addition(left + right, self.space)

    def __radd__(self, other) -> "Addition":
        return _coerce(other, self.space) + self

    def __sub__(self, other) -> "Subtraction":
        other = _coerce(other, self.space)
        left = self.terms if isinstance(self, Subtraction) else (self,)
        return Subtraction(left + (other,), self.space)

    def __rsub__(self, other) -> "Subtraction":
        return _coerce(other, self.space) - self

    def __str__(self) -> str:
        return to_infix(self)


@dataclass(frozen=True)
class Literal(Expression):
    """A numeric constant."""

    value: NumberType
    space: Space = R

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise TypeError(f"Literal value must be a number, got {self.value!r}")
        _check_space(self.space)


@dataclass(frozen=True)
class Variable(Expression):
    """A free variable."""

    name: str
    space: Space = R

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Variable name must be a non-empty string")
        _check_space(self.space)


@dataclass(frozen=True)
class FunctionCall(Expression):
    """
    A function call.

    `function` is either a leaf function name (a string registered with the
    property and oracle registries) or an Expression, in which case the call
    goes through a composed function.
    """

    function: Union[str, Expression]
    args: Tuple[Expression, ...] = ()
    space: Space = R

    def __post_init__(self):
        if isinstance(self.function, str):
            if not self.function:
                raise ValueError("Function name must be non-empty")
        elif not isinstance(self.function, Expression):
            raise TypeError("Function must be a name or an Expression")
        args = tuple(self.args)
        for arg in args:
            if not isinstance(arg, Expression):
                raise TypeError(f"Function argument must be an Expression, got {arg!r}")
        object.__setattr__(self, "args", args)
        _check_space(self.space)

    @property
    def is_leaf_call(self) -> bool:
        """True if this calls a named leaf function (not a composed one)."""
        return isinstance(self.function, str)


@dataclass(frozen=True)
class NaryExpression(Expression):
    """Shared construction rules for Addition, Subtraction, Maximum, Minimum."""

    terms: Tuple[Expression, ...]
    space: Optional[Space] = None

    def __post_init__(self):
        terms = tuple(self.terms)
        if not terms:
            raise ValueError(f"{type(self).__name__} requires at least one term")
        for term in terms:
            if not isinstance(term, Expression):
                raise TypeError(f"Term must be an Expression, got {term!r}")
        space = self.space if self.space is not None else terms[0].space
        _check_space(space)
        for term in terms:
            if term.space != space:
                raise SpaceMismatch(
                    f"{type(self).__name__} over {space} cannot contain "
                    f"term {term} in {term.space}"
                )
        object.__setattr__(self, "terms", terms)
        object.__setattr__(self, "space", space)


@dataclass(frozen=True)
class Addition(NaryExpression):
    """Sum of terms."""


@dataclass(frozen=True)
class Subtraction(NaryExpression):
    """First term minus every later term."""


@dataclass(frozen=True)
class Maximum(NaryExpression):
    """Pointwise maximum of terms."""


@dataclass(frozen=True)
class Minimum(NaryExpression):
    """Pointwise minimum of terms."""


@dataclass(frozen=True)
class Composition(Expression):
    """outer o inner. The result lives in the outer operand's space."""

    outer: Expression
    inner: Expression
    space: Optional[Space] = None

    def __post_init__(self):
        if not isinstance(self.outer, Expression) or not isinstance(self.inner, Expression):
            raise TypeError("Composition operands must be Expressions")
        space = self.space if self.space is not None else self.outer.space
        _check_space(space)
        if space != self.outer.space:
            raise SpaceMismatch(
                f"Composition declared in {space} but outer operand "
                f"{self.outer} lives in {self.outer.space}"
            )
        object.__setattr__(self, "space", space)


NARY_TYPES = (Addition, Subtraction, Maximum, Minimum)
COMMUTATIVE_TYPES = (Addition, Maximum, Minimum)


def _check_space(space) -> None:
    if not isinstance(space, Space):
        raise TypeError(f"Expected a Space, got {space!r}")


def _coerce(value, space: Space) -> Expression:
    if isinstance(value, Expression):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Literal(value, space)
    raise TypeError(f"Cannot combine an expression with {value!r}")


# ============================================================
# Constructors
# ============================================================

@dataclass(frozen=True)
class FunctionSymbol:
    """
    A named leaf function. Calling it builds a FunctionCall.

    Example:
        f = FunctionSymbol("f")
        f(E.var("x"))   # => FunctionCall("f", (Variable("x"),))
    """

    name: str
    space: Space = R

    def __call__(self, *args) -> FunctionCall:
        return FunctionCall(self.name, tuple(_coerce(a, R) for a in args), self.space)

    def __str__(self) -> str:
        return self.name


def compose(outer: Expression, inner: Expression, space: Optional[Space] = None) -> Composition:
    """Build outer o inner."""
    return Composition(outer, inner, space)


def maximum(*terms: Expression, space: Optional[Space] = None) -> Maximum:
    """Build max(t1, ..., tn)."""
    return Maximum(tuple(terms), space)


def minimum(*terms: Expression, space: Optional[Space] = None) -> Minimum:
    """Build min(t1, ..., tn)."""
    return Minimum(tuple(terms), space)


class _ExprBuilder:
    """
    Expression builder for argopt.

    Examples:
        from argopt import E

        x = E.var("x")
        f, g = E.funcs("f", "g")

        E.add(f(x), g(x))             # same as f(x) + g(x)
        E.sub(f(x), g(x))             # same as f(x) - g(x)
        E.max(f(x), g(x))
        E.compose(f(x), g(x))
        E.call("h", x, E.const(2))    # h(x, 2)
        E.call(E.compose(f(x), g(x)), x)
    """

    def var(self, name: str, space: Space = R) -> Variable:
        """Create a variable."""
        return Variable(name, space)

    def vars(self, *names: str, space: Space = R) -> Tuple[Variable, ...]:
        """
        Create several variables for unpacking.

        Example:
            x, y = E.vars("x", "y")
        """
        return tuple(Variable(name, space) for name in names)

    def const(self, value: NumberType, space: Space = R) -> Literal:
        """Create a literal."""
        return Literal(value, space)

    def func(self, name: str, space: Space = R) -> FunctionSymbol:
        """Create a leaf function symbol whose calls live in `space`."""
        return FunctionSymbol(name, space)

    def funcs(self, *names: str, space: Space = R) -> Tuple[FunctionSymbol, ...]:
        """Create several function symbols for unpacking."""
        return tuple(FunctionSymbol(name, space) for name in names)

    def call(self, function: Union[str, Expression], *args: Expression,
             space: Space = R) -> FunctionCall:
        """Call a leaf function by name, or a composed function expression."""
        return FunctionCall(function, tuple(args), space)

    def add(self, *terms: Expression, space: Optional[Space] = None) -> Addition:
        return Addition(tuple(terms), space)

    def sub(self, *terms: Expression, space: Optional[Space] = None) -> Subtraction:
        return Subtraction(tuple(terms), space)

    def max(self, *terms: Expression, space: Optional[Space] = None) -> Maximum:
        return Maximum(tuple(terms), space)

    def min(self, *terms: Expression, space: Optional[Space] = None) -> Minimum:
        return Minimum(tuple(terms), space)

    def compose(self, outer: Expression, inner: Expression,
                space: Optional[Space] = None) -> Composition:
        return Composition(outer, inner, space)

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()


# ============================================================
# Traversal
# ============================================================

def children(expr: Expression) -> Tuple[Expression, ...]:
    """Direct subexpressions, in a fixed order."""
    if isinstance(expr, FunctionCall):
        if isinstance(expr.function, Expression):
            return (expr.function,) + expr.args
        return expr.args
    if isinstance(expr, NaryExpression):
        return expr.terms
    if isinstance(expr, Composition):
        return (expr.outer, expr.inner)
    return ()


def with_children(expr: Expression, new_children: Sequence[Expression]) -> Expression:
    """Rebuild `expr` with its direct subexpressions replaced, in `children` order."""
    new_children = tuple(new_children)
    if isinstance(expr, FunctionCall):
        if isinstance(expr.function, Expression):
            return FunctionCall(new_children[0], new_children[1:], expr.space)
        return FunctionCall(expr.function, new_children, expr.space)
    if isinstance(expr, NaryExpression):
        return type(expr)(new_children, expr.space)
    if isinstance(expr, Composition):
        outer, inner = new_children
        return Composition(outer, inner, expr.space)
    if new_children:
        raise ValueError(f"{type(expr).__name__} has no subexpressions")
    return expr


def positions(expr: Expression, path: PathType = ()) -> Iterator[Tuple[PathType, Expression]]:
    """Yield (path, subexpression) pairs in pre-order, starting with ((), expr)."""
    yield path, expr
    for index, child in enumerate(children(expr)):
        yield from positions(child, path + (index,))


def replace_at(expr: Expression, path: PathType, replacement: Expression) -> Expression:
    """Return a copy of `expr` with the subtree at `path` replaced."""
    if not path:
        return replacement
    index, rest = path[0], path[1:]
    kids = list(children(expr))
    kids[index] = replace_at(kids[index], rest, replacement)
    return with_children(expr, kids)


def free_variables(expr: Expression) -> List[Variable]:
    """Distinct variables of `expr`, sorted by name."""
    found = {sub for _, sub in positions(expr) if isinstance(sub, Variable)}
    return sorted(found, key=lambda v: (v.name, str(v.space)))


def leaf_function_names(expr: Expression) -> List[str]:
    """Names of the leaf functions called anywhere in `expr`, in pre-order."""
    return [sub.function for _, sub in positions(expr)
            if isinstance(sub, FunctionCall) and sub.is_leaf_call]


def is_atomic(expr: Expression) -> bool:
    """
    A variable or literal, or a call of a named leaf function whose
    arguments are all atomic.
    """
    if isinstance(expr, (Variable, Literal)):
        return True
    if isinstance(expr, FunctionCall) and expr.is_leaf_call:
        return all(is_atomic(arg) for arg in expr.args)
    return False


# ============================================================
# Formatting
# ============================================================

_SEXPR_HEADS = {
    Addition: "+",
    Subtraction: "-",
    Maximum: "max",
    Minimum: "min",
}


def format_expr(expr: Expression) -> str:
    """
    Format an expression as an S-expression string.

    Examples:
        f(x) + g(x)           -> "(+ (f x) (g x))"
        compose(f(x), g(x))   -> "(compose (f x) (g x))"
        max(f(x), 2)          -> "(max (f x) 2)"
    """
    if isinstance(expr, Literal):
        return str(expr.value)
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, FunctionCall):
        head = expr.function if expr.is_leaf_call else format_expr(expr.function)
        if not expr.args:
            return f"({head})"
        return "(" + " ".join([head] + [format_expr(a) for a in expr.args]) + ")"
    if isinstance(expr, NaryExpression):
        parts = [_SEXPR_HEADS[type(expr)]] + [format_expr(t) for t in expr.terms]
        return "(" + " ".join(parts) + ")"
    if isinstance(expr, Composition):
        return f"(compose {format_expr(expr.outer)} {format_expr(expr.inner)})"
    raise TypeError(f"Not an expression: {expr!r}")


def to_infix(expr: Expression) -> str:
    """Human-readable infix rendering used by str()."""
    if isinstance(expr, Literal):
        return str(expr.value)
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, FunctionCall):
        head = expr.function if expr.is_leaf_call else f"({to_infix(expr.function)})"
        return f"{head}(" + ", ".join(to_infix(a) for a in expr.args) + ")"
    if isinstance(expr, Addition):
        return " + ".join(_infix_operand(t) for t in expr.terms)
    if isinstance(expr, Subtraction):
        return " - ".join(_infix_operand(t) for t in expr.terms)
    if isinstance(expr, Maximum):
        return "max(" + ", ".join(to_infix(t) for t in expr.terms) + ")"
    if isinstance(expr, Minimum):
        return "min(" + ", ".join(to_infix(t) for t in expr.terms) + ")"
    if isinstance(expr, Composition):
        return f"({to_infix(expr.outer)} ∘ {to_infix(expr.inner)})"
    raise TypeError(f"Not an expression: {expr!r}")


def _infix_operand(expr: Expression) -> str:
    text = to_infix(expr)
    if isinstance(expr, (Addition, Subtraction)):
        return f"({text})"
    return text


def expr_key(expr: Expression) -> Any:
    """
    Convert an expression to a nested tuple usable as a dict or set key.

    The key records the variant, every leaf name or value, and every space,
    so two expressions have the same key exactly when they are equal.

    Examples:
        expr_key(E.var("x"))  -> ("Variable", "x", "R")
        expr_key(f(x) + g(x)) -> ("Addition", "R", (("FunctionCall", "f", ...), ...))
    """
    tag = type(expr).__name__
    space = str(expr.space)
    if isinstance(expr, Literal):
        return (tag, expr.value, space)
    if isinstance(expr, Variable):
        return (tag, expr.name, space)
    if isinstance(expr, FunctionCall):
        head = expr.function if expr.is_leaf_call else expr_key(expr.function)
        return (tag, head, space, tuple(expr_key(a) for a in expr.args))
    if isinstance(expr, NaryExpression):
        return (tag, space, tuple(expr_key(t) for t in expr.terms))
    if isinstance(expr, Composition):
        return (tag, space, expr_key(expr.outer), expr_key(expr.inner))
    raise TypeError(f"Not an expression: {expr!r}")
