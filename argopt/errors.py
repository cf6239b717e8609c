"""
Exception taxonomy for argopt.

Only two conditions are fatal: building an expression out of incompatible
spaces, and combining properties that live in incompatible spaces. Both
mean the model itself is wrong, so they are raised and never swallowed.
Everything else (no provable property, no oracle, no special handler) is
reported as an absence value instead of an exception.
"""


class ArgoptError(Exception):
    """Base class for all argopt errors."""


class SpaceMismatch(ArgoptError, ValueError):
    """Raised when an expression is built from operands of incompatible spaces."""


class DimensionMismatch(ArgoptError, ValueError):
    """Raised when a property combination pairs incompatible spaces.

    Example: adding the facts of a linear operator to the facts of a
    scalar convex function.
    """


class StrategyNotFound(ArgoptError, KeyError):
    """Raised when a strategy name is not registered."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""
