"""User-supplied potential V(x), parsed with sympy and compiled per request."""

from dataclasses import dataclass
from typing import Callable

import numpy as np
import sympy
from sympy.parsing.sympy_parser import convert_xor, parse_expr, standard_transformations

from .errors import InvalidExpression, NumericDomainError

DEFAULT_POTENTIAL_EXPRESSION = "0.5 * x^2"

_X = sympy.Symbol("x", real=True)
_TRANSFORMATIONS = standard_transformations + (convert_xor,)


@dataclass(frozen=True)
class Potential:
    """Compiled V(x) with a central-difference gradient."""

    source: str
    expr: sympy.Expr
    _fn: Callable[[float], float]

    def __call__(self, x: float) -> float:
        with np.errstate(all="ignore"):
            value = self._fn(np.float64(x))
        return _ensure_finite(value, "V(x)")

    def gradient(self, x: float, step: float = 1e-3) -> float:
        h = max(1e-6, abs(step))
        return _ensure_finite((self(x + h) - self(x - h)) / (2 * h), "dV/dx")


def _ensure_finite(value, label: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise NumericDomainError(f"{label} did not evaluate to a real number.") from exc
    if not np.isfinite(result):
        raise NumericDomainError(f"{label} is not finite for the current V(x) expression.")
    return result


def compile_potential(expression: str) -> Potential:
    """
    Parse ``expression`` into a callable potential of the single variable x.

    ``^`` is exponentiation. Anything other than ``x`` among the free symbols
    is rejected.

    Raises:
        InvalidExpression: Empty text, a parse failure, or foreign variables.
    """
    trimmed = (expression or "").strip()
    if not trimmed:
        raise InvalidExpression("V(x) cannot be empty.")

    try:
        expr = parse_expr(trimmed, local_dict={"x": _X}, transformations=_TRANSFORMATIONS)
    except Exception as exc:
        raise InvalidExpression(f"Invalid V(x): {exc}") from exc

    if not isinstance(expr, sympy.Expr):
        raise InvalidExpression("V(x) did not evaluate to a numeric value.")

    foreign = sorted(str(s) for s in expr.free_symbols if s != _X)
    if foreign:
        raise InvalidExpression(f"V(x) may only use variable x (found: {', '.join(foreign)}).")

    return Potential(source=trimmed, expr=expr, _fn=sympy.lambdify(_X, expr, modules="numpy"))
