"""Restricted arithmetic evaluation for coordinates and plot expressions.

Expressions are parsed with :mod:`ast` and walked against a whitelist of
node types, so nothing but numeric arithmetic and a fixed set of math
functions can ever run.
"""

from __future__ import annotations

import ast
import logging
import math
import operator
import re
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class ExpressionError(ValueError):
    """Raised when an expression cannot be evaluated in the sandbox."""


_BIN_OPS: Dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: Dict[type, Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

FUNCTIONS: Dict[str, Callable[..., float]] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "sqrt": math.sqrt,
    "abs": abs,
    "exp": math.exp,
    "ln": math.log,
    "log": math.log10,
    "log10": math.log10,
    "pow": math.pow,
    "min": min,
    "max": max,
    "floor": math.floor,
    "ceil": math.ceil,
    "round": round,
}

CONSTANTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}

_COORD_EXPR_RE = re.compile(r"^[\d\s.+\-*/()]+$")
_RADIANS_SUFFIX_RE = re.compile(r"\s+r\b")
_DEG_CALL_RE = re.compile(r"\bdeg\s*\(")


def _eval_node(node: ast.AST, names: Mapping[str, float]) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body, names)
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ExpressionError(f"unsupported literal {node.value!r}")
        return float(node.value)
    if isinstance(node, ast.BinOp):
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"unsupported operator {type(node.op).__name__}")
        left = _eval_node(node.left, names)
        right = _eval_node(node.right, names)
        try:
            return float(op(left, right))
        except (ArithmeticError, ValueError) as exc:
            raise ExpressionError(str(exc)) from exc
    if isinstance(node, ast.UnaryOp):
        op = _UNARY_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"unsupported unary operator {type(node.op).__name__}")
        return float(op(_eval_node(node.operand, names)))
    if isinstance(node, ast.Name):
        if node.id in names:
            return float(names[node.id])
        if node.id in CONSTANTS:
            return CONSTANTS[node.id]
        raise ExpressionError(f"unknown name {node.id!r}")
    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
            raise ExpressionError("only whitelisted math functions may be called")
        if node.keywords:
            raise ExpressionError("keyword arguments are not supported")
        args = [_eval_node(arg, names) for arg in node.args]
        try:
            return float(FUNCTIONS[node.func.id](*args))
        except (ArithmeticError, ValueError, TypeError) as exc:
            raise ExpressionError(str(exc)) from exc
    raise ExpressionError(f"unsupported syntax {type(node).__name__}")


def evaluate(expr: str, names: Optional[Mapping[str, float]] = None) -> float:
    """Evaluate ``expr`` (Python arithmetic syntax) inside the sandbox."""
    try:
        tree = ast.parse(expr.strip(), mode="eval")
    except SyntaxError as exc:
        raise ExpressionError(f"cannot parse {expr!r}") from exc
    return _eval_node(tree, names or {})


def evaluate_coordinate_component(text: str) -> float:
    """Evaluate a coordinate component: digits, ``+ - * / ( )`` only."""
    if not _COORD_EXPR_RE.match(text):
        raise ExpressionError(f"not a coordinate expression: {text!r}")
    return evaluate(text)


def normalize_math(expr: str) -> str:
    """TikZ math spelling to Python arithmetic: radians suffix, ``deg()``, ``^``."""
    expr = _RADIANS_SUFFIX_RE.sub("", expr)
    expr = _DEG_CALL_RE.sub("(", expr)
    return expr.replace("^", "**")


def to_python_syntax(expression: str, variable: str, value: float) -> str:
    """Rewrite a TikZ math expression with ``variable`` bound to ``value``."""
    expr = expression.strip()
    if variable.startswith("\\"):
        expr = re.sub(re.escape(variable) + r"(?![A-Za-z])", f"({value!r})", expr)
    else:
        expr = re.sub(r"\b" + re.escape(variable) + r"\b", f"({value!r})", expr)
    return normalize_math(expr)


def evaluate_expression(expression: str, variable: str, value: float) -> float:
    """Evaluate a plot expression at ``variable = value``; failures yield ``0``."""
    try:
        result = evaluate(to_python_syntax(expression, variable, value))
    except ExpressionError as exc:
        logger.debug("Expression %r failed at %s=%s: %s", expression, variable, value, exc)
        return 0.0
    if not math.isfinite(result):
        return 0.0
    return result


def sample_domain(lo: float, hi: float, samples: int) -> List[float]:
    samples = max(2, int(samples))
    return [float(v) for v in np.linspace(lo, hi, samples)]


def sample_expression(expression: str, variable: str, lo: float, hi: float, samples: int):
    """Return ``[(x, f(x)), ...]`` evenly spaced over ``[lo, hi]``."""
    return [(x, evaluate_expression(expression, variable, x)) for x in sample_domain(lo, hi, samples)]


def parse_number(value: Optional[str], default: float) -> float:
    """Option value as a number; braces are dropped and math is allowed."""
    if value is None:
        return default
    text = value.strip()
    while text.startswith("{") and text.endswith("}"):
        text = text[1:-1].strip()
    try:
        return evaluate(normalize_math(text))
    except ExpressionError:
        return default


def parse_domain(value: Optional[str]) -> Optional[Tuple[float, float]]:
    """``'-2:2*pi'`` -> ``(-2.0, 6.283...)``; ``None`` when unreadable."""
    if not value:
        return None
    parts = value.strip().strip("{}").split(":")
    if len(parts) != 2:
        return None
    try:
        return evaluate(normalize_math(parts[0])), evaluate(normalize_math(parts[1]))
    except ExpressionError:
        return None
