"""Bridge from the syntax tree to SymPy for displaying simplified results.

Derivatives built by ``calculus.differentiate`` are correct but verbose
(``3 * x^2 * 1 + 0 * x + 2 * 1``); converting them to SymPy and calling
``sympy.simplify`` gives a readable form. The simplified expression is only
ever displayed, never evaluated.
"""

from __future__ import annotations

from typing import Callable, Dict

import sympy as sp

from . import ast_nodes as ast
from .types import TypeMismatch

_CONSTANTS = {
    "pi": sp.pi,
    "e": sp.E,
    "i": sp.I,
    "tau": 2 * sp.pi,
    "phi": sp.GoldenRatio,
    "true": sp.true,
    "false": sp.false,
}

_FUNCTIONS: Dict[str, Callable[..., sp.Expr]] = {
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "asin": sp.asin,
    "acos": sp.acos,
    "atan": sp.atan,
    "sinh": sp.sinh,
    "cosh": sp.cosh,
    "tanh": sp.tanh,
    "exp": sp.exp,
    "ln": sp.log,
    "log": lambda x, base=10: sp.log(x, base),
    "sqrt": sp.sqrt,
    "abs": sp.Abs,
    "floor": sp.floor,
    "ceil": sp.ceiling,
    "factorial": sp.factorial,
}

_BINARY: Dict[str, Callable[[sp.Expr, sp.Expr], sp.Expr]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": lambda a, b: a / b,
    "^": lambda a, b: a**b,
}


def _number(value: float) -> sp.Expr:
    if float(value).is_integer():
        return sp.Integer(int(value))
    return sp.nsimplify(value, rational=True)


def to_sympy(node: ast.Node) -> sp.Expr:
    """Convert an arithmetic syntax tree to a SymPy expression.

    Args:
        node: Tree made of numbers, variables, arithmetic operators,
            prefix/postfix unary operators and function calls

    Returns:
        Equivalent SymPy expression; unknown function names become
        undefined SymPy functions

    Raises:
        TypeMismatch: for node kinds with no symbolic counterpart
    """
    if isinstance(node, ast.Number):
        return _number(node.value)
    if isinstance(node, ast.Variable):
        if node.name in _CONSTANTS:
            return _CONSTANTS[node.name]
        return sp.Symbol(node.name)
    if isinstance(node, ast.BinaryOp) and node.op in _BINARY:
        return _BINARY[node.op](to_sympy(node.left), to_sympy(node.right))
    if isinstance(node, ast.UnaryOp):
        operand = to_sympy(node.operand)
        if node.is_postfix and node.op == "!":
            return sp.factorial(operand)
        if node.op == "-":
            return -operand
        if node.op == "+":
            return operand
    if isinstance(node, ast.Call):
        args = [to_sympy(arg) for arg in node.args]
        function = _FUNCTIONS.get(node.name) or sp.Function(node.name)
        return function(*args)
    raise TypeMismatch(f"Cannot convert {type(node).__name__} node to a symbolic expression")


def simplify_expression(node: ast.Node) -> str:
    """Simplify a tree with SymPy and render it with ``^`` for powers."""
    simplified = sp.simplify(to_sympy(node))
    return str(simplified).replace("**", "^")
