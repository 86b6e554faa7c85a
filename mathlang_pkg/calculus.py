"""Symbolic differentiation and substitution over the syntax tree.

Both operations are pure: they build new nodes and never mutate their
input. Untouched subtrees are shared between the input and the result.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, Mapping

from .ast_nodes import (
    BinaryOp,
    Call,
    Conditional,
    Node,
    Number,
    String,
    UnaryOp,
    Variable,
)
from .logging_config import get_logger
from .types import ArityMismatch, UnsupportedDifferentiation, UnsupportedSubstitution

logger = get_logger("calculus")


def _times(left: Node, right: Node) -> Node:
    return BinaryOp("*", left, right)


def _reciprocal(node: Node) -> Node:
    return BinaryOp("/", Number(1.0), node)


# Outer derivative f'(u) for each supported built-in; the chain rule then
# multiplies it by u'.
_CHAIN_RULES: Dict[str, Callable[[Node], Node]] = {
    "sin": lambda u: Call("cos", (u,)),
    "cos": lambda u: UnaryOp("-", Call("sin", (u,))),
    "tan": lambda u: BinaryOp("^", _reciprocal(Call("cos", (u,))), Number(2.0)),
    "sqrt": lambda u: _reciprocal(_times(Number(2.0), Call("sqrt", (u,)))),
    "ln": lambda u: _reciprocal(u),
}

_CONSTANT_FOLDS: Dict[str, Callable[[float, float], float]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": lambda a, b: a / b,
    "^": math.pow,
}


def constant_value(node: Node) -> float | None:
    """Fold a variable-free numeric subtree to its value, or return None."""
    if isinstance(node, Number):
        return node.value
    if isinstance(node, UnaryOp) and not node.is_postfix and node.op in ("+", "-"):
        value = constant_value(node.operand)
        if value is None:
            return None
        return -value if node.op == "-" else value
    if isinstance(node, BinaryOp) and node.op in _CONSTANT_FOLDS:
        left = constant_value(node.left)
        right = constant_value(node.right)
        if left is None or right is None:
            return None
        try:
            return _CONSTANT_FOLDS[node.op](left, right)
        except (ZeroDivisionError, OverflowError, ValueError):
            return None
    return None


def substitute(node: Node, mapping: Mapping[str, Node]) -> Node:
    """Replace every variable named in ``mapping`` with its expression.

    Args:
        node: Tree to rewrite
        mapping: Variable name -> replacement expression

    Returns:
        A new tree; numbers, strings and unmapped variables are shared

    Raises:
        UnsupportedSubstitution: for node kinds other than numbers, strings,
            variables, operators, calls and conditionals
    """
    if isinstance(node, (Number, String)):
        return node
    if isinstance(node, Variable):
        return mapping.get(node.name, node)
    if isinstance(node, BinaryOp):
        return BinaryOp(node.op, substitute(node.left, mapping), substitute(node.right, mapping))
    if isinstance(node, UnaryOp):
        return UnaryOp(node.op, substitute(node.operand, mapping), node.is_postfix)
    if isinstance(node, Call):
        return Call(node.name, tuple(substitute(arg, mapping) for arg in node.args))
    if isinstance(node, Conditional):
        return Conditional(
            substitute(node.condition, mapping),
            substitute(node.then_branch, mapping),
            substitute(node.else_branch, mapping),
        )
    raise UnsupportedSubstitution(f"Cannot substitute into {type(node).__name__} node")


class _Differentiator:
    def __init__(self, variable: str, functions: Mapping[str, Any]):
        self.variable = variable
        self.functions = functions
        # Names of user functions currently being inlined
        self.inlining: set = set()

    def derive(self, node: Node) -> Node:
        if isinstance(node, Number):
            return Number(0.0)
        if isinstance(node, Variable):
            return Number(1.0 if node.name == self.variable else 0.0)
        if isinstance(node, BinaryOp):
            return self._derive_binary(node)
        if isinstance(node, UnaryOp):
            if node.op == "-":
                return UnaryOp("-", self.derive(node.operand))
            return self.derive(node.operand)
        if isinstance(node, Call):
            return self._derive_call(node)
        if isinstance(node, Conditional):
            raise UnsupportedDifferentiation("Differentiation of conditional expressions is not supported")
        raise UnsupportedDifferentiation(f"Cannot differentiate {type(node).__name__} node")

    def _derive_binary(self, node: BinaryOp) -> Node:
        left, right = node.left, node.right
        if node.op in ("+", "-"):
            return BinaryOp(node.op, self.derive(left), self.derive(right))
        if node.op == "*":
            # (f * g)' = f' * g + f * g'
            return BinaryOp("+", _times(self.derive(left), right), _times(left, self.derive(right)))
        if node.op == "/":
            # (f / g)' = (f' * g - f * g') / g^2
            numerator = BinaryOp("-", _times(self.derive(left), right), _times(left, self.derive(right)))
            return BinaryOp("/", numerator, BinaryOp("^", right, Number(2.0)))
        if node.op == "^":
            exponent = constant_value(right)
            if exponent is None:
                raise UnsupportedDifferentiation(
                    "Differentiation with a non-constant exponent is not supported"
                )
            # (f^n)' = n * f^(n-1) * f'
            power = BinaryOp("^", left, Number(exponent - 1))
            return _times(_times(Number(exponent), power), self.derive(left))
        raise UnsupportedDifferentiation(f"Cannot differentiate operator '{node.op}'")

    def _derive_call(self, node: Call) -> Node:
        if node.name in _CHAIN_RULES:
            if len(node.args) != 1:
                raise ArityMismatch(
                    f"Function '{node.name}' expects 1 argument(s), got {len(node.args)}"
                )
            (argument,) = node.args
            return _times(_CHAIN_RULES[node.name](argument), self.derive(argument))

        definition = self.functions.get(node.name)
        params = getattr(definition, "params", None)
        body = getattr(definition, "body", None)
        if params is None or not isinstance(body, Node):
            raise UnsupportedDifferentiation(f"Differentiation of function '{node.name}' is not supported")
        if len(params) != len(node.args):
            raise ArityMismatch(
                f"Function '{node.name}' expects {len(params)} argument(s), got {len(node.args)}"
            )
        if node.name in self.inlining:
            raise UnsupportedDifferentiation(f"Cannot differentiate recursive function '{node.name}'")

        self.inlining.add(node.name)
        try:
            return self.derive(substitute(body, dict(zip(params, node.args))))
        finally:
            self.inlining.discard(node.name)


def differentiate(node: Node, variable: str, functions: Mapping[str, Any] | None = None) -> Node:
    """Build the derivative of ``node`` with respect to ``variable``.

    Args:
        node: Expression tree
        variable: Name of the differentiation variable
        functions: Name -> user function (``FunctionDefinition`` or closure)
            used to inline calls to user-defined functions

    Returns:
        A new tree for the derivative, unsimplified

    Raises:
        UnsupportedDifferentiation: for conditionals, non-constant exponents,
            built-ins without a chain rule, and self-recursive functions
    """
    result = _Differentiator(variable, functions or {}).derive(node)
    logger.debug("Built derivative of %s with respect to %s", type(node).__name__, variable)
    return result
