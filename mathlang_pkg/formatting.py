"""Rendering of runtime values and syntax trees as text."""

from __future__ import annotations

import re
from typing import Any

from . import ast_nodes as ast
from . import config
from .units import UnitValue


def superscriptify(input_str: str) -> str:
    """Convert numeric string to Unicode superscript characters.

    Args:
        input_str: Input string with digits and '-' (e.g., "123", "-5")

    Returns:
        String with superscript Unicode characters (e.g., "¹²³", "⁻⁵")
    """
    mapping = {
        "0": "⁰",
        "1": "¹",
        "2": "²",
        "3": "³",
        "4": "⁴",
        "5": "⁵",
        "6": "⁶",
        "7": "⁷",
        "8": "⁸",
        "9": "⁹",
        "-": "⁻",
    }
    return "".join(mapping.get(char, char) for char in input_str)


def format_superscript(text: str) -> str:
    """Replace integer powers written with ``^`` by Unicode superscripts.

    Args:
        text: Text such as "m/s^2" or "x^-3"

    Returns:
        Text with superscripts (e.g., "m/s²", "x⁻³")
    """
    return re.sub(r"\^(-?\d+)(?![\d.])", lambda m: superscriptify(m.group(1)), text)


def format_number(value: Any, precision: int | None = None) -> str:
    """Format a real number with ``precision`` significant digits.

    Args:
        value: Numeric value to format
        precision: Significant digits (default: config.OUTPUT_PRECISION)

    Returns:
        Formatted string; integral values print without a decimal point
    """
    if precision is None:
        precision = config.OUTPUT_PRECISION
    number = float(value)
    if number == 0:
        # Avoid printing "-0"
        number = 0.0
    return f"{number:.{int(precision)}g}"


def format_complex(value: complex) -> str:
    real = format_number(value.real)
    imag = format_number(abs(value.imag))
    sign = "-" if value.imag < 0 else "+"
    if value.real == 0:
        return f"{'-' if sign == '-' else ''}{imag}i"
    return f"{real} {sign} {imag}i"


def format_value(value: Any) -> str:
    """Render a runtime value the way the REPL prints it."""
    if value is None:
        return "none"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, complex):
        return format_complex(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "[" + ", ".join(format_value(item) for item in value) + "]"
    if isinstance(value, UnitValue):
        if value.is_dimensionless:
            return format_number(value.magnitude)
        return f"{format_number(value.magnitude)} {value.unit}"
    if isinstance(value, ast.FunctionDefinition):
        return f"{value.name}({', '.join(value.params)}) = {to_source(value.body)}"
    return str(value)


# Binding strength used to decide where to_source needs parentheses
_BINARY_PRECEDENCE = {
    "||": 1,
    "&&": 2,
    "==": 3,
    "!=": 3,
    "<": 4,
    ">": 4,
    "<=": 4,
    ">=": 4,
    "+": 5,
    "-": 5,
    "*": 6,
    "/": 6,
    "%": 6,
    "^": 7,
}
_CONDITIONAL = 0
_PREFIX = 8
_POSTFIX = 9
_ATOM = 10


def _precedence(node: ast.Node) -> int:
    if isinstance(node, ast.BinaryOp):
        return _ATOM if node.op == "[]" else _BINARY_PRECEDENCE.get(node.op, _ATOM)
    if isinstance(node, ast.UnaryOp):
        return _POSTFIX if node.is_postfix else _PREFIX
    if isinstance(node, ast.Number) and node.value < 0:
        return _PREFIX
    if isinstance(node, (ast.Assignment, ast.FunctionDefinition, ast.Lambda, ast.Derivative)):
        return _CONDITIONAL
    if isinstance(node, ast.Conditional):
        # Rendered in call style
        return _ATOM
    if isinstance(node, ast.Unit):
        # "3 m^2" would read the exponent as part of the unit
        return _BINARY_PRECEDENCE["*"]
    return _ATOM


def _wrap(node: ast.Node, minimum: int) -> str:
    text = to_source(node)
    return f"({text})" if _precedence(node) < minimum else text


def to_source(node: ast.Node) -> str:
    """Render a syntax tree back to source text that parses to an equal value."""
    if isinstance(node, ast.Number):
        return format_number(node.value)
    if isinstance(node, ast.String):
        return f"'{node.value}'"
    if isinstance(node, ast.Variable):
        return node.name
    if isinstance(node, ast.BinaryOp):
        if node.op == "[]":
            return f"{_wrap(node.left, _ATOM)}[{to_source(node.right)}]"
        if node.op == "^":
            # Prefix minus binds looser than "^" on either side
            return f"{_wrap(node.left, _POSTFIX)}^{_wrap(node.right, _ATOM)}"
        level = _precedence(node)
        left = _wrap(node.left, level)
        right = _wrap(node.right, level + 1)
        return f"{left} {node.op} {right}"
    if isinstance(node, ast.UnaryOp):
        if node.is_postfix:
            return f"{_wrap(node.operand, _ATOM)}{node.op}"
        return f"{node.op}{_wrap(node.operand, _PREFIX + 1)}"
    if isinstance(node, ast.Call):
        return f"{node.name}({', '.join(to_source(arg) for arg in node.args)})"
    if isinstance(node, ast.Assignment):
        return f"{to_source(node.target)} = {to_source(node.value)}"
    if isinstance(node, ast.FunctionDefinition):
        return f"{node.name}({', '.join(node.params)}) = {to_source(node.body)}"
    if isinstance(node, ast.Array):
        return "[" + ", ".join(to_source(element) for element in node.elements) + "]"
    if isinstance(node, ast.Matrix):
        rows = ("[" + ", ".join(to_source(item) for item in row) + "]" for row in node.rows)
        return "[" + ", ".join(rows) + "]"
    if isinstance(node, ast.ComplexLiteral):
        imag = f"{_wrap(node.imag, _ATOM)}i"
        if isinstance(node.real, ast.Number) and node.real.value == 0:
            return imag
        return f"({to_source(node.real)} + {imag})"
    if isinstance(node, ast.Derivative):
        return f"d/d{node.variable}({to_source(node.expression)})"
    if isinstance(node, ast.Conditional):
        parts = (node.condition, node.then_branch, node.else_branch)
        return "if(" + ", ".join(to_source(part) for part in parts) + ")"
    if isinstance(node, ast.Lambda):
        return f"->({', '.join(node.params)}) {to_source(node.body)}"
    if isinstance(node, ast.Unit):
        return f"{_wrap(node.value, _ATOM)} {node.unit}"
    if isinstance(node, ast.Block):
        return "{ " + "; ".join(to_source(statement) for statement in node.statements) + " }"
    if isinstance(node, ast.PropertyAccess):
        return f"{_wrap(node.object, _ATOM)}.{node.property}"
    raise TypeError(f"Unknown node type {type(node).__name__}")
