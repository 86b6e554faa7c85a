"""Syntax tree node types.

Every node is a frozen dataclass; child sequences are tuples so a tree can
never be mutated after the parser builds it. Trees may share subtrees (the
differentiator reuses untouched branches) but never contain cycles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


class Node:
    """Base class of all syntax tree nodes."""

    __slots__ = ()


@dataclass(frozen=True)
class Number(Node):
    value: float


@dataclass(frozen=True)
class String(Node):
    value: str


@dataclass(frozen=True)
class Variable(Node):
    name: str


@dataclass(frozen=True)
class BinaryOp(Node):
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class UnaryOp(Node):
    op: str
    operand: Node
    is_postfix: bool = False


@dataclass(frozen=True)
class Call(Node):
    name: str
    args: Tuple[Node, ...] = ()


@dataclass(frozen=True)
class Assignment(Node):
    target: Node
    value: Node


@dataclass(frozen=True)
class FunctionDefinition(Node):
    name: str
    params: Tuple[str, ...]
    body: Node


@dataclass(frozen=True)
class Array(Node):
    elements: Tuple[Node, ...] = ()


@dataclass(frozen=True)
class Matrix(Node):
    rows: Tuple[Tuple[Node, ...], ...] = ()


@dataclass(frozen=True)
class ComplexLiteral(Node):
    real: Node
    imag: Node


@dataclass(frozen=True)
class Derivative(Node):
    variable: str
    expression: Node


@dataclass(frozen=True)
class Conditional(Node):
    condition: Node
    then_branch: Node
    else_branch: Node


@dataclass(frozen=True)
class Lambda(Node):
    params: Tuple[str, ...]
    body: Node


@dataclass(frozen=True)
class Unit(Node):
    value: Node
    unit: str


@dataclass(frozen=True)
class Block(Node):
    statements: Tuple[Node, ...] = ()


@dataclass(frozen=True)
class PropertyAccess(Node):
    object: Node
    property: str


def dump(node: Node, indent: int = 0) -> str:
    """Render a tree as an indented outline, one node per line."""
    pad = "  " * indent
    if isinstance(node, Number):
        return f"{pad}Number {node.value!r}"
    if isinstance(node, String):
        return f"{pad}String {node.value!r}"
    if isinstance(node, Variable):
        return f"{pad}Variable {node.name}"
    if isinstance(node, BinaryOp):
        return "\n".join(
            [f"{pad}BinaryOp {node.op}", dump(node.left, indent + 1), dump(node.right, indent + 1)]
        )
    if isinstance(node, UnaryOp):
        label = "postfix" if node.is_postfix else "prefix"
        return f"{pad}UnaryOp {node.op} ({label})\n" + dump(node.operand, indent + 1)
    if isinstance(node, Call):
        return "\n".join([f"{pad}Call {node.name}"] + [dump(a, indent + 1) for a in node.args])
    if isinstance(node, Assignment):
        return f"{pad}Assignment\n" + dump(node.target, indent + 1) + "\n" + dump(node.value, indent + 1)
    if isinstance(node, FunctionDefinition):
        return f"{pad}FunctionDefinition {node.name}({', '.join(node.params)})\n" + dump(
            node.body, indent + 1
        )
    if isinstance(node, Array):
        return "\n".join([f"{pad}Array"] + [dump(e, indent + 1) for e in node.elements])
    if isinstance(node, Matrix):
        lines = [f"{pad}Matrix {len(node.rows)} rows"]
        for row in node.rows:
            lines.append(f"{pad}  Row")
            lines.extend(dump(e, indent + 2) for e in row)
        return "\n".join(lines)
    if isinstance(node, ComplexLiteral):
        return f"{pad}ComplexLiteral\n" + dump(node.real, indent + 1) + "\n" + dump(node.imag, indent + 1)
    if isinstance(node, Derivative):
        return f"{pad}Derivative d/d{node.variable}\n" + dump(node.expression, indent + 1)
    if isinstance(node, Conditional):
        return "\n".join(
            [
                f"{pad}Conditional",
                dump(node.condition, indent + 1),
                dump(node.then_branch, indent + 1),
                dump(node.else_branch, indent + 1),
            ]
        )
    if isinstance(node, Lambda):
        return f"{pad}Lambda ({', '.join(node.params)})\n" + dump(node.body, indent + 1)
    if isinstance(node, Unit):
        return f"{pad}Unit {node.unit}\n" + dump(node.value, indent + 1)
    if isinstance(node, Block):
        return "\n".join([f"{pad}Block"] + [dump(s, indent + 1) for s in node.statements])
    if isinstance(node, PropertyAccess):
        return f"{pad}PropertyAccess .{node.property}\n" + dump(node.object, indent + 1)
    raise TypeError(f"Unknown node type {type(node).__name__}")
