"""Tree-walking evaluator.

Runtime values are plain Python objects:

- ``float`` (numbers), ``complex``, ``bool``, ``str``
- ``list`` (arrays) and ``list`` of ``list`` (matrices)
- ``UnitValue`` (magnitude plus unit exponent map)
- ``Closure`` (lambda with a live reference to its defining environment)
- ``NativeFunction`` (a built-in referenced by name)
- ``FunctionDefinition`` (the syntax node itself, bound by ``f(x) = ...``)

Named functions run in a copy of the *caller's* environment; closures run
in a copy of the environment they were created in. Neither ever writes to
an environment it did not create.
"""

from __future__ import annotations

import math
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Sequence

from . import ast_nodes as ast
from . import config
from .calculus import differentiate
from .constants import (
    BUILTIN_FUNCTIONS,
    CONSTANTS,
    BuiltinFunction,
    is_matrix,
    is_number,
    type_name,
)
from .formatting import format_value
from .logging_config import get_logger
from .types import (
    ArityMismatch,
    InvalidAssignmentTarget,
    MathDomainError,
    NotCallable,
    ShapeMismatch,
    TypeMismatch,
    UndefinedFunction,
    UndefinedVariable,
    UnsupportedOperator,
    UnsupportedProperty,
)
from .units import DEFAULT_UNITS, UnitRegistry, UnitValue, parse_unit_expression

logger = get_logger("evaluator")

Environment = Dict[str, Any]


@dataclass(eq=False)
class Closure:
    """A lambda value bound to the environment it was created in."""

    params: tuple
    body: ast.Node
    environment: Environment = field(repr=False)

    def __repr__(self) -> str:
        return f"<lambda ({', '.join(self.params)})>"


@dataclass(frozen=True)
class NativeFunction:
    """A built-in function used as a value (e.g. passed to a user function)."""

    name: str
    func: BuiltinFunction = field(repr=False, compare=False)

    def __call__(self, args: List[Any]) -> Any:
        return self.func(args)

    def __repr__(self) -> str:
        return f"<built-in {self.name}>"


_ARITHMETIC: Dict[str, Callable[[float, float], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "%": math.fmod,
    "^": math.pow,
}

_COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
}

_COMPLEX_OPERATORS: Dict[str, Callable[[complex, complex], complex]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}


def _check_arity(name: str, params: Sequence[str], args: Sequence[Any]) -> None:
    if len(params) != len(args):
        raise ArityMismatch(
            f"Function '{name}' expects {len(params)} argument(s), got {len(args)}"
        )


class Evaluator:
    """Evaluate syntax trees against one mutable environment.

    Args:
        environment: Initial bindings; the evaluator takes ownership of the
            mapping and mutates it on assignment
        units: Unit registry used for unit literals and conversions
    """

    def __init__(self, environment: Environment | None = None, units: UnitRegistry = DEFAULT_UNITS):
        self.environment: Environment = environment if environment is not None else {}
        self.units = units

    def _child(self, environment: Environment) -> "Evaluator":
        return Evaluator(environment, self.units)

    def evaluate(self, node: ast.Node) -> Any:
        """Evaluate ``node`` and return its runtime value."""
        handler = self._HANDLERS.get(type(node))
        if handler is None:
            raise TypeMismatch(f"Cannot evaluate {type(node).__name__} node")
        return handler(self, node)

    # ------------------------------------------------------------------
    # Leaves and simple nodes
    # ------------------------------------------------------------------

    def _eval_number(self, node: ast.Number) -> float:
        return node.value

    def _eval_string(self, node: ast.String) -> str:
        return node.value

    def _eval_variable(self, node: ast.Variable) -> Any:
        name = node.name
        if name in self.environment:
            return self.environment[name]
        if name in CONSTANTS:
            return CONSTANTS[name]
        if name in BUILTIN_FUNCTIONS:
            return NativeFunction(name, BUILTIN_FUNCTIONS[name])
        raise UndefinedVariable(f"Undefined variable '{name}'")

    def _eval_unit(self, node: ast.Unit) -> UnitValue:
        magnitude = self.evaluate(node.value)
        if not is_number(magnitude):
            raise TypeMismatch(f"Cannot attach unit '{node.unit}' to {type_name(magnitude)}")
        units = parse_unit_expression(node.unit)
        # Raises UnknownUnit for unregistered symbols
        self.units.simplify_to_base_units(units)
        return UnitValue(float(magnitude), units)

    def _eval_complex_literal(self, node: ast.ComplexLiteral) -> complex:
        real = self.evaluate(node.real)
        imag = self.evaluate(node.imag)
        if not is_number(real) or not is_number(imag):
            raise TypeMismatch("Complex literal parts must be real numbers")
        return complex(real, imag)

    def _eval_property_access(self, node: ast.PropertyAccess) -> Any:
        value = self.evaluate(node.object)
        if isinstance(value, complex):
            if node.property == "real":
                return value.real
            if node.property == "imag":
                return value.imag
        elif isinstance(value, UnitValue):
            if node.property == "value":
                return value.magnitude
            if node.property == "unit":
                return value.unit
        raise UnsupportedProperty(
            f"Property '{node.property}' is not supported on {type_name(value)}"
        )

    def _eval_conditional(self, node: ast.Conditional) -> Any:
        if self.evaluate(node.condition):
            return self.evaluate(node.then_branch)
        return self.evaluate(node.else_branch)

    def _eval_array(self, node: ast.Array) -> List[Any]:
        return [self.evaluate(element) for element in node.elements]

    def _eval_matrix(self, node: ast.Matrix) -> List[List[Any]]:
        return [[self.evaluate(element) for element in row] for row in node.rows]

    def _eval_lambda(self, node: ast.Lambda) -> Closure:
        return Closure(node.params, node.body, self.environment)

    def _eval_assignment(self, node: ast.Assignment) -> Any:
        if not isinstance(node.target, ast.Variable):
            raise InvalidAssignmentTarget(
                f"Cannot assign to {type(node.target).__name__}; target must be a variable"
            )
        value = self.evaluate(node.value)
        self.environment[node.target.name] = value
        return value

    def _eval_function_definition(self, node: ast.FunctionDefinition) -> ast.FunctionDefinition:
        self.environment[node.name] = node
        return node

    def _eval_block(self, node: ast.Block) -> Any:
        result = None
        for statement in node.statements:
            result = self.evaluate(statement)
        return result

    def _eval_derivative(self, node: ast.Derivative) -> Any:
        derivative = differentiate(node.expression, node.variable, self.environment)
        return self._child(dict(self.environment)).evaluate(derivative)

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def _eval_call(self, node: ast.Call) -> Any:
        args = [self.evaluate(arg) for arg in node.args]
        builtin = BUILTIN_FUNCTIONS.get(node.name)
        if builtin is not None:
            return builtin(args)
        if node.name not in self.environment:
            raise UndefinedFunction(f"Undefined function '{node.name}'")
        return self.call_value(self.environment[node.name], args, node.name)

    def call_value(self, function: Any, args: List[Any], name: str = "<anonymous>") -> Any:
        """Invoke a callable runtime value with already evaluated arguments."""
        if isinstance(function, ast.FunctionDefinition):
            _check_arity(function.name, function.params, args)
            scope = dict(self.environment)
            scope.update(zip(function.params, args))
            logger.debug("Calling %s with %d argument(s)", function.name, len(args))
            return self._child(scope).evaluate(function.body)
        if isinstance(function, Closure):
            _check_arity(name, function.params, args)
            scope = dict(function.environment)
            scope.update(zip(function.params, args))
            return self._child(scope).evaluate(function.body)
        if isinstance(function, NativeFunction):
            return function(args)
        raise NotCallable(f"'{name}' is a {type_name(function)}, not a function")

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def _eval_unary_op(self, node: ast.UnaryOp) -> Any:
        operand = self.evaluate(node.operand)
        if node.is_postfix:
            if node.op == "!":
                return BUILTIN_FUNCTIONS["factorial"]([operand])
            raise UnsupportedOperator(f"Unsupported postfix operator '{node.op}'")
        if node.op not in ("+", "-"):
            raise UnsupportedOperator(f"Unsupported prefix operator '{node.op}'")
        if isinstance(operand, UnitValue):
            return operand.negate() if node.op == "-" else operand
        if isinstance(operand, complex):
            return -operand if node.op == "-" else operand
        if is_number(operand):
            return -float(operand) if node.op == "-" else float(operand)
        raise TypeMismatch(f"Cannot apply prefix '{node.op}' to {type_name(operand)}")

    def _eval_binary_op(self, node: ast.BinaryOp) -> Any:
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        return self.apply_binary(node.op, left, right)

    def apply_binary(self, op: str, left: Any, right: Any) -> Any:
        """Apply a binary operator to two runtime values.

        Dispatch order: complex, unit values, strings, indexing,
        array/matrix pairs, scalar broadcast, plain numbers and booleans.

        Raises:
            MathDomainError: on division by zero, overflow or a math domain error
        """
        try:
            return self._dispatch_binary(op, left, right)
        except (ZeroDivisionError, OverflowError, ValueError) as e:
            raise MathDomainError(f"Cannot evaluate '{op}': {e}") from e

    def _dispatch_binary(self, op: str, left: Any, right: Any) -> Any:
        if isinstance(left, complex) or isinstance(right, complex):
            return self._complex_binary(op, left, right)
        if isinstance(left, UnitValue) or isinstance(right, UnitValue):
            return self._unit_binary(op, left, right)
        if isinstance(left, str) or isinstance(right, str):
            if op != "+":
                raise UnsupportedOperator(f"Operator '{op}' is not supported for strings")
            return format_value(left) + format_value(right)
        if op == "[]":
            return self._index(left, right)
        left_is_array = isinstance(left, list)
        right_is_array = isinstance(right, list)
        if left_is_array and right_is_array:
            return self._array_binary(op, left, right)
        if op == "*" and (left_is_array or right_is_array):
            if left_is_array:
                return [self._dispatch_binary("*", item, right) for item in left]
            return [self._dispatch_binary("*", left, item) for item in right]
        return self._numeric_binary(op, left, right)

    def _complex_binary(self, op: str, left: Any, right: Any) -> complex:
        if op not in _COMPLEX_OPERATORS:
            raise UnsupportedOperator(f"Operator '{op}' is not supported for complex numbers")
        operands = []
        for value in (left, right):
            if isinstance(value, complex):
                operands.append(value)
            elif is_number(value):
                operands.append(complex(value, 0))
            else:
                raise TypeMismatch(f"Cannot combine complex number with {type_name(value)}")
        return _COMPLEX_OPERATORS[op](*operands)

    def _as_unit_value(self, value: Any) -> UnitValue:
        if isinstance(value, UnitValue):
            return value
        if is_number(value):
            return UnitValue(float(value), {})
        raise TypeMismatch(f"Cannot combine unit value with {type_name(value)}")

    def _unit_binary(self, op: str, left: Any, right: Any) -> UnitValue:
        if op == "^":
            if isinstance(right, UnitValue):
                raise TypeMismatch("Exponent of a unit value must be a plain number")
            if not is_number(right):
                raise TypeMismatch(f"Cannot raise unit value to {type_name(right)}")
            return self._as_unit_value(left).power(float(right))
        lhs = self._as_unit_value(left)
        rhs = self._as_unit_value(right)
        if op == "+":
            return lhs.add(rhs, self.units)
        if op == "-":
            return lhs.subtract(rhs, self.units)
        if op == "*":
            return lhs.multiply(rhs)
        if op == "/":
            return lhs.divide(rhs)
        raise UnsupportedOperator(f"Operator '{op}' is not supported for unit values")

    def _index(self, container: Any, index: Any) -> Any:
        if not isinstance(container, list):
            raise TypeMismatch(f"Cannot index into {type_name(container)}")
        if not is_number(index):
            raise TypeMismatch(f"Index must be a number, got {type_name(index)}")
        position = round(index)
        if abs(index - position) > config.NUMERIC_TOLERANCE:
            raise TypeMismatch(f"Index must be an integer, got {index:g}")
        if not 0 <= position < len(container):
            raise ShapeMismatch(f"Index {position} out of range for length {len(container)}")
        return container[position]

    def _array_binary(self, op: str, left: list, right: list) -> list:
        if op in ("+", "-"):
            if len(left) != len(right) or is_matrix(left) != is_matrix(right):
                raise ShapeMismatch(
                    f"Cannot apply '{op}' to shapes {_shape(left)} and {_shape(right)}"
                )
            return [self._dispatch_binary(op, a, b) for a, b in zip(left, right)]
        if op == "*":
            if is_matrix(left) != is_matrix(right):
                raise ShapeMismatch(
                    f"Cannot multiply shapes {_shape(left)} and {_shape(right)}; "
                    "a vector operand has no matrix dimensions"
                )
            if not is_matrix(left):
                raise TypeMismatch("Multiplication of arrays requires two matrices; use dot() for vectors")
            return self._matmul(left, right)
        raise UnsupportedOperator(f"Operator '{op}' is not supported for arrays")

    def _matmul(self, left: List[list], right: List[list]) -> List[list]:
        inner = len(right)
        if any(len(row) != inner for row in left):
            raise ShapeMismatch(
                f"Cannot multiply matrices of shapes {_shape(left)} and {_shape(right)}"
            )
        width = len(right[0])
        if any(len(row) != width for row in right):
            raise ShapeMismatch("Matrix rows have different lengths")
        result = []
        for row in left:
            out_row = []
            for j in range(width):
                total: Any = 0.0
                for k in range(inner):
                    total = self._dispatch_binary("+", total, self._dispatch_binary("*", row[k], right[k][j]))
                out_row.append(total)
            result.append(out_row)
        return result

    def _numeric_binary(self, op: str, left: Any, right: Any) -> Any:
        if not is_number(left) or not is_number(right):
            raise TypeMismatch(
                f"Cannot apply '{op}' to {type_name(left)} and {type_name(right)}"
            )
        if op in _ARITHMETIC:
            return float(_ARITHMETIC[op](float(left), float(right)))
        if op == "&&":
            return bool(left) and bool(right)
        if op == "||":
            return bool(left) or bool(right)
        if op in _COMPARISONS:
            return _COMPARISONS[op](left, right)
        raise UnsupportedOperator(f"Unsupported operator '{op}'")

    _HANDLERS: Mapping[type, Callable[["Evaluator", Any], Any]] = {
        ast.Number: _eval_number,
        ast.String: _eval_string,
        ast.Variable: _eval_variable,
        ast.Unit: _eval_unit,
        ast.ComplexLiteral: _eval_complex_literal,
        ast.PropertyAccess: _eval_property_access,
        ast.Conditional: _eval_conditional,
        ast.Array: _eval_array,
        ast.Matrix: _eval_matrix,
        ast.Lambda: _eval_lambda,
        ast.Assignment: _eval_assignment,
        ast.FunctionDefinition: _eval_function_definition,
        ast.Block: _eval_block,
        ast.Derivative: _eval_derivative,
        ast.Call: _eval_call,
        ast.UnaryOp: _eval_unary_op,
        ast.BinaryOp: _eval_binary_op,
    }


def _shape(value: list) -> str:
    if is_matrix(value):
        return f"{len(value)}x{len(value[0])}"
    return str(len(value))
