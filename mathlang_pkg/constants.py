"""Constant and built-in function registry.

``CONSTANTS`` maps names to numeric, boolean or complex values.
``BUILTIN_FUNCTIONS`` maps names to variadic callables taking the list of
evaluated arguments and returning a runtime value.
"""

from __future__ import annotations

import cmath
import functools
import math
from typing import Any, Callable, Dict, List

import sympy as sp

from . import config
from .types import ArityMismatch, MathDomainError, ShapeMismatch, TypeMismatch
from .units import UnitValue

CONSTANTS: Dict[str, Any] = {
    "pi": math.pi,
    "e": math.e,
    "tau": math.tau,
    "phi": (1 + math.sqrt(5)) / 2,
    "i": complex(0, 1),
    "true": True,
    "false": False,
}

BuiltinFunction = Callable[[List[Any]], Any]

BUILTIN_FUNCTIONS: Dict[str, BuiltinFunction] = {}


def _builtin(name: str, min_args: int = 1, max_args: int | None = 1):
    """Register a built-in, checking its argument count and translating math errors."""

    def decorator(func: BuiltinFunction) -> BuiltinFunction:
        @functools.wraps(func)
        def wrapper(args: List[Any]) -> Any:
            if len(args) < min_args or (max_args is not None and len(args) > max_args):
                if max_args is None:
                    expected = f"at least {min_args}"
                elif min_args == max_args:
                    expected = str(min_args)
                else:
                    expected = f"{min_args} to {max_args}"
                raise ArityMismatch(
                    f"Function '{name}' expects {expected} argument(s), got {len(args)}"
                )
            try:
                return func(args)
            except (ValueError, OverflowError, ZeroDivisionError) as e:
                raise MathDomainError(f"{name}: {e}") from e

        BUILTIN_FUNCTIONS[name] = wrapper
        return wrapper

    return decorator


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, complex)


def _real(value: Any, name: str) -> float:
    if not is_number(value):
        raise TypeMismatch(f"Function '{name}' expects a real number, got {type_name(value)}")
    return float(value)


def _integer(value: Any, name: str) -> int:
    number = _real(value, name)
    rounded = round(number)
    if abs(number - rounded) > config.NUMERIC_TOLERANCE:
        raise MathDomainError(f"Function '{name}' expects an integer, got {number:g}")
    return int(rounded)


def type_name(value: Any) -> str:
    """Human-readable runtime type name used in error messages."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, complex):
        return "complex"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "matrix" if is_matrix(value) else "array"
    if isinstance(value, UnitValue):
        return "unit value"
    if value is None:
        return "nothing"
    return "function"


def is_matrix(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(isinstance(row, list) for row in value)


def factorial(value: Any) -> float:
    n = _integer(value, "factorial")
    if n < 0:
        raise MathDomainError(f"Factorial of negative number {n} is undefined")
    return float(math.factorial(n))


def _elementary(name: str, real_func: Callable[[float], float], complex_func=None) -> None:
    @_builtin(name)
    def func(args: List[Any]) -> Any:
        (value,) = args
        if isinstance(value, complex):
            if complex_func is None:
                raise TypeMismatch(f"Function '{name}' does not accept complex arguments")
            return complex_func(value)
        return real_func(_real(value, name))


_elementary("sin", math.sin, cmath.sin)
_elementary("cos", math.cos, cmath.cos)
_elementary("tan", math.tan, cmath.tan)
_elementary("asin", math.asin, cmath.asin)
_elementary("acos", math.acos, cmath.acos)
_elementary("atan", math.atan, cmath.atan)
_elementary("sinh", math.sinh, cmath.sinh)
_elementary("cosh", math.cosh, cmath.cosh)
_elementary("tanh", math.tanh, cmath.tanh)
_elementary("exp", math.exp, cmath.exp)
_elementary("ln", math.log, cmath.log)
_elementary("floor", lambda x: float(math.floor(x)))
_elementary("ceil", lambda x: float(math.ceil(x)))


@_builtin("sqrt")
def _sqrt(args: List[Any]) -> Any:
    (value,) = args
    if isinstance(value, complex):
        return cmath.sqrt(value)
    number = _real(value, "sqrt")
    if number < 0:
        return complex(0, math.sqrt(-number))
    return math.sqrt(number)


@_builtin("log", 1, 2)
def _log(args: List[Any]) -> float:
    value = _real(args[0], "log")
    if len(args) == 2:
        return math.log(value, _real(args[1], "log"))
    return math.log10(value)


@_builtin("abs")
def _abs(args: List[Any]) -> Any:
    (value,) = args
    if isinstance(value, UnitValue):
        return UnitValue(abs(value.magnitude), dict(value.units))
    if isinstance(value, complex):
        return abs(value)
    return abs(_real(value, "abs"))


@_builtin("round", 1, 2)
def _round(args: List[Any]) -> float:
    digits = _integer(args[1], "round") if len(args) == 2 else 0
    return float(round(_real(args[0], "round"), digits))


def _flatten_numbers(args: List[Any], name: str) -> List[float]:
    items = args[0] if len(args) == 1 and isinstance(args[0], list) else args
    if not items:
        raise ArityMismatch(f"Function '{name}' needs at least one value")
    return [_real(item, name) for item in items]


@_builtin("min", 1, None)
def _min(args: List[Any]) -> float:
    return min(_flatten_numbers(args, "min"))


@_builtin("max", 1, None)
def _max(args: List[Any]) -> float:
    return max(_flatten_numbers(args, "max"))


@_builtin("sum", 1, None)
def _sum(args: List[Any]) -> float:
    return math.fsum(_flatten_numbers(args, "sum"))


@_builtin("gcd", 2, None)
def _gcd(args: List[Any]) -> float:
    return float(math.gcd(*(_integer(arg, "gcd") for arg in args)))


@_builtin("lcm", 2, None)
def _lcm(args: List[Any]) -> float:
    result = 1
    for number in (_integer(arg, "lcm") for arg in args):
        if number == 0 or result == 0:
            result = 0
        else:
            result = abs(result * number) // math.gcd(result, number)
    return float(result)


@_builtin("factorial")
def _factorial(args: List[Any]) -> float:
    return factorial(args[0])


@_builtin("nroot", 2, 2)
def _nroot(args: List[Any]) -> float:
    value = _real(args[0], "nroot")
    degree = _integer(args[1], "nroot")
    if degree == 0:
        raise MathDomainError("Root of degree zero is undefined")
    if value < 0:
        if degree % 2 == 0:
            raise MathDomainError(f"Even root of negative number {value:g} is not real")
        return -math.pow(-value, 1.0 / degree)
    return math.pow(value, 1.0 / degree)


@_builtin("len")
def _len(args: List[Any]) -> float:
    (value,) = args
    if not isinstance(value, (list, str)):
        raise TypeMismatch(f"Function 'len' expects an array or string, got {type_name(value)}")
    return float(len(value))


@_builtin("dot", 2, 2)
def _dot(args: List[Any]) -> float:
    left, right = args
    if not isinstance(left, list) or not isinstance(right, list):
        raise TypeMismatch("Function 'dot' expects two arrays")
    if len(left) != len(right):
        raise ShapeMismatch(f"Cannot take dot product of lengths {len(left)} and {len(right)}")
    return math.fsum(_real(a, "dot") * _real(b, "dot") for a, b in zip(left, right))


@_builtin("transpose")
def _transpose(args: List[Any]) -> List[List[Any]]:
    (value,) = args
    if not is_matrix(value):
        raise TypeMismatch(f"Function 'transpose' expects a matrix, got {type_name(value)}")
    width = len(value[0])
    if any(len(row) != width for row in value):
        raise ShapeMismatch("Matrix rows have different lengths")
    return [[row[j] for row in value] for j in range(width)]


@_builtin("det")
def _det(args: List[Any]) -> float:
    (value,) = args
    if not is_matrix(value) or any(len(row) != len(value) for row in value):
        raise ShapeMismatch("Function 'det' expects a square matrix")
    rows = [[_real(item, "det") for item in row] for row in value]
    return float(sp.Matrix(rows).det())


@_builtin("convert", 2, 2)
def _convert(args: List[Any]) -> UnitValue:
    value, unit_text = args
    if not isinstance(value, UnitValue) or not isinstance(unit_text, str):
        raise TypeMismatch("Function 'convert' expects a unit value and a unit string")
    return value.to(unit_text)
