"""Public API for mathlang - returns structured objects without side effects."""

from __future__ import annotations

from .ast_nodes import Block, FunctionDefinition
from .calculus import differentiate
from .evaluator import Evaluator
from .formatting import format_value, to_source
from .logging_config import get_logger
from .parser import parse_program
from .symbolic import simplify_expression
from .types import EvalResult, MathLangError
from .units import DEFAULT_UNITS

logger = get_logger("api")


def _error_result(error: MathLangError) -> EvalResult:
    return EvalResult(
        ok=False,
        error=error.message,
        error_code=error.code,
        line=error.line,
        column=error.column,
    )


def _recursion_result() -> EvalResult:
    return EvalResult(
        ok=False,
        error="Maximum recursion depth exceeded",
        error_code="RECURSION_LIMIT",
    )


def _restore(evaluator: Evaluator, snapshot: dict) -> None:
    # Closures hold a reference to this dict, so restore it in place
    evaluator.environment.clear()
    evaluator.environment.update(snapshot)


def _empty_result() -> EvalResult:
    return EvalResult(ok=False, error="Empty input", error_code="EMPTY_INPUT")


def parse(text: str) -> Block:
    """Parse source text into a Block of statements.

    Args:
        text: Program source (e.g., "x = 2; x^2 + 1")

    Returns:
        Block node

    Raises:
        LexError, ParseError, ValidationError
    """
    return parse_program(text)


def validate_expression(text: str) -> tuple[bool, str | None]:
    """Check that text scans and parses, without evaluating it.

    Args:
        text: Program source

    Returns:
        Tuple (is_valid, error_message_or_none)

    Example:
        >>> from mathlang_pkg.api import validate_expression
        >>> validate_expression("2 + 3x")
        (True, None)
        >>> validate_expression("2 +")[0]
        False
    """
    try:
        parse_program(text)
    except MathLangError as e:
        return False, str(e)
    return True, None


def evaluate(text: str, evaluator: Evaluator | None = None) -> EvalResult:
    """Evaluate a program.

    Args:
        text: Program source (e.g., "1 km + 500 m", "f(x) = x^2; f(3)")
        evaluator: Optional evaluator whose environment receives the
            program's bindings (a fresh one is used when omitted). On
            failure its environment is left as it was before the call

    Returns:
        EvalResult with the formatted value of the last statement

    Example:
        >>> from mathlang_pkg.api import evaluate
        >>> evaluate("x = 3; 2 x^2").result
        '18'
    """
    if not text.strip():
        return _empty_result()
    evaluator = evaluator if evaluator is not None else Evaluator()
    snapshot = dict(evaluator.environment)
    try:
        value = evaluator.evaluate(parse_program(text))
    except MathLangError as e:
        logger.debug(
            "Evaluation failed: %s",
            e.message,
            extra={"error_code": e.code, "line": e.line, "column": e.column},
        )
        _restore(evaluator, snapshot)
        return _error_result(e)
    except RecursionError:
        _restore(evaluator, snapshot)
        return _recursion_result()
    result = format_value(value) if value is not None else None
    return EvalResult(ok=True, result=result, value=value)


def diff(text: str, variable: str = "x", simplify: bool = False) -> EvalResult:
    """Differentiate the last statement of a program.

    Every statement but the last is executed first, so function definitions
    can be inlined. When the last statement is itself a function definition
    its body is differentiated.

    Args:
        text: Program source (e.g., "x^3 + 2x", "f(t) = t^2; f(x) * x")
        variable: Differentiation variable
        simplify: Display the derivative simplified by SymPy

    Returns:
        EvalResult whose ``result`` is the derivative as source text and
        whose ``value`` is the derivative syntax tree
    """
    if not text.strip():
        return _empty_result()
    try:
        program = parse_program(text)
        if not program.statements:
            return _empty_result()
        *setup, target = program.statements
        evaluator = Evaluator()
        for statement in setup:
            evaluator.evaluate(statement)
        if isinstance(target, FunctionDefinition):
            evaluator.evaluate(target)
            target = target.body
        derivative = differentiate(target, variable, evaluator.environment)
        rendered = simplify_expression(derivative) if simplify else to_source(derivative)
    except MathLangError as e:
        return _error_result(e)
    except RecursionError:
        return _recursion_result()
    return EvalResult(ok=True, result=rendered, value=derivative)


def convert_units(value: float, from_unit: str, to_unit: str) -> float:
    """Convert a magnitude between two unit expressions.

    Example:
        >>> from mathlang_pkg.api import convert_units
        >>> convert_units(1.5, "km", "m")
        1500.0

    Raises:
        UnknownUnit, IncompatibleUnits
    """
    return DEFAULT_UNITS.convert(value, from_unit, to_unit)
