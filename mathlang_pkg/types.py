"""Type definitions: the result dataclass and the interpreter error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class EvalResult:
    """Result of evaluating (or differentiating) a program."""

    ok: bool
    result: str | None = None
    value: Any = field(default=None, repr=False, compare=False)
    error: str | None = None
    error_code: str | None = None
    line: int | None = None
    column: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.result is not None:
            result_dict["result"] = self.result
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
        if self.line is not None:
            result_dict["line"] = self.line
        if self.column is not None:
            result_dict["column"] = self.column
        return result_dict

    def __repr__(self) -> str:
        """Return string representation of the result."""
        if not self.ok:
            return f"EvalResult(ok=False, error={self.error!r}, error_code={self.error_code!r})"
        return f"EvalResult(ok=True, result={self.result!r})"


class MathLangError(Exception):
    """Base class for every error raised by the interpreter."""

    code = "MATHLANG_ERROR"

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        code: str | None = None,
    ):
        self.message = message
        self.line = line
        self.column = column
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.line is not None and self.column is not None:
            return f"({self.line}, {self.column}): {self.message}"
        return self.message


class ValidationError(MathLangError):
    """Raised when input is rejected before scanning."""

    code = "VALIDATION_ERROR"


class LexError(MathLangError):
    """Unrecognized character or unterminated string."""

    code = "LEX_ERROR"


class ParseError(MathLangError):
    """Unexpected or missing token."""

    code = "PARSE_ERROR"

    def __init__(
        self,
        message: str,
        line: int = -1,
        column: int = -1,
        expected: str | None = None,
    ):
        self.expected = expected
        super().__init__(message, line, column)


class UndefinedVariable(MathLangError):
    code = "UNDEFINED_VARIABLE"


class UndefinedFunction(MathLangError):
    code = "UNDEFINED_FUNCTION"


class ArityMismatch(MathLangError):
    code = "ARITY_MISMATCH"


class NotCallable(MathLangError):
    code = "NOT_CALLABLE"


class InvalidAssignmentTarget(MathLangError):
    code = "INVALID_ASSIGNMENT_TARGET"


class TypeMismatch(MathLangError):
    """Operator applied to an operand combination it does not support."""

    code = "TYPE_MISMATCH"


class UnsupportedOperator(TypeMismatch):
    code = "UNSUPPORTED_OPERATOR"


class UnsupportedProperty(TypeMismatch):
    code = "UNSUPPORTED_PROPERTY"


class ShapeMismatch(MathLangError):
    code = "SHAPE_MISMATCH"


class UnknownUnit(MathLangError):
    code = "UNKNOWN_UNIT"


class IncompatibleUnits(MathLangError):
    code = "INCOMPATIBLE_UNITS"


class MathDomainError(MathLangError):
    code = "MATH_DOMAIN_ERROR"


class UnsupportedDifferentiation(MathLangError):
    code = "UNSUPPORTED_DIFFERENTIATION"


class UnsupportedSubstitution(MathLangError):
    code = "UNSUPPORTED_SUBSTITUTION"
