"""Test that API functions return typed dataclasses."""

import pytest

from mathlang_pkg.api import convert_units, diff, evaluate, parse, validate_expression
from mathlang_pkg.ast_nodes import BinaryOp, Block, Node
from mathlang_pkg.evaluator import Evaluator
from mathlang_pkg.types import EvalResult, IncompatibleUnits, ParseError
from mathlang_pkg.units import UnitValue


class TestAPITypedReturns:
    """Test that all API functions return typed dataclasses."""

    def test_evaluate_returns_eval_result(self):
        """Test that evaluate() returns EvalResult."""
        result = evaluate("2 + 2")
        assert isinstance(result, EvalResult)
        assert result.ok is True
        assert result.result == "4"
        assert result.value == 4.0

    def test_evaluate_error_returns_eval_result(self):
        """Test that evaluate() errors return EvalResult."""
        result = evaluate("1 km + 2 s")
        assert isinstance(result, EvalResult)
        assert result.ok is False
        assert result.error_code == "INCOMPATIBLE_UNITS"
        assert result.result is None

    def test_evaluate_keeps_runtime_value(self):
        result = evaluate("1 km + 500 m")
        assert result.result == "1.5 km"
        assert result.value == UnitValue(1.5, {"km": 1})

    def test_evaluate_statement_without_value(self):
        result = evaluate("{ }")
        assert result.ok is True
        assert result.result is None

    def test_evaluate_with_shared_evaluator(self):
        """Bindings made by one call are visible to the next."""
        evaluator = Evaluator()
        assert evaluate("f(x) = x^2 + 1", evaluator).result == "f(x) = x^2 + 1"
        assert evaluate("r = f(3)", evaluator).result == "10"
        assert evaluate("r / 2", evaluator).result == "5"

    def test_failed_evaluation_leaves_bindings_untouched(self):
        evaluator = Evaluator()
        evaluate("a = 1", evaluator)
        result = evaluate("a = 5; b = nope", evaluator)
        assert result.error_code == "UNDEFINED_VARIABLE"
        assert evaluator.environment == {"a": 1.0}

    def test_rollback_keeps_closures_attached(self):
        evaluator = Evaluator()
        evaluate("k = 2; scale = ->(v) k * v", evaluator)
        assert evaluate("k = 10; scale(1, 2)", evaluator).error_code == "ARITY_MISMATCH"
        assert evaluate("scale(3)", evaluator).result == "6"
        evaluate("k = 4", evaluator)
        assert evaluate("scale(3)", evaluator).result == "12"

    def test_package_level_exports(self):
        import mathlang_pkg

        for name in mathlang_pkg.__api_exports__:
            assert callable(getattr(mathlang_pkg, name))
        assert mathlang_pkg.evaluate("60 km/h * 2 h").result == "120 km"

    def test_diff_returns_eval_result(self):
        """Test that diff() returns EvalResult carrying the derivative tree."""
        result = diff("x^3")
        assert isinstance(result, EvalResult)
        assert result.ok is True
        assert isinstance(result.value, Node)

    def test_diff_error_returns_eval_result(self):
        result = diff("x^x")
        assert isinstance(result, EvalResult)
        assert result.ok is False
        assert result.error_code == "UNSUPPORTED_DIFFERENTIATION"

    def test_diff_other_variable(self):
        assert diff("y^2 + x", variable="y", simplify=True).result == "2*y"

    def test_parse_returns_block(self):
        program = parse("1 + 2; 3")
        assert isinstance(program, Block)
        assert isinstance(program.statements[0], BinaryOp)

    def test_parse_raises_parse_error(self):
        with pytest.raises(ParseError):
            parse("1 +")

    def test_validate_expression(self):
        assert validate_expression("2 + 3x") == (True, None)
        valid, message = validate_expression("2 +")
        assert valid is False
        assert "end of input" in message

    def test_convert_units(self):
        assert convert_units(1.5, "km", "m") == 1500.0
        with pytest.raises(IncompatibleUnits):
            convert_units(1, "kg", "m")

    def test_to_dict_omits_unset_fields(self):
        assert evaluate("2 * 3").to_dict() == {"ok": True, "result": "6"}

    def test_repr(self):
        assert repr(evaluate("2 * 3")) == "EvalResult(ok=True, result='6')"
