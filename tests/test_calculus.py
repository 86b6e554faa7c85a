"""Unit tests for calculus operations."""

import unittest

import pytest
import sympy as sp

from mathlang_pkg.api import diff
from mathlang_pkg.ast_nodes import BinaryOp, Call, Lambda, Number, UnaryOp, Variable
from mathlang_pkg.calculus import constant_value, differentiate, substitute
from mathlang_pkg.evaluator import Closure, Evaluator
from mathlang_pkg.formatting import to_source
from mathlang_pkg.parser import parse_program
from mathlang_pkg.symbolic import simplify_expression, to_sympy
from mathlang_pkg.types import (
    ArityMismatch,
    UnsupportedDifferentiation,
    UnsupportedSubstitution,
)

x = Variable("x")


def expr(text):
    (statement,) = parse_program(text).statements
    return statement


def derivative_at(tree, point):
    return Evaluator({"x": point}).evaluate(differentiate(tree, "x"))


class TestDifferentiationRules(unittest.TestCase):
    """Test the structure produced by each rule."""

    def test_leaves(self):
        self.assertEqual(differentiate(Number(5.0), "x"), Number(0.0))
        self.assertEqual(differentiate(x, "x"), Number(1.0))
        self.assertEqual(differentiate(Variable("y"), "x"), Number(0.0))

    def test_power_rule(self):
        self.assertEqual(
            differentiate(expr("x^2"), "x"),
            BinaryOp("*", BinaryOp("*", Number(2.0), BinaryOp("^", x, Number(1.0))), Number(1.0)),
        )

    def test_negation(self):
        self.assertEqual(differentiate(expr("-x"), "x"), UnaryOp("-", Number(1.0)))

    def test_other_prefix_operators_are_transparent(self):
        self.assertEqual(differentiate(UnaryOp("+", x), "x"), Number(1.0))

    def test_chain_rule(self):
        self.assertEqual(
            differentiate(expr("sin(x)"), "x"),
            BinaryOp("*", Call("cos", (x,)), Number(1.0)),
        )

    def test_constant_exponent_is_folded(self):
        self.assertEqual(constant_value(expr("-(1 + 2) * 2")), -6.0)
        self.assertIsNone(constant_value(expr("x + 1")))
        self.assertIsNone(constant_value(expr("1 / 0")))
        # x^(1/2): exponent 0.5 -> 0.5 * x^-0.5 * 1
        self.assertAlmostEqual(derivative_at(expr("x^(1/2)"), 4.0), 0.25)

    def test_unsupported(self):
        for text in ("x^x", "if(x > 0, x, 0)", "exp(x)", "x % 2"):
            with self.subTest(text=text), self.assertRaises(UnsupportedDifferentiation):
                differentiate(expr(text), "x")

    def test_chain_rule_arity(self):
        with self.assertRaises(ArityMismatch):
            differentiate(Call("sin", ()), "x")


class TestAgainstSympy:
    """Compare derivatives numerically with SymPy's."""

    @pytest.mark.parametrize(
        "text",
        [
            "x^3 + 2*x",
            "sin(x) * cos(x)",
            "sqrt(x^2 + 1)",
            "ln(x) / x",
            "tan(3*x)",
            "-x^4",
            "(x + 1)^-2",
            "3 x^2 - 5x + 7",
        ],
    )
    @pytest.mark.parametrize("point", [0.7, 1.3])
    def test_matches_sympy(self, text, point):
        tree = expr(text)
        symbol = sp.Symbol("x")
        expected = float(sp.diff(to_sympy(tree), symbol).subs(symbol, point))
        assert derivative_at(tree, point) == pytest.approx(expected)


class TestUserFunctionInlining:
    """Test inlining of user-defined functions during differentiation."""

    def test_inlines_function_definition(self):
        evaluator = Evaluator()
        assert evaluator.evaluate(parse_program("f(t) = t^2; x = 1; d/dx f(2x)")) == 8.0

    def test_inlines_closure(self):
        body = BinaryOp("^", Variable("t"), Number(3.0))
        functions = {"cube": Closure(("t",), body, {})}
        tree = differentiate(Call("cube", (x,)), "x", functions)
        assert Evaluator({"x": 2.0}).evaluate(tree) == 12.0

    def test_recursive_function_is_rejected(self):
        evaluator = Evaluator()
        evaluator.evaluate(parse_program("rec(n) = rec(n) + 1"))
        with pytest.raises(UnsupportedDifferentiation):
            differentiate(Call("rec", (x,)), "x", evaluator.environment)

    def test_arity_is_checked(self):
        evaluator = Evaluator()
        evaluator.evaluate(parse_program("f(t) = t"))
        with pytest.raises(ArityMismatch):
            differentiate(Call("f", (x, x)), "x", evaluator.environment)

    def test_unknown_function(self):
        with pytest.raises(UnsupportedDifferentiation):
            differentiate(Call("mystery", (x,)), "x")


class TestSubstitute:
    def test_replaces_named_variables(self):
        result = substitute(expr("x + y"), {"x": Number(2.0)})
        assert result == BinaryOp("+", Number(2.0), Variable("y"))

    def test_rewrites_calls_and_conditionals(self):
        result = substitute(expr("if(x > 0, sin(x), 0)"), {"x": Variable("t")})
        assert to_source(result) == "if(t > 0, sin(t), 0)"

    def test_rejects_lambdas(self):
        with pytest.raises(UnsupportedSubstitution):
            substitute(Lambda(("a",), x), {"x": Number(1.0)})


class TestSimplifiedOutput:
    def test_simplify_expression(self):
        assert simplify_expression(differentiate(expr("x^3 + 2*x"), "x")) == "3*x^2 + 2"

    def test_diff_unsimplified(self):
        assert diff("x^2").result == "2 * x^1 * 1"

    def test_diff_function_definition(self):
        assert diff("f(t) = t^3", "t", simplify=True).result == "3*t^2"

    def test_diff_with_setup_statements(self):
        res = diff("f(t) = t^2; f(x) * 3", simplify=True)
        assert res.ok
        assert res.result == "6*x"


if __name__ == "__main__":
    unittest.main()
