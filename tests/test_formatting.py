"""Unit tests for value and syntax tree rendering."""

import unittest

import pytest

from mathlang_pkg import config
from mathlang_pkg.ast_nodes import BinaryOp, Number, UnaryOp, Variable, dump
from mathlang_pkg.formatting import (
    format_complex,
    format_number,
    format_superscript,
    format_value,
    superscriptify,
    to_source,
)
from mathlang_pkg.parser import parse_program
from mathlang_pkg.units import UnitValue


def expr(text):
    (statement,) = parse_program(text).statements
    return statement


class TestFormatNumber(unittest.TestCase):
    """Test number formatting."""

    def test_integral_values(self):
        self.assertEqual(format_number(3.0), "3")
        self.assertEqual(format_number(-12.0), "-12")

    def test_precision(self):
        self.assertEqual(format_number(0.1 + 0.2), "0.3")
        self.assertEqual(format_number(2 / 3, 3), "0.667")
        self.assertEqual(format_number(1e20), "1e+20")

    def test_negative_zero(self):
        self.assertEqual(format_number(-0.0), "0")

    def test_reads_configured_precision(self):
        original = config.OUTPUT_PRECISION
        config.OUTPUT_PRECISION = 4
        try:
            self.assertEqual(format_number(3.14159265), "3.142")
        finally:
            config.OUTPUT_PRECISION = original


class TestFormatValue(unittest.TestCase):
    """Test rendering of runtime values."""

    def test_complex(self):
        self.assertEqual(format_complex(3 + 4j), "3 + 4i")
        self.assertEqual(format_complex(3 - 4j), "3 - 4i")
        self.assertEqual(format_complex(2j), "2i")
        self.assertEqual(format_complex(-2j), "-2i")

    def test_scalars(self):
        self.assertEqual(format_value(None), "none")
        self.assertEqual(format_value(True), "true")
        self.assertEqual(format_value(False), "false")
        self.assertEqual(format_value("abc"), "abc")

    def test_nested_lists(self):
        self.assertEqual(format_value([1.0, [2.0, 3.5]]), "[1, [2, 3.5]]")

    def test_unit_values(self):
        self.assertEqual(format_value(UnitValue(2.0, {"m": 1, "s": -1})), "2 m/s")
        self.assertEqual(format_value(UnitValue(2.5, {})), "2.5")


class TestSuperscripts:
    def test_superscriptify(self):
        assert superscriptify("-15") == "⁻¹⁵"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("m/s^2", "m/s²"),
            ("x^-3", "x⁻³"),
            ("x^12 + 1", "x¹² + 1"),
            ("2^0.5", "2^0.5"),
            ("no powers", "no powers"),
        ],
    )
    def test_format_superscript(self, text, expected):
        assert format_superscript(text) == expected


class TestToSource:
    """Test rendering syntax trees back to source."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2 x^2", "2 * x^2"),
            ("(1 + 2) * 3", "(1 + 2) * 3"),
            ("1 - (2 - 3)", "1 - (2 - 3)"),
            ("(-x)^2", "(-x)^2"),
            ("-x^2", "-(x^2)"),
            ("2^3^2", "(2^3)^2"),
            ("(3 m)^2", "(3 m)^2"),
            ("if (x > 0) 1 else 2", "if(x > 0, 1, 2)"),
            ("->(a) a + 1", "->(a) a + 1"),
            ("d/dx (x^2)", "d/dx(x^2)"),
            ("{ a = 1; a }", "{ a = 1; a }"),
            ("'hi'", "'hi'"),
            ("4i", "4i"),
            ("[[1, 2], [3, 4]]", "[[1, 2], [3, 4]]"),
            ("z.real + a[0]", "z.real + a[0]"),
            ("5!", "5!"),
            ("f(x, y) = x * y", "f(x, y) = x * y"),
        ],
    )
    def test_rendering(self, text, expected):
        assert to_source(expr(text)) == expected

    def test_negative_number_exponent(self):
        assert to_source(BinaryOp("^", Variable("x"), Number(-3.0))) == "x^(-3)"

    @pytest.mark.parametrize(
        "text",
        [
            "2 x^2 + 3x - 1",
            "(-x)^2",
            "-x^2",
            "2^3^2",
            "(3 m)^2",
            "a[1] * b.real",
            "f(x, 2) / (1 + y)",
            "x > 0 ? 1 : 2",
            "(1 + 2i) * 3",
            "-3",
        ],
    )
    def test_reparses_to_equal_tree(self, text):
        tree = expr(text)
        assert expr(to_source(tree)) == tree


class TestDump:
    def test_postfix_label(self):
        assert dump(UnaryOp("!", Number(5.0), is_postfix=True)) == "UnaryOp ! (postfix)\n  Number 5.0"

    def test_nested_indent(self):
        assert dump(expr("sin(x)")) == "Call sin\n  Variable x"


if __name__ == "__main__":
    unittest.main()
