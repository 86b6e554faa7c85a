"""Recursive-descent parser.

This module handles:
- Statement recognition (function definitions, assignments, expressions)
- Operator precedence from the conditional operator down to primaries
- Implicit multiplication between adjacent primaries (``2x``, ``pi r^2``)
- Unit suffixes on numeric literals (``60 km/h``, ``9.8 m/s^2``)
- Derivative notation (``d/dx f(x)``), lambdas, conditionals, arrays and
  matrices, indexing and property access

Precedence, lowest to highest::

    ?:  ||  &&  == !=  < > <= >=  + -  * /  ^  unary + -  postfix !
    implicit multiplication  primary

The first unmet expectation raises ``ParseError`` with the position of the
offending token (``-1, -1`` at end of input); there is no error recovery.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from . import ast_nodes as ast
from .config import RESERVED_WORDS
from .logging_config import get_logger
from .tokenizer import Token, tokenize
from .types import ParseError

logger = get_logger("parser")

_NAME_KINDS = ("identifier", "function", "constant", "unit")
_PRIMARY_START_KINDS = frozenset({"number", "identifier", "function", "constant", "unit"})


class Parser:
    """Translate a token list into a ``Block`` of top-level statements."""

    def __init__(self, tokens: Sequence[Token]):
        self.tokens: List[Token] = list(tokens)
        self.pos = 0

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    @property
    def current(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def peek(self, offset: int = 1) -> Optional[Token]:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def match(self, kind: Optional[str] = None, text: Optional[str] = None) -> bool:
        token = self.current
        if token is None:
            return False
        return (kind is None or token.kind == kind) and (text is None or token.text == text)

    def eat(self, kind: Optional[str] = None, text: Optional[str] = None) -> Token:
        """Consume the current token if it matches, else raise ParseError."""
        if self.match(kind, text):
            token = self.current
            self.pos += 1
            return token
        expected = f"'{text}'" if text is not None else (kind or "token")
        raise self._error(expected)

    def _error(self, expected: str) -> ParseError:
        token = self.current
        if token is None:
            return ParseError(f"Unexpected end of input, expected {expected}", -1, -1, expected)
        return ParseError(
            f"Unexpected token '{token.text}', expected {expected}",
            token.line,
            token.column,
            expected,
        )

    def _eat_name(self) -> Token:
        for kind in _NAME_KINDS:
            if self.match(kind):
                return self.eat(kind)
        raise self._error("identifier")

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def parse(self) -> ast.Block:
        """Parse every statement in the token stream.

        Returns:
            Block node holding the top-level statements in order
        """
        statements = []
        while self.current is not None:
            if self.match("semicolon"):
                self.eat("semicolon")
                continue
            statements.append(self.parse_statement())
            if self.match("semicolon"):
                self.eat("semicolon")
        logger.debug("Parsed %d top-level statement(s)", len(statements))
        return ast.Block(tuple(statements))

    def parse_statement(self) -> ast.Node:
        if self.match("brace", "{"):
            return self.parse_block()
        # Built-in names are valid binding targets
        is_name = self.match("identifier") or self.match("function")
        if is_name and self._is_function_definition():
            return self._parse_function_definition()
        next_token = self.peek()
        if is_name and next_token is not None and next_token.kind == "equal":
            target = ast.Variable(self.eat(self.current.kind).text)
            self.eat("equal")
            return ast.Assignment(target, self.parse_expression())
        return self.parse_expression()

    def parse_block(self) -> ast.Block:
        self.eat("brace", "{")
        statements = []
        while not self.match("brace", "}"):
            if self.current is None:
                raise self._error("'}'")
            if self.match("semicolon"):
                self.eat("semicolon")
                continue
            statements.append(self.parse_statement())
            if self.match("semicolon"):
                self.eat("semicolon")
        self.eat("brace", "}")
        return ast.Block(tuple(statements))

    def _is_function_definition(self) -> bool:
        """Look ahead for ``name ( ... ) =`` starting at the current token."""
        opening = self.peek()
        if opening is None or opening.kind != "paren" or opening.text != "(":
            return False
        depth = 0
        index = self.pos + 1
        while index < len(self.tokens):
            token = self.tokens[index]
            if token.kind == "paren":
                depth += 1 if token.text == "(" else -1
                if depth == 0:
                    following = self.tokens[index + 1] if index + 1 < len(self.tokens) else None
                    return following is not None and following.kind == "equal"
            index += 1
        return False

    def _parse_function_definition(self) -> ast.FunctionDefinition:
        name = self.eat(self.current.kind).text
        self.eat("paren", "(")
        params = []
        if not self.match("paren", ")"):
            params.append(self.eat("identifier").text)
            while self.match("comma"):
                self.eat("comma")
                params.append(self.eat("identifier").text)
        self.eat("paren", ")")
        self.eat("equal")
        return ast.FunctionDefinition(name, tuple(params), self.parse_expression())

    # ------------------------------------------------------------------
    # Expressions, lowest precedence first
    # ------------------------------------------------------------------

    def parse_expression(self) -> ast.Node:
        return self.parse_conditional()

    def parse_conditional(self) -> ast.Node:
        condition = self.parse_logical_or()
        if self.match("question"):
            self.eat("question")
            then_branch = self.parse_conditional()
            self.eat("colon")
            return ast.Conditional(condition, then_branch, self.parse_conditional())
        return condition

    def _parse_left_assoc(self, operand: Callable[[], ast.Node], operators: Sequence[str]) -> ast.Node:
        node = operand()
        while any(self.match("operator", op) for op in operators):
            op = self.eat("operator").text
            node = ast.BinaryOp(op, node, operand())
        return node

    def parse_logical_or(self) -> ast.Node:
        return self._parse_left_assoc(self.parse_logical_and, ("||",))

    def parse_logical_and(self) -> ast.Node:
        return self._parse_left_assoc(self.parse_equality, ("&&",))

    def parse_equality(self) -> ast.Node:
        return self._parse_left_assoc(self.parse_relational, ("==", "!="))

    def parse_relational(self) -> ast.Node:
        return self._parse_left_assoc(self.parse_additive, ("<", ">", "<=", ">="))

    def parse_additive(self) -> ast.Node:
        return self._parse_left_assoc(self.parse_multiplicative, ("+", "-"))

    def parse_multiplicative(self) -> ast.Node:
        return self._parse_left_assoc(self.parse_exponent, ("*", "/", "%"))

    def parse_exponent(self) -> ast.Node:
        # Left-to-right chaining, like the additive and multiplicative levels
        return self._parse_left_assoc(self.parse_unary, ("^",))

    def parse_unary(self) -> ast.Node:
        if self.match("operator", "+") or self.match("operator", "-"):
            op = self.eat("operator").text
            return ast.UnaryOp(op, self.parse_unary())
        return self.parse_postfix()

    def parse_postfix(self) -> ast.Node:
        node = self.parse_implicit_multiplication()
        while self.match("operator", "!"):
            self.eat("operator", "!")
            node = ast.UnaryOp("!", node, is_postfix=True)
        return node

    def parse_implicit_multiplication(self) -> ast.Node:
        """Parse ``a b c`` as ``(a * b) * c`` where each operand may carry ``^``.

        An operand's exponent binds to that operand alone, so ``2 x^2`` is
        ``2 * (x^2)``. Implicit multiplication never spans a line break.
        """
        node = self._parse_power_operand()
        while self._starts_implicit_operand():
            node = ast.BinaryOp("*", node, self._parse_power_operand())
        return node

    def _starts_implicit_operand(self) -> bool:
        token = self.current
        if token is None or self.pos == 0:
            return False
        if token.line != self.tokens[self.pos - 1].line:
            return False
        if token.kind in _PRIMARY_START_KINDS:
            return not (token.kind == "identifier" and token.text == "else")
        return (token.kind, token.text) in (("paren", "("), ("bracket", "["), ("brace", "{"))

    def _parse_power_operand(self) -> ast.Node:
        node = self.parse_primary()
        while self.match("operator", "^"):
            self.eat("operator", "^")
            node = ast.BinaryOp("^", node, self._parse_signed_primary())
        return node

    def _parse_signed_primary(self) -> ast.Node:
        if self.match("operator", "+") or self.match("operator", "-"):
            op = self.eat("operator").text
            return ast.UnaryOp(op, self._parse_signed_primary())
        return self.parse_primary()

    # ------------------------------------------------------------------
    # Primaries
    # ------------------------------------------------------------------

    def parse_primary(self) -> ast.Node:
        token = self.current
        if token is None:
            raise self._error("expression")

        if token.kind == "number":
            return self._parse_number()
        if self._at_derivative():
            return self._parse_derivative()
        if token.kind == "identifier" and token.text == "if":
            return self._parse_if()
        if token.kind in ("identifier", "function"):
            return self._parse_name()
        if token.kind == "constant":
            return self._parse_property_chain(ast.Variable(self.eat("constant").text))
        if token.kind == "unit":
            return ast.Unit(ast.Number(1.0), self._parse_unit_text())
        if self.match("paren", "("):
            self.eat("paren", "(")
            node = self.parse_expression()
            self.eat("paren", ")")
            return self._parse_property_chain(node)
        if self.match("bracket", "["):
            return self._parse_array()
        if self.match("brace", "{"):
            return self.parse_block()
        if token.kind == "arrow":
            return self._parse_lambda()
        if token.kind == "string":
            return ast.String(self.eat("string").text)
        raise self._error("expression")

    def _parse_number(self) -> ast.Node:
        token = self.eat("number")
        value = float(token.text)
        if self._at_imaginary_suffix():
            self.eat("operator", "*")
            self.eat("constant", "i")
            return ast.ComplexLiteral(ast.Number(0.0), ast.Number(value))
        if self.match("unit"):
            return ast.Unit(ast.Number(value), self._parse_unit_text())
        return ast.Number(value)

    def _at_imaginary_suffix(self) -> bool:
        # The scanner gives the '*' it inserts in "4i" the position of the 'i'
        star, imag = self.current, self.peek()
        return (
            star is not None
            and imag is not None
            and star.kind == "operator"
            and star.text == "*"
            and imag.kind == "constant"
            and imag.text == "i"
            and (star.line, star.column) == (imag.line, imag.column)
        )

    def _parse_unit_text(self) -> str:
        """Consume ``unit [^n] ([*/] unit [^n])*`` and return it as unit text."""
        text = self._parse_unit_factor()
        while (self.match("operator", "/") or self.match("operator", "*")) and self._peek_is_unit():
            op = self.eat("operator").text
            text += op + self._parse_unit_factor()
        return text

    def _parse_unit_factor(self) -> str:
        text = self.eat("unit").text
        if self.match("operator", "^"):
            following = self.peek()
            negative = following is not None and following.text == "-"
            exponent = self.peek(2) if negative else following
            if exponent is not None and exponent.kind == "number" and exponent.text.isdigit():
                self.eat("operator", "^")
                if negative:
                    self.eat("operator", "-")
                text += "^" + ("-" if negative else "") + self.eat("number").text
        return text

    def _peek_is_unit(self) -> bool:
        following = self.peek()
        return following is not None and following.kind == "unit"

    def _at_derivative(self) -> bool:
        slash, denominator = self.peek(), self.peek(2)
        return (
            self.match("identifier", "d")
            and slash is not None
            and slash.kind == "operator"
            and slash.text == "/"
            and denominator is not None
            and denominator.kind == "identifier"
            and denominator.text.startswith("d")
        )

    def _parse_derivative(self) -> ast.Derivative:
        self.eat("identifier", "d")
        self.eat("operator", "/")
        denominator = self.eat("identifier").text
        variable = denominator[1:] if len(denominator) > 1 else self._eat_name().text
        if self.match("paren", "("):
            self.eat("paren", "(")
            expression = self.parse_expression()
            self.eat("paren", ")")
        else:
            expression = self.parse_expression()
        return ast.Derivative(variable, expression)

    def _parse_if(self) -> ast.Conditional:
        self.eat("identifier", "if")
        self.eat("paren", "(")
        condition = self.parse_expression()
        if self.match("comma"):
            # if(condition, then, else)
            self.eat("comma")
            then_branch = self.parse_expression()
            self.eat("comma")
            else_branch = self.parse_expression()
            self.eat("paren", ")")
            return ast.Conditional(condition, then_branch, else_branch)
        # if (condition) then else otherwise
        self.eat("paren", ")")
        then_branch = self.parse_expression()
        self.eat("identifier", "else")
        return ast.Conditional(condition, then_branch, self.parse_expression())

    def _parse_name(self) -> ast.Node:
        token = self.eat(self.current.kind)
        if token.text in RESERVED_WORDS:
            self.pos -= 1
            raise self._error("expression")
        node: ast.Node
        if self.match("paren", "("):
            node = ast.Call(token.text, self._parse_arguments())
        else:
            node = ast.Variable(token.text)
        while True:
            if self.match("operator", "."):
                self.eat("operator", ".")
                node = ast.PropertyAccess(node, self._eat_name().text)
            elif self.match("bracket", "["):
                self.eat("bracket", "[")
                index = self.parse_expression()
                self.eat("bracket", "]")
                node = ast.BinaryOp("[]", node, index)
            else:
                return node

    def _parse_property_chain(self, node: ast.Node) -> ast.Node:
        while self.match("operator", "."):
            self.eat("operator", ".")
            node = ast.PropertyAccess(node, self._eat_name().text)
        return node

    def _parse_arguments(self) -> tuple:
        self.eat("paren", "(")
        args = []
        if not self.match("paren", ")"):
            args.append(self.parse_expression())
            while self.match("comma"):
                self.eat("comma")
                args.append(self.parse_expression())
        self.eat("paren", ")")
        return tuple(args)

    def _parse_array(self) -> ast.Node:
        self.eat("bracket", "[")
        elements = []
        if not self.match("bracket", "]"):
            elements.append(self.parse_expression())
            while self.match("comma"):
                self.eat("comma")
                elements.append(self.parse_expression())
        self.eat("bracket", "]")
        if elements and all(isinstance(element, ast.Array) for element in elements):
            return ast.Matrix(tuple(element.elements for element in elements))
        return ast.Array(tuple(elements))

    def _parse_lambda(self) -> ast.Lambda:
        self.eat("arrow")
        params = []
        if self.match("paren", "("):
            self.eat("paren", "(")
            if not self.match("paren", ")"):
                params.append(self.eat("identifier").text)
                while self.match("comma"):
                    self.eat("comma")
                    params.append(self.eat("identifier").text)
            self.eat("paren", ")")
        else:
            params.append(self.eat("identifier").text)
        return ast.Lambda(tuple(params), self.parse_expression())


def parse_program(text: str) -> ast.Block:
    """Tokenize and parse source text.

    Args:
        text: Program source (statements separated by ';' or newlines)

    Returns:
        Block node of top-level statements

    Raises:
        LexError, ParseError, ValidationError
    """
    return Parser(tokenize(text)).parse()
