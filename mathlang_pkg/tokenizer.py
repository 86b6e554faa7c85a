"""Lexical scanner.

Turns source text into a list of ``Token`` records ``(kind, text, line,
column)`` with 1-based positions of each token's first character. Beyond
plain scanning the scanner:

- merges a number immediately followed by a unit symbol into
  ``number, unit`` tokens,
- merges a number immediately followed by any other identifier into
  ``number, '*', identifier`` (the synthesized ``*`` carries the
  identifier's position),
- classifies bare identifiers as ``constant``, ``function``, ``unit`` or
  ``identifier`` using the registries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from . import config
from .constants import BUILTIN_FUNCTIONS, CONSTANTS
from .types import LexError, ValidationError
from .units import DEFAULT_UNITS, UnitRegistry

_TWO_CHAR_OPERATORS = ("==", "!=", "<=", ">=", "&&", "||")
_ONE_CHAR_OPERATORS = "+-*/^%!<>."
_SINGLE_CHAR_KINDS = {
    "(": "paren",
    ")": "paren",
    "[": "bracket",
    "]": "bracket",
    "{": "brace",
    "}": "brace",
    ",": "comma",
    ";": "semicolon",
    "?": "question",
    ":": "colon",
}


@dataclass(frozen=True)
class Token:
    """A scanned token with the position of its first character."""

    kind: str
    text: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.kind}({self.text!r}) at {self.line}:{self.column}"


def classify_identifier(name: str, units: UnitRegistry = DEFAULT_UNITS) -> str:
    """Return the token kind of a bare identifier."""
    if name in CONSTANTS:
        return "constant"
    if name in BUILTIN_FUNCTIONS:
        return "function"
    if name in units:
        return "unit"
    return "identifier"


def _is_identifier_start(char: str) -> bool:
    return char.isalpha() or char == "_"


def _is_identifier_char(char: str) -> bool:
    return char.isalnum() or char == "_"


class _Scanner:
    def __init__(self, text: str, units: UnitRegistry):
        self.text = text
        self.units = units
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []

    def peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else ""

    def advance(self, count: int = 1) -> str:
        consumed = self.text[self.pos : self.pos + count]
        for char in consumed:
            if char == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        self.pos += count
        return consumed

    def emit(self, kind: str, text: str, line: int, column: int) -> None:
        self.tokens.append(Token(kind, text, line, column))

    def scan(self) -> List[Token]:
        while self.pos < len(self.text):
            char = self.peek()
            line, column = self.line, self.column

            if char.isspace():
                self.advance()
            elif char == "/" and self.peek(1) == "/":
                while self.pos < len(self.text) and self.peek() != "\n":
                    self.advance()
            elif char == "/" and self.peek(1) == "*":
                self._skip_block_comment(line, column)
            elif char.isdigit() or (char == "." and self.peek(1).isdigit()):
                self._scan_number()
            elif _is_identifier_start(char):
                name = self._read_identifier()
                self.emit(classify_identifier(name, self.units), name, line, column)
            elif char == "'":
                self._scan_string(line, column)
            elif char == "-" and self.peek(1) == ">":
                self.emit("arrow", self.advance(2), line, column)
            elif self.text.startswith(_TWO_CHAR_OPERATORS, self.pos):
                self.emit("operator", self.advance(2), line, column)
            elif char == "=":
                self.emit("equal", self.advance(), line, column)
            elif char in _ONE_CHAR_OPERATORS:
                self.emit("operator", self.advance(), line, column)
            elif char in _SINGLE_CHAR_KINDS:
                self.emit(_SINGLE_CHAR_KINDS[char], self.advance(), line, column)
            else:
                raise LexError(f"Unrecognized character '{char}'", line, column)
        return self.tokens

    def _skip_block_comment(self, line: int, column: int) -> None:
        self.advance(2)
        while self.pos < len(self.text) and not (self.peek() == "*" and self.peek(1) == "/"):
            self.advance()
        if self.pos >= len(self.text):
            raise LexError("Unterminated block comment", line, column)
        self.advance(2)

    def _read_identifier(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and _is_identifier_char(self.peek()):
            self.advance()
        return self.text[start : self.pos]

    def _scan_number(self) -> None:
        line, column = self.line, self.column
        start = self.pos
        while self.peek().isdigit():
            self.advance()
        if self.peek() == "." and self.peek(1).isdigit():
            self.advance()
            while self.peek().isdigit():
                self.advance()
        self.emit("number", self.text[start : self.pos], line, column)

        if _is_identifier_start(self.peek()):
            ident_line, ident_column = self.line, self.column
            name = self._read_identifier()
            if name in self.units:
                self.emit("unit", name, ident_line, ident_column)
            else:
                self.emit("operator", "*", ident_line, ident_column)
                self.emit(classify_identifier(name, self.units), name, ident_line, ident_column)

    def _scan_string(self, line: int, column: int) -> None:
        self.advance()
        start = self.pos
        while self.pos < len(self.text) and self.peek() != "'":
            self.advance()
        if self.pos >= len(self.text):
            raise LexError("Unterminated string literal", line, column)
        value = self.text[start : self.pos]
        self.advance()
        self.emit("string", value, line, column)


def tokenize(text: str, units: UnitRegistry = DEFAULT_UNITS) -> List[Token]:
    """Scan source text into tokens.

    Args:
        text: Program source
        units: Unit registry used to recognise unit symbols

    Returns:
        Ordered list of tokens

    Raises:
        ValidationError: if the input exceeds MAX_INPUT_LENGTH
        LexError: on an unrecognized character or unterminated string/comment
    """
    if len(text) > config.MAX_INPUT_LENGTH:
        raise ValidationError(
            f"Input too long (max {config.MAX_INPUT_LENGTH} characters)", code="TOO_LONG"
        )
    return _Scanner(text, units).scan()
