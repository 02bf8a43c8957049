"""Tokenizer for rule expressions.

A rule expression is a short formula over one object, for example
``#isEven(first) and @registry.isValid(second) ?: false``. The lexer turns
it into a flat token stream ending in EOF.

Keywords (``true``, ``null``, ``and``, ``not in``, ``matches`` ...) are
case-insensitive, and only count as keywords where an operand or operator
is expected. Directly after ``#``, ``@``, ``.`` or ``?.`` every word is a
name, so ``#not``, ``@in`` and ``record.matches`` reach the parser as
identifiers.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator


class TokenType(Enum):
    """Kinds of tokens produced by the Lexer."""

    NUMBER = auto()
    STRING = auto()
    BOOLEAN = auto()
    NULL = auto()
    IDENTIFIER = auto()

    EQ = auto()
    NEQ = auto()
    LT = auto()
    LTE = auto()
    GT = auto()
    GTE = auto()
    MATCHES = auto()

    AND = auto()
    OR = auto()
    NOT = auto()
    IN = auto()
    NOT_IN = auto()

    PLUS = auto()
    MINUS = auto()
    MULTIPLY = auto()
    DIVIDE = auto()
    MODULO = auto()

    QUESTION = auto()
    ELVIS = auto()
    HASH = auto()
    AT = auto()

    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LBRACE = auto()
    RBRACE = auto()
    COMMA = auto()
    DOT = auto()
    SAFE_DOT = auto()
    COLON = auto()

    EOF = auto()


@dataclass(frozen=True)
class Token:
    """One lexical token.

    Attributes:
        type: Token kind
        value: Parsed value for literals, the name for identifiers, the
            source text for operators
        position: Offset of the first character in the source
        line: 1-based line of the first character
        column: 1-based column of the first character
    """

    type: TokenType
    value: str | int | float | bool | None
    position: int
    line: int = 1
    column: int = 1

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, pos={self.position})"


class LexerError(Exception):
    """Raised for characters that start no token."""

    def __init__(self, message: str, position: int, line: int = 1, column: int = 1):
        self.position = position
        self.line = line
        self.column = column
        super().__init__(f"{message} at line {line}, column {column}")


# Alternatives are tried in order: two-character operators precede their
# one-character prefixes, floats precede integers, words come last.
_TOKEN_SPEC: list[tuple[str, str, TokenType | None]] = [
    ("SPACE", r"\s+", None),
    ("EQ", r"==", TokenType.EQ),
    ("NEQ", r"!=", TokenType.NEQ),
    ("LTE", r"<=", TokenType.LTE),
    ("GTE", r">=", TokenType.GTE),
    ("AND", r"&&", TokenType.AND),
    ("OR", r"\|\|", TokenType.OR),
    ("SAFE_DOT", r"\?\.", TokenType.SAFE_DOT),
    ("ELVIS", r"\?:", TokenType.ELVIS),
    ("LT", r"<", TokenType.LT),
    ("GT", r">", TokenType.GT),
    ("NOT", r"!", TokenType.NOT),
    ("PLUS", r"\+", TokenType.PLUS),
    ("MINUS", r"-", TokenType.MINUS),
    ("MULTIPLY", r"\*", TokenType.MULTIPLY),
    ("DIVIDE", r"/", TokenType.DIVIDE),
    ("MODULO", r"%", TokenType.MODULO),
    ("QUESTION", r"\?", TokenType.QUESTION),
    ("HASH", r"\#", TokenType.HASH),
    ("AT", r"@", TokenType.AT),
    ("LPAREN", r"\(", TokenType.LPAREN),
    ("RPAREN", r"\)", TokenType.RPAREN),
    ("LBRACKET", r"\[", TokenType.LBRACKET),
    ("RBRACKET", r"\]", TokenType.RBRACKET),
    ("LBRACE", r"\{", TokenType.LBRACE),
    ("RBRACE", r"\}", TokenType.RBRACE),
    ("COMMA", r",", TokenType.COMMA),
    ("DOT", r"\.", TokenType.DOT),
    ("COLON", r":", TokenType.COLON),
    ("FLOAT", r"\d+\.\d+", TokenType.NUMBER),
    ("INTEGER", r"\d+", TokenType.NUMBER),
    ("DQ_STRING", r'"(?:[^"\\]|\\.)*"', TokenType.STRING),
    ("SQ_STRING", r"'(?:[^'\\]|\\.)*'", TokenType.STRING),
    ("WORD", r"[a-zA-Z_][a-zA-Z0-9_]*", TokenType.IDENTIFIER),
]

_TOKEN_RE = re.compile("|".join(f"(?P<{group}>{pattern})" for group, pattern, _ in _TOKEN_SPEC))
_TOKEN_TYPES = {group: token_type for group, _, token_type in _TOKEN_SPEC}

_KEYWORDS: dict[str, tuple[TokenType, str | bool | None]] = {
    "true": (TokenType.BOOLEAN, True),
    "false": (TokenType.BOOLEAN, False),
    "null": (TokenType.NULL, None),
    "and": (TokenType.AND, "and"),
    "or": (TokenType.OR, "or"),
    "not": (TokenType.NOT, "not"),
    "in": (TokenType.IN, "in"),
    "matches": (TokenType.MATCHES, "matches"),
}

_NAME_CONTEXT = frozenset({TokenType.HASH, TokenType.AT, TokenType.DOT, TokenType.SAFE_DOT})

_IN_AFTER_NOT = re.compile(r"\s+in\b", re.IGNORECASE)
_ESCAPE = re.compile(r"\\(.)", re.DOTALL)
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}


class Lexer:
    """Splits an expression into tokens.

    Usage:
        tokens = Lexer("#isEven(first) && @registry.knows(second)").tokenize()
    """

    def __init__(self, source: str):
        self.source = source

    def __iter__(self) -> Iterator[Token]:
        previous: TokenType | None = None
        position = 0

        while position < len(self.source):
            match = _TOKEN_RE.match(self.source, position)
            if match is None:
                raise LexerError(
                    f"Unexpected character '{self.source[position]}'",
                    position,
                    *self._line_column(position),
                )

            group = match.lastgroup
            token_type = _TOKEN_TYPES[group]
            text = match.group()
            end = match.end()

            if token_type is not None:
                value: str | int | float | bool | None = text
                if group == "FLOAT":
                    value = float(text)
                elif group == "INTEGER":
                    value = int(text)
                elif token_type == TokenType.STRING:
                    value = _ESCAPE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), text[1:-1])
                elif group == "WORD" and previous not in _NAME_CONTEXT:
                    token_type, value, end = self._keyword(text, token_type, end)

                yield Token(token_type, value, position, *self._line_column(position))
                previous = token_type

            position = end

        yield Token(TokenType.EOF, None, len(self.source), *self._line_column(len(self.source)))

    def tokenize(self) -> list[Token]:
        """Tokenize the whole source, EOF token included."""
        return list(self)

    def _keyword(
        self, word: str, token_type: TokenType, end: int
    ) -> tuple[TokenType, str | bool | None, int]:
        keyword = _KEYWORDS.get(word.lower())
        if keyword is None:
            return token_type, word, end

        if keyword[0] == TokenType.NOT:
            follow = _IN_AFTER_NOT.match(self.source, end)
            if follow is not None:
                return TokenType.NOT_IN, "not in", follow.end()

        return keyword[0], keyword[1], end

    def _line_column(self, position: int) -> tuple[int, int]:
        line = self.source.count("\n", 0, position) + 1
        column = position - self.source.rfind("\n", 0, position)
        return line, column
