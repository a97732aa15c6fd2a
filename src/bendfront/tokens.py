"""Token kinds and token representation for the bendfront lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bendfront.source import Span


class TokenKind(Enum):
    # Declarations
    DEF = auto()
    TYPE = auto()
    OBJECT = auto()
    DATA = auto()

    # Keywords
    RETURN = auto()
    IF = auto()
    ELIF = auto()
    ELSE = auto()
    SWITCH = auto()
    MATCH = auto()
    FOLD = auto()
    BEND = auto()
    WHEN = auto()
    CASE = auto()
    OPEN = auto()
    DO = auto()
    ASK = auto()
    LAMBDA = auto()
    LET = auto()
    FOR = auto()
    IN = auto()

    # Literals
    NUMBER = auto()
    STRING = auto()
    CHAR = auto()
    SYMBOL = auto()
    NAT = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PERCENT = auto()
    POW = auto()
    EQUAL = auto()
    NOT_EQUAL = auto()
    LESS = auto()
    GREATER = auto()
    LESS_EQUAL = auto()
    GREATER_EQUAL = auto()
    AMP = auto()
    PIPE = auto()
    CARET = auto()
    SHL = auto()
    SHR = auto()
    PLUS_ASSIGN = auto()
    MINUS_ASSIGN = auto()
    STAR_ASSIGN = auto()
    SLASH_ASSIGN = auto()
    PERCENT_ASSIGN = auto()
    ASSIGN = auto()
    LARROW = auto()

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LBRACE = auto()
    RBRACE = auto()
    COMMA = auto()
    COLON = auto()
    SEMICOLON = auto()
    TILDE = auto()
    DOLLAR = auto()
    LAMBDA_SIGN = auto()

    # Identifiers
    NAME = auto()

    # Special
    EOF = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    span: Span
    codepoints: tuple[int, ...] = ()


KEYWORDS: dict[str, TokenKind] = {
    "def": TokenKind.DEF,
    "type": TokenKind.TYPE,
    "object": TokenKind.OBJECT,
    "data": TokenKind.DATA,
    "return": TokenKind.RETURN,
    "if": TokenKind.IF,
    "elif": TokenKind.ELIF,
    "else": TokenKind.ELSE,
    "switch": TokenKind.SWITCH,
    "match": TokenKind.MATCH,
    "fold": TokenKind.FOLD,
    "bend": TokenKind.BEND,
    "when": TokenKind.WHEN,
    "case": TokenKind.CASE,
    "open": TokenKind.OPEN,
    "do": TokenKind.DO,
    "ask": TokenKind.ASK,
    "lambda": TokenKind.LAMBDA,
    "let": TokenKind.LET,
    "for": TokenKind.FOR,
    "in": TokenKind.IN,
}

# Binary operators and their source spelling.
BINARY_OPERATORS: dict[TokenKind, str] = {
    TokenKind.PLUS: "+",
    TokenKind.MINUS: "-",
    TokenKind.STAR: "*",
    TokenKind.SLASH: "/",
    TokenKind.PERCENT: "%",
    TokenKind.POW: "**",
    TokenKind.EQUAL: "==",
    TokenKind.NOT_EQUAL: "!=",
    TokenKind.LESS: "<",
    TokenKind.GREATER: ">",
    TokenKind.LESS_EQUAL: "<=",
    TokenKind.GREATER_EQUAL: ">=",
    TokenKind.AMP: "&",
    TokenKind.PIPE: "|",
    TokenKind.CARET: "^",
    TokenKind.SHL: "<<",
    TokenKind.SHR: ">>",
}

IN_PLACE_OPERATORS: dict[TokenKind, str] = {
    TokenKind.PLUS_ASSIGN: "+",
    TokenKind.MINUS_ASSIGN: "-",
    TokenKind.STAR_ASSIGN: "*",
    TokenKind.SLASH_ASSIGN: "/",
    TokenKind.PERCENT_ASSIGN: "%",
}

# Tokens after which a sign belongs to the next operand rather than
# starting a signed literal.
VALUE_TOKENS: frozenset[TokenKind] = frozenset({
    TokenKind.NAME,
    TokenKind.NUMBER,
    TokenKind.STRING,
    TokenKind.CHAR,
    TokenKind.SYMBOL,
    TokenKind.NAT,
    TokenKind.RPAREN,
    TokenKind.RBRACKET,
    TokenKind.RBRACE,
})
