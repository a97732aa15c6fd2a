"""Token access, error handling and pattern parsing shared by both grammars."""

from __future__ import annotations

from typing import NoReturn

from bendfront.ast_nodes import (
    CtrPattern,
    NumPattern,
    Pattern,
    SupPattern,
    TuplePattern,
    UnscopedPattern,
    VarPattern,
    WildcardPattern,
)
from bendfront.errors import Diagnostic, ErrorKind, make_error
from bendfront.lexer import number_value
from bendfront.source import Span
from bendfront.term import NumKind
from bendfront.tokens import Token, TokenKind


class _ParseError(Exception):
    """Internal exception for parser error recovery."""


class BaseParser:
    """Cursor over a token list with the helpers every grammar needs."""

    def __init__(self, tokens: list[Token], filename: str = "<stdin>") -> None:
        self.tokens = tokens
        self.pos = 0
        self.filename = filename
        self.diagnostics: list[Diagnostic] = []
        self._last: Token | None = None

    # ── Token access ─────────────────────────────────────────────

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def _at(self, kind: TokenKind) -> bool:
        return self._current().kind == kind

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        self._last = tok
        return tok

    def _expect(self, kind: TokenKind, what: str | None = None) -> Token:
        if self._current().kind == kind:
            return self._advance()
        tok = self._current()
        expected = what or kind.name
        self._error(f"expected {expected}, got {tok.kind.name} ({tok.value!r})", tok.span)

    def _error(self, message: str, span: Span) -> NoReturn:
        self.diagnostics.append(make_error(ErrorKind.PARSE, message, span))
        raise _ParseError

    def _end_span(self) -> Span:
        tok = self._last if self._last is not None else self._current()
        return tok.span

    # ── Names ────────────────────────────────────────────────────

    def _check_name(self, tok: Token) -> str:
        if "__" in tok.value:
            self._error(
                f"name {tok.value!r} contains '__', which is reserved for generated names",
                tok.span,
            )
        return tok.value

    def _expect_name(self, what: str = "a name") -> str:
        return self._check_name(self._expect(TokenKind.NAME, what))

    # ── Literals ─────────────────────────────────────────────────

    def _switch_label(self) -> int | None:
        """Parse a switch case label: a u24 number or ``_``."""
        tok = self._current()
        if tok.kind == TokenKind.NAME and tok.value == "_":
            self._advance()
            return None
        if tok.kind == TokenKind.NUMBER:
            kind, value = number_value(tok.value)
            if kind is NumKind.U24:
                self._advance()
                return int(value)
        self._error(f"expected a switch case number or '_', got {tok.value!r}", tok.span)

    def _match_label(self) -> str | None:
        """Parse a match/fold case label: a constructor name or ``_``."""
        tok = self._expect(TokenKind.NAME, "a constructor name or '_'")
        if tok.value == "_":
            return None
        return self._check_name(tok)

    # ── Patterns ─────────────────────────────────────────────────

    def _parse_pattern(self, *, refutable: bool) -> Pattern:
        """Parse a pattern.

        Functional rule heads accept constructor and number patterns
        (``refutable=True``); lambdas, ``let`` and assignments do not.
        """
        tok = self._current()

        if tok.kind == TokenKind.STAR:
            self._advance()
            return WildcardPattern(tok.span)

        if tok.kind == TokenKind.NAME:
            self._advance()
            if tok.value == "_":
                return WildcardPattern(tok.span)
            return VarPattern(self._check_name(tok), tok.span)

        if tok.kind == TokenKind.DOLLAR:
            self._advance()
            name = self._expect_name()
            return UnscopedPattern(name, tok.span.to(self._end_span()))

        if tok.kind == TokenKind.NUMBER:
            if not refutable:
                self._error("number patterns are only allowed in rule heads", tok.span)
            kind, value = number_value(tok.value)
            if kind is not NumKind.U24:
                self._error(f"number pattern must be an unsigned integer: {tok.value}",
                            tok.span)
            self._advance()
            return NumPattern(int(value), tok.span)

        if tok.kind == TokenKind.LBRACE:
            self._advance()
            elems = self._pattern_sequence(TokenKind.RBRACE, refutable=refutable)
            end = self._expect(TokenKind.RBRACE, "'}'")
            if len(elems) < 2:
                self._error("superposition pattern needs at least 2 elements", tok.span)
            return SupPattern(elems, tok.span.to(end.span))

        if tok.kind == TokenKind.LPAREN:
            return self._parse_paren_pattern(refutable=refutable)

        self._error(f"expected pattern, got {tok.kind.name} ({tok.value!r})", tok.span)

    def _pattern_sequence(self, close: TokenKind, *, refutable: bool) -> list[Pattern]:
        elems: list[Pattern] = []
        while not self._at(close) and not self._at(TokenKind.EOF):
            elems.append(self._parse_pattern(refutable=refutable))
            if self._at(TokenKind.COMMA):
                self._advance()
        return elems

    def _parse_paren_pattern(self, *, refutable: bool) -> Pattern:
        start = self._advance()  # (
        first = self._parse_pattern(refutable=refutable)

        if self._at(TokenKind.COMMA):
            elems = [first]
            while self._at(TokenKind.COMMA):
                self._advance()
                elems.append(self._parse_pattern(refutable=refutable))
            end = self._expect(TokenKind.RPAREN, "')'")
            return TuplePattern(elems, start.span.to(end.span))

        if isinstance(first, VarPattern) and refutable:
            args: list[Pattern] = []
            while not self._at(TokenKind.RPAREN) and not self._at(TokenKind.EOF):
                args.append(self._parse_pattern(refutable=True))
            end = self._expect(TokenKind.RPAREN, "')'")
            return CtrPattern(first.name, args, start.span.to(end.span))

        self._expect(TokenKind.RPAREN, "')'")
        return first
