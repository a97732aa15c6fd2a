"""Entry point of the surface parsers.

Each top-level declaration picks its own surface: ``def``, ``type Name:``
and ``object`` are imperative; ``data``, ``type Name =`` and equations
are functional. Both kinds may be mixed freely within one unit.
"""

from __future__ import annotations

from bendfront.ast_nodes import Declaration, FunDef, Program, Rule
from bendfront.errors import CompileError
from bendfront.fun_parser import FunParser
from bendfront.imp_parser import ImpParser
from bendfront.lexer import Lexer
from bendfront.parser_base import _ParseError
from bendfront.source import Span
from bendfront.tokens import TokenKind


class Parser(ImpParser, FunParser):
    """Parses a list of tokens into a surface-AST Program."""

    def parse(self) -> Program:
        """Parse every declaration, recovering at the next column-1 token.

        Diagnostics are left in ``self.diagnostics``; declarations that
        parsed cleanly are returned even when others failed.
        """
        declarations: list[Declaration] = []
        pending: tuple[str, list[Rule], Span] | None = None

        def flush() -> None:
            nonlocal pending
            if pending is not None:
                name, rules, span = pending
                declarations.append(FunDef(name, rules, span.to(rules[-1].span)))
                pending = None

        while not self._at(TokenKind.EOF):
            start = self.pos
            try:
                tok = self._current()
                if tok.kind in (TokenKind.NAME, TokenKind.LPAREN):
                    name, rule = self._parse_rule()
                    if pending is not None and pending[0] == name:
                        pending[1].append(rule)
                    else:
                        flush()
                        pending = (name, [rule], rule.span)
                    continue
                flush()
                declarations.append(self._parse_declaration())
            except _ParseError:
                flush()
                self._synchronize(start)
        flush()

        end = self._current().span
        span = Span(self.filename, 1, 1, end.end_line, end.end_col)
        return Program(declarations, span)

    def _parse_declaration(self) -> Declaration:
        tok = self._current()

        if tok.kind == TokenKind.DEF:
            return self._parse_imp_def()
        if tok.kind == TokenKind.OBJECT:
            return self._parse_object()
        if tok.kind == TokenKind.DATA:
            return self._parse_fun_type()
        if tok.kind == TokenKind.TYPE:
            if self._peek(2).kind == TokenKind.ASSIGN:
                return self._parse_fun_type()
            return self._parse_imp_type()

        self._error(f"unexpected token at top level: {tok.kind.name} ({tok.value!r})",
                    tok.span)

    def _synchronize(self, start: int) -> None:
        """Skip tokens until the next one that starts in column 1."""
        if self.pos == start:
            self._advance()
        while not self._at(TokenKind.EOF) and self._current().span.start_col != 1:
            self._advance()


def parse(source: str, filename: str = "<stdin>") -> Program:
    """Lex and parse ``source``, raising CompileError on any diagnostic."""
    tokens = Lexer(source, filename).lex()
    parser = Parser(tokens, filename)
    program = parser.parse()
    if parser.diagnostics:
        raise CompileError(parser.diagnostics)
    return program
