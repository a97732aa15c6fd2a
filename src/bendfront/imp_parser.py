"""Grammar of the imperative surface: ``def`` blocks, statements and
Python-like expressions.

Blocks follow a ``:`` and are either a single statement on the same line
or an indented run of statements that all start in the same column.
Infix operators continue an expression across a line break only inside
brackets.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from bendfront.ast_nodes import (
    Arg,
    AssignStmt,
    BendBinding,
    BendStmt,
    BinaryExpr,
    CallExpr,
    CharLit,
    ComprehensionExpr,
    CtrDecl,
    DoStep,
    DoStmt,
    EraExpr,
    Expr,
    FieldDecl,
    FoldStmt,
    IfStmt,
    ImpDef,
    InPlaceOpStmt,
    LambdaExpr,
    ListExpr,
    MatchCase,
    MatchStmt,
    NatLit,
    NumLit,
    OpenStmt,
    Pattern,
    ReturnStmt,
    Stmt,
    StringLit,
    SupExpr,
    SwitchCase,
    SwitchStmt,
    SymbolLit,
    TupleExpr,
    TypeDecl,
    UnscopedExpr,
    VarExpr,
    VarPattern,
)
from bendfront.lexer import number_value
from bendfront.parser_base import BaseParser
from bendfront.tokens import BINARY_OPERATORS, IN_PLACE_OPERATORS, Token, TokenKind

# ── Binding powers for the Pratt parser ──────────────────────────

# (left_bp, right_bp) for infix operators
_INFIX_BP: dict[TokenKind, tuple[int, int]] = {
    TokenKind.EQUAL: (1, 2),
    TokenKind.NOT_EQUAL: (1, 2),
    TokenKind.LESS: (1, 2),
    TokenKind.GREATER: (1, 2),
    TokenKind.LESS_EQUAL: (1, 2),
    TokenKind.GREATER_EQUAL: (1, 2),
    TokenKind.PIPE: (3, 4),
    TokenKind.CARET: (5, 6),
    TokenKind.AMP: (7, 8),
    TokenKind.SHL: (9, 10),
    TokenKind.SHR: (9, 10),
    TokenKind.PLUS: (11, 12),
    TokenKind.MINUS: (11, 12),
    TokenKind.STAR: (13, 14),
    TokenKind.SLASH: (13, 14),
    TokenKind.PERCENT: (13, 14),
    TokenKind.POW: (16, 15),
}

_POSTFIX_BP = 17  # left bp for calls and brace constructors

_T = TypeVar("_T")


class ImpParser(BaseParser):
    """Imperative-surface declarations, statements and expressions."""

    def __init__(self, tokens: list[Token], filename: str = "<stdin>") -> None:
        super().__init__(tokens, filename)
        self._depth = 0  # bracket nesting inside the current expression

    # ── Layout ───────────────────────────────────────────────────

    def _same_line(self, tok: Token) -> bool:
        return self._last is not None and tok.span.start_line == self._last.span.end_line

    def _end_statement(self) -> None:
        tok = self._current()
        if tok.kind != TokenKind.EOF and self._same_line(tok):
            self._error(f"expected end of line, got {tok.kind.name} ({tok.value!r})",
                        tok.span)

    def _block(self, header_col: int, item: Callable[[], _T]) -> list[_T]:
        """Parse ``: item`` on one line or ``:`` followed by an indented run."""
        self._expect(TokenKind.COLON, "':'")
        first = self._current()
        if first.kind != TokenKind.EOF and self._same_line(first):
            return [item()]
        if first.kind == TokenKind.EOF or first.span.start_col <= header_col:
            self._error("expected an indented block", first.span)
        col = first.span.start_col
        items: list[_T] = []
        while not self._at(TokenKind.EOF) and self._current().span.start_col == col:
            items.append(item())
        tok = self._current()
        if tok.kind != TokenKind.EOF and tok.span.start_col > col:
            self._error("unexpected indentation", tok.span)
        return items

    def _at_clause(self, kind: TokenKind, col: int) -> bool:
        tok = self._current()
        return tok.kind == kind and tok.span.start_col == col

    # ── Declarations ─────────────────────────────────────────────

    def _parse_imp_def(self) -> ImpDef:
        start = self._advance()  # 'def'
        name = self._expect_name("a function name")
        params: list[str] = []
        if self._at(TokenKind.LPAREN):
            self._advance()
            while not self._at(TokenKind.RPAREN) and not self._at(TokenKind.EOF):
                params.append(self._expect_name("a parameter name"))
                if not self._at(TokenKind.RPAREN):
                    self._expect(TokenKind.COMMA, "',' or ')'")
            self._expect(TokenKind.RPAREN, "')'")
        body = self._block(start.span.start_col, self._parse_statement)
        return ImpDef(name, params, body, start.span.to(self._end_span()))

    def _parse_imp_type(self) -> TypeDecl:
        """``type Name:`` followed by ``Ctr { f, ~g }`` / ``Ctr`` lines."""
        start = self._advance()  # 'type'
        name = self._expect_name("a type name")
        ctors = self._block(start.span.start_col, lambda: self._parse_imp_ctor(name))
        return TypeDecl(name, ctors, False, start.span.to(self._end_span()))

    def _parse_imp_ctor(self, type_name: str) -> CtrDecl:
        tok = self._current()
        ctr = self._expect_name("a constructor name")
        fields: list[FieldDecl] = []
        if self._at(TokenKind.LBRACE):
            fields = self._parse_field_list()
        self._end_statement()
        return CtrDecl(f"{type_name}/{ctr}", fields, tok.span.to(self._end_span()))

    def _parse_object(self) -> TypeDecl:
        """``object Name { f, g }``: a type with one constructor named like it."""
        start = self._advance()  # 'object'
        name_tok = self._current()
        name = self._expect_name("an object name")
        fields: list[FieldDecl] = []
        if self._at(TokenKind.LBRACE):
            fields = self._parse_field_list()
        self._end_statement()
        span = start.span.to(self._end_span())
        return TypeDecl(name, [CtrDecl(name, fields, name_tok.span.to(span))], True, span)

    def _parse_field_list(self) -> list[FieldDecl]:
        self._advance()  # {
        fields: list[FieldDecl] = []
        while not self._at(TokenKind.RBRACE) and not self._at(TokenKind.EOF):
            tok = self._current()
            recursive = False
            if self._at(TokenKind.TILDE):
                self._advance()
                recursive = True
            fname = self._expect_name("a field name")
            fields.append(FieldDecl(fname, recursive, tok.span.to(self._end_span())))
            if not self._at(TokenKind.RBRACE):
                self._expect(TokenKind.COMMA, "',' or '}'")
        self._expect(TokenKind.RBRACE, "'}'")
        return fields

    # ── Statements ───────────────────────────────────────────────

    def _parse_statement(self) -> Stmt:
        tok = self._current()

        match tok.kind:
            case TokenKind.RETURN:
                self._advance()
                value = self._parse_expression(0)
                self._end_statement()
                return ReturnStmt(value, tok.span.to(self._end_span()))
            case TokenKind.IF:
                return self._parse_if()
            case TokenKind.SWITCH:
                return self._parse_switch_stmt()
            case TokenKind.MATCH | TokenKind.FOLD:
                return self._parse_match_stmt()
            case TokenKind.BEND:
                return self._parse_bend_stmt()
            case TokenKind.OPEN:
                self._advance()
                type_name = self._expect_name("a type name")
                self._expect(TokenKind.COLON, "':'")
                var = self._expect_name("a variable")
                self._end_statement()
                return OpenStmt(type_name, var, tok.span.to(self._end_span()))
            case TokenKind.DO:
                return self._parse_do_stmt()
            case _:
                return self._parse_assignment()

    def _parse_assignment(self) -> Stmt:
        """``pattern = expr`` or ``name op= expr``."""
        start = self._current()
        pattern = self._parse_pattern(refutable=False)
        tok = self._current()
        if tok.kind in IN_PLACE_OPERATORS:
            if not isinstance(pattern, VarPattern):
                self._error("in-place operators need a variable on the left", start.span)
            self._advance()
            value = self._parse_expression(0)
            self._end_statement()
            return InPlaceOpStmt(pattern.name, IN_PLACE_OPERATORS[tok.kind], value,
                                 start.span.to(self._end_span()))
        self._expect(TokenKind.ASSIGN, "'=' or a statement")
        value = self._parse_expression(0)
        self._end_statement()
        return AssignStmt(pattern, value, start.span.to(self._end_span()))

    def _parse_if(self) -> IfStmt:
        """``if c: … elif c: … else: …``; ``elif`` nests into the else branch."""
        start = self._advance()  # 'if' / 'elif'
        col = start.span.start_col
        cond = self._parse_expression(0)
        then_body = self._block(col, self._parse_statement)
        if self._at_clause(TokenKind.ELIF, col):
            else_body: list[Stmt] = [self._parse_if()]
        else:
            if not self._at_clause(TokenKind.ELSE, col):
                self._error("'if' requires an 'else' branch", start.span)
            self._advance()
            else_body = self._block(col, self._parse_statement)
        return IfStmt(cond, then_body, else_body, start.span.to(self._end_span()))

    def _imp_scrutinee(self) -> tuple[str | None, Expr]:
        if self._at(TokenKind.NAME) and self._peek(1).kind == TokenKind.ASSIGN:
            bind = self._expect_name()
            self._advance()  # '='
            return bind, self._parse_expression(0)
        arg = self._parse_expression(0)
        if isinstance(arg, VarExpr):
            return arg.name, arg
        return None, arg

    def _parse_switch_stmt(self) -> SwitchStmt:
        start = self._advance()  # 'switch'
        bind, arg = self._imp_scrutinee()

        def case() -> SwitchCase:
            tok = self._expect(TokenKind.CASE, "'case'")
            label = self._switch_label()
            body = self._block(tok.span.start_col, self._parse_statement)
            return SwitchCase(label, body, tok.span.to(self._end_span()))

        cases = self._block(start.span.start_col, case)
        return SwitchStmt(bind, arg, cases, start.span.to(self._end_span()))

    def _parse_match_stmt(self) -> MatchStmt | FoldStmt:
        start = self._advance()  # 'match' / 'fold'
        bind, arg = self._imp_scrutinee()

        def case() -> MatchCase:
            tok = self._expect(TokenKind.CASE, "'case'")
            label = self._match_label()
            body = self._block(tok.span.start_col, self._parse_statement)
            return MatchCase(label, body, tok.span.to(self._end_span()))

        cases = self._block(start.span.start_col, case)
        span = start.span.to(self._end_span())
        if start.kind == TokenKind.FOLD:
            return FoldStmt(bind, arg, cases, span)
        return MatchStmt(bind, arg, cases, span)

    def _parse_bend_stmt(self) -> BendStmt:
        """``bend x = i, …:`` with a ``when cond:`` clause and an ``else:`` clause."""
        start = self._advance()  # 'bend'
        bindings: list[BendBinding] = []
        while True:
            tok = self._current()
            name = self._expect_name("a state variable")
            self._expect(TokenKind.ASSIGN, "'='")
            init = self._parse_expression(0)
            bindings.append(BendBinding(name, init, tok.span.to(self._end_span())))
            if not self._at(TokenKind.COMMA):
                break
            self._advance()

        def clause() -> tuple[Expr | None, list[Stmt]]:
            tok = self._current()
            if tok.kind == TokenKind.WHEN:
                self._advance()
                cond: Expr | None = self._parse_expression(0)
            elif tok.kind == TokenKind.ELSE:
                self._advance()
                cond = None
            else:
                self._error(f"expected 'when' or 'else', got {tok.value!r}", tok.span)
            return cond, self._block(tok.span.start_col, self._parse_statement)

        clauses = self._block(start.span.start_col, clause)
        if len(clauses) != 2 or clauses[0][0] is None or clauses[1][0] is not None:
            self._error("'bend' needs a 'when' clause followed by an 'else' clause",
                        start.span)
        (cond, step), (_, base) = clauses
        return BendStmt(bindings, cond, step, base, start.span.to(self._end_span()))

    def _parse_do_stmt(self) -> DoStmt:
        """``do T:`` block of ``x <- e``, ``ask p = e`` and ``e`` lines.

        The last line is the block's value (``e`` or ``return e``).
        """
        start = self._advance()  # 'do'
        monad = self._expect_name("a monad type name")
        lines: list[tuple[bool, DoStep]] = []

        def line() -> None:
            tok = self._current()
            if tok.kind == TokenKind.ASK:
                self._advance()
                pattern: Pattern | None = self._parse_pattern(refutable=False)
                self._expect(TokenKind.ASSIGN, "'='")
                is_bind = True
            elif tok.kind == TokenKind.NAME and self._peek(1).kind == TokenKind.LARROW:
                pattern = self._parse_pattern(refutable=False)
                self._advance()  # '<-'
                is_bind = True
            elif tok.kind == TokenKind.RETURN:
                self._advance()
                pattern, is_bind = None, False
            else:
                pattern, is_bind = None, False
            value = self._parse_expression(0)
            self._end_statement()
            lines.append((is_bind, DoStep(pattern, value, tok.span.to(self._end_span()))))

        self._block(start.span.start_col, line)
        steps = [step for _, step in lines]
        result: Expr | None = None
        if lines and not lines[-1][0]:
            result = steps.pop().value
        return DoStmt(monad, steps, result, start.span.to(self._end_span()))

    # ── Pratt expression parser ──────────────────────────────────

    def _continues(self, tok: Token) -> bool:
        return self._depth > 0 or self._same_line(tok)

    def _parse_expression(self, min_bp: int) -> Expr:
        """Parse an expression using Pratt parsing with binding powers."""
        left = self._parse_prefix()

        while True:
            tok = self._current()
            if not self._continues(tok):
                break

            if tok.kind == TokenKind.LPAREN:
                if _POSTFIX_BP < min_bp:
                    break
                left = self._parse_call(left)
                continue

            if tok.kind == TokenKind.LBRACE and self._is_brace_ctor(left):
                if _POSTFIX_BP < min_bp:
                    break
                left = self._parse_brace_ctor(left)
                continue

            if tok.kind in _INFIX_BP:
                left_bp, right_bp = _INFIX_BP[tok.kind]
                if left_bp < min_bp:
                    break
                self._advance()
                right = self._parse_expression(right_bp)
                left = BinaryExpr(BINARY_OPERATORS[tok.kind], left, right,
                                  left.span.to(right.span))
                continue

            break

        return left

    def _nested(self, parse: Callable[[], _T]) -> _T:
        self._depth += 1
        try:
            return parse()
        finally:
            self._depth -= 1

    def _parse_prefix(self) -> Expr:
        tok = self._current()

        match tok.kind:
            case TokenKind.NUMBER:
                self._advance()
                kind, value = number_value(tok.value)
                return NumLit(kind, value, tok.span)
            case TokenKind.CHAR:
                self._advance()
                return CharLit(tok.codepoints[0], tok.span)
            case TokenKind.STRING:
                self._advance()
                return StringLit(tok.codepoints, tok.span)
            case TokenKind.SYMBOL:
                self._advance()
                return SymbolLit(tok.value, tok.span)
            case TokenKind.NAT:
                self._advance()
                return NatLit(int(tok.value), tok.span)
            case TokenKind.STAR:
                self._advance()
                return EraExpr(tok.span)
            case TokenKind.DOLLAR:
                self._advance()
                name = self._expect_name()
                return UnscopedExpr(name, tok.span.to(self._end_span()))
            case TokenKind.NAME:
                self._advance()
                return VarExpr(self._check_name(tok), tok.span)
            case TokenKind.LPAREN:
                return self._nested(self._parse_paren_expr)
            case TokenKind.LBRACE:
                return self._nested(self._parse_sup_expr)
            case TokenKind.LBRACKET:
                return self._nested(self._parse_list_expr)
            case TokenKind.LAMBDA:
                self._advance()
                params = [self._parse_pattern(refutable=False)]
                while self._at(TokenKind.COMMA):
                    self._advance()
                    params.append(self._parse_pattern(refutable=False))
                self._expect(TokenKind.COLON, "':'")
                body = self._parse_expression(0)
                return LambdaExpr(params, body, tok.span.to(body.span))
            case _:
                self._error(f"unexpected token in expression: {tok.kind.name} ({tok.value!r})",
                            tok.span)

    def _parse_paren_expr(self) -> Expr:
        start = self._advance()  # (
        first = self._parse_expression(0)
        if self._at(TokenKind.COMMA):
            elems = [first]
            while self._at(TokenKind.COMMA):
                self._advance()
                elems.append(self._parse_expression(0))
            end = self._expect(TokenKind.RPAREN, "')'")
            return TupleExpr(elems, start.span.to(end.span))
        self._expect(TokenKind.RPAREN, "')'")
        return first

    def _parse_sup_expr(self) -> Expr:
        start = self._advance()  # {
        elems: list[Expr] = []
        while not self._at(TokenKind.RBRACE) and not self._at(TokenKind.EOF):
            elems.append(self._parse_expression(0))
            if not self._at(TokenKind.RBRACE):
                self._expect(TokenKind.COMMA, "',' or '}'")
        end = self._expect(TokenKind.RBRACE, "'}'")
        if len(elems) < 2:
            self._error("superposition needs at least 2 elements", start.span)
        return SupExpr(elems, start.span.to(end.span))

    def _parse_list_expr(self) -> Expr:
        start = self._advance()  # [
        elements: list[Expr] = []
        while not self._at(TokenKind.RBRACKET) and not self._at(TokenKind.EOF):
            element = self._parse_expression(0)
            if not elements and self._at(TokenKind.FOR):
                self._advance()
                var = self._parse_pattern(refutable=False)
                self._expect(TokenKind.IN, "'in'")
                iterable = self._parse_expression(0)
                condition = None
                if self._at(TokenKind.IF):
                    self._advance()
                    condition = self._parse_expression(0)
                end = self._expect(TokenKind.RBRACKET, "']'")
                return ComprehensionExpr(element, var, iterable, condition,
                                         start.span.to(end.span))
            elements.append(element)
            if not self._at(TokenKind.RBRACKET):
                self._expect(TokenKind.COMMA, "',' or ']'")
        end = self._expect(TokenKind.RBRACKET, "']'")
        return ListExpr(elements, start.span.to(end.span))

    def _parse_call(self, callee: Expr) -> CallExpr:
        """``f(a, b, k=v)``; named arguments need a plain name as callee."""
        start = self._advance()  # (
        args: list[Arg] = []

        def parse_args() -> None:
            while not self._at(TokenKind.RPAREN) and not self._at(TokenKind.EOF):
                tok = self._current()
                if tok.kind == TokenKind.NAME and self._peek(1).kind == TokenKind.ASSIGN:
                    name = self._expect_name()
                    self._advance()  # '='
                    value = self._parse_expression(0)
                    args.append(Arg(name, value, tok.span.to(value.span)))
                else:
                    value = self._parse_expression(0)
                    args.append(Arg(None, value, value.span))
                if not self._at(TokenKind.RPAREN):
                    self._expect(TokenKind.COMMA, "',' or ')'")

        self._nested(parse_args)
        end = self._expect(TokenKind.RPAREN, "')'")
        if any(a.name is not None for a in args) and not isinstance(callee, VarExpr):
            self._error("named arguments require the callee to be a name", start.span)
        return CallExpr(callee, args, callee.span.to(end.span))

    def _is_brace_ctor(self, left: Expr) -> bool:
        """``Name { field: value }``: a name followed by ``{}`` or ``{ field :``."""
        if not isinstance(left, VarExpr):
            return False
        nxt = self._peek(1)
        return nxt.kind == TokenKind.RBRACE or (
            nxt.kind == TokenKind.NAME and self._peek(2).kind == TokenKind.COLON
        )

    def _parse_brace_ctor(self, callee: Expr) -> CallExpr:
        self._advance()  # {
        args: list[Arg] = []

        def parse_fields() -> None:
            while not self._at(TokenKind.RBRACE) and not self._at(TokenKind.EOF):
                tok = self._current()
                name = self._expect_name("a field name")
                self._expect(TokenKind.COLON, "':'")
                value = self._parse_expression(0)
                args.append(Arg(name, value, tok.span.to(value.span)))
                if not self._at(TokenKind.RBRACE):
                    self._expect(TokenKind.COMMA, "',' or '}'")

        self._nested(parse_fields)
        end = self._expect(TokenKind.RBRACE, "'}'")
        return CallExpr(callee, args, callee.span.to(end.span))
