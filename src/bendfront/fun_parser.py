"""Grammar of the functional surface: equations and parenthesized terms.

Functional terms are self-delimiting, so this grammar ignores line
structure entirely.
"""

from __future__ import annotations

from bendfront.ast_nodes import (
    Arg,
    BendBinding,
    BendExpr,
    BinaryExpr,
    CallExpr,
    CharLit,
    ComprehensionExpr,
    CtrDecl,
    DoExpr,
    DoStep,
    EraExpr,
    Expr,
    FieldDecl,
    FoldExpr,
    LambdaExpr,
    LetExpr,
    ListExpr,
    MatchArm,
    MatchExpr,
    NatLit,
    NumLit,
    OpenExpr,
    Pattern,
    Rule,
    StringLit,
    SupExpr,
    SwitchArm,
    SwitchExpr,
    SymbolLit,
    TupleExpr,
    TypeDecl,
    UnscopedExpr,
    VarExpr,
)
from bendfront.lexer import number_value
from bendfront.parser_base import BaseParser
from bendfront.tokens import BINARY_OPERATORS, Token, TokenKind


class FunParser(BaseParser):
    """Functional-surface declarations and terms."""

    # ── Declarations ─────────────────────────────────────────────

    def _parse_fun_type(self) -> TypeDecl:
        """``data Name = (Ctr f ~g) | Ctr2`` (``type`` is accepted too)."""
        start = self._advance()  # 'data' / 'type'
        name = self._expect_name("a type name")
        self._expect(TokenKind.ASSIGN, "'='")
        ctors = [self._parse_fun_ctor(name)]
        while self._at(TokenKind.PIPE):
            self._advance()
            ctors.append(self._parse_fun_ctor(name))
        return TypeDecl(name, ctors, False, start.span.to(self._end_span()))

    def _parse_fun_ctor(self, type_name: str) -> CtrDecl:
        tok = self._current()
        if tok.kind == TokenKind.NAME:
            ctr = self._expect_name("a constructor name")
            return CtrDecl(f"{type_name}/{ctr}", [], tok.span)
        self._expect(TokenKind.LPAREN, "a constructor")
        ctr = self._expect_name("a constructor name")
        fields: list[FieldDecl] = []
        while not self._at(TokenKind.RPAREN) and not self._at(TokenKind.EOF):
            fstart = self._current()
            recursive = False
            if self._at(TokenKind.TILDE):
                self._advance()
                recursive = True
            fname = self._expect_name("a field name")
            fields.append(FieldDecl(fname, recursive, fstart.span.to(self._end_span())))
        end = self._expect(TokenKind.RPAREN, "')'")
        return CtrDecl(f"{type_name}/{ctr}", fields, tok.span.to(end.span))

    def _parse_rule(self) -> tuple[str, Rule]:
        """``(Name p1 p2) = term`` or ``Name p1 p2 = term``."""
        start = self._current()
        patterns: list[Pattern] = []
        if self._at(TokenKind.LPAREN):
            self._advance()
            name = self._expect_name("a function name")
            while not self._at(TokenKind.RPAREN) and not self._at(TokenKind.EOF):
                patterns.append(self._parse_pattern(refutable=True))
            self._expect(TokenKind.RPAREN, "')'")
        else:
            name = self._expect_name("a function name")
            while not self._at(TokenKind.ASSIGN) and not self._at(TokenKind.EOF):
                patterns.append(self._parse_pattern(refutable=True))
        self._expect(TokenKind.ASSIGN, "'='")
        body = self._parse_term()
        return name, Rule(patterns, body, start.span.to(self._end_span()))

    # ── Terms ────────────────────────────────────────────────────

    def _parse_term(self) -> Expr:
        tok = self._current()

        match tok.kind:
            case TokenKind.LAMBDA_SIGN:
                self._advance()
                param = self._parse_pattern(refutable=False)
                body = self._parse_term()
                return LambdaExpr([param], body, tok.span.to(self._end_span()))
            case TokenKind.LPAREN:
                return self._parse_paren_term()
            case TokenKind.LBRACE:
                self._advance()
                elems: list[Expr] = []
                while not self._at(TokenKind.RBRACE) and not self._at(TokenKind.EOF):
                    elems.append(self._parse_term())
                    if self._at(TokenKind.COMMA):
                        self._advance()
                end = self._expect(TokenKind.RBRACE, "'}'")
                if len(elems) < 2:
                    self._error("superposition needs at least 2 elements", tok.span)
                return SupExpr(elems, tok.span.to(end.span))
            case TokenKind.LBRACKET:
                return self._parse_list_term()
            case TokenKind.LET:
                self._advance()
                pattern = self._parse_pattern(refutable=False)
                self._expect(TokenKind.ASSIGN, "'='")
                value = self._parse_term()
                if self._at(TokenKind.SEMICOLON):
                    self._advance()
                body = self._parse_term()
                return LetExpr(pattern, value, body, tok.span.to(self._end_span()))
            case TokenKind.SWITCH:
                return self._parse_switch_term()
            case TokenKind.MATCH | TokenKind.FOLD:
                return self._parse_match_term()
            case TokenKind.BEND:
                return self._parse_bend_term()
            case TokenKind.OPEN:
                self._advance()
                type_name = self._expect_name("a type name")
                self._expect(TokenKind.COLON, "':'")
                var = self._expect_name("a variable")
                if self._at(TokenKind.SEMICOLON):
                    self._advance()
                body = self._parse_term()
                return OpenExpr(type_name, var, body, tok.span.to(self._end_span()))
            case TokenKind.DO:
                return self._parse_do_term()
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
            case _:
                self._error(f"unexpected token in term: {tok.kind.name} ({tok.value!r})",
                            tok.span)

    def _parse_paren_term(self) -> Expr:
        """Application ``(f a b)``, operation ``(+ a b)``, tuple ``(a, b)`` or grouping."""
        start = self._advance()  # (
        tok = self._current()

        if tok.kind in BINARY_OPERATORS:
            self._advance()
            left = self._parse_term()
            right = self._parse_term()
            end = self._expect(TokenKind.RPAREN, "')'")
            return BinaryExpr(BINARY_OPERATORS[tok.kind], left, right, start.span.to(end.span))

        first = self._parse_term()

        if self._at(TokenKind.COMMA):
            elems = [first]
            while self._at(TokenKind.COMMA):
                self._advance()
                elems.append(self._parse_term())
            end = self._expect(TokenKind.RPAREN, "')'")
            return TupleExpr(elems, start.span.to(end.span))

        args: list[Arg] = []
        while not self._at(TokenKind.RPAREN) and not self._at(TokenKind.EOF):
            arg = self._parse_term()
            args.append(Arg(None, arg, arg.span))
        end = self._expect(TokenKind.RPAREN, "')'")
        if not args:
            return first
        return CallExpr(first, args, start.span.to(end.span))

    def _parse_list_term(self) -> Expr:
        start = self._advance()  # [
        elements: list[Expr] = []
        while not self._at(TokenKind.RBRACKET) and not self._at(TokenKind.EOF):
            element = self._parse_term()
            if not elements and self._at(TokenKind.FOR):
                return self._finish_fun_comprehension(start, element)
            elements.append(element)
            if self._at(TokenKind.COMMA):
                self._advance()
        end = self._expect(TokenKind.RBRACKET, "']'")
        return ListExpr(elements, start.span.to(end.span))

    def _finish_fun_comprehension(self, start: Token, element: Expr) -> ComprehensionExpr:
        self._advance()  # 'for'
        var = self._parse_pattern(refutable=False)
        self._expect(TokenKind.IN, "'in'")
        iterable = self._parse_term()
        condition = None
        if self._at(TokenKind.IF):
            self._advance()
            condition = self._parse_term()
        end = self._expect(TokenKind.RBRACKET, "']'")
        return ComprehensionExpr(element, var, iterable, condition, start.span.to(end.span))

    def _parse_scrutinee(self) -> tuple[str | None, Expr]:
        """``[bind =] term``; a bare variable scrutinee is its own bind."""
        if self._at(TokenKind.NAME) and self._peek(1).kind == TokenKind.ASSIGN:
            bind = self._expect_name()
            self._advance()  # '='
            return bind, self._parse_term()
        arg = self._parse_term()
        if isinstance(arg, VarExpr):
            return arg.name, arg
        return None, arg

    def _parse_switch_term(self) -> SwitchExpr:
        start = self._advance()  # 'switch'
        bind, arg = self._parse_scrutinee()
        self._expect(TokenKind.LBRACE, "'{'")
        arms: list[SwitchArm] = []
        while not self._at(TokenKind.RBRACE) and not self._at(TokenKind.EOF):
            label_tok = self._current()
            label = self._switch_label()
            self._expect(TokenKind.COLON, "':'")
            body = self._parse_term()
            arms.append(SwitchArm(label, body, label_tok.span.to(self._end_span())))
            if self._at(TokenKind.SEMICOLON):
                self._advance()
        end = self._expect(TokenKind.RBRACE, "'}'")
        return SwitchExpr(bind, arg, arms, start.span.to(end.span))

    def _parse_match_term(self) -> MatchExpr | FoldExpr:
        start = self._advance()  # 'match' / 'fold'
        bind, arg = self._parse_scrutinee()
        self._expect(TokenKind.LBRACE, "'{'")
        arms: list[MatchArm] = []
        while not self._at(TokenKind.RBRACE) and not self._at(TokenKind.EOF):
            label_tok = self._current()
            label = self._match_label()
            self._expect(TokenKind.COLON, "':'")
            body = self._parse_term()
            arms.append(MatchArm(label, body, label_tok.span.to(self._end_span())))
            if self._at(TokenKind.SEMICOLON):
                self._advance()
        end = self._expect(TokenKind.RBRACE, "'}'")
        span = start.span.to(end.span)
        if start.kind == TokenKind.FOLD:
            return FoldExpr(bind, arg, arms, span)
        return MatchExpr(bind, arg, arms, span)

    def _parse_bend_bindings(self) -> list[BendBinding]:
        bindings: list[BendBinding] = []
        while True:
            tok = self._current()
            name = self._expect_name("a state variable")
            self._expect(TokenKind.ASSIGN, "'='")
            init = self._parse_term()
            bindings.append(BendBinding(name, init, tok.span.to(self._end_span())))
            if not self._at(TokenKind.COMMA):
                return bindings
            self._advance()

    def _parse_bend_term(self) -> BendExpr:
        start = self._advance()  # 'bend'
        bindings = self._parse_bend_bindings()
        self._expect(TokenKind.LBRACE, "'{'")
        self._expect(TokenKind.WHEN, "'when'")
        cond = self._parse_term()
        self._expect(TokenKind.COLON, "':'")
        step = self._parse_term()
        if self._at(TokenKind.SEMICOLON):
            self._advance()
        self._expect(TokenKind.ELSE, "'else'")
        self._expect(TokenKind.COLON, "':'")
        base = self._parse_term()
        if self._at(TokenKind.SEMICOLON):
            self._advance()
        end = self._expect(TokenKind.RBRACE, "'}'")
        return BendExpr(bindings, cond, step, base, start.span.to(end.span))

    def _parse_do_term(self) -> DoExpr:
        """``do T { ask x = e; y <- e; result }``."""
        start = self._advance()  # 'do'
        monad = self._expect_name("a monad type name")
        self._expect(TokenKind.LBRACE, "'{'")
        steps: list[DoStep] = []
        while True:
            tok = self._current()
            if tok.kind == TokenKind.ASK:
                self._advance()
                pattern = self._parse_pattern(refutable=False)
                self._expect(TokenKind.ASSIGN, "'='")
                value = self._parse_term()
            elif tok.kind == TokenKind.NAME and self._peek(1).kind == TokenKind.LARROW:
                pattern = self._parse_pattern(refutable=False)
                self._advance()  # '<-'
                value = self._parse_term()
            else:
                break
            steps.append(DoStep(pattern, value, tok.span.to(self._end_span())))
            self._expect(TokenKind.SEMICOLON, "';'")
        result = self._parse_term()
        if self._at(TokenKind.SEMICOLON):
            self._advance()
        end = self._expect(TokenKind.RBRACE, "'}'")
        return DoExpr(monad, steps, result, start.span.to(end.span))
