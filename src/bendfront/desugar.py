"""Sugar desugaring: surface expressions to Core IR.

Runs per definition in Pass 2. ``fold`` and ``bend`` are lifted into
generated top-level definitions named ``<def>__fold<n>`` and
``<def>__bend<n>``; every other form becomes core nodes in place.
The desugarer tracks the local scope so that lifted definitions receive
the outer variables their bodies mention as extra parameters.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager

from bendfront.ast_nodes import (
    Arg,
    BendExpr,
    BinaryExpr,
    CallExpr,
    CharLit,
    ComprehensionExpr,
    DoExpr,
    EraExpr,
    Expr,
    FoldExpr,
    FunDef,
    LambdaExpr,
    LetExpr,
    ListExpr,
    MatchArm,
    MatchExpr,
    NatLit,
    NumLit,
    OpenExpr,
    StringLit,
    SupExpr,
    SwitchArm,
    SwitchExpr,
    SymbolLit,
    TupleExpr,
    UnscopedExpr,
    VarExpr,
)
from bendfront.errors import ErrorKind, PassError
from bendfront.lexer import SYMBOL_ALPHABET
from bendfront.matcher import check_switch, compile_rules, core_pattern, resolve_match
from bendfront.registry import CtrInfo, Registry
from bendfront.source import Span
from bendfront.term import (
    App,
    Ctr,
    Definition,
    Era,
    Let,
    Match,
    MatchCase,
    Num,
    NumKind,
    Opr,
    PVar,
    Sup,
    Switch,
    Term,
    Tuple,
    UnscopedVar,
    Var,
    free_vars,
    lambdas,
    pattern_binds,
    replace_free,
)


def symbol_value(text: str) -> int:
    """Pack up to four base64 characters into a u24, most significant first."""
    value = 0
    for i in range(4):
        digit = SYMBOL_ALPHABET.index(text[i]) if i < len(text) else 0
        value |= digit << (6 * (3 - i))
    return value


class Desugarer:
    """Turns one definition's surface expressions into Core IR."""

    def __init__(self, registry: Registry, name: str) -> None:
        self.registry = registry
        self.name = name
        self.generated: list[Definition] = []
        self._logger = logging.getLogger("Desugarer")
        self._scope: dict[str, int] = {}
        self._counters: dict[str, int] = {}
        self._bend_go: tuple[str, int, tuple[str, ...]] | None = None

    # ── Scope ────────────────────────────────────────────────────

    @contextmanager
    def _binding(self, names: Iterable[str | None]) -> Iterator[None]:
        added = [n for n in names if n is not None]
        for n in added:
            self._scope[n] = self._scope.get(n, 0) + 1
        try:
            yield
        finally:
            for n in added:
                self._scope[n] -= 1
                if not self._scope[n]:
                    del self._scope[n]

    def _in_scope(self, name: str) -> bool:
        return name in self._scope

    def _fresh(self, kind: str) -> int:
        n = self._counters.get(kind, 0)
        self._counters[kind] = n + 1
        return n

    # ── Entry point ──────────────────────────────────────────────

    def desugar_definition(self, fundef: FunDef) -> list[Definition]:
        """Compile a definition; generated helpers follow the definition itself."""
        body = compile_rules(self.registry, fundef.name, fundef.rules, fundef.span,
                             self._compile_body)
        if self.generated:
            self._logger.debug("%s: generated %s", fundef.name,
                               ", ".join(d.name for d in self.generated))
        return [Definition(fundef.name, body, fundef.span)] + self.generated

    def _compile_body(self, expr: Expr, bound: Sequence[str]) -> Term:
        with self._binding(bound):
            return self.expr(expr)

    # ── Expressions ──────────────────────────────────────────────

    def expr(self, e: Expr) -> Term:
        match e:
            case VarExpr(name=name):
                return self._var(name, e.span)
            case UnscopedExpr(name=name):
                return UnscopedVar(name)
            case EraExpr():
                return Era()
            case NumLit(kind=kind, value=value):
                return Num(kind, value)
            case CharLit(codepoint=cp):
                return Num(NumKind.U24, cp)
            case SymbolLit(text=text):
                return Num(NumKind.U24, symbol_value(text))
            case StringLit(codepoints=cps):
                term: Term = Ctr("String", "String/Nil", ())
                for cp in reversed(cps):
                    term = Ctr("String", "String/Cons", (Num(NumKind.U24, cp), term))
                return term
            case NatLit(value=value):
                term = Ctr("Nat", "Nat/Zero", ())
                for _ in range(value):
                    term = Ctr("Nat", "Nat/Succ", (term,))
                return term
            case ListExpr(elements=elements):
                items = [self.expr(x) for x in elements]
                term = Ctr("List", "List/Nil", ())
                for item in reversed(items):
                    term = Ctr("List", "List/Cons", (item, term))
                return term
            case TupleExpr(elems=elems):
                return Tuple(tuple(self.expr(x) for x in elems))
            case SupExpr(elems=elems):
                return Sup(tuple(self.expr(x) for x in elems))
            case BinaryExpr(op=op, left=left, right=right):
                return Opr(op, self.expr(left), self.expr(right))
            case LambdaExpr(params=params, body=body):
                patterns = [core_pattern(p) for p in params]
                with self._binding(n for p in patterns for n in pattern_binds(p)):
                    return lambdas(patterns, self.expr(body))
            case LetExpr(pattern=pattern, value=value, body=body):
                p = core_pattern(pattern)
                bound = self.expr(value)
                with self._binding(pattern_binds(p)):
                    return Let(p, bound, self.expr(body))
            case CallExpr():
                return self._call(e)
            case SwitchExpr():
                return self._switch(e)
            case MatchExpr():
                return self._match(e)
            case FoldExpr():
                return self._fold(e)
            case BendExpr():
                return self._bend(e)
            case OpenExpr():
                return self._open(e)
            case DoExpr():
                return self._do(e)
            case ComprehensionExpr():
                return self._comprehension(e)
        raise AssertionError(f"unexpected expression {type(e).__name__}")

    # ── Names and calls ──────────────────────────────────────────

    def _lookup_ctr(self, name: str, span: Span) -> CtrInfo | None:
        if self._in_scope(name):
            return None
        if name not in self.registry.ctors and self.registry.function(name):
            return None
        found = self.registry.resolve_ctr(name)
        if len(found) > 1:
            options = ", ".join(c.name for c in found)
            raise PassError(ErrorKind.NAME,
                            f"ambiguous constructor '{name}' (could be {options})", span)
        return found[0] if found else None

    def _var(self, name: str, span: Span) -> Term:
        ctr = self._lookup_ctr(name, span)
        if ctr is None:
            return Var(name)
        # A constructor used as a value takes its fields as curried arguments.
        params = [f"{f}__eta" for f in ctr.field_names]
        body = Ctr(ctr.type_name, ctr.name, tuple(Var(p) for p in params))
        return lambdas([PVar(p) for p in params], body)

    def _order_args(self, args: list[Arg], names: Sequence[str | None], what: str,
                    span: Span) -> list[Expr]:
        """Put positional and named arguments into declaration order."""
        slots: list[Expr | None] = [None] * len(names)
        seen_named = False
        filled = 0
        for i, arg in enumerate(args):
            if arg.name is None:
                if seen_named:
                    raise PassError(ErrorKind.ARITY,
                                    f"positional argument after named arguments in call to "
                                    f"{what}", arg.span)
                if i >= len(names):
                    raise PassError(ErrorKind.ARITY,
                                    f"too many arguments for {what}: expected {len(names)}",
                                    arg.span)
                slots[i] = arg.value
                filled += 1
                continue
            seen_named = True
            if arg.name not in names:
                raise PassError(ErrorKind.NAME, f"{what} has no parameter '{arg.name}'",
                                arg.span)
            idx = names.index(arg.name)
            if slots[idx] is not None:
                raise PassError(ErrorKind.ARITY,
                                f"argument '{arg.name}' given more than once in call to "
                                f"{what}", arg.span)
            slots[idx] = arg.value
            filled += 1
        if filled != len(names):
            raise PassError(ErrorKind.ARITY,
                            f"{what} expects {len(names)} argument(s), got {filled}", span)
        return [s for s in slots if s is not None]

    def _call(self, e: CallExpr) -> Term:
        func = e.func
        named = any(a.name is not None for a in e.args)

        if isinstance(func, VarExpr):
            ctr = self._lookup_ctr(func.name, func.span)
            if ctr is not None:
                values = self._order_args(e.args, ctr.field_names,
                                          f"constructor '{ctr.name}'", e.span)
                return Ctr(ctr.type_name, ctr.name, tuple(self.expr(v) for v in values))
            if named:
                info = None if self._in_scope(func.name) else self.registry.function(func.name)
                if info is None:
                    raise PassError(ErrorKind.NAME,
                                    f"named arguments need a known function, "
                                    f"'{func.name}' is not one", func.span)
                values = self._order_args(e.args, info.params, f"'{info.name}'", e.span)
                return App(Var(func.name), tuple(self.expr(v) for v in values))
            if self._bend_go is not None and func.name == "go" and not self._in_scope("go"):
                go, arity, captured = self._bend_go
                if len(e.args) != arity:
                    raise PassError(ErrorKind.ARITY,
                                    f"'go' takes {arity} state value(s), got {len(e.args)}",
                                    e.span)
                state = tuple(self.expr(a.value) for a in e.args)
                return App(Var(go), state + tuple(Var(c) for c in captured))

        callee = self.expr(func)
        if not e.args:
            return callee
        return App(callee, tuple(self.expr(a.value) for a in e.args))

    # ── switch / match ───────────────────────────────────────────

    def _scrutinee(self, bind: str | None, arg: Expr) -> tuple[Term, Term]:
        """Returns the matched term and the value to let-bind first, if any."""
        value = self.expr(arg)
        if bind is None or value == Var(bind):
            return value, value
        return Var(bind), value

    @staticmethod
    def _wrap(bind: str | None, matched: Term, value: Term, term: Term) -> Term:
        if matched is value:
            return term
        assert bind is not None
        return Let(PVar(bind), value, term)

    def _switch(self, e: SwitchExpr) -> Term:
        check_switch([(a.label, a.span) for a in e.arms], e.span)
        matched, value = self._scrutinee(e.bind, e.arg)
        extra = [] if matched is value else [e.bind]
        with self._binding(extra):
            cases = [self.expr(a.body) for a in e.arms[:-1]]
            pred = f"{e.bind}-{len(e.arms) - 1}" if e.bind is not None else None
            with self._binding([pred]):
                cases.append(self.expr(e.arms[-1].body))
        term = Switch(matched, e.bind, tuple(cases))
        return self._wrap(e.bind, matched, value, term)

    def _match_cases(self, bind: str | None, arms: list[MatchArm],
                     span: Span) -> tuple[tuple[MatchCase, ...], Term | None, dict[str, CtrInfo]]:
        table = resolve_match(self.registry, arms, lambda a: a.label, span)
        cases: list[MatchCase] = []
        ctrs: dict[str, CtrInfo] = {}
        for ctr, arm in table.cases:
            binds = tuple(f"{bind}.{f}" if bind is not None else None
                          for f in ctr.field_names)
            with self._binding(binds):
                cases.append(MatchCase(ctr.name, binds, self.expr(arm.body)))
            ctrs[ctr.name] = ctr
        default = None
        if table.default is not None:
            with self._binding([bind]):
                default = self.expr(table.default.body)
        return tuple(cases), default, ctrs

    def _match(self, e: MatchExpr) -> Term:
        matched, value = self._scrutinee(e.bind, e.arg)
        extra = [] if matched is value else [e.bind]
        with self._binding(extra):
            cases, default, _ = self._match_cases(e.bind, e.arms, e.span)
        term = Match(matched, e.bind, cases, default)
        return self._wrap(e.bind, matched, value, term)

    # ── fold / bend ──────────────────────────────────────────────

    def _captured(self, term: Term, exclude: Iterable[str]) -> list[str]:
        skip = set(exclude)
        return [v for v in free_vars(term) if v not in skip and self._in_scope(v)]

    def _fold(self, e: FoldExpr) -> Term:
        n = self._fresh("fold")
        go = f"{self.name}__fold{n}"
        bind = e.bind if e.bind is not None else f"fold__{n}"
        arg = self.expr(e.arg)

        with self._binding([bind]):
            cases, default, ctrs = self._match_cases(bind, e.arms, e.span)
        body: Term = Match(Var(bind), bind, cases, default)
        captured = self._captured(body, [bind])
        extra = tuple(Var(c) for c in captured)

        def recursion(ctr: CtrInfo):
            fields = {f"{bind}.{f.name}" for f in ctr.fields if f.recursive}

            def recurse(v: Var) -> Term | None:
                if v.name in fields:
                    return App(Var(go), (v,) + extra)
                return None
            return recurse

        new_cases = tuple(
            MatchCase(c.ctr, c.binds, replace_free(c.body, recursion(ctrs[c.ctr])))
            for c in cases
        )
        body = Match(Var(bind), bind, new_cases, default)
        params = [PVar(bind)] + [PVar(c) for c in captured]
        self.generated.append(Definition(go, lambdas(params, body), e.span, self.name))
        return App(Var(go), (arg,) + extra)

    def _bend(self, e: BendExpr) -> Term:
        n = self._fresh("bend")
        go = f"{self.name}__bend{n}"
        state = [b.name for b in e.bindings]
        inits = tuple(self.expr(b.init) for b in e.bindings)

        # `go` calls lifted into fold helpers inside the step must pass the
        # captured variables as well, so those are found by a first pass.
        generated, counters = len(self.generated), dict(self._counters)
        captured = self._captured(self._bend_body(e, go, state, ()), state)
        del self.generated[generated:]
        self._counters = counters
        body = self._bend_body(e, go, state, tuple(captured))

        params = [PVar(s) for s in state] + [PVar(c) for c in captured]
        self.generated.append(Definition(go, lambdas(params, body), e.span, self.name))
        return App(Var(go), inits + tuple(Var(c) for c in captured))

    def _bend_body(self, e: BendExpr, go: str, state: list[str],
                   captured: tuple[str, ...]) -> Term:
        outer_go = self._bend_go
        with self._binding(state):
            self._bend_go = None
            try:
                cond = self.expr(e.cond)
                base = self.expr(e.base)
                self._bend_go = (go, len(state), captured)
                step = self.expr(e.step)
            finally:
                self._bend_go = outer_go
        return Switch(cond, None, (base, step))

    # ── open / do / comprehensions ───────────────────────────────

    def _open(self, e: OpenExpr) -> Term:
        if e.type_name not in self.registry.types:
            raise PassError(ErrorKind.NAME, f"unknown type '{e.type_name}'", e.span)
        ctors = self.registry.ctors_of(e.type_name)
        if len(ctors) != 1:
            raise PassError(ErrorKind.CONTROL_FLOW,
                            f"cannot open '{e.type_name}': it has {len(ctors)} constructors",
                            e.span)
        ctr = ctors[0]
        fields = tuple(f"{e.var}.{f}" for f in ctr.field_names)
        with self._binding(fields + (e.var,)):
            body = self.expr(e.body)
        if e.var in free_vars(body):
            rebuilt = Ctr(ctr.type_name, ctr.name, tuple(Var(f) for f in fields))
            body = Let(PVar(e.var), rebuilt, body)
        return Match(Var(e.var), e.var, (MatchCase(ctr.name, fields, body),))

    def _do(self, e: DoExpr) -> Term:
        bind_fn = f"{e.monad}/bind"
        info = self.registry.function(bind_fn)
        if info is None:
            raise PassError(ErrorKind.NAME,
                            f"'do {e.monad}' needs a function '{bind_fn}'", e.span)
        if info.arity != 2:
            raise PassError(ErrorKind.ARITY,
                            f"'{bind_fn}' must take 2 arguments, it takes {info.arity}",
                            e.span)

        def chain(i: int) -> Term:
            if i == len(e.steps):
                return self.expr(e.result)
            step = e.steps[i]
            value = self.expr(step.value)
            pattern = core_pattern(step.pattern) if step.pattern is not None else PVar(None)
            with self._binding(pattern_binds(pattern)):
                rest = chain(i + 1)
            return App(Var(bind_fn), (value, lambdas([pattern], rest)))

        return chain(0)

    def _comprehension(self, e: ComprehensionExpr) -> Term:
        """``[x for p in xs if c]`` is a fold over the list's constructors."""
        bind = f"list__{self._fresh('list')}"
        span = e.span
        head = VarExpr(f"{bind}.head", span)
        tail = VarExpr(f"{bind}.tail", span)
        cons = CallExpr(VarExpr("List/Cons", span),
                        [Arg(None, e.element, span), Arg(None, tail, span)], span)
        kept: Expr = cons
        if e.condition is not None:
            kept = SwitchExpr(None, e.condition,
                              [SwitchArm(0, tail, span), SwitchArm(None, cons, span)], span)
        arms = [
            MatchArm("List/Cons", LetExpr(e.var, head, kept, span), span),
            MatchArm("List/Nil", VarExpr("List/Nil", span), span),
        ]
        return self._fold(FoldExpr(bind, e.iterable, arms, span))


def desugar_definition(registry: Registry, fundef: FunDef) -> list[Definition]:
    """Pass 2 for one (already lowered) definition."""
    return Desugarer(registry, fundef.name).desugar_definition(fundef)
