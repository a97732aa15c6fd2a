"""Pattern-match compilation against the registry.

Covers three things: validating ``switch`` arm order, resolving
``match``/``fold`` labels into a case table keyed by constructor, and
compiling multi-rule equations into a single decision tree of
``Match``/``Switch``/``Let`` nodes.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from bendfront.ast_nodes import (
    CtrPattern,
    Expr,
    NumPattern,
    Pattern,
    Rule,
    SupPattern,
    TuplePattern,
    UnscopedPattern,
    VarPattern,
    WildcardPattern,
)
from bendfront.errors import ErrorKind, PassError
from bendfront.registry import CtrInfo, Registry
from bendfront.source import Span
from bendfront.term import (
    Ctr,
    Let,
    Match,
    MatchCase,
    Num,
    NumKind,
    Opr,
    PSup,
    PTuple,
    PUnscoped,
    PVar,
    Switch,
    Term,
    Var,
    lambdas,
    pattern_binds,
)
from bendfront.term import Pattern as CorePattern


class _Labelled(Protocol):
    @property
    def span(self) -> Span: ...


_Arm = TypeVar("_Arm", bound=_Labelled)

BodyCompiler = Callable[[Expr, Sequence[str]], Term]


# ── switch ───────────────────────────────────────────────────────


def check_switch(labels: Sequence[tuple[int | None, Span]], span: Span) -> None:
    """Labels must be exactly ``0, 1, …, k-1`` followed by ``_``."""
    if not labels:
        raise PassError(ErrorKind.CONTROL_FLOW, "switch has no cases", span)
    for i, (label, label_span) in enumerate(labels[:-1]):
        if label != i:
            expected = f"case {i}"
            got = "_" if label is None else str(label)
            raise PassError(ErrorKind.CONTROL_FLOW,
                            f"switch cases out of order: expected {expected}, got {got}",
                            label_span)
    last, last_span = labels[-1]
    if last is not None:
        raise PassError(ErrorKind.CONTROL_FLOW,
                        "switch must end with a default case '_'", last_span)


# ── match / fold ─────────────────────────────────────────────────


def infer_type(registry: Registry, labels: Sequence[tuple[str, Span]]) -> dict[str, CtrInfo]:
    """Resolve constructor labels that must all belong to one type.

    Returns a mapping from label to its constructor.
    """
    candidates: dict[str, list[CtrInfo]] = {}
    for label, span in labels:
        found = registry.resolve_ctr(label)
        if not found:
            raise PassError(ErrorKind.NAME, f"unknown constructor '{label}'", span)
        candidates[label] = found

    fixed = {c[0].type_name for c in candidates.values() if len(c) == 1}
    if len(fixed) > 1:
        span = labels[0][1]
        raise PassError(ErrorKind.CONTROL_FLOW,
                        f"cases mix constructors of types {', '.join(sorted(fixed))}", span)
    if fixed:
        type_name = next(iter(fixed))
    else:
        common = set.intersection(*({c.type_name for c in cs} for cs in candidates.values()))
        if len(common) != 1:
            label, span = labels[0]
            options = ", ".join(c.name for c in candidates[label])
            raise PassError(ErrorKind.NAME,
                            f"ambiguous constructor '{label}' (could be {options})", span)
        type_name = next(iter(common))

    resolved: dict[str, CtrInfo] = {}
    for label, span in labels:
        hits = [c for c in candidates[label] if c.type_name == type_name]
        if not hits:
            raise PassError(ErrorKind.CONTROL_FLOW,
                            f"constructor '{label}' does not belong to type '{type_name}'",
                            span)
        resolved[label] = hits[0]
    return resolved


@dataclass(frozen=True)
class CaseTable(Generic[_Arm]):
    """Resolved ``match``/``fold`` arms in constructor declaration order."""

    type_name: str | None  # None when only a default arm is given
    cases: list[tuple[CtrInfo, _Arm]]
    default: _Arm | None


def resolve_match(registry: Registry, arms: Sequence[_Arm],
                  label_of: Callable[[_Arm], str | None], span: Span) -> CaseTable[_Arm]:
    """Build the case table for a ``match``/``fold``, checking completeness."""
    default: _Arm | None = None
    labelled: list[tuple[str, _Arm]] = []
    for i, arm in enumerate(arms):
        label = label_of(arm)
        if label is None:
            if i != len(arms) - 1:
                raise PassError(ErrorKind.CONTROL_FLOW,
                                "the default case '_' must be the last case", arm.span)
            default = arm
        else:
            labelled.append((label, arm))

    if not labelled:
        if default is None:
            raise PassError(ErrorKind.CONTROL_FLOW, "match has no cases", span)
        return CaseTable(None, [], default)

    resolved = infer_type(registry, [(label, arm.span) for label, arm in labelled])
    by_ctr: dict[str, _Arm] = {}
    for label, arm in labelled:
        ctr = resolved[label]
        if ctr.name in by_ctr:
            raise PassError(ErrorKind.CONTROL_FLOW,
                            f"duplicate case for constructor '{ctr.name}'", arm.span)
        by_ctr[ctr.name] = arm

    type_name = next(iter(resolved.values())).type_name
    ctors = registry.ctors_of(type_name)
    missing = [c.name for c in ctors if c.name not in by_ctr]
    if missing and default is None:
        raise PassError(ErrorKind.CONTROL_FLOW,
                        f"missing case(s) for {', '.join(missing)}", span)
    cases = [(c, by_ctr[c.name]) for c in ctors if c.name in by_ctr]
    return CaseTable(type_name, cases, default if missing else None)


# ── Patterns ─────────────────────────────────────────────────────


def core_pattern(pattern: Pattern) -> CorePattern:
    """Convert an irrefutable surface pattern to a core pattern."""
    match pattern:
        case VarPattern(name=name):
            return PVar(name)
        case WildcardPattern():
            return PVar(None)
        case UnscopedPattern(name=name):
            return PUnscoped(name)
        case TuplePattern(elems=elems):
            return PTuple(tuple(core_pattern(p) for p in elems))
        case SupPattern(elems=elems):
            return PSup(tuple(core_pattern(p) for p in elems))
    raise PassError(ErrorKind.PARSE, "refutable pattern where a binding was expected",
                    pattern.span)


def is_irrefutable(pattern: Pattern) -> bool:
    match pattern:
        case VarPattern() | WildcardPattern() | UnscopedPattern():
            return True
        case TuplePattern(elems=elems) | SupPattern(elems=elems):
            return all(is_irrefutable(p) for p in elems)
    return False


def _normalize(registry: Registry, pattern: Pattern) -> Pattern:
    """A bare name that names a constructor is a nullary constructor pattern."""
    match pattern:
        case VarPattern(name=name, span=span) if registry.resolve_ctr(name):
            return CtrPattern(name, [], span)
        case CtrPattern(name=name, args=args, span=span):
            return CtrPattern(name, [_normalize(registry, p) for p in args], span)
        case TuplePattern(elems=elems, span=span):
            return TuplePattern([_normalize(registry, p) for p in elems], span)
    return pattern


# ── Rule compilation ─────────────────────────────────────────────


@dataclass(frozen=True)
class _Row:
    patterns: tuple[Pattern, ...]
    body: Expr
    lets: tuple[tuple[CorePattern, Term], ...]
    span: Span


def _wildcards(n: int, span: Span) -> tuple[Pattern, ...]:
    return tuple(WildcardPattern(span) for _ in range(n))


class RuleCompiler:
    """Compiles the rules of one definition into a decision tree."""

    def __init__(self, registry: Registry, name: str, compile_body: BodyCompiler) -> None:
        self.registry = registry
        self.name = name
        self.compile_body = compile_body

    def compile(self, rules: list[Rule], span: Span) -> Term:
        arity = len(rules[0].patterns)
        for rule in rules[1:]:
            if len(rule.patterns) != arity:
                raise PassError(
                    ErrorKind.ARITY,
                    f"rules of '{self.name}' have different numbers of arguments "
                    f"({arity} and {len(rule.patterns)})", rule.span,
                )

        patterns = [[_normalize(self.registry, p) for p in r.patterns] for r in rules]
        if len(rules) == 1 and all(is_irrefutable(p) for p in patterns[0]):
            params = [core_pattern(p) for p in patterns[0]]
            bound = [n for p in params for n in _binds(p)]
            return lambdas(params, self.compile_body(rules[0].body, bound))

        args = [f"arg__{i}" for i in range(arity)]
        rows = [_Row(tuple(ps), r.body, (), r.span) for ps, r in zip(patterns, rules)]
        tree = self._compile(args, rows, list(args), span)
        return lambdas([PVar(a) for a in args], tree)

    def _compile(self, args: list[str], rows: list[_Row], scope: list[str],
                 span: Span) -> Term:
        if not rows:
            raise PassError(ErrorKind.CONTROL_FLOW,
                            f"rules of '{self.name}' do not cover every case", span)
        first = rows[0]
        column = next(
            (i for i, p in enumerate(first.patterns) if not is_irrefutable(p)), None,
        )
        if column is None:
            return self._leaf(args, first, scope)

        pattern = first.patterns[column]
        if isinstance(pattern, TuplePattern):
            return self._tuple_column(args, rows, column, len(pattern.elems), scope)
        if isinstance(pattern, NumPattern):
            return self._num_column(args, rows, column, scope)
        return self._ctr_column(args, rows, column, scope)

    def _leaf(self, args: list[str], row: _Row, scope: list[str]) -> Term:
        lets = list(row.lets)
        for arg, p in zip(args, row.patterns):
            core = core_pattern(p)
            if core != PVar(None):
                lets.append((core, Var(arg)))
        bound = list(scope) + [n for p, _ in lets for n in _binds(p)]
        body = self.compile_body(row.body, bound)
        for p, value in reversed(lets):
            body = Let(p, value, body)
        return body

    def _bind_var(self, row: _Row, pattern: Pattern, value: Term) -> _Row:
        """Rebind an irrefutable pattern in a column that was taken apart."""
        core = core_pattern(pattern)
        if core == PVar(None):
            return row
        return _Row(row.patterns, row.body, row.lets + ((core, value),), row.span)

    def _specialize(self, row: _Row, column: int, new: tuple[Pattern, ...]) -> _Row:
        patterns = row.patterns[:column] + new + row.patterns[column + 1:]
        return _Row(patterns, row.body, row.lets, row.span)

    def _tuple_column(self, args: list[str], rows: list[_Row], column: int,
                      size: int, scope: list[str]) -> Term:
        arg = args[column]
        new_args = [f"{arg}__{j}" for j in range(size)]
        new_rows: list[_Row] = []
        for row in rows:
            p = row.patterns[column]
            if isinstance(p, TuplePattern):
                if len(p.elems) != size:
                    raise PassError(ErrorKind.ARITY,
                                    f"tuple pattern has {len(p.elems)} elements, "
                                    f"expected {size}", p.span)
                new_rows.append(self._specialize(row, column, tuple(p.elems)))
            elif is_irrefutable(p):
                row = self._bind_var(row, p, Var(arg))
                new_rows.append(self._specialize(row, column, _wildcards(size, p.span)))
            else:
                raise PassError(ErrorKind.CONTROL_FLOW,
                                "tuple and non-tuple patterns in the same position", p.span)
        rest = args[:column] + new_args + args[column + 1:]
        body = self._compile(rest, new_rows, scope + new_args, rows[0].span)
        return Let(PTuple(tuple(PVar(a) for a in new_args)), Var(arg), body)

    def _num_column(self, args: list[str], rows: list[_Row], column: int,
                    scope: list[str]) -> Term:
        arg = args[column]
        values: list[int] = []
        for row in rows:
            p = row.patterns[column]
            if isinstance(p, NumPattern):
                if p.value not in values:
                    values.append(p.value)
            elif is_irrefutable(p):
                break
            else:
                raise PassError(ErrorKind.CONTROL_FLOW,
                                "number and constructor patterns in the same position", p.span)
        k = len(values)
        if sorted(values) != list(range(k)):
            raise PassError(ErrorKind.CONTROL_FLOW,
                            f"number patterns of '{self.name}' must cover 0..{k - 1} "
                            "without gaps", rows[0].span)

        pred = f"{arg}-{k}"
        rest = args[:column] + args[column + 1:]
        cases: list[Term] = []
        for n in [*range(k), None]:
            value: Term = (Num(NumKind.U24, n) if n is not None
                           else Opr("+", Var(pred), Num(NumKind.U24, k)))
            sub_rows: list[_Row] = []
            for row in rows:
                p = row.patterns[column]
                if isinstance(p, NumPattern):
                    if p.value != n:
                        continue
                else:
                    row = self._bind_var(row, p, value)
                sub_rows.append(self._specialize(row, column, ()))
            if n is None and not sub_rows:
                raise PassError(ErrorKind.CONTROL_FLOW,
                                f"rules of '{self.name}' need a default case after "
                                f"number patterns 0..{k - 1}", rows[-1].span)
            sub_scope = scope + [pred] if n is None else scope
            cases.append(self._compile(rest, sub_rows, sub_scope, rows[0].span))
        return Switch(Var(arg), arg, tuple(cases))

    def _ctr_column(self, args: list[str], rows: list[_Row], column: int,
                    scope: list[str]) -> Term:
        arg = args[column]
        labels = [(p.name, p.span) for r in rows
                  if isinstance(p := r.patterns[column], CtrPattern)]
        resolved = infer_type(self.registry, labels)
        type_name = next(iter(resolved.values())).type_name

        cases: list[MatchCase] = []
        for ctr in self.registry.ctors_of(type_name):
            fields = [f"{arg}.{f}" for f in ctr.field_names]
            rebuilt = Ctr(type_name, ctr.name, tuple(Var(f) for f in fields))
            sub_rows: list[_Row] = []
            for row in rows:
                p = row.patterns[column]
                if isinstance(p, CtrPattern):
                    if resolved[p.name].name != ctr.name:
                        continue
                    if len(p.args) != ctr.arity:
                        raise PassError(ErrorKind.ARITY,
                                        f"constructor '{ctr.name}' has {ctr.arity} field(s), "
                                        f"pattern gives {len(p.args)}", p.span)
                    sub_rows.append(self._specialize(row, column, tuple(p.args)))
                elif isinstance(p, (TuplePattern, NumPattern)):
                    raise PassError(ErrorKind.CONTROL_FLOW,
                                    "constructor and non-constructor patterns in the same "
                                    "position", p.span)
                else:
                    row = self._bind_var(row, p, rebuilt)
                    sub_rows.append(
                        self._specialize(row, column, _wildcards(ctr.arity, p.span)))
            if not sub_rows:
                raise PassError(ErrorKind.CONTROL_FLOW,
                                f"rules of '{self.name}' have no case for '{ctr.name}'",
                                rows[0].span)
            rest = args[:column] + fields + args[column + 1:]
            body = self._compile(rest, sub_rows, scope + fields, rows[0].span)
            cases.append(MatchCase(ctr.name, tuple(fields), body))
        return Match(Var(arg), arg, tuple(cases))


def _binds(pattern: CorePattern) -> list[str]:
    return list(pattern_binds(pattern))


def compile_rules(registry: Registry, name: str, rules: list[Rule], span: Span,
                  compile_body: BodyCompiler) -> Term:
    """Compile a definition's rules into one term."""
    return RuleCompiler(registry, name, compile_body).compile(rules, span)
