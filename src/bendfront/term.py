"""Core Term IR handed to the graph-reduction backend.

Every node is a frozen dataclass with tuple children, so a built tree is
never mutated. Passes that rewrite a term build a new one.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Union

from bendfront.source import Span


class NumKind(Enum):
    U24 = "u24"
    I24 = "i24"
    F24 = "f24"


# ── Patterns ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class PVar:
    name: str | None  # None erases the bound value


@dataclass(frozen=True)
class PUnscoped:
    name: str


@dataclass(frozen=True)
class PTuple:
    elems: tuple[Pattern, ...]


@dataclass(frozen=True)
class PSup:
    elems: tuple[Pattern, ...]


Pattern = Union[PVar, PUnscoped, PTuple, PSup]


# ── Terms ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Var:
    name: str


@dataclass(frozen=True)
class UnscopedVar:
    name: str


@dataclass(frozen=True)
class Era:
    pass


@dataclass(frozen=True)
class Lam:
    pattern: Pattern
    body: Term


@dataclass(frozen=True)
class UnscopedLam:
    name: str
    body: Term


@dataclass(frozen=True)
class App:
    func: Term
    args: tuple[Term, ...]


@dataclass(frozen=True)
class Tuple:
    elems: tuple[Term, ...]


@dataclass(frozen=True)
class Sup:
    elems: tuple[Term, ...]


@dataclass(frozen=True)
class Let:
    pattern: Pattern
    value: Term
    next: Term


@dataclass(frozen=True)
class Switch:
    """Numeric switch: ``cases[i]`` handles ``i`` for all but the last case.

    The last case is the default; it sees ``<bind>-<k>`` bound to the
    scrutinee minus ``k``, where ``k`` is the number of numbered cases.
    """

    arg: Term
    bind: str | None
    cases: tuple[Term, ...]

    @property
    def pred_name(self) -> str | None:
        if self.bind is None:
            return None
        return f"{self.bind}-{len(self.cases) - 1}"


@dataclass(frozen=True)
class MatchCase:
    ctr: str
    binds: tuple[str | None, ...]
    body: Term


@dataclass(frozen=True)
class Match:
    """Constructor match. The default case sees ``bind`` as the whole value."""

    arg: Term
    bind: str | None
    cases: tuple[MatchCase, ...]
    default: Term | None = None


@dataclass(frozen=True)
class Num:
    kind: NumKind
    value: int | float


@dataclass(frozen=True)
class Ctr:
    type_name: str
    name: str
    args: tuple[Term, ...]


@dataclass(frozen=True)
class Opr:
    op: str
    left: Term
    right: Term


Term = Union[
    Var, UnscopedVar, Era, Lam, UnscopedLam, App, Tuple, Sup,
    Let, Switch, Match, Num, Ctr, Opr,
]


# ── Definitions ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Definition:
    name: str
    body: Term
    span: Span | None = None
    source: str | None = None  # name of the user definition that generated this one

    @property
    def generated(self) -> bool:
        return self.source is not None

    @property
    def owner(self) -> str:
        return self.source if self.source is not None else self.name


@dataclass(frozen=True)
class Book:
    definitions: tuple[Definition, ...]

    def get(self, name: str) -> Definition | None:
        for d in self.definitions:
            if d.name == name:
                return d
        return None

    def names(self) -> list[str]:
        return [d.name for d in self.definitions]


# ── Traversal helpers ────────────────────────────────────────────


def pattern_binds(pattern: Pattern) -> Iterator[str]:
    """Yield the scoped names a pattern binds, left to right."""
    if isinstance(pattern, PVar):
        if pattern.name is not None:
            yield pattern.name
    elif isinstance(pattern, (PTuple, PSup)):
        for p in pattern.elems:
            yield from pattern_binds(p)


def children(term: Term) -> Iterator[tuple[Term, frozenset[str]]]:
    """Yield each direct subterm with the scoped names it newly binds."""
    empty: frozenset[str] = frozenset()
    match term:
        case Lam(pattern=p, body=b):
            yield b, frozenset(pattern_binds(p))
        case UnscopedLam(body=b):
            yield b, empty
        case App(func=f, args=args):
            yield f, empty
            for a in args:
                yield a, empty
        case Tuple(elems=elems) | Sup(elems=elems):
            for e in elems:
                yield e, empty
        case Let(pattern=p, value=v, next=n):
            yield v, empty
            yield n, frozenset(pattern_binds(p))
        case Switch(arg=a, cases=cases):
            yield a, empty
            for c in cases[:-1]:
                yield c, empty
            pred = term.pred_name
            yield cases[-1], frozenset([pred]) if pred else empty
        case Match(arg=a, bind=bind, cases=cases, default=default):
            yield a, empty
            for c in cases:
                yield c.body, frozenset(b for b in c.binds if b is not None)
            if default is not None:
                yield default, frozenset([bind]) if bind else empty
        case Ctr(args=args):
            for a in args:
                yield a, empty
        case Opr(left=l, right=r):
            yield l, empty
            yield r, empty
        case _:
            return


def free_vars(term: Term) -> list[str]:
    """Free scoped variable names of a term, in order of first occurrence."""
    seen: dict[str, None] = {}
    stack: list[tuple[Term, frozenset[str]]] = [(term, frozenset())]
    while stack:
        t, bound = stack.pop()
        if isinstance(t, Var):
            if t.name not in bound:
                seen.setdefault(t.name, None)
            continue
        kids = [(child, bound | binds if binds else bound) for child, binds in children(t)]
        stack.extend(reversed(kids))
    return list(seen)


def walk(term: Term) -> Iterator[Term]:
    """Yield every subterm in pre-order."""
    stack = [term]
    while stack:
        t = stack.pop()
        yield t
        stack.extend(reversed([child for child, _ in children(t)]))


def _rebuild(term: Term, kids: list[Term]) -> Term:
    """Rebuild ``term`` with new direct subterms, in ``children`` order."""
    match term:
        case Lam(pattern=p):
            return Lam(p, kids[0])
        case UnscopedLam(name=n):
            return UnscopedLam(n, kids[0])
        case App():
            return App(kids[0], tuple(kids[1:]))
        case Tuple():
            return Tuple(tuple(kids))
        case Sup():
            return Sup(tuple(kids))
        case Let(pattern=p):
            return Let(p, kids[0], kids[1])
        case Switch(bind=bind):
            return Switch(kids[0], bind, tuple(kids[1:]))
        case Match(bind=bind, cases=cases, default=default):
            bodies = kids[1:1 + len(cases)]
            return Match(kids[0], bind,
                         tuple(MatchCase(c.ctr, c.binds, b) for c, b in zip(cases, bodies)),
                         None if default is None else kids[-1])
        case Ctr(type_name=ty, name=name):
            return Ctr(ty, name, tuple(kids))
        case Opr(op=op):
            return Opr(op, kids[0], kids[1])
    return term


def replace_free(term: Term, fn: Callable[[Var], Term | None]) -> Term:
    """Rebuild ``term`` replacing free ``Var`` nodes for which ``fn`` returns a term.

    Works bottom-up with an explicit stack: literals become long ``Ctr``
    chains and must not hit the interpreter's recursion limit.
    """
    done: list[Term] = []
    # (term, bound names, number of children once expanded or -1)
    stack: list[tuple[Term, frozenset[str], int]] = [(term, frozenset(), -1)]
    while stack:
        t, bound, count = stack.pop()
        if count >= 0:
            kids = done[len(done) - count:]
            del done[len(done) - count:]
            done.append(_rebuild(t, kids))
            continue
        if isinstance(t, Var):
            repl = None if t.name in bound else fn(t)
            done.append(t if repl is None else repl)
            continue
        kids = list(children(t))
        if not kids:
            done.append(t)
            continue
        stack.append((t, bound, len(kids)))
        for child, binds in reversed(kids):
            stack.append((child, bound | binds if binds else bound, -1))
    return done[0]


def lambdas(params: list[Pattern], body: Term) -> Term:
    """Wrap ``body`` in one lambda per pattern, outermost first."""
    for p in reversed(params):
        if isinstance(p, PUnscoped):
            body = UnscopedLam(p.name, body)
        else:
            body = Lam(p, body)
    return body
