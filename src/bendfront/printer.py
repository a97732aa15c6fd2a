"""Canonical s-expression rendering of Core IR.

Used by the ``desugar`` command and for golden comparisons in tests.
"""

from __future__ import annotations

from typing import Union

from bendfront.term import (
    App,
    Book,
    Ctr,
    Definition,
    Era,
    Lam,
    Let,
    Match,
    Num,
    NumKind,
    Opr,
    Pattern,
    PSup,
    PTuple,
    PUnscoped,
    PVar,
    Sup,
    Switch,
    Term,
    Tuple,
    UnscopedLam,
    UnscopedVar,
    Var,
)

_Piece = Union[str, Term]


def _sexp(head: str, *parts: str) -> str:
    return "(" + " ".join((head, *parts)) + ")"


def show_pattern(p: Pattern) -> str:
    match p:
        case PVar(name=name):
            return name if name is not None else "*"
        case PUnscoped(name=name):
            return f"${name}"
        case PTuple(elems=elems):
            return _sexp("tuple", *(show_pattern(e) for e in elems))
        case PSup(elems=elems):
            return _sexp("sup", *(show_pattern(e) for e in elems))
    raise TypeError(f"not a pattern: {p!r}")


def show_num(n: Num) -> str:
    if n.kind is NumKind.I24:
        return f"{n.value:+d}"
    if n.kind is NumKind.F24:
        return repr(float(n.value))
    return str(n.value)


def _group(head: _Piece, *parts: _Piece | list[_Piece]) -> list[_Piece]:
    pieces: list[_Piece] = ["(", head]
    for part in parts:
        pieces.append(" ")
        if isinstance(part, list):
            pieces.extend(part)
        else:
            pieces.append(part)
    pieces.append(")")
    return pieces


def _pieces(t: Term) -> list[_Piece]:
    """One level of a term's rendering; subterms are left for the caller."""
    match t:
        case Var(name=name):
            return [name]
        case UnscopedVar(name=name):
            return [f"${name}"]
        case Era():
            return ["*"]
        case Lam(pattern=p, body=b):
            return _group("λ", show_pattern(p), b)
        case UnscopedLam(name=name, body=b):
            return _group("λ", f"${name}", b)
        case App(func=f, args=args):
            return _group(f, *args)
        case Tuple(elems=elems):
            return _group("tuple", *elems)
        case Sup(elems=elems):
            return _group("sup", *elems)
        case Let(pattern=p, value=v, next=n):
            return _group("let", show_pattern(p), v, n)
        case Switch(arg=a, bind=bind, cases=cases):
            arms = [_group(str(i), c) for i, c in enumerate(cases[:-1])]
            arms.append(_group("_", cases[-1]))
            return _group("switch", bind or "*", a, *arms)
        case Match(arg=a, bind=bind, cases=cases, default=default):
            arms = [
                _group(c.ctr, _group("fields", *(b or "*" for b in c.binds)), c.body)
                for c in cases
            ]
            if default is not None:
                arms.append(_group("_", default))
            return _group("match", bind or "*", a, *arms)
        case Num():
            return [show_num(t)]
        case Ctr(name=name, args=args):
            return _group("ctr", name, *args)
        case Opr(op=op, left=l, right=r):
            return _group("op", op, l, r)
    raise TypeError(f"not a term: {t!r}")


def show_term(t: Term) -> str:
    out: list[str] = []
    stack: list[_Piece] = [t]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            out.append(item)
        else:
            stack.extend(reversed(_pieces(item)))
    return "".join(out)


def show_definition(d: Definition) -> str:
    return f"(def {d.name} {show_term(d.body)})"


def show_book(book: Book) -> str:
    return "\n".join(show_definition(d) for d in book.definitions)
