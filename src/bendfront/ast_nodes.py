"""Surface AST for both syntaxes.

Expressions and patterns are shared by the two surfaces; statements exist
only in the imperative surface and disappear during lowering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from bendfront.source import Span
from bendfront.term import NumKind

# ── Patterns ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class VarPattern:
    name: str
    span: Span


@dataclass(frozen=True)
class UnscopedPattern:
    name: str
    span: Span


@dataclass(frozen=True)
class NumPattern:
    value: int
    span: Span


@dataclass(frozen=True)
class CtrPattern:
    name: str
    args: list[Pattern]
    span: Span


@dataclass(frozen=True)
class TuplePattern:
    elems: list[Pattern]
    span: Span


@dataclass(frozen=True)
class SupPattern:
    elems: list[Pattern]
    span: Span


@dataclass(frozen=True)
class WildcardPattern:
    span: Span


Pattern = Union[
    VarPattern, UnscopedPattern, NumPattern, CtrPattern,
    TuplePattern, SupPattern, WildcardPattern,
]


# ── Expressions ──────────────────────────────────────────────────


@dataclass(frozen=True)
class VarExpr:
    name: str
    span: Span


@dataclass(frozen=True)
class UnscopedExpr:
    name: str
    span: Span


@dataclass(frozen=True)
class EraExpr:
    span: Span


@dataclass(frozen=True)
class NumLit:
    kind: NumKind
    value: int | float
    span: Span


@dataclass(frozen=True)
class CharLit:
    codepoint: int
    span: Span


@dataclass(frozen=True)
class SymbolLit:
    text: str
    span: Span


@dataclass(frozen=True)
class StringLit:
    codepoints: tuple[int, ...]
    span: Span


@dataclass(frozen=True)
class NatLit:
    value: int
    span: Span


@dataclass(frozen=True)
class ListExpr:
    elements: list[Expr]
    span: Span


@dataclass(frozen=True)
class ComprehensionExpr:
    element: Expr
    var: Pattern
    iterable: Expr
    condition: Expr | None
    span: Span


@dataclass(frozen=True)
class LambdaExpr:
    params: list[Pattern]
    body: Expr
    span: Span


@dataclass(frozen=True)
class Arg:
    name: str | None  # None for positional arguments
    value: Expr
    span: Span


@dataclass(frozen=True)
class CallExpr:
    func: Expr
    args: list[Arg]
    span: Span


@dataclass(frozen=True)
class BinaryExpr:
    op: str
    left: Expr
    right: Expr
    span: Span


@dataclass(frozen=True)
class TupleExpr:
    elems: list[Expr]
    span: Span


@dataclass(frozen=True)
class SupExpr:
    elems: list[Expr]
    span: Span


@dataclass(frozen=True)
class LetExpr:
    pattern: Pattern
    value: Expr
    body: Expr
    span: Span


@dataclass(frozen=True)
class SwitchArm:
    label: int | None  # None for the default arm
    body: Expr
    span: Span


@dataclass(frozen=True)
class SwitchExpr:
    bind: str | None
    arg: Expr
    arms: list[SwitchArm]
    span: Span


@dataclass(frozen=True)
class MatchArm:
    label: str | None  # None for the default arm
    body: Expr
    span: Span


@dataclass(frozen=True)
class MatchExpr:
    bind: str | None
    arg: Expr
    arms: list[MatchArm]
    span: Span


@dataclass(frozen=True)
class FoldExpr:
    bind: str | None
    arg: Expr
    arms: list[MatchArm]
    span: Span


@dataclass(frozen=True)
class BendBinding:
    name: str
    init: Expr
    span: Span


@dataclass(frozen=True)
class BendExpr:
    bindings: list[BendBinding]
    cond: Expr
    step: Expr
    base: Expr
    span: Span


@dataclass(frozen=True)
class OpenExpr:
    type_name: str
    var: str
    body: Expr
    span: Span


@dataclass(frozen=True)
class DoStep:
    pattern: Pattern | None  # None discards the unwrapped value
    value: Expr
    span: Span


@dataclass(frozen=True)
class DoExpr:
    monad: str
    steps: list[DoStep]
    result: Expr
    span: Span


Expr = Union[
    VarExpr, UnscopedExpr, EraExpr,
    NumLit, CharLit, SymbolLit, StringLit, NatLit, ListExpr, ComprehensionExpr,
    LambdaExpr, CallExpr, BinaryExpr, TupleExpr, SupExpr, LetExpr,
    SwitchExpr, MatchExpr, FoldExpr, BendExpr, OpenExpr, DoExpr,
]


# ── Statements (imperative surface) ──────────────────────────────


@dataclass(frozen=True)
class AssignStmt:
    pattern: Pattern
    value: Expr
    span: Span


@dataclass(frozen=True)
class InPlaceOpStmt:
    name: str
    op: str
    value: Expr
    span: Span


@dataclass(frozen=True)
class ReturnStmt:
    value: Expr
    span: Span


@dataclass(frozen=True)
class IfStmt:
    cond: Expr
    then_body: list[Stmt]
    else_body: list[Stmt]
    span: Span


@dataclass(frozen=True)
class SwitchCase:
    label: int | None
    body: list[Stmt]
    span: Span


@dataclass(frozen=True)
class SwitchStmt:
    bind: str | None
    arg: Expr
    cases: list[SwitchCase]
    span: Span


@dataclass(frozen=True)
class MatchCase:
    label: str | None
    body: list[Stmt]
    span: Span


@dataclass(frozen=True)
class MatchStmt:
    bind: str | None
    arg: Expr
    cases: list[MatchCase]
    span: Span


@dataclass(frozen=True)
class FoldStmt:
    bind: str | None
    arg: Expr
    cases: list[MatchCase]
    span: Span


@dataclass(frozen=True)
class BendStmt:
    bindings: list[BendBinding]
    cond: Expr
    step: list[Stmt]
    base: list[Stmt]
    span: Span


@dataclass(frozen=True)
class OpenStmt:
    type_name: str
    var: str
    span: Span


@dataclass(frozen=True)
class DoStmt:
    monad: str
    steps: list[DoStep]
    result: Expr | None  # None when the block does not end in a value
    span: Span


Stmt = Union[
    AssignStmt, InPlaceOpStmt, ReturnStmt, IfStmt, SwitchStmt,
    MatchStmt, FoldStmt, BendStmt, OpenStmt, DoStmt,
]


# ── Declarations ─────────────────────────────────────────────────


@dataclass(frozen=True)
class FieldDecl:
    name: str
    recursive: bool
    span: Span


@dataclass(frozen=True)
class CtrDecl:
    name: str
    fields: list[FieldDecl]
    span: Span


@dataclass(frozen=True)
class TypeDecl:
    name: str
    ctors: list[CtrDecl]
    is_object: bool
    span: Span


@dataclass(frozen=True)
class Rule:
    patterns: list[Pattern]
    body: Expr
    span: Span


@dataclass(frozen=True)
class FunDef:
    """A functional-surface definition: one or more pattern-matching rules."""

    name: str
    rules: list[Rule]
    span: Span


@dataclass(frozen=True)
class ImpDef:
    """An imperative-surface definition, before lowering."""

    name: str
    params: list[str]
    body: list[Stmt]
    span: Span


Declaration = Union[TypeDecl, FunDef, ImpDef]


@dataclass(frozen=True)
class Program:
    declarations: list[Declaration]
    span: Span
