"""Linearity check for unscoped variables.

Every unscoped name must have exactly one binder and exactly one use
within the user definition it belongs to, helpers lifted from it included.
Counting happens on the declaration as written, before lowering and rule
compilation copy bodies into several branches.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import fields, is_dataclass

from bendfront.ast_nodes import FunDef, ImpDef, UnscopedExpr, UnscopedPattern
from bendfront.errors import Diagnostic, ErrorKind, make_error
from bendfront.source import Span


def count_unscoped(decl: FunDef | ImpDef) -> tuple[Counter[str], Counter[str]]:
    """Count binders and uses of each unscoped name in a declaration."""
    binders: Counter[str] = Counter()
    uses: Counter[str] = Counter()
    stack: list[object] = [decl]
    while stack:
        node = stack.pop()
        if isinstance(node, UnscopedPattern):
            binders[node.name] += 1
        elif isinstance(node, UnscopedExpr):
            uses[node.name] += 1
        elif isinstance(node, list):
            stack.extend(node)
        elif is_dataclass(node) and not isinstance(node, Span):
            stack.extend(getattr(node, f.name) for f in fields(node))
    return binders, uses


def check_linearity(declarations: Sequence[FunDef | ImpDef]) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    for decl in declarations:
        binders, uses = count_unscoped(decl)
        for name in dict.fromkeys([*binders, *uses]):
            b, u = binders[name], uses[name]
            if b == 1 and u == 1:
                continue
            diagnostics.append(make_error(
                ErrorKind.LINEARITY,
                f"unscoped variable '${name}' in '{decl.name}' is bound {b} time(s) "
                f"and used {u} time(s); it must be bound and used exactly once",
                decl.span,
            ))
    return diagnostics
