"""Pass 3: whole-program checks over the desugared book.

Runs once every definition has been through Pass 2: unbound names,
unscoped-variable linearity, and the ``unused-defs`` and
``match-only-vars`` warnings.
"""

from __future__ import annotations

from collections.abc import Sequence

from bendfront.ast_nodes import FunDef, ImpDef
from bendfront.config import WarningConfig, WarningState
from bendfront.errors import Diagnostic, DiagnosticLabel, ErrorKind, Severity, make_error
from bendfront.linearity import check_linearity
from bendfront.registry import Registry
from bendfront.source import Span
from bendfront.term import Definition, Match, free_vars, walk

ENTRY_POINTS = frozenset({"main", "Main"})


class Checker:
    """Checks a book of definitions. Results accumulate in ``self.diagnostics``."""

    def __init__(self, registry: Registry, warnings: WarningConfig | None = None) -> None:
        self.registry = registry
        self.warnings = warnings or WarningConfig()
        self.diagnostics: list[Diagnostic] = []

    def check(self, definitions: Sequence[Definition],
              declarations: Sequence[FunDef | ImpDef] = ()) -> list[Diagnostic]:
        """Check the book.

        Linearity is counted on ``declarations``, the source forms the
        definitions were compiled from.
        """
        globals_ = set(self.registry.functions) | {d.name for d in definitions}
        for d in definitions:
            self._check_unbound(d, globals_)
        self.diagnostics.extend(check_linearity(declarations))
        self._check_unused(definitions)
        self._check_match_only_vars(definitions)
        return self.diagnostics

    def _warning(self, state: WarningState, code: str, message: str,
                 span: Span | None) -> None:
        if state is WarningState.ALLOW:
            return
        severity = Severity.ERROR if state is WarningState.DENY else Severity.WARNING
        labels = [DiagnosticLabel(span=span, message="")] if span is not None else []
        self.diagnostics.append(Diagnostic(
            severity=severity,
            code=code,
            message=message,
            labels=labels,
        ))

    # ── Names ────────────────────────────────────────────────────

    def _check_unbound(self, definition: Definition, globals_: set[str]) -> None:
        for name in free_vars(definition.body):
            if name not in globals_:
                self.diagnostics.append(make_error(
                    ErrorKind.NAME,
                    f"unbound variable '{name}' in '{definition.owner}'",
                    definition.span,
                ))

    # ── Warnings ─────────────────────────────────────────────────

    def _check_unused(self, definitions: Sequence[Definition]) -> None:
        owners = {d.name: d.owner for d in definitions}
        referenced: set[str] = set()
        for d in definitions:
            for name in free_vars(d.body):
                if owners.get(name, name) != d.owner:
                    referenced.add(name)
        for d in definitions:
            if d.generated or d.name in ENTRY_POINTS or d.name in referenced:
                continue
            self._warning(self.warnings.unused_defs, "W100",
                          f"definition '{d.name}' is never used", d.span)

    def _check_match_only_vars(self, definitions: Sequence[Definition]) -> None:
        for d in definitions:
            for t in walk(d.body):
                if isinstance(t, Match) and not t.cases:
                    self._warning(
                        self.warnings.match_only_vars, "W200",
                        f"match in '{d.owner}' has only a default case; "
                        "use a plain binding instead", d.span,
                    )
