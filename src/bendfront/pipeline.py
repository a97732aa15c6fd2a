"""Compilation driver: source units in, Core IR book and diagnostics out.

Pass 1 (parsing and the registry) and Pass 3 (whole-book checks) are
barriers. Pass 2 works one definition at a time against the read-only
registry, so it may run on a thread pool; results are kept in source
order either way.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from bendfront.ast_nodes import FunDef, ImpDef, Program
from bendfront.checker import Checker
from bendfront.config import BendfrontConfig, CheckMode, WarningConfig
from bendfront.desugar import desugar_definition
from bendfront.errors import CompileError, Diagnostic, DiagnosticSink, PassError, Severity
from bendfront.lexer import Lexer
from bendfront.lowering import lower_definition
from bendfront.parser import Parser
from bendfront.registry import Registry, build_registry
from bendfront.source import SourceUnit
from bendfront.term import Book, Definition

logger = logging.getLogger("Pipeline")


@dataclass
class CompileOptions:
    fail_fast: bool = False
    jobs: int = 1
    warnings: WarningConfig = field(default_factory=WarningConfig)

    @classmethod
    def from_config(cls, config: BendfrontConfig) -> CompileOptions:
        return cls(
            fail_fast=config.check.mode is CheckMode.FAIL_FAST,
            jobs=config.check.jobs,
            warnings=config.warnings,
        )


@dataclass
class CompileResult:
    book: Book
    registry: Registry
    diagnostics: list[Diagnostic] = field(default_factory=list)  # warnings only

    def get(self, name: str) -> Definition | None:
        return self.book.get(name)


def _has_errors(diagnostics: Sequence[Diagnostic]) -> bool:
    return any(d.severity is Severity.ERROR for d in diagnostics)


def parse_unit(unit: SourceUnit) -> tuple[Program | None, list[Diagnostic]]:
    """Lex and parse one unit. A lexical error loses the whole unit."""
    try:
        tokens = Lexer(unit.text, unit.name).lex()
    except CompileError as e:
        return None, e.diagnostics
    parser = Parser(tokens, unit.name)
    program = parser.parse()
    return program, parser.diagnostics


def compile_definition(registry: Registry,
                       decl: FunDef | ImpDef) -> tuple[list[Definition], Diagnostic | None]:
    """Pass 2 for one definition: lowering, match compilation and desugaring."""
    try:
        fundef = lower_definition(decl) if isinstance(decl, ImpDef) else decl
        return desugar_definition(registry, fundef), None
    except PassError as e:
        logger.debug("%s: %s", decl.name, e)
        return [], e.diagnostic


class _Pipeline:
    def __init__(self, units: Sequence[SourceUnit], options: CompileOptions) -> None:
        self.units = units
        self.options = options
        self.diagnostics: list[Diagnostic] = []
        self._order = {u.name: i for i, u in enumerate(units)}

    def _stop(self) -> bool:
        return self.options.fail_fast and _has_errors(self.diagnostics)

    def _sort_key(self, d: Diagnostic) -> tuple[int, int, int]:
        span = d.span
        if span is None:
            return (len(self.units), 0, 0)
        return (self._order.get(span.file, len(self.units)), span.start_line, span.start_col)

    def run(self) -> tuple[Book, Registry]:
        started = time.perf_counter()
        programs: list[Program] = []
        for unit in self.units:
            program, diagnostics = parse_unit(unit)
            self.diagnostics.extend(diagnostics)
            if program is not None:
                programs.append(program)
        registry, diagnostics = build_registry(programs)
        self.diagnostics.extend(diagnostics)
        logger.debug("pass 1: %d unit(s) in %.3fs", len(self.units),
                     time.perf_counter() - started)
        if self._stop():
            return Book(()), registry

        started = time.perf_counter()
        decls = [
            d for p in programs for d in p.declarations
            if isinstance(d, (FunDef, ImpDef)) and self._registered(registry, d)
        ]

        def work(decl: FunDef | ImpDef) -> tuple[list[Definition], Diagnostic | None]:
            return compile_definition(registry, decl)

        if self.options.jobs > 1 and len(decls) > 1:
            with ThreadPoolExecutor(max_workers=self.options.jobs) as executor:
                results = list(executor.map(work, decls))
        else:
            results = [work(d) for d in decls]

        definitions: list[Definition] = []
        compiled: list[FunDef | ImpDef] = []
        for decl, (defs, diagnostic) in zip(decls, results):
            definitions.extend(defs)
            if diagnostic is not None:
                self.diagnostics.append(diagnostic)
            else:
                compiled.append(decl)
        logger.debug("pass 2: %d definition(s) with %d job(s) in %.3fs", len(decls),
                     self.options.jobs, time.perf_counter() - started)
        book = Book(tuple(definitions))
        if self._stop():
            return book, registry

        started = time.perf_counter()
        checker = Checker(registry, self.options.warnings)
        self.diagnostics.extend(checker.check(definitions, compiled))
        logger.debug("pass 3: %d definition(s) in %.3fs", len(definitions),
                     time.perf_counter() - started)
        return book, registry

    @staticmethod
    def _registered(registry: Registry, decl: FunDef | ImpDef) -> bool:
        # Declarations the registry rejected (duplicates) are not compiled.
        info = registry.function(decl.name)
        return info is not None and info.span == decl.span

    def ordered(self) -> list[Diagnostic]:
        diagnostics = sorted(self.diagnostics, key=self._sort_key)
        if self.options.fail_fast:
            errors = [d for d in diagnostics if d.severity is Severity.ERROR]
            if errors:
                return errors[:1]
        return diagnostics


def compile_units(units: Sequence[SourceUnit], options: CompileOptions | None = None,
                  sink: DiagnosticSink | None = None) -> CompileResult:
    """Compile source units into a book of Core IR definitions.

    Every diagnostic is passed to ``sink`` in source order. Raises
    CompileError carrying the errors when any remain.
    """
    pipeline = _Pipeline(units, options or CompileOptions())
    book, registry = pipeline.run()
    diagnostics = pipeline.ordered()
    if sink is not None:
        for d in diagnostics:
            sink(d)
    errors = [d for d in diagnostics if d.severity is Severity.ERROR]
    if errors:
        raise CompileError(errors)
    return CompileResult(book, registry, diagnostics)


def compile_source(text: str, name: str = "<stdin>", options: CompileOptions | None = None,
                   sink: DiagnosticSink | None = None) -> CompileResult:
    """Compile a single source text."""
    return compile_units([SourceUnit(name, text)], options, sink)
