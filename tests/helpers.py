"""Shared test helpers for the bendfront test suite."""

from __future__ import annotations

import pytest

from bendfront.ast_nodes import Program
from bendfront.errors import CompileError, Diagnostic, ErrorKind
from bendfront.lexer import Lexer
from bendfront.parser import Parser
from bendfront.pipeline import CompileOptions, CompileResult, compile_source
from bendfront.printer import show_term
from bendfront.tokens import TokenKind


def lex_kinds(source: str) -> list[TokenKind]:
    """Token kinds of ``source``, without the trailing EOF."""
    return [t.kind for t in Lexer(source, "<test>").lex()][:-1]


def parse_program(source: str) -> Program:
    """Parse source, asserting no parse errors."""
    tokens = Lexer(source, "<test>").lex()
    parser = Parser(tokens, "<test>")
    program = parser.parse()
    assert not parser.diagnostics, [d.message for d in parser.diagnostics]
    return program


def compile_ok(source: str, options: CompileOptions | None = None) -> CompileResult:
    """Compile source, asserting no errors. Returns the compile result."""
    try:
        return compile_source(source, "<test>", options)
    except CompileError as e:
        pytest.fail(f"Unexpected errors: {[f'{d.code}: {d.message}' for d in e.diagnostics]}")


def compile_fails(source: str, kind: ErrorKind,
                  options: CompileOptions | None = None) -> list[Diagnostic]:
    """Compile source, asserting an error of the given kind is reported."""
    with pytest.raises(CompileError) as info:
        compile_source(source, "<test>", options)
    matching = [d for d in info.value.diagnostics if d.kind is kind]
    assert matching, (
        f"Expected {kind.value} but got: "
        f"{[f'{d.code}: {d.message}' for d in info.value.diagnostics]}"
    )
    return matching


def term_of(source: str, name: str = "main") -> str:
    """Compile source and render the body of one definition."""
    definition = compile_ok(source).get(name)
    assert definition is not None, f"no definition named {name!r}"
    return show_term(definition.body)
