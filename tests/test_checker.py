"""Tests for the Pass 3 checks: names, linearity and warnings."""

from __future__ import annotations

import pytest

from bendfront.checker import Checker
from bendfront.config import WarningConfig, WarningState
from bendfront.errors import CompileError, ErrorKind, Severity
from bendfront.linearity import check_linearity, count_unscoped
from bendfront.pipeline import CompileOptions, compile_source
from bendfront.printer import show_term
from bendfront.registry import build_registry
from bendfront.term import Definition, Var
from tests.helpers import compile_fails, compile_ok, parse_program


def _codes(result) -> list[str]:
    return [d.code for d in result.diagnostics]


class TestLinearity:
    def test_used_twice(self):
        diags = compile_fails("main = λ$x (+ $x $x)\n", ErrorKind.LINEARITY)
        assert "'$x'" in diags[0].message
        assert "'main'" in diags[0].message

    def test_never_used(self):
        compile_fails("main = λ$x 1\n", ErrorKind.LINEARITY)

    def test_used_without_binder(self):
        compile_fails("main = $y\n", ErrorKind.LINEARITY)

    def test_used_exactly_once(self):
        compile_ok("main = λ$x $x\n")

    def test_binder_and_use_in_different_lambdas(self):
        compile_ok("main = (λ$x 1, λa $x)\n")

    def test_imperative_unscoped(self):
        compile_ok("def main():\n  return lambda $x: (1, $x)\n")
        compile_fails("def main():\n  return lambda $x: ($x, $x)\n", ErrorKind.LINEARITY)

    def test_use_inside_generated_helper_counts_with_owner(self):
        compile_ok("main = λ$x fold l = [1] { List/Cons: $x; List/Nil: 0 }\n")

    def test_fallback_rule_over_several_constructors(self):
        result = compile_ok(
            "data T = A | B | C\n"
            "(f A) = 0\n"
            "(f x) = (λ$a 1 $a)\n"
            "main = (f B)\n"
        )
        # The fallback body is compiled once for each of B and C.
        assert show_term(result.get("f").body).count("$a") == 4

    def test_fall_through_copies_the_rest_of_the_block(self):
        compile_ok(
            "def main(c):\n"
            "  f = lambda $a: 1\n"
            "  if c:\n"
            "    y = 1\n"
            "  else:\n"
            "    y = 2\n"
            "  return (f, $a, y)\n"
        )

    def test_count_unscoped(self):
        decl = parse_program("main = (λ$x 1, λa $x)\n").declarations[0]
        binders, uses = count_unscoped(decl)
        assert binders["x"] == 1
        assert uses["x"] == 1

    def test_check_linearity_reports_declaration(self):
        decl = parse_program("def f():\n  return lambda $x: ($x, $x)\n").declarations[0]
        diags = check_linearity([decl])
        assert [d.kind for d in diags] == [ErrorKind.LINEARITY]
        assert diags[0].span == decl.span
        assert "used 2 time(s)" in diags[0].message


class TestUnbound:
    def test_unbound_variable(self):
        diags = compile_fails("def main():\n  return y\n", ErrorKind.NAME)
        assert "unbound variable 'y'" in diags[0].message

    def test_global_reference_is_bound(self):
        compile_ok("def f():\n  return 1\ndef main():\n  return f\n")

    def test_reference_across_surfaces(self):
        compile_ok("def double(x):\n  return x * 2\nmain = (double 21)\n")


class TestWarnings:
    SOURCE = (
        "def helper():\n  return 1\n"
        "def main(x):\n"
        "  match x:\n"
        "    case _:\n"
        "      return 2\n"
    )

    def test_both_warnings(self):
        result = compile_ok(self.SOURCE)
        assert _codes(result) == ["W100", "W200"]
        assert all(d.severity is Severity.WARNING for d in result.diagnostics)

    def test_unused_message(self):
        result = compile_ok(self.SOURCE)
        assert result.diagnostics[0].message == "definition 'helper' is never used"

    def test_allow(self):
        options = CompileOptions(warnings=WarningConfig(
            unused_defs=WarningState.ALLOW, match_only_vars=WarningState.ALLOW,
        ))
        assert compile_ok(self.SOURCE, options).diagnostics == []

    def test_deny_turns_warning_into_error(self):
        options = CompileOptions(warnings=WarningConfig(unused_defs=WarningState.DENY))
        with pytest.raises(CompileError) as info:
            compile_source(self.SOURCE, "<test>", options)
        assert [d.code for d in info.value.diagnostics] == ["W100"]
        assert info.value.diagnostics[0].severity is Severity.ERROR

    def test_recursion_alone_does_not_count_as_use(self):
        result = compile_ok("(loop 0) = 0\n(loop n) = (loop (- n 1))\n")
        assert _codes(result) == ["W100"]

    def test_entry_points_are_used(self):
        assert compile_ok("def main():\n  return 1\n").diagnostics == []
        assert compile_ok("def Main():\n  return 1\n").diagnostics == []

    def test_checker_directly(self):
        registry, _ = build_registry([])
        checker = Checker(registry)
        diags = checker.check([Definition("f", Var("f")), Definition("main", Var("g"))])
        assert [d.kind for d in diags if d.kind is not None] == [ErrorKind.NAME]
        assert [d.code for d in diags if d.kind is None] == ["W100"]
