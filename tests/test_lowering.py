"""Tests for imperative statement lowering."""

from __future__ import annotations

import pytest

from bendfront.ast_nodes import (
    FoldExpr,
    ImpDef,
    LetExpr,
    NumLit,
    SwitchExpr,
    VarExpr,
    VarPattern,
)
from bendfront.errors import ErrorKind, PassError
from bendfront.lowering import lower_definition, terminates
from tests.helpers import compile_fails, parse_program, term_of

TREE = (
    "type Tree:\n"
    "  Node { value, ~left, ~right }\n"
    "  Leaf\n"
)


def _lower(source: str):
    decl = parse_program(source).declarations[-1]
    assert isinstance(decl, ImpDef)
    return lower_definition(decl)


class TestIf:
    def test_branches_are_inverted(self):
        fundef = _lower(
            "def main(c):\n"
            "  if c:\n"
            "    return 1\n"
            "  else:\n"
            "    return 2\n"
        )
        body = fundef.rules[0].body
        assert isinstance(body, SwitchExpr)
        assert body.bind is None
        assert body.arg == VarExpr("c", body.arg.span)
        assert [arm.label for arm in body.arms] == [0, None]
        assert isinstance(body.arms[0].body, NumLit) and body.arms[0].body.value == 2
        assert isinstance(body.arms[1].body, NumLit) and body.arms[1].body.value == 1

    def test_compiled_if(self):
        assert term_of(
            "def main(c):\n"
            "  if c:\n"
            "    return 1\n"
            "  else:\n"
            "    return 2\n"
        ) == "(λ c (switch * c (0 2) (_ 1)))"

    def test_fall_through_joins_both_branches(self):
        assert term_of(
            "def main(c):\n"
            "  if c:\n"
            "    x = 1\n"
            "  else:\n"
            "    x = 2\n"
            "  return x\n"
        ) == "(λ c (switch * c (0 (let x 2 x)) (_ (let x 1 x))))"

    def test_elif(self):
        assert term_of(
            "def main(a, b):\n"
            "  if a:\n"
            "    return 1\n"
            "  elif b:\n"
            "    return 2\n"
            "  else:\n"
            "    return 3\n"
        ) == "(λ a (λ b (switch * a (0 (switch * b (0 3) (_ 2))) (_ 1))))"


class TestAssignments:
    def test_assignment_becomes_let(self):
        fundef = _lower("def main():\n  x = 1\n  return x\n")
        body = fundef.rules[0].body
        assert isinstance(body, LetExpr)
        assert body.pattern == VarPattern("x", body.pattern.span)

    def test_in_place_operator(self):
        assert term_of(
            "def main():\n"
            "  x = 1\n"
            "  x += 2\n"
            "  return x\n"
        ) == "(let x 1 (let x (op + x 2) x))"

    def test_params_become_rule_patterns(self):
        fundef = _lower("def f(a, b):\n  return a\n")
        assert [p.name for p in fundef.rules[0].patterns] == ["a", "b"]


class TestLoops:
    def test_fold_assigning_result(self):
        source = TREE + (
            "def main(t):\n"
            "  fold t:\n"
            "    case Tree/Node:\n"
            "      s = t.value + t.left + t.right\n"
            "    case Tree/Leaf:\n"
            "      s = 0\n"
            "  return s\n"
        )
        fundef = _lower(source)
        body = fundef.rules[0].body
        assert isinstance(body, LetExpr)
        assert isinstance(body.value, FoldExpr)
        assert term_of(source) == "(λ t (let s (main__fold0 t) s))"

    def test_fold_branches_assign_different_variables(self):
        diags = compile_fails(
            TREE + (
                "def main(t):\n"
                "  fold t:\n"
                "    case Tree/Node:\n"
                "      s = 1\n"
                "    case Tree/Leaf:\n"
                "      r = 0\n"
                "  return s\n"
            ),
            ErrorKind.CONTROL_FLOW,
        )
        assert "different variables" in diags[0].message


class TestControlFlowErrors:
    def test_mixed_branches_cite_the_falling_branch(self):
        diags = compile_fails(
            "def main(c):\n"
            "  if c:\n"
            "    return 1\n"
            "  else:\n"
            "    y = 2\n"
            "  return y\n",
            ErrorKind.CONTROL_FLOW,
        )
        assert "does not end in 'return'" in diags[0].message
        assert diags[0].span.start_line == 5

    def test_statement_after_return(self):
        diags = compile_fails(
            "def main():\n"
            "  return 1\n"
            "  return 2\n",
            ErrorKind.CONTROL_FLOW,
        )
        assert diags[0].span.start_line == 3

    def test_missing_return(self):
        compile_fails("def main():\n  x = 1\n", ErrorKind.CONTROL_FLOW)

    def test_statement_after_returning_if(self):
        diags = compile_fails(
            "def main(c):\n"
            "  if c:\n"
            "    return 1\n"
            "  else:\n"
            "    return 2\n"
            "  return 3\n",
            ErrorKind.CONTROL_FLOW,
        )
        assert "always returns" in diags[0].message

    def test_do_must_end_with_value(self):
        decl = parse_program("def main():\n  do Result:\n    x <- f(1)\n").declarations[0]
        with pytest.raises(PassError) as info:
            lower_definition(decl)
        assert info.value.kind is ErrorKind.CONTROL_FLOW


class TestTerminates:
    def test_nested(self):
        decl = parse_program(
            "def main(a, b):\n"
            "  if a:\n"
            "    if b:\n"
            "      return 1\n"
            "    else:\n"
            "      return 2\n"
            "  else:\n"
            "    return 3\n"
        ).declarations[0]
        assert terminates(decl.body)

    def test_empty(self):
        assert not terminates([])
