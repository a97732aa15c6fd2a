"""Tests for the imperative and functional surface parsers."""

from __future__ import annotations

import pytest

from bendfront.ast_nodes import (
    AssignStmt,
    BendStmt,
    BinaryExpr,
    CallExpr,
    ComprehensionExpr,
    CtrPattern,
    DoStmt,
    FoldStmt,
    FunDef,
    IfStmt,
    ImpDef,
    InPlaceOpStmt,
    LambdaExpr,
    MatchExpr,
    MatchStmt,
    NumLit,
    NumPattern,
    OpenStmt,
    ReturnStmt,
    SwitchExpr,
    SwitchStmt,
    TupleExpr,
    TypeDecl,
    VarExpr,
    VarPattern,
)
from bendfront.errors import CompileError, ErrorKind
from bendfront.lexer import Lexer
from bendfront.parser import Parser, parse
from tests.helpers import parse_program


def _single(source: str):
    program = parse_program(source)
    assert len(program.declarations) == 1
    return program.declarations[0]


def _body(source: str) -> list:
    decl = _single(source)
    assert isinstance(decl, ImpDef)
    return decl.body


class TestImperativeDefinitions:
    def test_def_with_params(self):
        decl = _single("def add(a, b):\n  return a + b\n")
        assert isinstance(decl, ImpDef)
        assert decl.name == "add"
        assert decl.params == ["a", "b"]
        ret = decl.body[0]
        assert isinstance(ret, ReturnStmt)
        assert isinstance(ret.value, BinaryExpr)
        assert ret.value.op == "+"

    def test_def_without_parens(self):
        decl = _single("def main:\n  return 1\n")
        assert isinstance(decl, ImpDef)
        assert decl.params == []

    def test_single_line_block(self):
        body = _body("def main(): return 1\n")
        assert isinstance(body[0], ReturnStmt)

    def test_assignment_and_in_place(self):
        body = _body("def main():\n  x = 1\n  x += 2\n  return x\n")
        assert isinstance(body[0], AssignStmt)
        assert isinstance(body[1], InPlaceOpStmt)
        assert body[1].op == "+"

    def test_tuple_assignment(self):
        body = _body("def main(p):\n  (a, b) = p\n  return a\n")
        assert isinstance(body[0], AssignStmt)

    def test_precedence(self):
        ret = _body("def main(a, b, c):\n  return a + b * c\n")[0]
        assert ret.value.op == "+"
        assert ret.value.right.op == "*"

    def test_power_is_right_associative(self):
        ret = _body("def main(a, b, c):\n  return a ** b ** c\n")[0]
        assert ret.value.op == "**"
        assert isinstance(ret.value.left, VarExpr)
        assert ret.value.right.op == "**"

    def test_comparison_binds_loosest(self):
        ret = _body("def main(a, b):\n  return a + 1 == b\n")[0]
        assert ret.value.op == "=="
        assert ret.value.left.op == "+"

    def test_expression_continues_inside_brackets(self):
        ret = _body("def main(a, b):\n  return (a +\n    b)\n")[0]
        assert isinstance(ret.value, BinaryExpr)

    def test_lambda(self):
        ret = _body("def main():\n  return lambda x, y: x\n")[0]
        assert isinstance(ret.value, LambdaExpr)
        assert len(ret.value.params) == 2

    def test_call_with_named_args(self):
        ret = _body("def main():\n  return f(1, b=2)\n")[0]
        assert isinstance(ret.value, CallExpr)
        assert [a.name for a in ret.value.args] == [None, "b"]

    def test_brace_constructor(self):
        ret = _body("def main():\n  return Point { x: 1, y: 2 }\n")[0]
        assert isinstance(ret.value, CallExpr)
        assert [a.name for a in ret.value.args] == ["x", "y"]

    def test_comprehension(self):
        ret = _body("def main(xs):\n  return [x + 1 for x in xs if x > 2]\n")[0]
        assert isinstance(ret.value, ComprehensionExpr)
        assert ret.value.condition is not None

    def test_tuple_expression(self):
        ret = _body("def main():\n  return (1, 2)\n")[0]
        assert isinstance(ret.value, TupleExpr)


class TestImperativeStatements:
    def test_if_else(self):
        stmt = _body("def main(c):\n  if c:\n    return 1\n  else:\n    return 2\n")[0]
        assert isinstance(stmt, IfStmt)
        assert isinstance(stmt.then_body[0], ReturnStmt)
        assert isinstance(stmt.else_body[0], ReturnStmt)

    def test_elif_nests_into_else(self):
        stmt = _body(
            "def main(a, b):\n"
            "  if a:\n"
            "    return 1\n"
            "  elif b:\n"
            "    return 2\n"
            "  else:\n"
            "    return 3\n"
        )[0]
        assert isinstance(stmt, IfStmt)
        assert isinstance(stmt.else_body[0], IfStmt)

    def test_switch(self):
        stmt = _body(
            "def main(n):\n"
            "  switch n:\n"
            "    case 0:\n"
            "      return 1\n"
            "    case _:\n"
            "      return 2\n"
        )[0]
        assert isinstance(stmt, SwitchStmt)
        assert stmt.bind == "n"
        assert [c.label for c in stmt.cases] == [0, None]

    def test_switch_with_bind(self):
        stmt = _body(
            "def main(n):\n"
            "  switch m = n + 1:\n"
            "    case 0:\n"
            "      return 1\n"
            "    case _:\n"
            "      return m-1\n"
        )[0]
        assert stmt.bind == "m"
        assert isinstance(stmt.arg, BinaryExpr)

    def test_match_and_fold(self):
        body = _body(
            "def main(t):\n"
            "  fold t:\n"
            "    case Tree/Node:\n"
            "      return 1\n"
            "    case Tree/Leaf:\n"
            "      return 0\n"
        )
        assert isinstance(body[0], FoldStmt)
        assert [c.label for c in body[0].cases] == ["Tree/Node", "Tree/Leaf"]

        body = _body(
            "def main(t):\n"
            "  match t:\n"
            "    case _:\n"
            "      return 0\n"
        )
        assert isinstance(body[0], MatchStmt)

    def test_bend(self):
        stmt = _body(
            "def main():\n"
            "  bend x = 0, y = 1:\n"
            "    when x < 3:\n"
            "      t = go(x + 1, y)\n"
            "    else:\n"
            "      t = y\n"
            "  return t\n"
        )[0]
        assert isinstance(stmt, BendStmt)
        assert [b.name for b in stmt.bindings] == ["x", "y"]
        assert isinstance(stmt.step[0], AssignStmt)

    def test_open(self):
        stmt = _body("def main(p):\n  open Point: p\n  return p.x\n")[0]
        assert isinstance(stmt, OpenStmt)
        assert (stmt.type_name, stmt.var) == ("Point", "p")

    def test_do_block(self):
        stmt = _body(
            "def main():\n"
            "  do Result:\n"
            "    x <- f(1)\n"
            "    ask y = g(x)\n"
            "    return x + y\n"
        )[0]
        assert isinstance(stmt, DoStmt)
        assert len(stmt.steps) == 2
        assert isinstance(stmt.result, BinaryExpr)

    def test_do_block_ending_in_bind_has_no_result(self):
        stmt = _body("def main():\n  do Result:\n    x <- f(1)\n")[0]
        assert stmt.result is None


class TestImperativeDeclarations:
    def test_type(self):
        decl = _single("type Tree:\n  Node { value, ~left, ~right }\n  Leaf\n")
        assert isinstance(decl, TypeDecl)
        assert [c.name for c in decl.ctors] == ["Tree/Node", "Tree/Leaf"]
        node = decl.ctors[0]
        assert [(f.name, f.recursive) for f in node.fields] == [
            ("value", False), ("left", True), ("right", True),
        ]

    def test_object(self):
        decl = _single("object Point { x, y }\n")
        assert isinstance(decl, TypeDecl)
        assert decl.is_object
        assert [c.name for c in decl.ctors] == ["Point"]


class TestFunctional:
    def test_data(self):
        decl = _single("data Tree = (Node value ~left ~right) | Leaf\n")
        assert isinstance(decl, TypeDecl)
        assert [c.name for c in decl.ctors] == ["Tree/Node", "Tree/Leaf"]
        assert decl.ctors[0].fields[1].recursive

    def test_functional_type_keyword(self):
        decl = _single("type Maybe = (Some value) | None\n")
        assert isinstance(decl, TypeDecl)
        assert [c.name for c in decl.ctors] == ["Maybe/Some", "Maybe/None"]

    def test_rules_merge(self):
        decl = _single(
            "(fib 0) = 0\n"
            "(fib 1) = 1\n"
            "(fib n) = (+ (fib (- n 1)) (fib (- n 2)))\n"
        )
        assert isinstance(decl, FunDef)
        assert len(decl.rules) == 3
        assert isinstance(decl.rules[0].patterns[0], NumPattern)
        assert isinstance(decl.rules[2].patterns[0], VarPattern)

    def test_rule_without_parens(self):
        decl = _single("main = (add 1 2)\n")
        assert isinstance(decl, FunDef)
        assert decl.rules[0].patterns == []
        assert isinstance(decl.rules[0].body, CallExpr)

    def test_constructor_pattern(self):
        decl = _single("(len (List/Cons h t)) = (+ 1 (len t))\n")
        pattern = decl.rules[0].patterns[0]
        assert isinstance(pattern, CtrPattern)
        assert pattern.name == "List/Cons"
        assert len(pattern.args) == 2

    def test_operator_term(self):
        decl = _single("main = (* 2 3)\n")
        body = decl.rules[0].body
        assert isinstance(body, BinaryExpr)
        assert body.op == "*"
        assert isinstance(body.left, NumLit)

    def test_switch_and_match_terms(self):
        decl = _single("main = λn switch n { 0: 1; _: 2 }\n")
        lam = decl.rules[0].body
        assert isinstance(lam, LambdaExpr)
        assert isinstance(lam.body, SwitchExpr)

        decl = _single("main = λx match x { List/Nil: 0; List/Cons: 1 }\n")
        assert isinstance(decl.rules[0].body.body, MatchExpr)

    def test_mixed_surfaces(self):
        program = parse_program(
            "data Bit = B0 | B1\n"
            "def flip(b):\n"
            "  return b\n"
            "main = (flip Bit/B0)\n"
        )
        kinds = [type(d) for d in program.declarations]
        assert kinds == [TypeDecl, ImpDef, FunDef]

    def test_comprehension(self):
        decl = _single("main = λxs [(+ x 1) for x in xs if x]\n")
        comp = decl.rules[0].body.body
        assert isinstance(comp, ComprehensionExpr)
        assert isinstance(comp.var, VarPattern)
        assert isinstance(comp.iterable, VarExpr)
        assert isinstance(comp.condition, VarExpr)
        assert comp.span.start_col == 12


class TestParseErrors:
    def _diagnostics(self, source: str):
        parser = Parser(Lexer(source, "<test>").lex(), "<test>")
        program = parser.parse()
        return program, parser.diagnostics

    def test_recovers_at_next_declaration(self):
        program, diagnostics = self._diagnostics(
            "def broken(:\n"
            "  return 1\n"
            "def main():\n"
            "  return 2\n"
        )
        assert len(diagnostics) == 1
        assert diagnostics[0].kind is ErrorKind.PARSE
        assert [d.name for d in program.declarations] == ["main"]

    def test_if_requires_else(self):
        _, diagnostics = self._diagnostics("def main(c):\n  if c:\n    return 1\n  return 2\n")
        assert diagnostics
        assert "else" in diagnostics[0].message

    def test_missing_indented_block(self):
        _, diagnostics = self._diagnostics("def main():\nreturn 1\n")
        assert "indented block" in diagnostics[0].message

    def test_unexpected_indentation(self):
        _, diagnostics = self._diagnostics("def main():\n  x = 1\n    return x\n")
        assert diagnostics

    def test_reserved_double_underscore(self):
        _, diagnostics = self._diagnostics("def main():\n  return a__b\n")
        assert "reserved" in diagnostics[0].message

    def test_named_args_need_name_callee(self):
        _, diagnostics = self._diagnostics("def main(f):\n  return f(1)(x=1)\n")
        assert diagnostics

    def test_parse_raises_compile_error(self):
        with pytest.raises(CompileError) as info:
            parse("def main(:\n  return 1\n", "<test>")
        assert info.value.kinds == [ErrorKind.PARSE]

    def test_bracket_depth_starts_at_zero_per_parser(self):
        source = "def main(a, b):\n  return [a,\n    b]\n"
        first = Parser(Lexer(source, "<test>").lex(), "<test>")
        assert vars(first)["_depth"] == 0
        first.parse()
        assert not first.diagnostics
        assert first._depth == 0
        second = Parser(Lexer(source, "<test>").lex(), "<test>")
        assert vars(second)["_depth"] == 0
