"""Tests for the bendfront lexer."""

from __future__ import annotations

import pytest

from bendfront.errors import CompileError, ErrorKind
from bendfront.lexer import Lexer, number_value
from bendfront.term import NumKind
from bendfront.tokens import TokenKind
from tests.helpers import lex_kinds


def _tokens(source: str):
    return Lexer(source, "<test>").lex()[:-1]


class TestMinusSign:
    def test_space_then_sign_is_negative_literal(self):
        toks = _tokens("x -3")
        assert [t.kind for t in toks] == [TokenKind.NAME, TokenKind.NUMBER]
        assert toks[1].value == "-3"

    def test_trailing_minus_joins_name(self):
        toks = _tokens("x- 3")
        assert [t.kind for t in toks] == [TokenKind.NAME, TokenKind.NUMBER]
        assert toks[0].value == "x-"
        assert toks[1].value == "3"

    def test_minus_inside_name(self):
        toks = _tokens("x-y-3")
        assert len(toks) == 1
        assert toks[0].kind == TokenKind.NAME
        assert toks[0].value == "x-y-3"

    def test_spaced_minus_is_operator(self):
        assert lex_kinds("x - 3") == [TokenKind.NAME, TokenKind.MINUS, TokenKind.NUMBER]

    def test_minus_between_numbers_is_operator(self):
        toks = _tokens("3-2")
        assert [t.kind for t in toks] == [TokenKind.NUMBER, TokenKind.MINUS, TokenKind.NUMBER]
        assert toks[2].value == "2"

    def test_leading_sign(self):
        toks = _tokens("-3")
        assert toks[0].kind == TokenKind.NUMBER
        assert number_value(toks[0].value) == (NumKind.I24, -3)

    def test_sign_after_open_paren(self):
        toks = _tokens("(-1)")
        assert [t.kind for t in toks] == [TokenKind.LPAREN, TokenKind.NUMBER, TokenKind.RPAREN]


class TestNumbers:
    def test_unsigned(self):
        assert number_value("42") == (NumKind.U24, 42)

    def test_signed(self):
        assert number_value("+7") == (NumKind.I24, 7)

    def test_float(self):
        assert number_value("1.5") == (NumKind.F24, 1.5)

    def test_hex_and_binary(self):
        assert number_value("0xff") == (NumKind.U24, 255)
        assert number_value("0b101") == (NumKind.U24, 5)

    def test_underscores(self):
        assert number_value("1_000") == (NumKind.U24, 1000)

    def test_u24_out_of_range(self):
        with pytest.raises(CompileError) as info:
            Lexer("16777216", "<test>").lex()
        assert info.value.kinds == [ErrorKind.LEX]

    def test_u24_max_is_accepted(self):
        assert _tokens("16777215")[0].kind == TokenKind.NUMBER

    def test_i24_out_of_range(self):
        with pytest.raises(CompileError):
            Lexer("-8388609", "<test>").lex()


class TestLiterals:
    def test_string_codepoints(self):
        tok = _tokens('"hi\\n"')[0]
        assert tok.kind == TokenKind.STRING
        assert tok.codepoints == (ord("h"), ord("i"), 10)

    def test_unicode_escape(self):
        tok = _tokens('"\\u{41}"')[0]
        assert tok.codepoints == (0x41,)

    def test_char(self):
        tok = _tokens("'a'")[0]
        assert tok.kind == TokenKind.CHAR
        assert tok.codepoints == (97,)

    def test_symbol(self):
        tok = _tokens("`abc`")[0]
        assert tok.kind == TokenKind.SYMBOL
        assert tok.value == "abc"

    def test_symbol_too_long(self):
        with pytest.raises(CompileError):
            Lexer("`abcde`", "<test>").lex()

    def test_nat(self):
        tok = _tokens("#3")[0]
        assert tok.kind == TokenKind.NAT
        assert tok.value == "3"

    def test_unterminated_string(self):
        with pytest.raises(CompileError) as info:
            Lexer('"abc', "<test>").lex()
        assert info.value.kinds == [ErrorKind.LEX]

    def test_unknown_escape(self):
        with pytest.raises(CompileError):
            Lexer('"\\q"', "<test>").lex()

    def test_empty_char(self):
        with pytest.raises(CompileError):
            Lexer("''", "<test>").lex()

    def test_char_codepoint_out_of_range(self):
        with pytest.raises(CompileError) as info:
            Lexer("'\\u{1000000}'", "<test>").lex()
        assert info.value.kinds == [ErrorKind.LEX]
        assert "out of range" in info.value.diagnostics[0].message

    def test_largest_char_codepoint(self):
        tok = _tokens("'\\u{FFFFFF}'")[0]
        assert tok.codepoints == (0xFFFFFF,)

    def test_unterminated_char(self):
        with pytest.raises(CompileError) as info:
            Lexer("'a", "<test>").lex()
        assert info.value.kinds == [ErrorKind.LEX]
        assert info.value.diagnostics[0].message == "unterminated character literal"

    def test_unterminated_symbol(self):
        with pytest.raises(CompileError) as info:
            Lexer("`ab", "<test>").lex()
        assert info.value.kinds == [ErrorKind.LEX]
        assert info.value.diagnostics[0].message == "unterminated symbol literal"


class TestNamesAndKeywords:
    def test_keywords(self):
        assert lex_kinds("def fold bend when") == [
            TokenKind.DEF, TokenKind.FOLD, TokenKind.BEND, TokenKind.WHEN,
        ]

    def test_qualified_name(self):
        toks = _tokens("Tree/Node")
        assert len(toks) == 1
        assert toks[0].value == "Tree/Node"

    def test_field_access_is_one_name(self):
        assert _tokens("tree.left")[0].value == "tree.left"

    def test_comment_skipped(self):
        assert lex_kinds("x # a comment\ny") == [TokenKind.NAME, TokenKind.NAME]

    def test_lambda_signs(self):
        assert lex_kinds("λ @") == [TokenKind.LAMBDA_SIGN, TokenKind.LAMBDA_SIGN]

    def test_two_char_operators(self):
        assert lex_kinds("a ** b <- c") == [
            TokenKind.NAME, TokenKind.POW, TokenKind.NAME, TokenKind.LARROW, TokenKind.NAME,
        ]

    def test_in_place_operator(self):
        assert lex_kinds("x += 1") == [
            TokenKind.NAME, TokenKind.PLUS_ASSIGN, TokenKind.NUMBER,
        ]

    def test_unexpected_character(self):
        with pytest.raises(CompileError):
            Lexer("x ? y", "<test>").lex()


class TestSpans:
    def test_line_and_column(self):
        toks = _tokens("a\n  bc")
        assert (toks[1].span.start_line, toks[1].span.start_col) == (2, 3)
        assert toks[1].span.end_col == 4

    def test_lazy_stream_ends_with_eof(self):
        toks = list(Lexer("x", "<test>").tokens())
        assert toks[-1].kind == TokenKind.EOF
