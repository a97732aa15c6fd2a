"""Lexer shared by the imperative and functional surfaces.

Produces a lazy stream of tokens. No layout tokens are emitted: the
imperative parser reads block structure from token line/column positions.
"""

from __future__ import annotations

from collections.abc import Iterator

from bendfront.errors import CompileError, ErrorKind, make_error
from bendfront.source import Span
from bendfront.term import NumKind
from bendfront.tokens import KEYWORDS, VALUE_TOKENS, Token, TokenKind

MAX_U24 = 0xFFFFFF
MIN_I24 = -(1 << 23)
MAX_I24 = (1 << 23) - 1
MAX_CODEPOINT = 0xFFFFFF

SYMBOL_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"

_NAME_START = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
_NAME_CHARS = _NAME_START | frozenset("0123456789.-/")

_ESCAPES = {'n': '\n', 'r': '\r', 't': '\t', '0': '\0',
            '\\': '\\', '"': '"', "'": "'"}

_TWO_CHAR_OPS: dict[str, TokenKind] = {
    '**': TokenKind.POW,
    '==': TokenKind.EQUAL,
    '!=': TokenKind.NOT_EQUAL,
    '<=': TokenKind.LESS_EQUAL,
    '>=': TokenKind.GREATER_EQUAL,
    '<<': TokenKind.SHL,
    '>>': TokenKind.SHR,
    '+=': TokenKind.PLUS_ASSIGN,
    '-=': TokenKind.MINUS_ASSIGN,
    '*=': TokenKind.STAR_ASSIGN,
    '/=': TokenKind.SLASH_ASSIGN,
    '%=': TokenKind.PERCENT_ASSIGN,
    '<-': TokenKind.LARROW,
}

_ONE_CHAR_OPS: dict[str, TokenKind] = {
    '+': TokenKind.PLUS,
    '-': TokenKind.MINUS,
    '*': TokenKind.STAR,
    '/': TokenKind.SLASH,
    '%': TokenKind.PERCENT,
    '<': TokenKind.LESS,
    '>': TokenKind.GREATER,
    '&': TokenKind.AMP,
    '|': TokenKind.PIPE,
    '^': TokenKind.CARET,
    '=': TokenKind.ASSIGN,
    '(': TokenKind.LPAREN,
    ')': TokenKind.RPAREN,
    '[': TokenKind.LBRACKET,
    ']': TokenKind.RBRACKET,
    '{': TokenKind.LBRACE,
    '}': TokenKind.RBRACE,
    ',': TokenKind.COMMA,
    ':': TokenKind.COLON,
    ';': TokenKind.SEMICOLON,
    '~': TokenKind.TILDE,
    '$': TokenKind.DOLLAR,
    '@': TokenKind.LAMBDA_SIGN,
    'λ': TokenKind.LAMBDA_SIGN,
}


def number_value(text: str) -> tuple[NumKind, int | float]:
    """Classify and convert the text of a NUMBER token."""
    sign = ""
    body = text
    if text[0] in "+-":
        sign, body = text[0], text[1:]
    body = body.replace("_", "")
    if "." in body:
        value: int | float = float(body)
        return NumKind.F24, -value if sign == "-" else value
    if body[:2] in ("0x", "0X"):
        value = int(body[2:], 16)
    elif body[:2] in ("0b", "0B"):
        value = int(body[2:], 2)
    else:
        value = int(body)
    if sign:
        return NumKind.I24, -value if sign == "-" else value
    return NumKind.U24, value


class Lexer:
    """Tokenizes source text for either surface syntax."""

    def __init__(self, source: str, filename: str = "<stdin>") -> None:
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.col = 1
        self.prev_token: Token | None = None
        self._space_before = True

    def lex(self) -> list[Token]:
        """Tokenize the entire source and return the token list."""
        return list(self.tokens())

    def tokens(self) -> Iterator[Token]:
        """Lazily yield tokens, ending with EOF. Raises CompileError on a LexError."""
        while True:
            self._space_before = self._skip_trivia() or self.prev_token is None
            if self.pos >= len(self.source):
                break
            ch = self.source[self.pos]
            if ch == '"':
                tok = self._lex_string()
            elif ch == "'":
                tok = self._lex_char()
            elif ch == '`':
                tok = self._lex_symbol()
            elif ch == '#':
                tok = self._lex_nat()
            elif ch.isdigit() and ch.isascii():
                tok = self._lex_number()
            elif ch in '+-' and self._starts_signed_number():
                tok = self._lex_number()
            elif ch in _NAME_START:
                tok = self._lex_name()
            else:
                tok = self._lex_operator_or_punct()
            self.prev_token = tok
            yield tok
        yield self._make(TokenKind.EOF, "", self.line, self.col)

    # ── Helpers ───────────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _make(self, kind: TokenKind, value: str, start_line: int, start_col: int,
              codepoints: tuple[int, ...] = ()) -> Token:
        end_col = self.col - 1 if self.col > 1 else 1
        span = Span(self.filename, start_line, start_col, self.line, end_col)
        return Token(kind, value, span, codepoints)

    def _fail(self, message: str, line: int, col: int) -> CompileError:
        span = Span(self.filename, line, col, line, col)
        return CompileError([make_error(ErrorKind.LEX, message, span)])

    def _skip_trivia(self) -> bool:
        """Skip whitespace and comments. Returns True if anything was skipped."""
        skipped = False
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch in ' \t\r\n':
                self._advance()
            elif ch == '#' and not self._peek(1).isdigit():
                while self.pos < len(self.source) and self.source[self.pos] != '\n':
                    self._advance()
            else:
                break
            skipped = True
        return skipped

    def _starts_signed_number(self) -> bool:
        if not (self._peek(1).isdigit() and self._peek(1).isascii()):
            return False
        if self._space_before:
            return True
        return self.prev_token is None or self.prev_token.kind not in VALUE_TOKENS

    # ── Names ────────────────────────────────────────────────────

    def _lex_name(self) -> Token:
        start_line = self.line
        start_col = self.col
        text = []
        while self.pos < len(self.source) and self.source[self.pos] in _NAME_CHARS:
            text.append(self._advance())
        word = ''.join(text)
        kind = KEYWORDS.get(word, TokenKind.NAME)
        return self._make(kind, word, start_line, start_col)

    # ── Numbers ──────────────────────────────────────────────────

    def _lex_number(self) -> Token:
        start_line = self.line
        start_col = self.col
        text = []
        if self.source[self.pos] in '+-':
            text.append(self._advance())

        if self._peek() == '0' and self._peek(1) in ('x', 'X', 'b', 'B'):
            text.append(self._advance())
            text.append(self._advance())
            digits = '0123456789abcdefABCDEF_' if text[-1] in 'xX' else '01_'
            while self.pos < len(self.source) and self.source[self.pos] in digits:
                text.append(self._advance())
            if text[-1] in 'xXbB':
                raise self._fail("missing digits in number literal", start_line, start_col)
        else:
            while self.pos < len(self.source) and (self.source[self.pos].isdigit()
                                                   or self.source[self.pos] == '_'):
                text.append(self._advance())
            if self._peek() == '.' and self._peek(1).isdigit():
                text.append(self._advance())
                while self.pos < len(self.source) and (self.source[self.pos].isdigit()
                                                       or self.source[self.pos] == '_'):
                    text.append(self._advance())

        literal = ''.join(text)
        kind, value = number_value(literal)
        if kind is NumKind.U24 and value > MAX_U24:
            raise self._fail(f"u24 literal out of range: {literal}", start_line, start_col)
        if kind is NumKind.I24 and not MIN_I24 <= value <= MAX_I24:
            raise self._fail(f"i24 literal out of range: {literal}", start_line, start_col)
        return self._make(TokenKind.NUMBER, literal, start_line, start_col)

    def _lex_nat(self) -> Token:
        start_line = self.line
        start_col = self.col
        self._advance()  # skip #
        text = []
        while self.pos < len(self.source) and self.source[self.pos].isdigit():
            text.append(self._advance())
        return self._make(TokenKind.NAT, ''.join(text), start_line, start_col)

    # ── Strings, chars and symbols ───────────────────────────────

    def _lex_escape_sequence(self) -> int:
        line, col = self.line, self.col
        self._advance()  # skip backslash
        if self.pos >= len(self.source):
            raise self._fail("unexpected end of escape sequence", line, col)
        ch = self._advance()
        if ch in _ESCAPES:
            return ord(_ESCAPES[ch])
        if ch == 'u' and self._peek() == '{':
            self._advance()
            digits = []
            while self.pos < len(self.source) and self.source[self.pos] != '}':
                digits.append(self._advance())
            if self.pos >= len(self.source):
                raise self._fail("unterminated unicode escape", line, col)
            self._advance()  # skip }
            try:
                codepoint = int(''.join(digits), 16)
            except ValueError:
                raise self._fail(
                    f"invalid unicode escape: \\u{{{''.join(digits)}}}", line, col,
                ) from None
            if codepoint > MAX_CODEPOINT:
                raise self._fail(
                    f"unicode codepoint out of range: {codepoint:#x}", line, col,
                )
            return codepoint
        raise self._fail(f"unknown escape sequence: \\{ch}", line, col)

    def _lex_string(self) -> Token:
        start_line = self.line
        start_col = self.col
        self._advance()  # skip opening "
        codepoints: list[int] = []
        while self.pos < len(self.source) and self.source[self.pos] != '"':
            if self.source[self.pos] == '\\':
                codepoints.append(self._lex_escape_sequence())
            else:
                codepoints.append(ord(self._advance()))
        if self.pos >= len(self.source):
            raise self._fail("unterminated string literal", start_line, start_col)
        self._advance()  # skip closing "
        text = ''.join(chr(c) if c <= 0x10FFFF else '�' for c in codepoints)
        return self._make(TokenKind.STRING, text, start_line, start_col,
                          tuple(codepoints))

    def _lex_char(self) -> Token:
        start_line = self.line
        start_col = self.col
        self._advance()  # skip opening '
        if self.pos >= len(self.source) or self.source[self.pos] == '\n':
            raise self._fail("unterminated character literal", start_line, start_col)
        if self.source[self.pos] == "'":
            raise self._fail("empty character literal", start_line, start_col)
        if self.source[self.pos] == '\\':
            codepoint = self._lex_escape_sequence()
        else:
            codepoint = ord(self._advance())
        if self._peek() != "'":
            raise self._fail("unterminated character literal", start_line, start_col)
        self._advance()
        return self._make(TokenKind.CHAR, str(codepoint), start_line, start_col,
                          (codepoint,))

    def _lex_symbol(self) -> Token:
        start_line = self.line
        start_col = self.col
        self._advance()  # skip opening `
        text = []
        while self.pos < len(self.source) and self.source[self.pos] not in '`\n':
            ch = self._advance()
            if ch not in SYMBOL_ALPHABET:
                raise self._fail(f"invalid character in symbol literal: {ch!r}",
                                 start_line, start_col)
            text.append(ch)
        if self._peek() != '`':
            raise self._fail("unterminated symbol literal", start_line, start_col)
        self._advance()
        if len(text) > 4:
            raise self._fail("symbol literal longer than 4 characters",
                             start_line, start_col)
        return self._make(TokenKind.SYMBOL, ''.join(text), start_line, start_col)

    # ── Operators and punctuation ────────────────────────────────

    def _lex_operator_or_punct(self) -> Token:
        start_line = self.line
        start_col = self.col
        two = self.source[self.pos:self.pos + 2]
        if two in _TWO_CHAR_OPS:
            self._advance()
            self._advance()
            return self._make(_TWO_CHAR_OPS[two], two, start_line, start_col)
        ch = self.source[self.pos]
        if ch in _ONE_CHAR_OPS:
            self._advance()
            return self._make(_ONE_CHAR_OPS[ch], ch, start_line, start_col)
        raise self._fail(f"unexpected character: {ch!r}", start_line, start_col)
