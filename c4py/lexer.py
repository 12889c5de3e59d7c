"""Lexer: source text to a lazily produced token stream."""

from __future__ import annotations

import re
from typing import Iterator

from .errors import LexError
from .tokens import KEYWORDS, ONE_CHAR_OPERATORS, TWO_CHAR_OPERATORS, Tag, Token

_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER = re.compile(r"0[xX][0-9a-fA-F]+|[0-9]+")
_OCTAL_ESCAPE = re.compile(r"[0-7]{1,3}")
_HEX_ESCAPE = re.compile(r"[0-9a-fA-F]{1,2}")

_WHITESPACE = frozenset(" \t\r\v\f")

_SIMPLE_ESCAPES: dict[str, int] = {
    "n": 10,
    "t": 9,
    "r": 13,
    "a": 7,
    "b": 8,
    "f": 12,
    "v": 11,
    "\\": 92,
    "'": 39,
    '"': 34,
    "?": 63,
}


class Lexer:
    """Produces one token per ``next_token()`` call.

    Whitespace, ``//`` and ``/* */`` comments and ``#`` directive lines are
    skipped; ``line`` always holds the line of the most recently scanned
    character, which is what diagnostics report.
    """

    def __init__(self, source: str):
        self._source = source
        self._pos = 0
        self.line = 1

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            if token.tag == Tag.EOF:
                return
            yield token

    def next_token(self) -> Token:
        src = self._source
        end = len(src)
        while self._pos < end:
            ch = src[self._pos]
            if ch == "\n":
                self.line += 1
                self._pos += 1
            elif ch in _WHITESPACE:
                self._pos += 1
            elif ch == "#" or src.startswith("//", self._pos):
                self._skip_to_line_end()
            elif src.startswith("/*", self._pos):
                self._skip_block_comment()
            elif ch == "_" or ch.isascii() and ch.isalpha():
                return self._lex_identifier()
            elif ch.isascii() and ch.isdigit():
                return self._lex_number()
            elif ch == '"':
                return self._lex_string()
            elif ch == "'":
                return self._lex_char()
            else:
                return self._lex_operator(ch)
        return Token(Tag.EOF, line=self.line)

    # ── skipping ─────────────────────────────────────────────────

    def _skip_to_line_end(self):
        newline = self._source.find("\n", self._pos)
        self._pos = len(self._source) if newline < 0 else newline

    def _skip_block_comment(self):
        close = self._source.find("*/", self._pos + 2)
        if close < 0:
            raise LexError("unterminated comment", self.line)
        self.line += self._source.count("\n", self._pos, close)
        self._pos = close + 2

    # ── token scanners ───────────────────────────────────────────

    def _lex_identifier(self) -> Token:
        match = _IDENT.match(self._source, self._pos)
        self._pos = match.end()
        name = match.group()
        tag = KEYWORDS.get(name)
        if tag is not None:
            return Token(tag, line=self.line)
        return Token(Tag.ID, name, self.line)

    def _lex_number(self) -> Token:
        match = _NUMBER.match(self._source, self._pos)
        self._pos = match.end()
        text = match.group()
        if text[:2] in ("0x", "0X"):
            value = int(text[2:], 16)
        elif len(text) > 1 and text[0] == "0":
            try:
                value = int(text, 8)
            except ValueError:
                raise LexError(f"invalid octal literal '{text}'", self.line)
        else:
            value = int(text)
        return Token(Tag.NUM, value, self.line)

    def _lex_string(self) -> Token:
        parts = self._scan_quoted('"', "string")
        payload = b"".join(
            bytes([part]) if isinstance(part, int) else part.encode("utf-8")
            for part in parts
        )
        return Token(Tag.STR, payload, self.line)

    def _lex_char(self) -> Token:
        parts = self._scan_quoted("'", "character")
        if not parts:
            raise LexError("empty character literal", self.line)
        if len(parts) > 1:
            raise LexError("multi-character character literal", self.line)
        part = parts[0]
        value = part if isinstance(part, int) else ord(part)
        return Token(Tag.CHAR_LIT, value, self.line)

    def _lex_operator(self, ch: str) -> Token:
        two = self._source[self._pos : self._pos + 2]
        tag = TWO_CHAR_OPERATORS.get(two)
        if tag is not None:
            self._pos += 2
            return Token(tag, line=self.line)
        tag = ONE_CHAR_OPERATORS.get(ch)
        if tag is None:
            raise LexError(f"unexpected character {ch!r}", self.line)
        self._pos += 1
        return Token(tag, line=self.line)

    # ── literals ─────────────────────────────────────────────────

    def _scan_quoted(self, quote: str, kind: str) -> list[int | str]:
        """Scan a quoted literal body.

        Returns plain characters as ``str`` and decoded escapes as byte
        values, so strings and char literals can encode them differently.
        """
        src = self._source
        pos = self._pos + 1
        parts: list[int | str] = []
        while True:
            if pos >= len(src) or src[pos] == "\n":
                raise LexError(f"unterminated {kind} literal", self.line)
            ch = src[pos]
            if ch == quote:
                self._pos = pos + 1
                return parts
            if ch == "\\":
                value, pos = self._decode_escape(pos + 1)
                parts.append(value)
            else:
                parts.append(ch)
                pos += 1

    def _decode_escape(self, pos: int) -> tuple[int, int]:
        src = self._source
        if pos >= len(src):
            raise LexError("unterminated escape sequence", self.line)
        ch = src[pos]
        if ch in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[ch], pos + 1
        octal = _OCTAL_ESCAPE.match(src, pos)
        if octal:
            return int(octal.group(), 8) & 0xFF, octal.end()
        if ch == "x":
            hex_digits = _HEX_ESCAPE.match(src, pos + 1)
            if not hex_digits:
                raise LexError("bad hex escape sequence", self.line)
            return int(hex_digits.group(), 16), hex_digits.end()
        # Unknown escapes stand for the escaped character itself.
        return ord(ch), pos + 1
