"""Tests for the lexer: token classification, literals, comments and line tracking."""

import pytest

from c4py.errors import LexError
from c4py.lexer import Lexer
from c4py.tokens import Tag, Token


def _tokens(source: str) -> list[Token]:
    return list(Lexer(source))


def _tags(source: str) -> list[Tag]:
    return [tok.tag for tok in _tokens(source)]


class TestTokenClassification:
    def test_declaration(self):
        tokens = _tokens("int x = 10;")
        assert [t.tag for t in tokens] == [Tag.INT, Tag.ID, Tag.ASSIGN, Tag.NUM, Tag.SEMICOLON]
        assert tokens[1].value == "x"
        assert tokens[3].value == 10

    def test_keywords_are_not_identifiers(self):
        assert _tags("while whilex do void enum sizeof") == [
            Tag.WHILE,
            Tag.ID,
            Tag.DO,
            Tag.VOID,
            Tag.ENUM,
            Tag.SIZEOF,
        ]

    def test_two_char_operators_win_over_one_char(self):
        assert _tags("a<=b") == [Tag.ID, Tag.LE, Tag.ID]
        assert _tags("i++ --j") == [Tag.ID, Tag.INC, Tag.DEC, Tag.ID]
        assert _tags("a && b || !c") == [Tag.ID, Tag.LAN, Tag.ID, Tag.LOR, Tag.NOT, Tag.ID]
        assert _tags("x << 2 >> 1") == [Tag.ID, Tag.SHL, Tag.NUM, Tag.SHR, Tag.NUM]

    def test_brackets_and_punctuation(self):
        assert _tags("a[1]") == [Tag.ID, Tag.BRAK, Tag.NUM, Tag.RBRAK]
        assert _tags("f(a, b) { ~x ? y : z; }") == [
            Tag.ID,
            Tag.LPAREN,
            Tag.ID,
            Tag.COMMA,
            Tag.ID,
            Tag.RPAREN,
            Tag.LBRACE,
            Tag.TILDE,
            Tag.ID,
            Tag.COND,
            Tag.ID,
            Tag.COLON,
            Tag.ID,
            Tag.SEMICOLON,
            Tag.RBRACE,
        ]

    def test_operator_tags_ascend_with_precedence(self):
        assert Tag.ASSIGN < Tag.COND < Tag.LOR < Tag.LAN < Tag.OR < Tag.XOR < Tag.AND
        assert Tag.EQ < Tag.LT < Tag.SHL < Tag.ADD < Tag.MUL < Tag.INC < Tag.BRAK
        assert all(tag < Tag.ASSIGN for tag in (Tag.RPAREN, Tag.SEMICOLON, Tag.NUM, Tag.WHILE))

    def test_end_of_input_repeats(self):
        lexer = Lexer("x")
        assert lexer.next_token().tag == Tag.ID
        assert lexer.next_token().tag == Tag.EOF
        assert lexer.next_token().tag == Tag.EOF

    def test_empty_source(self):
        assert _tokens("") == []


class TestNumericLiterals:
    def test_decimal(self):
        assert _tokens("12345")[0].value == 12345

    def test_hexadecimal(self):
        assert _tokens("0x1F")[0].value == 31
        assert _tokens("0XfF")[0].value == 255

    def test_octal(self):
        assert _tokens("017")[0].value == 15

    def test_zero(self):
        assert _tokens("0")[0].value == 0

    def test_invalid_octal_raises(self):
        with pytest.raises(LexError):
            _tokens("08")


class TestStringAndCharLiterals:
    def test_plain_string(self):
        tok = _tokens('"hello"')[0]
        assert tok.tag == Tag.STR
        assert tok.value == b"hello"

    def test_escapes_in_string(self):
        assert _tokens(r'"a\n\t\\\""')[0].value == b'a\n\t\\"'

    def test_hex_and_octal_escapes(self):
        assert _tokens(r'"\x41\102\0"')[0].value == b"AB\x00"

    def test_unknown_escape_stands_for_itself(self):
        assert _tokens(r'"\q"')[0].value == b"q"

    def test_char_literal(self):
        tok = _tokens("'a'")[0]
        assert tok.tag == Tag.CHAR_LIT
        assert tok.value == 97

    def test_char_escape(self):
        assert _tokens(r"'\n'")[0].value == 10
        assert _tokens(r"'\0'")[0].value == 0
        assert _tokens(r"'\''")[0].value == 39

    def test_unterminated_string_raises(self):
        with pytest.raises(LexError):
            _tokens('"abc')

    def test_string_broken_by_newline_raises(self):
        with pytest.raises(LexError):
            _tokens('"abc\ndef"')

    def test_empty_char_literal_raises(self):
        with pytest.raises(LexError):
            _tokens("''")

    def test_multi_character_literal_raises(self):
        with pytest.raises(LexError):
            _tokens("'ab'")


class TestCommentsAndLines:
    def test_line_comment_skipped(self):
        tokens = _tokens("// comment\nx")
        assert [t.tag for t in tokens] == [Tag.ID]
        assert tokens[0].line == 2

    def test_block_comment_counts_lines(self):
        tokens = _tokens("/* a\nb\n */ y")
        assert tokens[0].value == "y"
        assert tokens[0].line == 3

    def test_directive_lines_skipped(self):
        tokens = _tokens("#include <stdio.h>\nint")
        assert [t.tag for t in tokens] == [Tag.INT]
        assert tokens[0].line == 2

    def test_unterminated_block_comment_raises(self):
        with pytest.raises(LexError):
            _tokens("/* never closed")

    def test_unexpected_character_raises_with_line(self):
        with pytest.raises(LexError) as exc_info:
            _tokens("x\n@")
        assert exc_info.value.line == 2
        assert str(exc_info.value).startswith("2: ")
