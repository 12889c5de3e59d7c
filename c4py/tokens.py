"""Token tags and the token record produced by the lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class Tag(IntEnum):
    """Token tags.

    Operators come last and in ascending precedence order, starting at
    ``ASSIGN``.  Every other tag is numbered below ``ASSIGN`` so the
    expression compiler can climb with ``while tk.tag >= level``.
    """

    EOF = 0

    # Literal-carrying tokens
    NUM = 1
    ID = 2
    STR = 3
    CHAR_LIT = 4

    # Punctuation
    LPAREN = 10
    RPAREN = 11
    LBRACE = 12
    RBRACE = 13
    RBRAK = 14
    COMMA = 15
    COLON = 16
    SEMICOLON = 17
    NOT = 18
    TILDE = 19

    # Keywords
    CHAR = 30
    ELSE = 31
    ENUM = 32
    IF = 33
    INT = 34
    RETURN = 35
    SIZEOF = 36
    WHILE = 37
    DO = 38
    VOID = 39

    # Operators, lowest to highest precedence
    ASSIGN = 64
    COND = 65
    LOR = 66
    LAN = 67
    OR = 68
    XOR = 69
    AND = 70
    EQ = 71
    NE = 72
    LT = 73
    GT = 74
    LE = 75
    GE = 76
    SHL = 77
    SHR = 78
    ADD = 79
    SUB = 80
    MUL = 81
    DIV = 82
    MOD = 83
    INC = 84
    DEC = 85
    BRAK = 86


KEYWORDS: dict[str, Tag] = {
    "char": Tag.CHAR,
    "do": Tag.DO,
    "else": Tag.ELSE,
    "enum": Tag.ENUM,
    "if": Tag.IF,
    "int": Tag.INT,
    "return": Tag.RETURN,
    "sizeof": Tag.SIZEOF,
    "void": Tag.VOID,
    "while": Tag.WHILE,
}

# Tags that start a base type in declarations, casts and sizeof.
TYPE_TAGS: frozenset[Tag] = frozenset({Tag.INT, Tag.CHAR, Tag.VOID})

TWO_CHAR_OPERATORS: dict[str, Tag] = {
    "==": Tag.EQ,
    "!=": Tag.NE,
    "<=": Tag.LE,
    ">=": Tag.GE,
    "&&": Tag.LAN,
    "||": Tag.LOR,
    "<<": Tag.SHL,
    ">>": Tag.SHR,
    "++": Tag.INC,
    "--": Tag.DEC,
}

ONE_CHAR_OPERATORS: dict[str, Tag] = {
    "=": Tag.ASSIGN,
    "+": Tag.ADD,
    "-": Tag.SUB,
    "*": Tag.MUL,
    "/": Tag.DIV,
    "%": Tag.MOD,
    "<": Tag.LT,
    ">": Tag.GT,
    "|": Tag.OR,
    "&": Tag.AND,
    "^": Tag.XOR,
    "!": Tag.NOT,
    "~": Tag.TILDE,
    "?": Tag.COND,
    "[": Tag.BRAK,
    "]": Tag.RBRAK,
    "(": Tag.LPAREN,
    ")": Tag.RPAREN,
    "{": Tag.LBRACE,
    "}": Tag.RBRACE,
    ",": Tag.COMMA,
    ":": Tag.COLON,
    ";": Tag.SEMICOLON,
}

_TAG_SPELLING: dict[Tag, str] = {
    **{tag: text for text, tag in KEYWORDS.items()},
    **{tag: text for text, tag in TWO_CHAR_OPERATORS.items()},
    **{tag: text for text, tag in ONE_CHAR_OPERATORS.items()},
}


@dataclass(frozen=True)
class Token:
    """One token.  ``value`` is set for NUM (int), ID (str), STR (bytes) and
    CHAR_LIT (int codepoint) and is ``None`` for fixed tags."""

    tag: Tag
    value: int | str | bytes | None = None
    line: int = 0

    def __str__(self) -> str:
        if self.tag == Tag.EOF:
            return "end of input"
        if self.tag == Tag.ID:
            return f"identifier '{self.value}'"
        if self.tag in (Tag.NUM, Tag.CHAR_LIT):
            return f"number {self.value}"
        if self.tag == Tag.STR:
            return "string literal"
        return f"'{_TAG_SPELLING.get(self.tag, self.tag.name)}'"
