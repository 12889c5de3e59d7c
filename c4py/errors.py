"""Error taxonomy for the compiler and the virtual machine."""

from __future__ import annotations


class CompileError(Exception):
    """A fatal compile-time error tied to a source line."""

    def __init__(self, message: str, line: int = 0):
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self) -> str:
        if self.line:
            return f"{self.line}: {self.message}"
        return self.message


class LexError(CompileError):
    """Malformed literal or character the lexer cannot classify."""


class ParseError(CompileError):
    """Unexpected or missing token, unmatched delimiter, early end of input."""


class SemanticError(CompileError):
    """Undefined name, bad lvalue, bad dereference, bad call, duplicate definition."""


class VMError(Exception):
    """A fatal runtime fault raised by the virtual machine."""

    def __init__(self, message: str, opcode: int | None = None, cycle: int = 0):
        super().__init__(message)
        self.message = message
        self.opcode = opcode
        self.cycle = cycle

    def __str__(self) -> str:
        return f"{self.message}! cycle = {self.cycle}"
