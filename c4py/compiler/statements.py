"""StatementCompiler: declarations, function bodies and control flow."""

from __future__ import annotations

import logging
from typing import Callable

from ..bytecode import BytecodeProgram, Opcode
from ..constants import ENTRY_FUNCTION
from ..errors import ParseError, SemanticError
from ..symbols import Symbol, SymbolClass
from ..tokens import TYPE_TAGS, Tag
from ..typesys import INT, type_name
from .expressions import ExpressionCompiler

logger = logging.getLogger(__name__)


class StatementCompiler(ExpressionCompiler):
    """Drives the top-level declaration loop and compiles function bodies.

    Frame layout of a compiled function, relative to ``bp`` after ``ENT``::

        bp + 2 + k   argument k counted from the last one pushed
        bp + 1       return address pushed by JSR
        bp + 0       caller's bp pushed by ENT
        bp - 1 ...   locals, in declaration order

    Parameters get slot numbers ``0..n-1``, ``self._frame_size`` is ``n + 1``
    and locals continue from ``n + 2``; ``LEA frame_size - slot`` addresses
    any of them.
    """

    def __init__(self, source: str, **kwargs):
        super().__init__(source, **kwargs)
        self._STMT_DISPATCH: dict[Tag, Callable[[], None]] = {
            Tag.IF: self._compile_if,
            Tag.WHILE: self._compile_while,
            Tag.DO: self._compile_do_while,
            Tag.RETURN: self._compile_return,
            Tag.LBRACE: self._compile_block,
            Tag.SEMICOLON: self._compile_empty,
        }

    def compile(self) -> BytecodeProgram:
        """Compile the whole translation unit and return the program image."""
        self._next()
        while not self._at(Tag.EOF):
            self._compile_declaration()

        main = self._symbols.lookup(ENTRY_FUNCTION)
        if main is None or main.kind != SymbolClass.FUNCTION:
            self._fail(SemanticError, f"{ENTRY_FUNCTION}() not defined")
        self._program.entry = main.value
        # main returns here: push its result and exit with it.
        self._program.exit_stub = self._program.here
        self._emit(Opcode.PSH)
        self._emit(Opcode.EXIT)
        return self._program

    # ── declarations ─────────────────────────────────────────────

    def _compile_declaration(self):
        base = INT
        if self._at(Tag.ENUM):
            self._next()
            self._compile_enum()
        else:
            parsed = self._parse_base_type()
            if parsed is not None:
                base = parsed

        if self._at(Tag.SEMICOLON):
            self._next()
            return
        while True:
            ty = self._parse_pointer_levels(base)
            if not self._at(Tag.ID):
                self._fail(ParseError, f"bad global declaration at {self._tk}")
            name = self._tk.value
            self._next()
            if self._at(Tag.LPAREN):
                self._compile_function(name, ty)
                return
            self._declare_global(name, ty)
            if self._at(Tag.COMMA):
                self._next()
                continue
            self._expect(Tag.SEMICOLON, "semicolon expected after global declaration")
            return

    def _compile_enum(self):
        if self._at(Tag.ID):
            self._next()
        if not self._at(Tag.LBRACE):
            return
        self._next()
        value = 0
        while not self._at(Tag.RBRACE):
            if not self._at(Tag.ID):
                self._fail(ParseError, f"bad enum identifier {self._tk}")
            name = self._tk.value
            self._next()
            if self._at(Tag.ASSIGN):
                self._next()
                if not (self._at(Tag.NUM) or self._at(Tag.CHAR_LIT)):
                    self._fail(ParseError, "bad enum initializer")
                value = self._tk.value
                self._next()
            self._declare(
                Symbol(name=name, kind=SymbolClass.ENUM_CONSTANT, type=INT, value=value)
            )
            value += 1
            if self._at(Tag.COMMA):
                self._next()
            elif not self._at(Tag.RBRACE):
                self._fail(ParseError, "comma or close brace expected in enum")
        self._next()

    def _declare(self, symbol: Symbol):
        try:
            self._symbols.declare(symbol)
        except ValueError as err:
            self._fail(SemanticError, str(err))

    def _declare_global(self, name: str, ty: int):
        address = self._program.allocate_global(self._line)
        self._declare(Symbol(name=name, kind=SymbolClass.GLOBAL, type=ty, value=address))
        logger.debug("Global %s %s at data address %d", type_name(ty), name, address)

    def _compile_function(self, name: str, return_type: int):
        function = Symbol(
            name=name,
            kind=SymbolClass.FUNCTION,
            type=return_type,
            value=self._program.here,
        )
        self._declare(function)
        self._next()
        self._symbols.enter_function()

        params = self._compile_parameters()
        function.arity = params
        if not self._at(Tag.LBRACE):
            self._fail(ParseError, "bad function definition")
        self._next()

        self._frame_size = params + 1
        locals_count = self._compile_locals()

        self._op_positions.clear()
        self._emit(Opcode.ENT, locals_count)
        while not self._at(Tag.RBRACE):
            if self._at(Tag.EOF):
                self._fail(ParseError, f"unexpected eof in body of '{name}'")
            self._compile_statement()
        self._emit(Opcode.LEV)
        self._next()

        self._check_jumps_patched(name)
        self._symbols.leave_function()
        logger.debug(
            "Compiled %s %s(%d params, %d locals) at code address %d",
            type_name(return_type),
            name,
            params,
            locals_count,
            function.value,
        )

    def _compile_parameters(self) -> int:
        params = 0
        while not self._at(Tag.RPAREN):
            is_void = self._at(Tag.VOID)
            ty = self._parse_base_type()
            if is_void and params == 0 and self._at(Tag.RPAREN):
                break
            ty = self._parse_pointer_levels(INT if ty is None else ty)
            if not self._at(Tag.ID):
                self._fail(ParseError, "bad parameter declaration")
            self._declare_local(self._tk.value, ty, params)
            params += 1
            self._next()
            if self._at(Tag.COMMA):
                self._next()
            elif not self._at(Tag.RPAREN):
                self._fail(ParseError, "bad parameter declaration")
        self._next()
        return params

    def _compile_locals(self) -> int:
        count = 0
        while self._tk.tag in TYPE_TAGS:
            base = self._parse_base_type()
            while not self._at(Tag.SEMICOLON):
                ty = self._parse_pointer_levels(base)
                if not self._at(Tag.ID):
                    self._fail(ParseError, "bad local declaration")
                count += 1
                self._declare_local(self._tk.value, ty, self._frame_size + count)
                self._next()
                if self._at(Tag.COMMA):
                    self._next()
                elif not self._at(Tag.SEMICOLON):
                    self._fail(ParseError, "semicolon expected after local declaration")
            self._next()
        return count

    def _declare_local(self, name: str, ty: int, slot: int):
        self._declare(Symbol(name=name, kind=SymbolClass.LOCAL, type=ty, value=slot))

    # ── statements ───────────────────────────────────────────────

    def _compile_statement(self):
        handler = self._STMT_DISPATCH.get(self._tk.tag)
        if handler is not None:
            handler()
            return
        self.compile_expr(Tag.ASSIGN)
        self._expect(Tag.SEMICOLON, "semicolon expected")

    def _compile_if(self):
        self._next()
        self._expect(Tag.LPAREN, "open paren expected")
        self.compile_expr(Tag.ASSIGN)
        self._expect(Tag.RPAREN, "close paren expected")
        pending = self._emit_jump(Opcode.BZ)
        self._compile_statement()
        if self._at(Tag.ELSE):
            self._next()
            skip_else = self._emit_jump(Opcode.JMP)
            self._patch(pending)
            pending = skip_else
            self._compile_statement()
        self._patch(pending)

    def _compile_while(self):
        self._next()
        loop_start = self._program.here
        self._expect(Tag.LPAREN, "open paren expected")
        self.compile_expr(Tag.ASSIGN)
        self._expect(Tag.RPAREN, "close paren expected")
        exit_jump = self._emit_jump(Opcode.BZ)
        self._compile_statement()
        self._emit(Opcode.JMP, loop_start)
        self._patch(exit_jump)

    def _compile_do_while(self):
        self._next()
        body_start = self._program.here
        self._compile_statement()
        self._expect(Tag.WHILE, "while expected after do body")
        self._expect(Tag.LPAREN, "open paren expected")
        self.compile_expr(Tag.ASSIGN)
        self._expect(Tag.RPAREN, "close paren expected")
        self._expect(Tag.SEMICOLON, "semicolon expected")
        self._emit(Opcode.BNZ, body_start)

    def _compile_return(self):
        self._next()
        if not self._at(Tag.SEMICOLON):
            self.compile_expr(Tag.ASSIGN)
        self._emit(Opcode.LEV)
        self._expect(Tag.SEMICOLON, "semicolon expected")

    def _compile_block(self):
        self._next()
        while not self._at(Tag.RBRACE):
            if self._at(Tag.EOF):
                self._fail(ParseError, "unexpected eof in block")
            self._compile_statement()
        self._next()

    def _compile_empty(self):
        self._next()
