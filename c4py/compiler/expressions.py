"""ExpressionCompiler: precedence climbing with code generation and type tracking."""

from __future__ import annotations

import logging
from typing import Callable

from ..bytecode import Opcode
from ..errors import ParseError, SemanticError
from ..symbols import Symbol, SymbolClass
from ..tokens import Tag
from ..typesys import CHAR, INT, PTR, element_size, pointee, pointer_to, sizeof
from ._base import BaseCompiler

logger = logging.getLogger(__name__)

# Operators that push the left operand, compile the right one at the given
# level and combine with a single opcode.  The result is always INT.
_SIMPLE_BINARY: dict[Tag, tuple[Opcode, Tag]] = {
    Tag.OR: (Opcode.OR, Tag.XOR),
    Tag.XOR: (Opcode.XOR, Tag.AND),
    Tag.AND: (Opcode.AND, Tag.EQ),
    Tag.EQ: (Opcode.EQ, Tag.LT),
    Tag.NE: (Opcode.NE, Tag.LT),
    Tag.LT: (Opcode.LT, Tag.SHL),
    Tag.GT: (Opcode.GT, Tag.SHL),
    Tag.LE: (Opcode.LE, Tag.SHL),
    Tag.GE: (Opcode.GE, Tag.SHL),
    Tag.SHL: (Opcode.SHL, Tag.ADD),
    Tag.SHR: (Opcode.SHR, Tag.ADD),
    Tag.MUL: (Opcode.MUL, Tag.INC),
    Tag.DIV: (Opcode.DIV, Tag.INC),
    Tag.MOD: (Opcode.MOD, Tag.INC),
}


class ExpressionCompiler(BaseCompiler):
    """Compiles expressions straight to bytecode without building a tree.

    Code is emitted in postorder for the accumulator machine: the left
    operand is computed into ax and pushed, the right operand is computed
    into ax, and the combining opcode pops the left value.  ``self._ty``
    always holds the type of the value the emitted code leaves in ax.
    """

    def __init__(self, source: str, **kwargs):
        super().__init__(source, **kwargs)
        self._PRIMARY_DISPATCH: dict[Tag, Callable[[], None]] = {
            Tag.NUM: self._compile_number,
            Tag.CHAR_LIT: self._compile_number,
            Tag.STR: self._compile_string,
            Tag.SIZEOF: self._compile_sizeof,
            Tag.ID: self._compile_identifier,
            Tag.LPAREN: self._compile_paren_or_cast,
            Tag.MUL: self._compile_dereference,
            Tag.AND: self._compile_address_of,
            Tag.NOT: self._compile_logical_not,
            Tag.TILDE: self._compile_bitwise_not,
            Tag.ADD: self._compile_unary_plus,
            Tag.SUB: self._compile_negate,
            Tag.INC: self._compile_pre_update,
            Tag.DEC: self._compile_pre_update,
        }
        self._OPERATOR_DISPATCH: dict[Tag, Callable[[int], None]] = {
            Tag.ASSIGN: self._compile_assign,
            Tag.COND: self._compile_ternary,
            Tag.LOR: self._compile_logical_or,
            Tag.LAN: self._compile_logical_and,
            Tag.ADD: self._compile_add,
            Tag.SUB: self._compile_sub,
            Tag.INC: self._compile_post_update,
            Tag.DEC: self._compile_post_update,
            Tag.BRAK: self._compile_index,
        }
        for tag in _SIMPLE_BINARY:
            self._OPERATOR_DISPATCH[tag] = self._compile_simple_binary

    def compile_expr(self, level: Tag = Tag.ASSIGN) -> int:
        """Compile one expression whose operators bind at least as tight as *level*.

        Returns the type of the compiled expression.
        """
        tag = self._tk.tag
        if tag == Tag.EOF:
            self._fail(ParseError, "unexpected eof in expression")
        primary = self._PRIMARY_DISPATCH.get(tag)
        if primary is None:
            self._fail(ParseError, f"bad expression at {self._tk}")
        primary()

        while self._tk.tag >= level:
            operator = self._OPERATOR_DISPATCH.get(self._tk.tag)
            if operator is None:
                self._fail(ParseError, f"compiler error tk={self._tk}")
            operator(self._ty)
        return self._ty

    # ── primaries ────────────────────────────────────────────────

    def _compile_number(self):
        self._emit(Opcode.IMM, self._tk.value)
        self._next()
        self._ty = INT

    def _compile_string(self):
        # Adjacent literals are stored as one NUL-terminated run.
        address = self._program.data_size
        while self._at(Tag.STR):
            self._program.append_data(self._tk.value, self._line)
            self._next()
        self._program.append_data(b"\0", self._line)
        self._program.align_data(self._line)
        logger.debug("String literal stored at data address %d", address)
        self._emit(Opcode.IMM, address)
        self._ty = pointer_to(CHAR)

    def _compile_sizeof(self):
        self._next()
        self._expect(Tag.LPAREN, "open paren expected in sizeof")
        ty = self._parse_base_type()
        if ty is None:
            self._fail(ParseError, "type expected in sizeof")
        ty = self._parse_pointer_levels(ty)
        self._expect(Tag.RPAREN, "close paren expected in sizeof")
        self._emit(Opcode.IMM, sizeof(ty))
        self._ty = INT

    def _compile_identifier(self):
        name = self._tk.value
        self._next()
        symbol = self._symbols.lookup(name)
        if self._at(Tag.LPAREN):
            self._compile_call(name, symbol)
            return
        if symbol is None:
            self._fail(SemanticError, f"undefined variable '{name}'")
        if symbol.kind == SymbolClass.ENUM_CONSTANT:
            self._emit(Opcode.IMM, symbol.value)
            self._ty = INT
            return
        if symbol.kind == SymbolClass.LOCAL:
            self._emit(Opcode.LEA, self._frame_size - symbol.value)
        elif symbol.kind == SymbolClass.GLOBAL:
            self._emit(Opcode.IMM, symbol.value)
        else:
            self._fail(SemanticError, f"function '{name}' used as a variable")
        self._ty = symbol.type
        self._emit_load(self._ty)

    def _compile_call(self, name: str, symbol: Symbol | None):
        if symbol is None:
            self._fail(SemanticError, f"undefined function '{name}'")
        if not symbol.is_callable:
            self._fail(SemanticError, f"bad function call to '{name}'")
        self._next()
        argc = 0
        while not self._at(Tag.RPAREN):
            self.compile_expr(Tag.ASSIGN)
            self._emit(Opcode.PSH)
            argc += 1
            if self._at(Tag.COMMA):
                self._next()
            elif not self._at(Tag.RPAREN):
                self._fail(ParseError, "close paren expected in call")
        self._next()
        self._check_arity(symbol, argc)

        if symbol.kind == SymbolClass.SYSTEM_CALL:
            self._emit(Opcode(symbol.value))
        else:
            self._emit(Opcode.JSR, symbol.value)
        if argc:
            self._emit(Opcode.ADJ, argc)
        self._ty = symbol.type

    def _check_arity(self, symbol: Symbol, argc: int):
        if symbol.arity is None:
            return
        if argc == symbol.arity or (symbol.variadic and argc > symbol.arity):
            return
        expected = f"at least {symbol.arity}" if symbol.variadic else str(symbol.arity)
        self._fail(
            SemanticError,
            f"'{symbol.name}' expects {expected} arguments, got {argc}",
        )

    def _compile_paren_or_cast(self):
        self._next()
        cast_type = self._parse_base_type()
        if cast_type is not None:
            cast_type = self._parse_pointer_levels(cast_type)
            self._expect(Tag.RPAREN, "bad cast")
            self.compile_expr(Tag.INC)
            self._ty = cast_type
            return
        self.compile_expr(Tag.ASSIGN)
        self._expect(Tag.RPAREN, "close paren expected")

    # ── unary operators ──────────────────────────────────────────

    def _compile_dereference(self):
        self._next()
        self.compile_expr(Tag.INC)
        if self._ty < PTR:
            self._fail(SemanticError, "bad dereference")
        self._ty = pointee(self._ty)
        self._emit_load(self._ty)

    def _compile_address_of(self):
        self._next()
        self.compile_expr(Tag.INC)
        self._take_lvalue("bad address-of")
        self._ty = pointer_to(self._ty)

    def _compile_logical_not(self):
        self._next()
        self.compile_expr(Tag.INC)
        self._emit(Opcode.PSH)
        self._emit(Opcode.IMM, 0)
        self._emit(Opcode.EQ)
        self._ty = INT

    def _compile_bitwise_not(self):
        self._next()
        self.compile_expr(Tag.INC)
        self._emit(Opcode.PSH)
        self._emit(Opcode.IMM, -1)
        self._emit(Opcode.XOR)
        self._ty = INT

    def _compile_unary_plus(self):
        self._next()
        self.compile_expr(Tag.INC)
        self._ty = INT

    def _compile_negate(self):
        self._next()
        if self._at(Tag.NUM) or self._at(Tag.CHAR_LIT):
            self._emit(Opcode.IMM, -self._tk.value)
            self._next()
        else:
            self._emit(Opcode.IMM, -1)
            self._emit(Opcode.PSH)
            self.compile_expr(Tag.INC)
            self._emit(Opcode.MUL)
        self._ty = INT

    def _compile_pre_update(self):
        increment = self._at(Tag.INC)
        self._next()
        self.compile_expr(Tag.INC)
        load = self._take_lvalue(
            "bad lvalue in pre-increment" if increment else "bad lvalue in pre-decrement"
        )
        self._emit(Opcode.PSH)
        self._emit(load)
        self._emit(Opcode.PSH)
        self._emit(Opcode.IMM, element_size(self._ty))
        self._emit(Opcode.ADD if increment else Opcode.SUB)
        self._emit_store(self._ty)

    # ── binary and postfix operators ─────────────────────────────

    def _compile_assign(self, left_type: int):
        self._next()
        self._take_lvalue("bad lvalue in assignment")
        self._emit(Opcode.PSH)
        self.compile_expr(Tag.ASSIGN)
        self._ty = left_type
        self._emit_store(left_type)

    def _compile_ternary(self, left_type: int):
        self._next()
        false_branch = self._emit_jump(Opcode.BZ)
        self.compile_expr(Tag.ASSIGN)
        self._expect(Tag.COLON, "conditional missing colon")
        end = self._emit_jump(Opcode.JMP)
        self._patch(false_branch)
        self.compile_expr(Tag.COND)
        self._patch(end)

    def _compile_logical_or(self, left_type: int):
        self._next()
        short_circuit = self._emit_jump(Opcode.BNZ)
        self.compile_expr(Tag.LAN)
        self._patch(short_circuit)
        self._ty = INT

    def _compile_logical_and(self, left_type: int):
        self._next()
        short_circuit = self._emit_jump(Opcode.BZ)
        self.compile_expr(Tag.OR)
        self._patch(short_circuit)
        self._ty = INT

    def _compile_simple_binary(self, left_type: int):
        opcode, level = _SIMPLE_BINARY[self._tk.tag]
        self._next()
        self._emit(Opcode.PSH)
        self.compile_expr(level)
        self._emit(opcode)
        self._ty = INT

    def _emit_scale(self, pointer_type: int):
        """Multiply the integer in ax by the element size of *pointer_type*."""
        size = element_size(pointer_type)
        if size > 1:
            self._emit(Opcode.PSH)
            self._emit(Opcode.IMM, size)
            self._emit(Opcode.MUL)

    def _compile_add(self, left_type: int):
        self._next()
        self._emit(Opcode.PSH)
        self.compile_expr(Tag.MUL)
        self._ty = left_type
        self._emit_scale(left_type)
        self._emit(Opcode.ADD)

    def _compile_sub(self, left_type: int):
        self._next()
        self._emit(Opcode.PSH)
        self.compile_expr(Tag.MUL)
        if left_type >= PTR and left_type == self._ty:
            # Pointer difference counts elements, not bytes.
            self._emit(Opcode.SUB)
            size = element_size(left_type)
            if size > 1:
                self._emit(Opcode.PSH)
                self._emit(Opcode.IMM, size)
                self._emit(Opcode.DIV)
            self._ty = INT
            return
        self._ty = left_type
        self._emit_scale(left_type)
        self._emit(Opcode.SUB)

    def _compile_post_update(self, left_type: int):
        increment = self._at(Tag.INC)
        load = self._take_lvalue(
            "bad lvalue in post-increment" if increment else "bad lvalue in post-decrement"
        )
        step = element_size(left_type)
        self._emit(Opcode.PSH)
        self._emit(load)
        self._emit(Opcode.PSH)
        self._emit(Opcode.IMM, step)
        self._emit(Opcode.ADD if increment else Opcode.SUB)
        self._emit_store(left_type)
        # Undo the step so the expression yields the old value.
        self._emit(Opcode.PSH)
        self._emit(Opcode.IMM, step)
        self._emit(Opcode.SUB if increment else Opcode.ADD)
        self._next()

    def _compile_index(self, left_type: int):
        self._next()
        self._emit(Opcode.PSH)
        self.compile_expr(Tag.ASSIGN)
        self._expect(Tag.RBRAK, "close bracket expected")
        if left_type < PTR:
            self._fail(SemanticError, "pointer type expected")
        self._emit_scale(left_type)
        self._emit(Opcode.ADD)
        self._ty = pointee(left_type)
        self._emit_load(self._ty)
