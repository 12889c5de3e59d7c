"""BaseCompiler: compiler state shared by the expression and statement layers."""

from __future__ import annotations

import logging
from typing import NoReturn

from ..bytecode import LOAD_OPCODES, BytecodeProgram, Opcode, has_operand
from ..constants import POOL_SIZE
from ..errors import CompileError, ParseError, SemanticError
from ..lexer import Lexer
from ..symbols import SymbolTable
from ..tokens import TYPE_TAGS, Tag, Token
from ..typesys import CHAR, INT, pointer_to

logger = logging.getLogger(__name__)


class BaseCompiler:
    """Owns the single-pass compiler state.

    One lookahead token, the lexer, the program being emitted, the symbol
    table, the type of the most recently compiled expression and the frame
    layout of the function being compiled.  Subclasses add the expression
    and statement grammars on top of these helpers.
    """

    def __init__(self, source: str, pool_size: int = POOL_SIZE):
        self._lexer = Lexer(source)
        self._program = BytecodeProgram(capacity=pool_size)
        self._symbols = SymbolTable.with_system_calls()
        self._tk: Token = Token(Tag.EOF)
        self._ty: int = INT
        # Frame slot separating parameters (below) from locals (above).
        self._frame_size: int = 0
        # Positions of emitted opcode words, for lvalue proofs.
        self._op_positions: list[int] = []

    @property
    def program(self) -> BytecodeProgram:
        return self._program

    @property
    def symbols(self) -> SymbolTable:
        return self._symbols

    # ── tokens ───────────────────────────────────────────────────

    @property
    def _line(self) -> int:
        return self._lexer.line

    def _next(self):
        self._tk = self._lexer.next_token()

    def _at(self, tag: Tag) -> bool:
        return self._tk.tag == tag

    def _expect(self, tag: Tag, message: str):
        if self._tk.tag != tag:
            self._fail(ParseError, message)
        self._next()

    def _fail(self, error: type[CompileError], message: str) -> NoReturn:
        raise error(message, self._line)

    # ── types ────────────────────────────────────────────────────

    def _parse_base_type(self) -> int | None:
        """Consume ``int``/``char``/``void`` and return its base type, if present."""
        tag = self._tk.tag
        if tag not in TYPE_TAGS:
            return None
        self._next()
        return INT if tag == Tag.INT else CHAR

    def _parse_pointer_levels(self, ty: int) -> int:
        while self._at(Tag.MUL):
            self._next()
            ty = pointer_to(ty)
        return ty

    # ── emission ─────────────────────────────────────────────────

    def _emit(self, opcode: Opcode, operand: int | None = None) -> int:
        position = self._program.emit(opcode, self._line)
        self._op_positions.append(position)
        if has_operand(opcode):
            self._program.emit(0 if operand is None else operand, self._line)
        return position

    def _emit_jump(self, opcode: Opcode) -> int:
        """Emit a branch whose target is not known yet; return its slot."""
        self._op_positions.append(self._program.emit(opcode, self._line))
        return self._program.reserve_slot(self._line)

    def _patch(self, slot: int, target: int | None = None):
        """Fill *slot* with *target*, by default the next code index."""
        self._program.fill_slot(slot, self._program.here if target is None else target)

    def _emit_load(self, ty: int):
        self._emit(Opcode.LC if ty == CHAR else Opcode.LI)

    def _emit_store(self, ty: int):
        self._emit(Opcode.SC if ty == CHAR else Opcode.SI)

    def _last_opcode(self) -> int | None:
        if not self._op_positions:
            return None
        position = self._op_positions[-1]
        if position != self._program.here - 1:
            return None
        return self._program.code[position]

    def _take_lvalue(self, message: str) -> Opcode:
        """Remove the trailing load that proves an lvalue; its address stays in ax."""
        opcode = self._last_opcode()
        if opcode not in LOAD_OPCODES:
            self._fail(SemanticError, message)
        self._op_positions.pop()
        return Opcode(self._program.retract())

    def _check_jumps_patched(self, function_name: str):
        pending = self._program.pending_slots
        if pending:
            raise CompileError(
                f"unpatched jump slots {sorted(pending)} in '{function_name}'",
                self._line,
            )
