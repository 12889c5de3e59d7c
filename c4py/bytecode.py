"""Bytecode: opcode table, the emitted program image, and disassembly."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import NamedTuple

from pydantic import BaseModel

from .constants import NULL_RESERVED_BYTES, POOL_SIZE, WORD_SIZE
from .errors import CompileError


class Opcode(IntEnum):
    LEA = 0
    IMM = 1
    JMP = 2
    JSR = 3
    BZ = 4
    BNZ = 5
    ENT = 6
    ADJ = 7
    LEV = 8
    LI = 9
    LC = 10
    SI = 11
    SC = 12
    PSH = 13
    OR = 14
    XOR = 15
    AND = 16
    EQ = 17
    NE = 18
    LT = 19
    GT = 20
    LE = 21
    GE = 22
    SHL = 23
    SHR = 24
    ADD = 25
    SUB = 26
    MUL = 27
    DIV = 28
    MOD = 29
    # System calls
    OPEN = 30
    READ = 31
    CLOS = 32
    PRTF = 33
    MALC = 34
    FREE = 35
    MSET = 36
    MCMP = 37
    EXIT = 38


def has_operand(opcode: int) -> bool:
    """Opcodes up to ADJ are followed by one operand word."""
    return Opcode.LEA <= opcode <= Opcode.ADJ


LOAD_OPCODES: frozenset[Opcode] = frozenset({Opcode.LC, Opcode.LI})


class SystemCallSignature(NamedTuple):
    opcode: Opcode
    arity: int
    variadic: bool = False


SYSTEM_CALLS: dict[str, SystemCallSignature] = {
    "open": SystemCallSignature(Opcode.OPEN, 2),
    "read": SystemCallSignature(Opcode.READ, 3),
    "close": SystemCallSignature(Opcode.CLOS, 1),
    "printf": SystemCallSignature(Opcode.PRTF, 1, variadic=True),
    "malloc": SystemCallSignature(Opcode.MALC, 1),
    "free": SystemCallSignature(Opcode.FREE, 1),
    "memset": SystemCallSignature(Opcode.MSET, 3),
    "memcmp": SystemCallSignature(Opcode.MCMP, 3),
    "exit": SystemCallSignature(Opcode.EXIT, 1),
}


def opcode_name(word: int) -> str:
    try:
        return Opcode(word).name
    except ValueError:
        return f"<{word}>"


@dataclass
class BytecodeProgram:
    """Flat code stream plus the initialized data segment.

    Code addresses are indices into ``code``; data addresses are indices into
    ``data``.  Jump operands that are not yet known are reserved with
    :meth:`reserve_slot` and must be filled exactly once with
    :meth:`fill_slot`.
    """

    capacity: int = POOL_SIZE
    code: list[int] = field(default_factory=list)
    data: bytearray = field(default_factory=lambda: bytearray(NULL_RESERVED_BYTES))
    lines: list[int] = field(default_factory=list)
    entry: int | None = None
    exit_stub: int | None = None
    pending_slots: set[int] = field(default_factory=set)

    @property
    def code_capacity(self) -> int:
        return self.capacity // WORD_SIZE

    @property
    def here(self) -> int:
        """Index of the next word to be emitted."""
        return len(self.code)

    # ── code ─────────────────────────────────────────────────────

    def emit(self, word: int, line: int = 0) -> int:
        if len(self.code) >= self.code_capacity:
            raise CompileError("code segment overflow", line)
        self.code.append(int(word))
        self.lines.append(line)
        return len(self.code) - 1

    def retract(self) -> int:
        """Remove and return the last emitted word."""
        self.lines.pop()
        return self.code.pop()

    def reserve_slot(self, line: int = 0) -> int:
        slot = self.emit(0, line)
        self.pending_slots.add(slot)
        return slot

    def fill_slot(self, slot: int, target: int):
        if slot not in self.pending_slots:
            raise ValueError(f"Slot {slot} is not an unfilled jump placeholder")
        self.code[slot] = target
        self.pending_slots.discard(slot)

    # ── data ─────────────────────────────────────────────────────

    @property
    def data_size(self) -> int:
        return len(self.data)

    def append_data(self, payload: bytes, line: int = 0) -> int:
        if len(self.data) + len(payload) > self.capacity:
            raise CompileError("data segment overflow", line)
        address = len(self.data)
        self.data += payload
        return address

    def align_data(self, line: int = 0):
        padding = -len(self.data) % WORD_SIZE
        if padding:
            self.append_data(bytes(padding), line)

    def allocate_global(self, line: int = 0) -> int:
        """Carve one zero-initialized word from the data segment."""
        self.align_data(line)
        return self.append_data(bytes(WORD_SIZE), line)


class Instruction(BaseModel):
    """One decoded instruction, used for listings and statistics."""

    address: int
    opcode: int
    operand: int | None = None
    line: int = 0

    @property
    def name(self) -> str:
        return opcode_name(self.opcode)

    def __str__(self) -> str:
        if self.operand is None:
            return f"{self.address:>6}  {self.name}"
        return f"{self.address:>6}  {self.name:<4} {self.operand}"


def disassemble(program: BytecodeProgram) -> list[Instruction]:
    """Decode the code stream into instructions, one per opcode word."""
    instructions: list[Instruction] = []
    code = program.code
    pc = 0
    while pc < len(code):
        word = code[pc]
        line = program.lines[pc] if pc < len(program.lines) else 0
        operand = None
        if has_operand(word) and pc + 1 < len(code):
            operand = code[pc + 1]
        instructions.append(
            Instruction(address=pc, opcode=word, operand=operand, line=line)
        )
        pc += 2 if operand is not None else 1
    return instructions
