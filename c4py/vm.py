"""Virtual machine: fetch/decode/execute over a compiled program."""

from __future__ import annotations

import logging
from typing import Any, Callable, TextIO

from .bytecode import SYSTEM_CALLS, BytecodeProgram, Opcode, has_operand, opcode_name
from .constants import POOL_SIZE, WORD_SIZE
from .errors import VMError
from .memory import Memory, to_word
from .syscalls import SystemCalls
from .vm_types import VMState

logger = logging.getLogger(__name__)

# (cycle, pc, opcode, operand, registers after the instruction)
StepHook = Callable[[int, int, int, int | None, VMState], None]


def _c_div(a: int, b: int) -> int:
    if b == 0:
        raise VMError("division by zero")
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


def _c_mod(a: int, b: int) -> int:
    return a - b * _c_div(a, b)


class Operators:
    """Binary opcode evaluation: the left operand is popped, the right is ax."""

    BINOP_TABLE: dict[Opcode, Callable[[int, int], int]] = {
        Opcode.OR: lambda a, b: a | b,
        Opcode.XOR: lambda a, b: a ^ b,
        Opcode.AND: lambda a, b: a & b,
        Opcode.EQ: lambda a, b: int(a == b),
        Opcode.NE: lambda a, b: int(a != b),
        Opcode.LT: lambda a, b: int(a < b),
        Opcode.GT: lambda a, b: int(a > b),
        Opcode.LE: lambda a, b: int(a <= b),
        Opcode.GE: lambda a, b: int(a >= b),
        Opcode.SHL: lambda a, b: a << (b & 31),
        Opcode.SHR: lambda a, b: a >> (b & 31),
        Opcode.ADD: lambda a, b: a + b,
        Opcode.SUB: lambda a, b: a - b,
        Opcode.MUL: lambda a, b: a * b,
        Opcode.DIV: _c_div,
        Opcode.MOD: _c_mod,
    }

    @classmethod
    def eval_binop(cls, opcode: Opcode, lhs: int, rhs: int) -> int:
        return to_word(cls.BINOP_TABLE[opcode](lhs, rhs))


class VirtualMachine:
    """Executes a :class:`BytecodeProgram` against its own memory.

    Registers live in :attr:`state`; ``sp``/``bp`` are word indices into the
    stack segment, which starts full-descending at ``memory.stack_words``.
    """

    def __init__(
        self,
        program: BytecodeProgram,
        pool_size: int = POOL_SIZE,
        max_cycles: int | None = None,
        stdout: TextIO | None = None,
    ):
        self.program = program
        self.code = program.code
        self.memory = Memory(pool_size, bytes(program.data))
        self.state = VMState()
        self.max_cycles = max_cycles
        self.stdout = stdout
        self._DISPATCH: dict[int, Callable[[Any], None]] = {
            Opcode.LEA: self._op_lea,
            Opcode.IMM: self._op_imm,
            Opcode.JMP: self._op_jmp,
            Opcode.JSR: self._op_jsr,
            Opcode.BZ: self._op_bz,
            Opcode.BNZ: self._op_bnz,
            Opcode.ENT: self._op_ent,
            Opcode.ADJ: self._op_adj,
            Opcode.LEV: self._op_lev,
            Opcode.LI: self._op_li,
            Opcode.LC: self._op_lc,
            Opcode.SI: self._op_si,
            Opcode.SC: self._op_sc,
            Opcode.PSH: self._op_psh,
            Opcode.EXIT: self._op_exit,
        }
        for opcode in Operators.BINOP_TABLE:
            self._DISPATCH[opcode] = self._binop_handler(opcode)
        for opcode in SystemCalls.TABLE:
            self._DISPATCH[opcode] = self._syscall_handler(opcode)

    # ── lifecycle ────────────────────────────────────────────────

    def start(self, argv: list[str] | None = None):
        """Reset registers and lay out the initial stack for ``main``.

        Programs compiled from source get ``argc``, ``argv`` and the exit
        stub as return address, so ``main`` returning halts the machine with
        its return value.  Hand-built programs without an exit stub start at
        their entry with an empty stack.
        """
        if self.program.entry is None:
            raise VMError("program has no entry point")
        stack_top = self.memory.stack_words
        self.state = VMState(pc=self.program.entry, sp=stack_top, bp=stack_top)
        if self.program.exit_stub is None:
            return
        argv = argv or []
        self._push(len(argv))
        self._push(self._store_argv(argv))
        self._push(self.program.exit_stub)

    def _store_argv(self, argv: list[str]) -> int:
        pointers = [self.memory.store_blob(arg.encode("utf-8") + b"\0") for arg in argv]
        table = self.memory.store_blob(bytes(WORD_SIZE * (len(pointers) + 1)))
        for index, pointer in enumerate(pointers):
            self.memory.store_int(table + index * WORD_SIZE, pointer)
        return table

    def run(self, argv: list[str] | None = None, on_step: StepHook | None = None) -> VMState:
        """Run from the entry point until the program exits."""
        self.start(argv)
        return self.resume(on_step)

    def resume(self, on_step: StepHook | None = None) -> VMState:
        """Step from the current registers until the program exits."""
        while not self.state.halted:
            pc = self.state.pc
            opcode, operand = self.step()
            if on_step is not None:
                on_step(self.state.cycle, pc, opcode, operand, self.state)
        return self.state

    def step(self) -> tuple[int, int | None]:
        """Execute one instruction and return its opcode and operand."""
        state = self.state
        pc = state.pc
        if not 0 <= pc < len(self.code):
            raise VMError(f"pc out of range: {pc}", cycle=state.cycle)
        opcode = self.code[pc]
        state.pc = pc + 1
        state.cycle += 1
        if self.max_cycles is not None and state.cycle > self.max_cycles:
            raise VMError(f"cycle limit of {self.max_cycles} exceeded", opcode, state.cycle)
        operand = None
        if has_operand(opcode):
            if state.pc >= len(self.code):
                raise VMError("missing operand", opcode, state.cycle)
            operand = self.code[state.pc]
            state.pc += 1
        handler = self._DISPATCH.get(opcode)
        if handler is None:
            raise VMError(f"unknown instruction = {opcode}", opcode, state.cycle)
        try:
            handler(operand)
        except VMError as err:
            err.opcode = opcode
            err.cycle = state.cycle
            err.message = f"{err.message} at {opcode_name(opcode)}"
            raise
        return opcode, operand

    # ── stack ────────────────────────────────────────────────────

    def _push(self, value: int):
        self.state.sp -= 1
        self.memory.stack_store(self.state.sp, value)

    def _pop(self) -> int:
        value = self.memory.stack_load(self.state.sp)
        self.state.sp += 1
        return value

    # ── instructions ─────────────────────────────────────────────

    def _op_lea(self, operand: int):
        self.state.ax = self.memory.stack_address(self.state.bp + operand)

    def _op_imm(self, operand: int):
        self.state.ax = to_word(operand)

    def _op_jmp(self, operand: int):
        self.state.pc = operand

    def _op_jsr(self, operand: int):
        self._push(self.state.pc)
        self.state.pc = operand

    def _op_bz(self, operand: int):
        if self.state.ax == 0:
            self.state.pc = operand

    def _op_bnz(self, operand: int):
        if self.state.ax != 0:
            self.state.pc = operand

    def _op_ent(self, operand: int):
        self._push(self.state.bp)
        self.state.bp = self.state.sp
        self.state.sp -= operand
        if self.state.sp < 0:
            raise VMError("stack overflow")

    def _op_adj(self, operand: int):
        self.state.sp += operand

    def _op_lev(self, operand: None):
        state = self.state
        state.sp = state.bp
        state.bp = self._pop()
        state.pc = self._pop()

    def _op_li(self, operand: None):
        self.state.ax = self.memory.load_int(self.state.ax)

    def _op_lc(self, operand: None):
        self.state.ax = self.memory.load_char(self.state.ax)

    def _op_si(self, operand: None):
        self.memory.store_int(self._pop(), self.state.ax)

    def _op_sc(self, operand: None):
        self.state.ax = self.memory.store_char(self._pop(), self.state.ax)

    def _op_psh(self, operand: None):
        self._push(self.state.ax)

    def _op_exit(self, operand: None):
        code = self.memory.stack_load(self.state.sp)
        self.state.ax = code
        self.state.exit_code = code
        self.state.halted = True
        logger.debug("exit(%d) cycle = %d", code, self.state.cycle)

    def _binop_handler(self, opcode: Opcode) -> Callable[[None], None]:
        def execute(operand: None):
            self.state.ax = Operators.eval_binop(opcode, self._pop(), self.state.ax)

        return execute

    def _syscall_handler(self, opcode: Opcode) -> Callable[[None], None]:
        implementation = SystemCalls.TABLE[opcode]
        signature = next(sig for sig in SYSTEM_CALLS.values() if sig.opcode == opcode)

        def execute(operand: None):
            argc = self._pending_argc()
            if argc < signature.arity:
                raise VMError(
                    f"{opcode_name(opcode)} needs {signature.arity} arguments, got {argc}"
                )
            sp = self.state.sp
            args = [self.memory.stack_load(sp + argc - 1 - i) for i in range(argc)]
            logger.debug("syscall %s%s", opcode_name(opcode), tuple(args))
            if not signature.variadic:
                args = args[: signature.arity]
            result = implementation(self, args)
            if result is not None:
                self.state.ax = to_word(result)

        return execute

    def _pending_argc(self) -> int:
        """Argument count of a syscall, read from the ``ADJ`` that follows it."""
        pc = self.state.pc
        if pc + 1 < len(self.code) and self.code[pc] == Opcode.ADJ:
            return self.code[pc + 1]
        return 0
