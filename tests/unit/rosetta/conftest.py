"""Shared helpers for the Rosetta program suite."""

import io
import logging

from c4py.bytecode import BytecodeProgram, Opcode, disassemble
from c4py.compiler import compile_source
from c4py.run import execute_program
from c4py.run_types import ExecutionStats, VMConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_CYCLES = 5_000_000


def opcodes(program: BytecodeProgram) -> set[Opcode]:
    """Return the set of opcodes present in *program*."""
    return {Opcode(inst.opcode) for inst in disassemble(program)}


def assert_clean_compile(
    program: BytecodeProgram,
    *,
    min_instructions: int,
    required_opcodes: set[Opcode],
    name: str,
) -> None:
    """Run the standard assertion battery on a compiled program."""
    assert program.entry is not None, f"[{name}] no entry point"
    assert not program.pending_slots, f"[{name}] unfilled jump slots: {program.pending_slots}"

    count = len(disassemble(program))
    assert (
        count >= min_instructions
    ), f"[{name}] expected >= {min_instructions} instructions, got {count}"

    missing = required_opcodes - opcodes(program)
    assert not missing, f"[{name}] missing required opcodes: {missing}"


def run_program(
    source: str,
    argv: list[str] | None = None,
    max_cycles: int = DEFAULT_MAX_CYCLES,
) -> tuple[int, str, ExecutionStats]:
    """Compile and run *source*; return exit code, captured stdout and stats."""
    out = io.StringIO()
    program = compile_source(source)
    vm, stats = execute_program(
        program, argv, VMConfig(max_cycles=max_cycles, stdout=out)
    )
    logger.info("rosetta program finished in %d cycles", stats.cycles)
    return vm.exit_code, out.getvalue(), stats
