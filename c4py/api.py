"""Composable API functions for the c4py pipelines.

Each function corresponds to a CLI workflow (-s listing, -d trace) but is
callable programmatically without argparse.
"""

from __future__ import annotations

import logging

from .bytecode import BytecodeProgram, Instruction, disassemble
from .bytecode_stats import count_opcodes
from .compiler import StatementCompiler
from .compiler import compile_source as _compile_source
from .constants import POOL_SIZE
from .run import execute_program_traced
from .run_types import VMConfig
from .symbols import SymbolClass
from .trace_types import ExecutionTrace

logger = logging.getLogger(__name__)


def compile_source(source: str, pool_size: int = POOL_SIZE) -> BytecodeProgram:
    """Compile source text to a program image.

    Args:
        source: The C-subset source text.
        pool_size: Byte capacity of each memory segment.

    Returns:
        The compiled BytecodeProgram.

    Raises:
        CompileError: On the first lexical, syntax or semantic error.
    """
    return _compile_source(source, pool_size)


def dump_bytecode(source: str) -> str:
    """Compile source and return a human-readable disassembly.

    Args:
        source: The C-subset source text.

    Returns:
        A multi-line string with one instruction per line.
    """
    program = compile_source(source)
    return "\n".join(str(inst) for inst in disassemble(program))


def source_listing(source: str) -> str:
    """Compile source and interleave each source line with its instructions.

    Every line of *source* is printed as ``<line>: <text>``, followed by the
    instructions whose code was emitted while that line was being compiled.

    Args:
        source: The C-subset source text.

    Returns:
        The listing as a multi-line string.
    """
    program = compile_source(source)
    by_line: dict[int, list[Instruction]] = {}
    for inst in disassemble(program):
        by_line.setdefault(inst.line, []).append(inst)

    out: list[str] = []
    source_lines = source.split("\n")
    for lineno, text in enumerate(source_lines, start=1):
        out.append(f"{lineno}: {text}")
        for inst in by_line.pop(lineno, []):
            out.append(_listing_entry(inst))
    # Code attributed past the last line, such as the exit stub.
    for lineno in sorted(by_line):
        for inst in by_line[lineno]:
            out.append(_listing_entry(inst))
    return "\n".join(out)


def _listing_entry(inst: Instruction) -> str:
    if inst.operand is None:
        return f"    {inst.name}"
    return f"    {inst.name:<4} {inst.operand}"


def dump_function(source: str, function_name: str) -> str:
    """Compile source and disassemble a single function.

    Args:
        source: The C-subset source text.
        function_name: Name of the function to disassemble.

    Returns:
        A multi-line string with one instruction per line.

    Raises:
        ValueError: If no function with the given name is defined.
    """
    logger.info("Disassembling function '%s'", function_name)
    compiler = StatementCompiler(source)
    program = compiler.compile()
    starts = sorted(
        symbol.value for symbol in compiler.symbols if symbol.kind == SymbolClass.FUNCTION
    )
    target = compiler.symbols.lookup(function_name)
    if target is None or target.kind != SymbolClass.FUNCTION:
        raise ValueError(f"Function '{function_name}' not found in source")
    end = next((start for start in starts if start > target.value), program.exit_stub)
    return "\n".join(
        str(inst)
        for inst in disassemble(program)
        if target.value <= inst.address < end
    )


def bytecode_stats(source: str) -> dict[str, int]:
    """Compile source and return opcode frequency counts.

    Args:
        source: The C-subset source text.

    Returns:
        A dict mapping mnemonic strings to their occurrence counts.
    """
    return count_opcodes(compile_source(source))


def execute_traced(
    source: str,
    argv: list[str] | None = None,
    max_cycles: int | None = None,
) -> ExecutionTrace:
    """Compile and execute with full trace recording.

    Composes: compile_source → execute_program_traced.  Returns an
    ExecutionTrace holding a register snapshot for every executed
    instruction.

    Args:
        source: The C-subset source text.
        argv: Arguments passed to ``main``.
        max_cycles: Cycle limit; ``None`` runs until the program exits.

    Returns:
        An ExecutionTrace with initial_state, steps, and stats.
    """
    logger.info("execute_traced: max_cycles=%s", max_cycles)
    program = compile_source(source)
    _vm, trace = execute_program_traced(program, argv, VMConfig(max_cycles=max_cycles))
    return trace
