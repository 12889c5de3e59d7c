"""Pure functions for computing statistics over compiled programs."""

from __future__ import annotations

from collections import Counter

from c4py.bytecode import BytecodeProgram, disassemble


def count_opcodes(program: BytecodeProgram) -> dict[str, int]:
    """Return a frequency map of opcode mnemonics in the given program.

    Args:
        program: A compiled program; operand words are not counted.

    Returns:
        A dict mapping mnemonic strings to their occurrence counts.
        Empty dict for an empty program.
    """
    return dict(Counter(inst.name for inst in disassemble(program)))
