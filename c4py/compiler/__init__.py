"""Single-pass compiler from C-subset source to bytecode."""

from __future__ import annotations

import logging
import time

from ..bytecode import BytecodeProgram
from ..constants import POOL_SIZE
from .statements import StatementCompiler

logger = logging.getLogger(__name__)


def compile_source(source: str, pool_size: int = POOL_SIZE) -> BytecodeProgram:
    """Compile *source* into a program image ready for the VM.

    Raises the first ``CompileError`` encountered; nothing is returned for a
    program that fails to compile.
    """
    t0 = time.perf_counter()
    program = StatementCompiler(source, pool_size=pool_size).compile()
    logger.info(
        "Compiled %d code words, %d data bytes in %.1fms",
        program.here,
        program.data_size,
        (time.perf_counter() - t0) * 1000,
    )
    return program


__all__ = ["StatementCompiler", "compile_source"]
