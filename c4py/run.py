"""Orchestrator: run() entry point."""

from __future__ import annotations

import copy
import logging
import time

from .bytecode import BytecodeProgram
from .compiler import StatementCompiler
from .run_types import ExecutionStats, PipelineStats, VMConfig
from .symbols import SymbolClass
from .trace_types import ExecutionTrace, TraceStep
from .vm import StepHook, VirtualMachine
from .vm_types import VMState

logger = logging.getLogger(__name__)


def _build_machine(program: BytecodeProgram, config: VMConfig) -> VirtualMachine:
    return VirtualMachine(
        program,
        pool_size=config.pool_size,
        max_cycles=config.max_cycles,
        stdout=config.stdout,
    )


def execute_program(
    program: BytecodeProgram,
    argv: list[str] | None = None,
    config: VMConfig = VMConfig(),
    on_step: StepHook | None = None,
) -> tuple[VMState, ExecutionStats]:
    """Execute a compiled program until it exits.

    Args:
        program: The compiled program image.
        argv: Arguments passed to ``main`` as ``argc``/``argv``.
        config: VM configuration.
        on_step: Called after every instruction with the cycle, the
            instruction address, opcode, operand and the registers.

    Returns:
        Tuple of (final VMState, ExecutionStats).
    """
    machine = _build_machine(program, config)
    t0 = time.perf_counter()
    vm = machine.run(argv, on_step)
    stats = ExecutionStats(
        cycles=vm.cycle,
        exit_code=vm.exit_code,
        heap_allocations=len(machine.memory.allocations),
    )
    logger.info(
        "Program exited with %s after %d cycles in %.1fms",
        vm.exit_code,
        vm.cycle,
        (time.perf_counter() - t0) * 1000,
    )
    return vm, stats


def execute_program_traced(
    program: BytecodeProgram,
    argv: list[str] | None = None,
    config: VMConfig = VMConfig(),
) -> tuple[VMState, ExecutionTrace]:
    """Execute a compiled program, recording a snapshot after every instruction.

    Args:
        program: The compiled program image.
        argv: Arguments passed to ``main``.
        config: VM configuration; set ``max_cycles`` for programs that may
            not terminate, since every step is kept in memory.

    Returns:
        Tuple of (final VMState, ExecutionTrace with per-step snapshots).
    """
    trace_steps: list[TraceStep] = []

    def record(cycle: int, pc: int, opcode: int, operand: int | None, state: VMState):
        trace_steps.append(
            TraceStep(
                cycle=cycle,
                pc=pc,
                opcode=opcode,
                operand=operand,
                vm_state=copy.copy(state),
            )
        )

    machine = _build_machine(program, config)
    machine.start(argv)
    initial_state = copy.copy(machine.state)
    vm = machine.resume(record)

    stats = ExecutionStats(
        cycles=vm.cycle,
        exit_code=vm.exit_code,
        heap_allocations=len(machine.memory.allocations),
    )
    trace = ExecutionTrace(
        steps=trace_steps,
        stats=stats,
        initial_state=initial_state,
    )
    return vm, trace


def run(
    source: str,
    argv: list[str] | None = None,
    config: VMConfig = VMConfig(),
) -> VMState:
    """End-to-end: compile → execute.

    Args:
        source: C-subset source text.
        argv: Arguments passed to ``main``.
        config: VM configuration; with ``verbose`` a pipeline report is
            printed after execution.

    Returns:
        The final VMState; ``exit_code`` holds the program's exit status.
    """
    pipeline_start = time.perf_counter()
    stats = PipelineStats(
        source_bytes=len(source.encode("utf-8")),
        source_lines=source.count("\n")
        + (1 if source and not source.endswith("\n") else 0),
    )

    t0 = time.perf_counter()
    compiler = StatementCompiler(source, pool_size=config.pool_size)
    program = compiler.compile()
    stats.compile_time = time.perf_counter() - t0
    stats.code_words = program.here
    stats.data_bytes = program.data_size
    symbols = list(compiler.symbols)
    stats.functions = sum(1 for s in symbols if s.kind == SymbolClass.FUNCTION)
    stats.globals = sum(1 for s in symbols if s.kind == SymbolClass.GLOBAL)
    logger.info(
        "Compiled %d code words, %d data bytes in %.1fms",
        stats.code_words,
        stats.data_bytes,
        stats.compile_time * 1000,
    )

    exec_start = time.perf_counter()
    vm, exec_stats = execute_program(program, argv, config)
    stats.execution_time = time.perf_counter() - exec_start

    stats.cycles = exec_stats.cycles
    stats.exit_code = exec_stats.exit_code
    stats.heap_allocations = exec_stats.heap_allocations
    stats.total_time = time.perf_counter() - pipeline_start

    if config.verbose:
        print()
        print(stats.report())

    return vm
