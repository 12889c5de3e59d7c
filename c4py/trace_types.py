"""Trace data types for step-by-step execution replay."""

from __future__ import annotations

from dataclasses import dataclass, field

from .bytecode import opcode_name
from .run_types import ExecutionStats
from .vm_types import VMState


@dataclass(frozen=True)
class TraceStep:
    """A single executed instruction.

    Captures the instruction and a copy of the registers after it ran.
    """

    cycle: int
    pc: int
    opcode: int
    operand: int | None
    vm_state: VMState

    @property
    def name(self) -> str:
        return opcode_name(self.opcode)

    def __str__(self) -> str:
        if self.operand is None:
            return f"{self.cycle}> {self.name}"
        return f"{self.cycle}> {self.name:<4} {self.operand}"


@dataclass(frozen=True)
class ExecutionTrace:
    """Complete trace of an execution run.

    Contains the registers before the first instruction and one
    :class:`TraceStep` per executed instruction.
    """

    steps: list[TraceStep] = field(default_factory=list)
    stats: ExecutionStats = field(default_factory=ExecutionStats)
    initial_state: VMState | None = None
