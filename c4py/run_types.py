"""Run pipeline data types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TextIO

from .constants import POOL_SIZE


@dataclass(frozen=True)
class VMConfig:
    """Groups VM execution configuration.

    ``max_cycles=None`` runs without a bound; ``stdout=None`` writes program
    output to ``sys.stdout`` as it is at execution time.
    """

    pool_size: int = POOL_SIZE
    max_cycles: int | None = None
    stdout: TextIO | None = None
    verbose: bool = False


@dataclass
class ExecutionStats:
    """Returned execution metrics from execute_program."""

    cycles: int = 0
    exit_code: int | None = None
    heap_allocations: int = 0


@dataclass
class PipelineStats:
    """Timing and size statistics for each pipeline stage."""

    source_bytes: int = 0
    source_lines: int = 0

    # Stage timings (seconds)
    compile_time: float = 0.0
    execution_time: float = 0.0
    total_time: float = 0.0

    # Output sizes
    code_words: int = 0
    data_bytes: int = 0
    functions: int = 0
    globals: int = 0

    # Execution stats
    cycles: int = 0
    exit_code: int | None = None
    heap_allocations: int = 0

    def report(self) -> str:
        lines = [
            "═══ Pipeline Statistics ═══",
            f"  Source: {self.source_lines} lines, {self.source_bytes} bytes",
            "",
            f"  {'Stage':<20} {'Time':>10}  {'Output':>30}",
            f"  {'─' * 20} {'─' * 10}  {'─' * 30}",
        ]

        stages = [
            (
                "Compile",
                self.compile_time,
                f"{self.code_words} code words, {self.data_bytes} data bytes",
            ),
            ("Execute (VM)", self.execution_time, f"{self.cycles} cycles"),
        ]
        for name, t, output in stages:
            time_str = f"{t * 1000:>8.1f}ms"
            lines.append(f"  {name:<20} {time_str:>10}  {output:>30}")

        lines.append(f"  {'─' * 20} {'─' * 10}  {'─' * 30}")
        lines.append(f"  {'Total':<20} {self.total_time * 1000:>8.1f}ms")
        lines.append("")
        lines.append(
            f"  Final state: exit({self.exit_code}),"
            f" {self.functions} functions, {self.globals} globals,"
            f" {self.heap_allocations} live heap blocks"
        )
        return "\n".join(lines)
