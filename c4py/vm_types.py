"""Virtual machine: register state (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class VMState:
    """The five machine registers plus halt status.

    ``sp`` and ``bp`` are word indices into the stack segment; the stack
    grows toward index 0.
    """

    pc: int = 0
    sp: int = 0
    bp: int = 0
    ax: int = 0
    cycle: int = 0
    halted: bool = False
    exit_code: int | None = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "pc": self.pc,
            "sp": self.sp,
            "bp": self.bp,
            "ax": self.ax,
            "cycle": self.cycle,
        }
        if self.halted:
            d["exit_code"] = self.exit_code
        return d
