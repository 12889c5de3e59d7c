"""Symbol table: name bindings with function-scope shadowing."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterator

from pydantic import BaseModel

from .bytecode import SYSTEM_CALLS
from .typesys import INT

logger = logging.getLogger(__name__)


class SymbolClass(str, Enum):
    SYSTEM_CALL = "Sys"
    FUNCTION = "Fun"
    ENUM_CONSTANT = "Num"
    LOCAL = "Loc"
    GLOBAL = "Glo"


class Symbol(BaseModel):
    """A bound name.

    ``value`` is a code address (functions), a syscall opcode, an enum
    constant, a frame slot number (locals) or a data address (globals).
    ``arity`` is the declared parameter count for callables.
    """

    name: str
    kind: SymbolClass
    type: int = INT
    value: int = 0
    arity: int | None = None
    variadic: bool = False

    @property
    def is_callable(self) -> bool:
        return self.kind in (SymbolClass.FUNCTION, SymbolClass.SYSTEM_CALL)


class SymbolTable:
    """Maps names to symbols.

    Globals live for the whole compilation.  Between :meth:`enter_function`
    and :meth:`leave_function` every local declared records the binding it
    shadows, and leaving the function restores those bindings exactly.
    """

    def __init__(self):
        self._bindings: dict[str, Symbol] = {}
        self._shadowed: dict[str, Symbol | None] | None = None

    @classmethod
    def with_system_calls(cls) -> SymbolTable:
        table = cls()
        for name, signature in SYSTEM_CALLS.items():
            table.declare(
                Symbol(
                    name=name,
                    kind=SymbolClass.SYSTEM_CALL,
                    type=INT,
                    value=signature.opcode,
                    arity=signature.arity,
                    variadic=signature.variadic,
                )
            )
        return table

    def __contains__(self, name: str) -> bool:
        return name in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> Iterator[Symbol]:
        return iter(list(self._bindings.values()))

    @property
    def in_function(self) -> bool:
        return self._shadowed is not None

    def lookup(self, name: str) -> Symbol | None:
        return self._bindings.get(name)

    def declare(self, symbol: Symbol):
        """Bind *symbol*.

        Locals are only accepted inside a function scope and may shadow a
        global; any other redefinition raises ``ValueError``.
        """
        name = symbol.name
        if symbol.kind == SymbolClass.LOCAL:
            if self._shadowed is None:
                raise ValueError(f"Local '{name}' declared outside a function")
            if name in self._shadowed:
                raise ValueError(f"Duplicate local definition '{name}'")
            self._shadowed[name] = self._bindings.get(name)
        elif name in self._bindings:
            raise ValueError(f"Duplicate global definition '{name}'")
        self._bindings[name] = symbol

    def enter_function(self):
        if self._shadowed is not None:
            raise ValueError("Function scopes do not nest")
        self._shadowed = {}

    def leave_function(self):
        if self._shadowed is None:
            raise ValueError("No function scope to leave")
        for name, previous in self._shadowed.items():
            if previous is None:
                del self._bindings[name]
            else:
                self._bindings[name] = previous
        logger.debug("Restored %d shadowed bindings", len(self._shadowed))
        self._shadowed = None
