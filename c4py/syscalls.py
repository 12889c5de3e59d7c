"""System call implementations for the virtual machine.

Each handler receives the machine and its arguments in call order and
returns the new value of ``ax``, or ``None`` to leave ``ax`` unchanged.
Host failures are reported the C way (``-1`` or ``0``), never raised.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from typing import TYPE_CHECKING, Any, Callable, TextIO

from .bytecode import Opcode
from .constants import DEFAULT_FILE_MODE
from .memory import to_unsigned

if TYPE_CHECKING:
    from .vm import VirtualMachine

logger = logging.getLogger(__name__)

_CONVERSION = re.compile(
    rb"%(?P<flags>[-+ #0]*)(?P<width>\d*)(?:\.(?P<precision>\d+))?(?:hh|h|ll|l|z)?"
    rb"(?P<conv>[diouxXcsp%])"
)

_UNSIGNED_CONVERSIONS = frozenset(b"ouxX")


def format_printf(fmt: bytes, args: list[int], read_cstring: Callable[[int], bytes]) -> bytes:
    """Expand a C format string against word arguments.

    ``%s`` arguments are addresses resolved through *read_cstring*.  Missing
    arguments format as 0.
    """
    remaining = iter(args)

    def expand(match: re.Match) -> bytes:
        conv = match.group("conv")
        if conv == b"%":
            return b"%"
        directive = b"%" + match.group("flags") + match.group("width")
        if match.group("precision") is not None:
            directive += b"." + match.group("precision")
        value = next(remaining, 0)
        if conv == b"s":
            text = b"(null)" if value == 0 else read_cstring(value)
            return (directive + b"s") % text
        if conv == b"c":
            return (directive + b"c") % (value & 0xFF)
        if conv == b"p":
            return (directive + b"#x") % to_unsigned(value)
        if conv == b"u":
            return (directive + b"d") % to_unsigned(value)
        if conv[0] in _UNSIGNED_CONVERSIONS:
            return (directive + conv) % to_unsigned(value)
        return (directive + b"d") % value

    return _CONVERSION.sub(expand, fmt)


def write_output(stream: TextIO | None, payload: bytes):
    stream = stream if stream is not None else sys.stdout
    buffer = getattr(stream, "buffer", None)
    if buffer is not None:
        stream.flush()
        buffer.write(payload)
        buffer.flush()
    else:
        stream.write(payload.decode("utf-8", errors="replace"))


def _sys_open(vm: VirtualMachine, args: list[int]) -> int:
    path = vm.memory.read_cstring(args[0])
    try:
        return os.open(path, args[1], DEFAULT_FILE_MODE)
    except OSError as err:
        logger.debug("open(%r) failed: %s", path, err)
        return -1


def _sys_read(vm: VirtualMachine, args: list[int]) -> int:
    fd, address, count = args
    try:
        payload = os.read(fd, max(count, 0))
    except OSError as err:
        logger.debug("read(%d) failed: %s", fd, err)
        return -1
    vm.memory.write_bytes(address, payload)
    return len(payload)


def _sys_close(vm: VirtualMachine, args: list[int]) -> int:
    try:
        os.close(args[0])
    except OSError as err:
        logger.debug("close(%d) failed: %s", args[0], err)
        return -1
    return 0


def _sys_printf(vm: VirtualMachine, args: list[int]) -> int:
    fmt = vm.memory.read_cstring(args[0])
    payload = format_printf(fmt, args[1:], vm.memory.read_cstring)
    write_output(vm.stdout, payload)
    return len(payload)


def _sys_malloc(vm: VirtualMachine, args: list[int]) -> int:
    return vm.memory.allocate(args[0])


def _sys_free(vm: VirtualMachine, args: list[int]) -> Any:
    vm.memory.release(args[0])
    return None


def _sys_memset(vm: VirtualMachine, args: list[int]) -> int:
    address, value, count = args
    if count > 0:
        vm.memory.write_bytes(address, bytes([value & 0xFF]) * count)
    return address


def _sys_memcmp(vm: VirtualMachine, args: list[int]) -> int:
    left = vm.memory.read_bytes(args[0], args[2])
    right = vm.memory.read_bytes(args[1], args[2])
    for a, b in zip(left, right):
        if a != b:
            return a - b
    return 0


class SystemCalls:
    """Table of system call implementations, keyed by opcode.

    ``EXIT`` is not listed: halting is handled by the machine itself.
    """

    TABLE: dict[Opcode, Callable[[VirtualMachine, list[int]], Any]] = {
        Opcode.OPEN: _sys_open,
        Opcode.READ: _sys_read,
        Opcode.CLOS: _sys_close,
        Opcode.PRTF: _sys_printf,
        Opcode.MALC: _sys_malloc,
        Opcode.FREE: _sys_free,
        Opcode.MSET: _sys_memset,
        Opcode.MCMP: _sys_memcmp,
    }
