"""Index-based address space shared by the VM and the system calls.

Three segments of ``pool_size`` bytes each sit side by side::

    [0, pool)          data   (globals and string literals)
    [pool, 2 * pool)   heap   (malloc, argv)
    [2 * pool, 3 * pool) stack

An address is the segment base plus a byte offset; address 0 is the first
data byte, which is kept zero so no object is ever at NULL.
"""

from __future__ import annotations

import logging
import struct

from .constants import CHAR_SIZE, POOL_SIZE, SIGN_BIT, WORD_MASK, WORD_SIZE
from .errors import VMError

logger = logging.getLogger(__name__)

_WORD = struct.Struct("<i")

DATA_SEGMENT = 0
HEAP_SEGMENT = 1
STACK_SEGMENT = 2


def to_word(value: int) -> int:
    """Wrap *value* to a signed 32-bit integer."""
    value &= WORD_MASK
    return value - (WORD_MASK + 1) if value & SIGN_BIT else value


def to_unsigned(value: int) -> int:
    return value & WORD_MASK


class Memory:
    """Byte-addressable memory over three fixed segments plus a heap allocator."""

    def __init__(self, pool_size: int = POOL_SIZE, data: bytes = b""):
        if len(data) > pool_size:
            raise VMError(f"data segment of {len(data)} bytes exceeds pool")
        self.pool_size = pool_size
        self._segments = [bytearray(pool_size), bytearray(pool_size), bytearray(pool_size)]
        self._segments[DATA_SEGMENT][: len(data)] = data
        self._heap_top = 0
        # Live heap allocations: offset -> size.
        self.allocations: dict[int, int] = {}

    @property
    def stack_base(self) -> int:
        return STACK_SEGMENT * self.pool_size

    @property
    def heap_base(self) -> int:
        return HEAP_SEGMENT * self.pool_size

    @property
    def stack_words(self) -> int:
        return self.pool_size // WORD_SIZE

    # ── addressing ───────────────────────────────────────────────

    def _locate(self, address: int, size: int) -> tuple[bytearray, int]:
        segment, offset = divmod(address, self.pool_size)
        if address < 0 or segment > STACK_SEGMENT or offset + size > self.pool_size:
            raise VMError(f"memory access out of range at address {address}")
        return self._segments[segment], offset

    def load_int(self, address: int) -> int:
        buf, offset = self._locate(address, WORD_SIZE)
        return _WORD.unpack_from(buf, offset)[0]

    def store_int(self, address: int, value: int):
        buf, offset = self._locate(address, WORD_SIZE)
        _WORD.pack_into(buf, offset, to_word(value))

    def load_char(self, address: int) -> int:
        """Load one byte, sign-extended."""
        buf, offset = self._locate(address, CHAR_SIZE)
        byte = buf[offset]
        return byte - 0x100 if byte & 0x80 else byte

    def store_char(self, address: int, value: int) -> int:
        """Store the low byte of *value* and return it as a signed char."""
        buf, offset = self._locate(address, CHAR_SIZE)
        buf[offset] = value & 0xFF
        return self.load_char(address)

    def read_bytes(self, address: int, size: int) -> bytes:
        if size <= 0:
            return b""
        buf, offset = self._locate(address, size)
        return bytes(buf[offset : offset + size])

    def write_bytes(self, address: int, payload: bytes):
        if not payload:
            return
        buf, offset = self._locate(address, len(payload))
        buf[offset : offset + len(payload)] = payload

    def read_cstring(self, address: int) -> bytes:
        """Bytes from *address* up to, not including, the next NUL."""
        buf, offset = self._locate(address, 0)
        end = buf.find(0, offset)
        if end < 0:
            raise VMError(f"unterminated string at address {address}")
        return bytes(buf[offset:end])

    # ── stack words ──────────────────────────────────────────────

    def stack_address(self, index: int) -> int:
        return self.stack_base + index * WORD_SIZE

    def stack_load(self, index: int) -> int:
        if not 0 <= index < self.stack_words:
            raise VMError(f"stack access out of range at slot {index}")
        return _WORD.unpack_from(self._segments[STACK_SEGMENT], index * WORD_SIZE)[0]

    def stack_store(self, index: int, value: int):
        if not 0 <= index < self.stack_words:
            raise VMError("stack overflow")
        _WORD.pack_into(self._segments[STACK_SEGMENT], index * WORD_SIZE, to_word(value))

    # ── heap ─────────────────────────────────────────────────────

    def allocate(self, size: int, track: bool = True) -> int:
        """Bump-allocate *size* bytes on the heap; 0 when the heap is exhausted.

        Blocks are word aligned and never reused, and the first heap word is
        skipped so a valid block is never confused with a null pointer.
        Untracked blocks cannot be freed, and freed blocks are never handed
        out again: total allocation over a run is bounded by the pool.
        """
        if size < 0:
            return 0
        start = max(self._heap_top, WORD_SIZE)
        end = start + max(size, 1)
        if end > self.pool_size:
            logger.debug("malloc(%d) failed: heap exhausted", size)
            return 0
        self._heap_top = end + (-end % WORD_SIZE)
        if track:
            self.allocations[start] = size
        return self.heap_base + start

    def release(self, address: int):
        if address == 0:
            return
        offset = address - self.heap_base
        if offset not in self.allocations:
            raise VMError(f"free of unallocated pointer {address}")
        del self.allocations[offset]

    def store_blob(self, payload: bytes) -> int:
        """Copy *payload* into a fresh untracked heap block and return its address."""
        address = self.allocate(len(payload), track=False)
        if address == 0:
            raise VMError("heap exhausted while loading arguments")
        self.write_bytes(address, payload)
        return address
