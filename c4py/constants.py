"""Word, pool and entry-point constants shared by the compiler and the VM."""

from __future__ import annotations

WORD_SIZE = 4
CHAR_SIZE = 1

# Capacity of each memory segment (data, heap, stack) in bytes.
POOL_SIZE = 256 * 1024

# Leading data bytes kept at zero so no global or literal lives at address 0.
NULL_RESERVED_BYTES = WORD_SIZE

ENTRY_FUNCTION = "main"

# Open mode used when open() is called with O_CREAT.
DEFAULT_FILE_MODE = 0o644

# 32-bit word wrapping.
WORD_MASK = 0xFFFFFFFF
SIGN_BIT = 0x80000000
