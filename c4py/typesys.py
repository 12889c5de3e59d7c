"""Type encoding: a base kind plus a pointer indirection count.

A type is the integer ``base + PTR * levels`` where ``base`` is ``CHAR`` or
``INT``.  ``char*`` is therefore ``PTR`` exactly, and every type above
``PTR`` points at a word-sized element.
"""

from __future__ import annotations

from .constants import CHAR_SIZE, WORD_SIZE

CHAR = 0
INT = 1
PTR = 2


def pointer_to(ty: int, levels: int = 1) -> int:
    return ty + PTR * levels


def pointee(ty: int) -> int:
    return ty - PTR


def is_pointer(ty: int) -> bool:
    return ty >= PTR


def indirection(ty: int) -> int:
    return ty // PTR


def base_kind(ty: int) -> int:
    return ty % PTR


def sizeof(ty: int) -> int:
    """Storage size of a value of type *ty*; pointers are word-sized."""
    return CHAR_SIZE if ty == CHAR else WORD_SIZE


def element_size(ty: int) -> int:
    """Scale applied to integer offsets added to a value of type *ty*.

    Also the step of ``++``/``--``: 1 for non-pointers and ``char*``.
    """
    return WORD_SIZE if ty > PTR else CHAR_SIZE


def type_name(ty: int) -> str:
    base = "char" if base_kind(ty) == CHAR else "int"
    return base + "*" * indirection(ty)
