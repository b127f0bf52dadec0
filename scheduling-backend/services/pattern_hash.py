from __future__ import annotations

from typing import Iterator

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
_MASK = 0xFFFFFFFF


def _code_units(value: str) -> Iterator[int]:
    # UTF-16 code units, so astral characters hash as surrogate pairs
    for char in value:
        code = ord(char)
        if code > 0xFFFF:
            code -= 0x10000
            yield 0xD800 + (code >> 10)
            yield 0xDC00 + (code & 0x3FF)
        else:
            yield code


def pattern_hash(value: str) -> int:
    """32-bit FNV-1a hash; stable across processes and releases."""
    result = FNV_OFFSET_BASIS
    for unit in _code_units(value):
        result ^= unit
        result = (result * FNV_PRIME) & _MASK
    return result
