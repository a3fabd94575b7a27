"""Decoding utilities: ABI word access, hex handling and type-string parsing."""

from __future__ import annotations

import re

from eth_utils import decode_hex, remove_0x_prefix

from abistream.constants import WORD_SIZE
from abistream.errors import DecodeError

_ARRAY_SUFFIX = re.compile(r"^(?P<inner>.+)\[(?P<size>\d*)\]$")
_TYPE_ALIASES = {"uint": "uint256", "int": "int256", "byte": "bytes1"}


def to_bytes(value: bytes | str) -> bytes:
    """Accept raw bytes or 0x-hex text (odd lengths are left-padded)."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    h = remove_0x_prefix(value.strip())
    if len(h) % 2:
        h = "0" + h
    try:
        return decode_hex(h)
    except ValueError as exc:
        raise DecodeError(f"invalid hex: {value[:20]}...") from exc


def strip_0x(h: str) -> str:
    """Lowercase hex without the 0x prefix."""
    return remove_0x_prefix(h).lower()


def word_at(data: bytes, offset: int) -> bytes:
    """Return the 32-byte ABI word at byte `offset`, or raise if out of range."""
    end = offset + WORD_SIZE
    if offset < 0 or end > len(data):
        raise DecodeError(f"need word at [{offset}:{end}] but data is {len(data)} bytes")
    return data[offset:end]


def slice_at(data: bytes, offset: int, length: int) -> bytes:
    """Return `length` raw bytes at `offset`, or raise if out of range."""
    end = offset + length
    if offset < 0 or end > len(data):
        raise DecodeError(f"need bytes [{offset}:{end}] but data is {len(data)} bytes")
    return data[offset:end]


def normalize_type(typ: str) -> str:
    """Expand `uint`/`int`/`byte` aliases, keeping any array suffix."""
    base, suffix = typ, ""
    bracket = typ.find("[")
    if bracket != -1:
        base, suffix = typ[:bracket], typ[bracket:]
    return _TYPE_ALIASES.get(base, base) + suffix


def split_array(typ: str) -> tuple[str, int | None] | None:
    """Split the outermost array dimension: `uint8[2][]` → (`uint8[2]`, None).

    Returns None when `typ` is not an array type.
    """
    m = _ARRAY_SUFFIX.match(typ)
    if m is None:
        return None
    size = m.group("size")
    return m.group("inner"), (int(size) if size else None)

