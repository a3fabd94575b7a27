"""Parameter codec: canonical type strings and head/tail ABI decoding.

Layout reminder
---------------
A parameter list is a "tuple": its head is a run of fixed-size slots, one per
parameter (a static tuple or fixed array of static members takes as many
words as its members need). Dynamic parameters store, in their head slot, a
byte offset relative to the start of that head; the content lives in the tail.
`bytes`/`string`/`T[]` content is prefixed by a one-word length.

Decoded values:
- integers → exact decimal text (never native ints, so JSON/JS consumers
  cannot lose precision)
- address → lowercase 0x + 40 hex
- bool → bool
- bytes / bytesN / function → 0x hex
- string → str
- arrays and tuples → list, in declared order
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from abistream.constants import WORD_SIZE
from abistream.decoding.specs import ParamDescriptor
from abistream.decoding.utils import normalize_type, slice_at, split_array, to_bytes, word_at
from abistream.errors import DecodeError


# ---------- type inspection ----------


def canonical_type(param: ParamDescriptor) -> str:
    """Render the type used in signature hashing; tuples expand to `(a,b,...)`."""
    typ = normalize_type(param.type)
    if typ.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.components or ())
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def _element(param: ParamDescriptor, inner: str) -> ParamDescriptor:
    return param.model_copy(update={"type": inner, "indexed": False})


def is_dynamic(param: ParamDescriptor) -> bool:
    typ = normalize_type(param.type)
    arr = split_array(typ)
    if arr is not None:
        inner, size = arr
        return size is None or is_dynamic(_element(param, inner))
    if typ == "tuple":
        return any(is_dynamic(c) for c in param.components or ())
    return typ in ("bytes", "string")


def head_size(param: ParamDescriptor) -> int:
    """Bytes the parameter occupies in its enclosing head."""
    if is_dynamic(param):
        return WORD_SIZE
    typ = normalize_type(param.type)
    arr = split_array(typ)
    if arr is not None:
        inner, size = arr
        return (size or 0) * head_size(_element(param, inner))
    if typ == "tuple":
        return sum(head_size(c) for c in param.components or ())
    return WORD_SIZE


# ---------- elementary words ----------


def _read_uint(data: bytes, offset: int) -> int:
    return int.from_bytes(word_at(data, offset), "big")


def decode_word(typ: str, word: bytes) -> Any:
    """Decode one static elementary value from a 32-byte word."""
    if typ.startswith("uint"):
        return str(int.from_bytes(word, "big"))
    if typ.startswith("int"):
        # intN is sign-extended to 256 bits
        return str(int.from_bytes(word, "big", signed=True))
    if typ == "address":
        return "0x" + word[-20:].hex()
    if typ == "bool":
        return any(word)
    if typ == "function":
        return "0x" + word[:24].hex()
    if typ.startswith("bytes") and typ[5:].isdigit():
        n = int(typ[5:])
        if not 1 <= n <= WORD_SIZE:
            raise DecodeError(f"invalid fixed bytes type: {typ}")
        return "0x" + word[:n].hex()
    raise DecodeError(f"unsupported ABI type: {typ}")


# ---------- recursive decoding ----------


def _decode_at(param: ParamDescriptor, data: bytes, pos: int) -> Any:
    typ = normalize_type(param.type)

    arr = split_array(typ)
    if arr is not None:
        inner, size = arr
        elem = _element(param, inner)
        if size is None:
            length = _read_uint(data, pos)
            start = pos + WORD_SIZE
            # every element needs at least its head slot
            if start + length * head_size(elem) > len(data):
                raise DecodeError(f"array length {length} at {pos} exceeds data ({len(data)} bytes)")
            return _decode_sequence([elem] * length, data, start)
        return _decode_sequence([elem] * size, data, pos)

    if typ == "tuple":
        return _decode_sequence(param.components or (), data, pos)

    if typ in ("bytes", "string"):
        length = _read_uint(data, pos)
        raw = slice_at(data, pos + WORD_SIZE, length)
        if typ == "string":
            return raw.decode("utf-8", errors="replace")
        return "0x" + raw.hex()

    return decode_word(typ, word_at(data, pos))


def _decode_sequence(params: Sequence[ParamDescriptor], data: bytes, base: int) -> list[Any]:
    values: list[Any] = []
    head = base
    for p in params:
        if is_dynamic(p):
            offset = _read_uint(data, head)
            values.append(_decode_at(p, data, base + offset))
        else:
            values.append(_decode_at(p, data, head))
        head += head_size(p)
    return values


def decode(descriptors: Sequence[ParamDescriptor], data: bytes | str) -> list[Any]:
    """Decode a parameter blob against `descriptors`; values in declared order."""
    return _decode_sequence(descriptors, to_bytes(data), 0)


# ---------- logs ----------


def decode_topic(param: ParamDescriptor, topic: bytes | str) -> Any:
    """Decode one indexed value from its 32-byte topic.

    Dynamic (and composite) indexed values are stored by the EVM as the
    keccak of their encoding, so the raw topic hex is returned for them.
    """
    raw = to_bytes(topic)
    if len(raw) != WORD_SIZE:
        raise DecodeError(f"topic must be {WORD_SIZE} bytes, got {len(raw)}")
    typ = normalize_type(param.type)
    if typ in ("bytes", "string", "tuple") or split_array(typ) is not None:
        return "0x" + raw.hex()
    return decode_word(typ, raw)


def decode_log_params(
    inputs: Sequence[ParamDescriptor],
    topics: Sequence[str | bytes],
    data: bytes | str,
    *,
    anonymous: bool = False,
) -> list[Any]:
    """Decode an event's parameters, merged back into declared order.

    Indexed parameters consume topics[1:] (topics[0:] for anonymous events)
    in declaration order; `data` is decoded against the non-indexed ones.
    """
    indexed = [p for p in inputs if p.indexed]
    first_topic = 0 if anonymous else 1
    if len(topics) - first_topic < len(indexed):
        raise DecodeError(f"event declares {len(indexed)} indexed params but log has {len(topics)} topics")

    topic_vals = iter(decode_topic(p, topics[first_topic + i]) for i, p in enumerate(indexed))
    data_vals = iter(decode([p for p in inputs if not p.indexed], data))

    return [next(topic_vals) if p.indexed else next(data_vals) for p in inputs]
