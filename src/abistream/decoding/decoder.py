"""Decoder facade: selector registry + parameter codec.

Translates raw call data, return data and log entries into `DecodedCall` /
`DecodedEvent` using the schemas registered on one owned `SelectorRegistry`.
Log entries whose topic0 matches no registered event are filtered out, since
one address commonly emits events from several unrelated schemas.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from eth_utils import keccak

from abistream.constants import SELECTOR_SIZE
from abistream.core.models import LogEntry
from abistream.decoding import codec
from abistream.decoding.registry import Hash256, SelectorRegistry
from abistream.decoding.specs import AbiSpec, ParamDescriptor, SchemaEntry, load_schema
from abistream.decoding.utils import strip_0x, to_bytes
from abistream.errors import DecodeError, UnknownSelectorError

# ---------- decoded values ----------


@dataclass(slots=True)
class DecodedParam:
    name: str
    type: str
    value: Any


@dataclass(slots=True)
class DecodedCall:
    """Decoded function call (or return data)."""

    name: str
    params: list[DecodedParam] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {p.name: p.value for p in self.params}


@dataclass(slots=True)
class DecodedEvent:
    """Decoded log; params follow the event's declared input order."""

    name: str
    address: str
    params: list[DecodedParam] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {p.name: p.value for p in self.params}


def _zip_params(descriptors: Sequence[ParamDescriptor], values: list[Any]) -> list[DecodedParam]:
    return [DecodedParam(name=d.name, type=d.type, value=v) for d, v in zip(descriptors, values)]


# ---------- facade ----------


class Decoder:
    """Decode call data and logs against one or more registered schemas.

    Parameters
    ----------
    schemas : iterable of ABI entries
        Initial entries (dicts in ABI JSON shape or `SchemaEntry`).
    hash256 : callable
        256-bit hash used for selectors/topics (keccak by default, or the
        RPC client's `hash256`).
    """

    def __init__(self, schemas: Iterable[Any] = (), *, hash256: Hash256 = keccak) -> None:
        self.registry = SelectorRegistry(hash256)
        schemas = list(schemas)
        if schemas:
            self.registry.register(schemas)

    @classmethod
    def from_abi(cls, abi: AbiSpec, *, hash256: Hash256 = keccak) -> Decoder:
        return cls(load_schema(abi), hash256=hash256)

    def register(self, schemas: Any) -> None:
        self.registry.register(schemas)

    def unregister(self, schemas: Any) -> None:
        self.registry.unregister(schemas)

    # ---- calls ----

    def _lookup_function(self, selector: bytes) -> SchemaEntry:
        entry = self.registry.lookup(selector)
        if entry is None or entry.is_event:
            raise UnknownSelectorError("0x" + selector.hex())
        return entry

    def decode_method_call(self, raw: bytes | str) -> DecodedCall:
        """Decode `selector ‖ args` call data."""
        data = to_bytes(raw)
        if len(data) < SELECTOR_SIZE:
            raise DecodeError(f"call data needs a {SELECTOR_SIZE}-byte selector, got {len(data)} bytes")
        entry = self._lookup_function(data[:SELECTOR_SIZE])
        values = codec.decode(entry.inputs, data[SELECTOR_SIZE:])
        return DecodedCall(name=entry.name or "", params=_zip_params(entry.inputs, values))

    def decode_method_result(self, selector: bytes | str, return_data: bytes | str) -> DecodedCall:
        """Decode return data against the outputs of the function `selector` names.

        `selector` may be the 4-byte selector or the full call data.
        """
        entry = self._lookup_function(to_bytes(selector)[:SELECTOR_SIZE])
        values = codec.decode(entry.outputs, return_data)
        return DecodedCall(name=entry.name or "", params=_zip_params(entry.outputs, values))

    # ---- logs ----

    def _decode_one(self, entry: LogEntry) -> DecodedEvent | None:
        if not entry.topics:
            return None
        schema = self.registry.lookup(strip_0x(entry.topics[0]))
        if schema is None or not schema.is_event:
            return None
        values = codec.decode_log_params(schema.inputs, entry.topics, entry.data)
        return DecodedEvent(
            name=schema.name or "",
            address=entry.address.lower(),
            params=_zip_params(schema.inputs, values),
        )

    def decode_logs(self, entries: Iterable[LogEntry]) -> list[DecodedEvent]:
        """Decode matching entries in input order; unmatched topics are omitted."""
        out: list[DecodedEvent] = []
        for entry in entries:
            decoded = self._decode_one(entry)
            if decoded is not None:
                out.append(decoded)
        return out

    def decode_log(self, entry: LogEntry) -> DecodedEvent | None:
        return self._decode_one(entry)


class SchemaCatalog:
    """Named ABIs from which callers build their own decoders.

    >>> catalog = SchemaCatalog()
    >>> catalog.add("pair", pair_abi)
    >>> decoder = catalog.decoder("pair")
    """

    def __init__(self, *, hash256: Hash256 = keccak) -> None:
        self._hash256 = hash256
        self._abis: dict[str, list[SchemaEntry]] = {}

    def add(self, name: str, abi: AbiSpec) -> None:
        self._abis[name] = load_schema(abi)

    def names(self) -> list[str]:
        return sorted(self._abis)

    def decoder(self, *names: str) -> Decoder:
        """Fresh decoder over the named ABIs (later names win on collisions)."""
        dec = Decoder(hash256=self._hash256)
        for name in names:
            if name not in self._abis:
                raise KeyError(f"unknown ABI name: {name}")
            dec.register(self._abis[name])
        return dec
