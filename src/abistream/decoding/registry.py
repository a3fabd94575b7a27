"""Selector registry: 4-byte method selectors / 32-byte event topics → schema entries.

This module exposes:
- `canonical_signature(entry)` → `name(type1,type2,...)`
- `compute_function_selector(entry)` / `compute_event_topic(entry)`
- `SelectorRegistry` → owned table with register/unregister/lookup

Keys depend only on the entry name and the ordered canonical input types;
parameter names and `indexed` flags never change them.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from eth_utils import keccak
from loguru import logger

from abistream.constants import SELECTOR_SIZE
from abistream.decoding.codec import canonical_type
from abistream.decoding.specs import SchemaEntry, parse_entries
from abistream.decoding.utils import to_bytes

Hash256 = Callable[[bytes], bytes]
SelectorTable = dict[bytes, SchemaEntry]


def canonical_signature(entry: SchemaEntry) -> str:
    return f"{entry.name}({','.join(canonical_type(p) for p in entry.inputs)})"


def compute_event_topic(entry: SchemaEntry, hash256: Hash256 = keccak) -> bytes:
    """Full 32-byte hash of the canonical signature."""
    return hash256(canonical_signature(entry).encode())


def compute_function_selector(entry: SchemaEntry, hash256: Hash256 = keccak) -> bytes:
    """First 4 bytes of the canonical signature hash."""
    return hash256(canonical_signature(entry).encode())[:SELECTOR_SIZE]


class SelectorRegistry:
    """Table of selectors/topics built incrementally from ABI entries.

    Events are keyed by their full topic, everything else (functions,
    errors) by the 4-byte selector, so the two key spaces never overlap.
    Registering an entry whose key is already present replaces it.
    """

    def __init__(self, hash256: Hash256 = keccak) -> None:
        self._hash256 = hash256
        self._table: SelectorTable = {}
        self._schemas: list[SchemaEntry] = []

    def key_for(self, entry: SchemaEntry) -> bytes:
        if entry.is_event:
            return compute_event_topic(entry, self._hash256)
        return compute_function_selector(entry, self._hash256)

    def register(self, entries: Any) -> None:
        """Insert every named entry; non-list input raises `RegistrationError`."""
        parsed = parse_entries(entries)
        for entry in parsed:
            if not entry.name:
                continue
            key = self.key_for(entry)
            previous = self._table.get(key)
            if previous is not None and previous != entry:
                logger.debug(f"selector 0x{key.hex()} re-registered: {previous.name} -> {entry.name}")
            self._table[key] = entry
        self._schemas.extend(parsed)

    def unregister(self, entries: Any) -> None:
        """Remove entries whose key still maps to an equal entry (idempotent)."""
        parsed = parse_entries(entries)
        for entry in parsed:
            if not entry.name:
                continue
            key = self.key_for(entry)
            if self._table.get(key) == entry:
                del self._table[key]
            if entry in self._schemas:
                self._schemas.remove(entry)

    def lookup(self, key: bytes | str) -> SchemaEntry | None:
        return self._table.get(to_bytes(key))

    @property
    def schemas(self) -> list[SchemaEntry]:
        """Entries in registration order (including unnamed ones)."""
        return list(self._schemas)

    def selectors(self) -> dict[str, SchemaEntry]:
        """Copy of the table keyed by 0x-hex selector/topic."""
        return {"0x" + k.hex(): v for k, v in self._table.items()}

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (bytes, str)):
            return False
        return to_bytes(key) in self._table

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._table)
