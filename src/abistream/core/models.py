"""Core data models shared by the decoder and the synchronizer.

- `LogEntry`: one log as delivered by the node, minimally normalized.
- `SyncCheckpoint`: resumable progress persisted by the checkpoint store.
- `SyncState`: synchronizer lifecycle states.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Literal

SyncState = Literal["initializing", "backfilling", "live", "refreshing", "closed"]


@dataclass(slots=True, frozen=True)
class LogEntry:
    """Raw log as fetched from RPC."""

    address: str  # lowercased 0x...
    topics: tuple[str, ...]  # lowercased 0x...
    data: bytes
    block_number: int
    log_index: int
    tx_hash: str  # lowercased 0x...
    block_timestamp: int | None = None

    @property
    def dedup_key(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


@dataclass(slots=True)
class SyncCheckpoint:
    """Last processed block plus every result emitted so far."""

    last_processed_block: int
    results: list[Any] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "last_processed_block": self.last_processed_block,
            "results": [to_jsonable(r) for r in self.results],
        }

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> SyncCheckpoint:
        return cls(
            last_processed_block=int(payload["last_processed_block"]),
            results=list(payload.get("results") or []),
        )


def to_jsonable(value: Any) -> Any:
    """Convert dataclass results (e.g. `DecodedEvent`) into plain JSON values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return value
