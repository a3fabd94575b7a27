from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from abistream.constants import DEFAULT_START_BLOCK

# One entry per topic position: exact 0x-hex value, or None for "any".
TopicFilter = Sequence[str | None]


@dataclass(frozen=True)
class SyncConfig:
    """Configuration for one log synchronizer."""

    address: str
    topics: TopicFilter = ()
    start_block: int = DEFAULT_START_BLOCK
    schema_version: str = "1"  # bump to invalidate persisted checkpoints


@dataclass(frozen=True)
class RpcConfig:
    """Configuration for the JSON-RPC client."""

    rpc_url: str
    timeout_s: int = 20
    max_connections: int = 64
    poll_interval_s: float = 4.0  # live delivery polling period
