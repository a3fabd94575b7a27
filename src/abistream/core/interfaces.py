from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from abistream.core.config import TopicFilter
from abistream.core.models import LogEntry, SyncCheckpoint

# Per-entry callback: a falsy return means "skip, contributes nothing".
Transform = Callable[[LogEntry], Awaitable[Any]]


# ---------------------------------------------------------------------------
# ILogSubscription
# ---------------------------------------------------------------------------

@runtime_checkable
class ILogSubscription(Protocol):
    """
    Live stream of log entries matching a filter.

    Domain expectations:
    - Iteration yields entries in chain order.
    - After `unsubscribe()` the iteration ends (no further entries).
    """

    def __aiter__(self) -> AsyncIterator[LogEntry]:
        ...

    async def unsubscribe(self) -> None:
        ...


# ---------------------------------------------------------------------------
# ILogsProvider
# ---------------------------------------------------------------------------

@runtime_checkable
class ILogsProvider(Protocol):
    """
    Abstract node client used by the synchronizer and the decoder.

    Domain expectations:
    - `query_logs` returns entries sorted by ascending (block_number, log_index).
    - It hides the underlying transport (HTTP, websocket, archive, in-memory).
    """

    async def latest_block(self) -> int:
        """Return the current chain head height."""
        ...

    async def query_logs(
        self,
        *,
        address: str,
        topics: TopicFilter,
        from_block: int,
        to_block: int,
    ) -> list[LogEntry]:
        """Return all logs for (address, topics) over the inclusive block range."""
        ...

    async def subscribe_logs(
        self,
        *,
        address: str,
        topics: TopicFilter,
        from_block: int | None = None,
    ) -> ILogSubscription:
        """
        Open a live subscription.

        `from_block`, when given, is the first block the subscription must
        cover so that the handoff from backfill leaves no gap.
        """
        ...

    def hash256(self, data: bytes) -> bytes:
        """Return the 32-byte hash used for selectors and topics."""
        ...


# ---------------------------------------------------------------------------
# ICheckpointStore
# ---------------------------------------------------------------------------

@runtime_checkable
class ICheckpointStore(Protocol):
    """
    Key-value persistence for synchronizer progress.

    Implementations:
    - MemoryCheckpointStore (process lifetime)
    - JsonCheckpointStore (one JSON file per key)
    - Browser storage, Redis, a database...
    """

    async def get(self, key: str) -> SyncCheckpoint | None:
        ...

    async def set(self, key: str, checkpoint: SyncCheckpoint) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...
