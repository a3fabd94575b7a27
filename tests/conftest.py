import asyncio
import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from eth_abi import encode
from eth_utils import keccak

from abistream.core.models import LogEntry
from abistream.storage.checkpoints import MemoryCheckpointStore

ABI_DIR = Path(__file__).parent / "abi"
TOKEN = "0x6b3595068778dd592e39a122f4f5a5cf09c90fe2"
ALICE = "0x1234567890123456789012345678901234567890"
BOB = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"
TRANSFER_T0 = "0x" + keccak(text="Transfer(address,address,uint256)").hex()


def topic_for(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


def make_transfer_log(block: int, index: int, value: int = 1, *, sender: str = ALICE, to: str = BOB) -> LogEntry:
    return LogEntry(
        address=TOKEN,
        topics=(TRANSFER_T0, topic_for(sender), topic_for(to)),
        data=encode(["uint256"], [value]),
        block_number=block,
        log_index=index,
        tx_hash=f"0x{block:032x}{index:032x}",
    )


class FakeSubscription:
    """Queue-backed live feed; `unsubscribe()` ends the iteration."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[LogEntry | None] = asyncio.Queue()
        self.unsubscribed = False

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        while True:
            entry = await self.queue.get()
            if entry is None:
                return
            yield entry

    async def push(self, *entries: LogEntry) -> None:
        for entry in entries:
            await self.queue.put(entry)

    async def unsubscribe(self) -> None:
        self.unsubscribed = True
        self.queue.put_nowait(None)


class FakeLogsProvider:
    """In-memory logs provider with a movable head."""

    def __init__(self, logs: list[LogEntry] | None = None, head: int = 0) -> None:
        self.logs = list(logs or [])
        self.head = head
        self.queries: list[tuple[int, int]] = []
        self.subscriptions: list[tuple[int | None, FakeSubscription]] = []

    async def latest_block(self) -> int:
        return self.head

    async def query_logs(self, *, address: str, topics: Any, from_block: int, to_block: int) -> list[LogEntry]:
        self.queries.append((from_block, to_block))
        return [e for e in self.logs if from_block <= e.block_number <= to_block]

    async def subscribe_logs(self, *, address: str, topics: Any, from_block: int | None = None) -> FakeSubscription:
        sub = FakeSubscription()
        self.subscriptions.append((from_block, sub))
        return sub

    def hash256(self, data: bytes) -> bytes:
        return keccak(data)

    @property
    def live(self) -> FakeSubscription:
        return self.subscriptions[-1][1]


class CountingStore(MemoryCheckpointStore):
    """Memory store that records every write and delete."""

    def __init__(self) -> None:
        super().__init__()
        self.sets: list[int] = []
        self.deletes = 0

    async def set(self, key, checkpoint) -> None:
        self.sets.append(checkpoint.last_processed_block)
        await super().set(key, checkpoint)

    async def delete(self, key) -> None:
        self.deletes += 1
        await super().delete(key)


@pytest.fixture
def erc20_abi() -> list[dict[str, Any]]:
    return json.loads((ABI_DIR / "erc20_abi.json").read_text())


@pytest.fixture
def mock_rpc():
    rpc = AsyncMock()
    rpc.latest_block = AsyncMock(return_value=100)
    rpc.query_logs = AsyncMock(return_value=[])
    rpc.aclose = AsyncMock()
    return rpc
