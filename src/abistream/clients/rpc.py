"""Lightweight JSON-RPC client for Ethereum-compatible nodes.

This module provides:
- `RPC`: an async client with sane timeouts/connection limits implementing
  the synchronizer's logs-provider port
- `PollingLogSubscription`: live log delivery over plain HTTP by polling
  `eth_blockNumber` + `eth_getLogs`
- Helper utilities to format block numbers, topic filters and raw logs

It returns `LogEntry` records ready for downstream decoding.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx
from eth_utils import keccak
from loguru import logger

from abistream.core.config import RpcConfig, TopicFilter
from abistream.core.models import LogEntry
from abistream.decoding.utils import to_bytes
from abistream.errors import RpcError


def to_hex_block(x: int) -> str:
    """Return a 0x-prefixed hex block number."""
    return hex(x)


def topics_param(topics: TopicFilter) -> list[str | None]:
    """Format a positional topic filter for eth_getLogs (None = wildcard)."""
    out = [t.lower() if t else None for t in topics]
    while out and out[-1] is None:
        out.pop()
    return out


def _hex_int(v: Any) -> int:
    if isinstance(v, int):
        return v
    return int(v, 16) if isinstance(v, str) and v.startswith("0x") else int(v)


def parse_log(rl: dict[str, Any]) -> LogEntry:
    """Map one raw `eth_getLogs` / subscription log object onto `LogEntry`."""
    ts = rl.get("blockTimestamp")
    return LogEntry(
        address=rl["address"].lower(),
        topics=tuple((t if isinstance(t, str) else t.decode()).lower() for t in rl.get("topics", [])),
        data=to_bytes(str(rl.get("data") or "0x")),
        block_number=_hex_int(rl["blockNumber"]),
        log_index=_hex_int(rl["logIndex"]),
        tx_hash=(rl.get("transactionHash") or rl.get("transaction_hash") or "").lower(),
        block_timestamp=_hex_int(ts) if ts is not None else None,
    )


class RPC:
    """Minimal async RPC client.

    Parameters
    ----------
    url : str
        RPC endpoint URL.
    timeout_s : int
        Per-operation timeout in seconds (connect/read/write).
    max_connections : int
        Maximum concurrent connections to keep in the pool.
    poll_interval_s : float
        Delay between head polls for live subscriptions.
    transport : httpx.AsyncBaseTransport | None
        Optional transport override (tests use `httpx.MockTransport`).
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_s: int = 20,
        max_connections: int = 64,
        poll_interval_s: float = 4.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.poll_interval_s = poll_interval_s
        self._ids = 0
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=timeout_s,
                read=timeout_s,
                write=timeout_s,
                pool=max(30, timeout_s * 3),
            ),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            http2=transport is None,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: RpcConfig) -> RPC:
        return cls(
            config.rpc_url,
            timeout_s=config.timeout_s,
            max_connections=config.max_connections,
            poll_interval_s=config.poll_interval_s,
        )

    async def _call(self, method: str, params: list[Any]) -> Any:
        self._ids += 1
        payload = {"jsonrpc": "2.0", "id": self._ids, "method": method, "params": params}
        r = await self.client.post(self.url, json=payload)
        r.raise_for_status()
        data = r.json()
        if "error" in data:
            e = data["error"]
            if isinstance(e, dict):
                raise RpcError(str(e.get("message")), code=e.get("code"))
            raise RpcError(str(e))
        if "result" not in data:
            raise RpcError(f"missing result for {method}")
        return data["result"]

    async def latest_block(self) -> int:
        """Return the latest block number as an int."""
        return int(await self._call("eth_blockNumber", []), 16)

    async def query_logs(
        self,
        *,
        address: str,
        topics: TopicFilter,
        from_block: int,
        to_block: int,
    ) -> list[LogEntry]:
        """Fetch logs for an address and a positional topic filter within a block range."""
        params = [
            {
                "address": address.lower(),
                "fromBlock": to_hex_block(from_block),
                "toBlock": to_hex_block(to_block),
                "topics": topics_param(topics),
            }
        ]
        raw = await self._call("eth_getLogs", params)
        logs = [parse_log(rl) for rl in raw or [] if not rl.get("removed")]
        # nodes already sort, but the synchronizer relies on it
        logs.sort(key=lambda e: e.dedup_key)
        return logs

    async def subscribe_logs(
        self,
        *,
        address: str,
        topics: TopicFilter,
        from_block: int | None = None,
    ) -> PollingLogSubscription:
        """Open a polling subscription starting at `from_block` (default: next block)."""
        if from_block is None:
            from_block = await self.latest_block() + 1
        return PollingLogSubscription(
            self,
            address=address,
            topics=topics,
            from_block=from_block,
            poll_interval_s=self.poll_interval_s,
        )

    def hash256(self, data: bytes) -> bytes:
        return keccak(data)

    async def call(self, to: str, data: bytes | str, block: int | str = "latest") -> bytes:
        """`eth_call` returning the raw return data (decode with `Decoder.decode_method_result`)."""
        call_data = data if isinstance(data, str) else "0x" + data.hex()
        tag = to_hex_block(block) if isinstance(block, int) else block
        result = await self._call("eth_call", [{"to": to.lower(), "data": call_data}, tag])
        return to_bytes(result)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()


class PollingLogSubscription:
    """Live log feed over HTTP: poll the head, fetch new ranges, yield in order."""

    def __init__(
        self,
        rpc: RPC,
        *,
        address: str,
        topics: TopicFilter,
        from_block: int,
        poll_interval_s: float,
    ) -> None:
        self._rpc = rpc
        self._address = address
        self._topics: Sequence[str | None] = list(topics)
        self._next_block = from_block
        self._poll_interval_s = poll_interval_s
        self._closed = asyncio.Event()

    @property
    def next_block(self) -> int:
        return self._next_block

    def __aiter__(self) -> AsyncIterator[LogEntry]:
        return self._poll()

    async def _poll(self) -> AsyncIterator[LogEntry]:
        while not self._closed.is_set():
            head = await self._rpc.latest_block()
            if head >= self._next_block:
                logs = await self._rpc.query_logs(
                    address=self._address,
                    topics=self._topics,
                    from_block=self._next_block,
                    to_block=head,
                )
                logger.debug(f"[RPC] poll {self._address}: {len(logs)} logs in [{self._next_block}, {head}]")
                self._next_block = head + 1
                for entry in logs:
                    if self._closed.is_set():
                        return
                    yield entry
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._closed.wait(), timeout=self._poll_interval_s)

    async def unsubscribe(self) -> None:
        self._closed.set()
