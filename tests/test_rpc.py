import json

import httpx
import pytest
from eth_abi import encode

from abistream.clients.rpc import RPC, parse_log, topics_param
from abistream.errors import RpcError

from conftest import ALICE, BOB, TOKEN, TRANSFER_T0, topic_for


def _raw_log(block: int, index: int, *, removed: bool = False) -> dict:
    return {
        "address": TOKEN.upper().replace("0X", "0x"),
        "topics": [TRANSFER_T0, topic_for(ALICE), topic_for(BOB)],
        "data": "0x" + encode(["uint256"], [block]).hex(),
        "blockNumber": hex(block),
        "logIndex": hex(index),
        "transactionHash": "0x" + "AB" * 32,
        "removed": removed,
    }


class FakeNode:
    """JSON-RPC handler for httpx.MockTransport."""

    def __init__(self, head: int = 100, logs: list[dict] | None = None) -> None:
        self.head = head
        self.logs = logs or []
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        method = body["method"]
        if method == "eth_blockNumber":
            result = hex(self.head)
        elif method == "eth_getLogs":
            flt = body["params"][0]
            lo, hi = int(flt["fromBlock"], 16), int(flt["toBlock"], 16)
            result = [rl for rl in self.logs if lo <= int(rl["blockNumber"], 16) <= hi]
        elif method == "eth_call":
            result = "0x" + encode(["uint256"], [42]).hex()
        else:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "method not found"}})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


def _rpc(node: FakeNode, **kwargs) -> RPC:
    return RPC("http://node.test", transport=httpx.MockTransport(node), **kwargs)


def test_topics_param_keeps_inner_wildcards_and_trims_trailing():
    assert topics_param([TRANSFER_T0.upper(), None, "0xAA", None, None]) == [TRANSFER_T0.lower(), None, "0xaa"]
    assert topics_param([]) == []


def test_parse_log_normalizes_fields():
    entry = parse_log({**_raw_log(7, 2), "blockTimestamp": "0x10"})
    assert entry.address == TOKEN
    assert entry.block_number == 7
    assert entry.log_index == 2
    assert entry.tx_hash == "0x" + "ab" * 32
    assert entry.block_timestamp == 16
    assert entry.data == encode(["uint256"], [7])
    assert entry.dedup_key == (7, 2)


@pytest.mark.asyncio
async def test_latest_block():
    rpc = _rpc(FakeNode(head=0x1234))
    try:
        assert await rpc.latest_block() == 0x1234
    finally:
        await rpc.aclose()


@pytest.mark.asyncio
async def test_query_logs_builds_filter_and_sorts():
    node = FakeNode(logs=[_raw_log(12, 1), _raw_log(11, 5), _raw_log(12, 0), _raw_log(12, 2, removed=True)])
    rpc = _rpc(node)
    try:
        logs = await rpc.query_logs(address=TOKEN.upper().replace("0X", "0x"), topics=[TRANSFER_T0, None], from_block=10, to_block=12)
    finally:
        await rpc.aclose()

    assert [e.dedup_key for e in logs] == [(11, 5), (12, 0), (12, 1)]
    flt = node.requests[0]["params"][0]
    assert flt == {"address": TOKEN, "fromBlock": "0xa", "toBlock": "0xc", "topics": [TRANSFER_T0]}


@pytest.mark.asyncio
async def test_error_object_raises_rpc_error():
    rpc = _rpc(FakeNode())
    try:
        with pytest.raises(RpcError) as exc_info:
            await rpc._call("eth_unknown", [])
    finally:
        await rpc.aclose()
    assert exc_info.value.code == -32601


@pytest.mark.asyncio
async def test_eth_call_returns_raw_bytes():
    rpc = _rpc(FakeNode())
    try:
        out = await rpc.call(TOKEN, bytes.fromhex("70a08231") + encode(["address"], [ALICE]))
    finally:
        await rpc.aclose()
    assert out == encode(["uint256"], [42])


@pytest.mark.asyncio
async def test_polling_subscription_yields_new_ranges():
    node = FakeNode(head=10, logs=[_raw_log(10, 0), _raw_log(11, 0), _raw_log(12, 4)])
    rpc = _rpc(node, poll_interval_s=0.01)
    try:
        sub = await rpc.subscribe_logs(address=TOKEN, topics=[TRANSFER_T0])
        assert sub.next_block == 11
        node.head = 11

        seen = []
        async for entry in sub:
            seen.append(entry.dedup_key)
            if len(seen) == 1:
                node.head = 12
            if len(seen) == 2:
                await sub.unsubscribe()
        # block 10 predates the subscription
        assert seen == [(11, 0), (12, 4)]
    finally:
        await rpc.aclose()


@pytest.mark.asyncio
async def test_subscription_stops_on_unsubscribe_while_idle():
    node = FakeNode(head=5)
    rpc = _rpc(node, poll_interval_s=0.01)
    try:
        sub = await rpc.subscribe_logs(address=TOKEN, topics=[], from_block=6)
        await sub.unsubscribe()
        assert [e async for e in sub] == []
    finally:
        await rpc.aclose()
