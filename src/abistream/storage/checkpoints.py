from __future__ import annotations

import asyncio
import json
import os
import re
from pathlib import Path

from eth_utils import keccak

from abistream.core.models import SyncCheckpoint

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


class MemoryCheckpointStore:
    """Process-lifetime checkpoint store (also the fallback when nothing persists)."""

    def __init__(self) -> None:
        self._data: dict[str, SyncCheckpoint] = {}

    async def get(self, key: str) -> SyncCheckpoint | None:
        cp = self._data.get(key)
        if cp is None:
            return None
        return SyncCheckpoint(cp.last_processed_block, list(cp.results))

    async def set(self, key: str, checkpoint: SyncCheckpoint) -> None:
        self._data[key] = SyncCheckpoint(checkpoint.last_processed_block, list(checkpoint.results))

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class JsonCheckpointStore:
    """One JSON document per checkpoint key under a root directory.

    Writes go to a temp file that is fsync'ed and atomically renamed over the
    target, so a crash leaves either the old or the new checkpoint. Results
    that are dataclasses are stored (and read back) as plain dicts.
    """

    def __init__(self, root: str | Path) -> None:
        """Initialize the store, creating `root` if needed.

        Args:
            root: Directory holding one `<key>.json` file per checkpoint
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    def path_for(self, key: str) -> Path:
        """Filesystem-safe file name; the hash suffix keeps distinct keys distinct."""
        stem = _UNSAFE.sub("_", key)[:120]
        digest = keccak(text=key).hex()[:12]
        return self.root / f"{stem}-{digest}.json"

    async def get(self, key: str) -> SyncCheckpoint | None:
        path = self.path_for(key)
        async with self._lock:
            payload = await asyncio.to_thread(self._read, path)
        if payload is None:
            return None
        return SyncCheckpoint.from_json(payload)

    async def set(self, key: str, checkpoint: SyncCheckpoint) -> None:
        doc = {"key": key, **checkpoint.to_json()}
        line = json.dumps(doc, separators=(",", ":"))
        async with self._lock:
            await asyncio.to_thread(self._write, self.path_for(key), line)

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        async with self._lock:
            await asyncio.to_thread(path.unlink, True)

    @staticmethod
    def _read(path: Path) -> dict | None:
        if not path.is_file():
            return None
        with open(path) as f:
            return json.load(f)

    @staticmethod
    def _write(path: Path, text: str) -> None:
        """Write to a sibling temp file, flush + fsync, then replace."""
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
