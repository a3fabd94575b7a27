"""Checkpoint stores for resumable log synchronization.

This package provides:
- MemoryCheckpointStore: in-process store, lost on exit
- JsonCheckpointStore: one atomically replaced JSON file per checkpoint key
"""

from abistream.storage.checkpoints import JsonCheckpointStore, MemoryCheckpointStore

__all__ = [
    "JsonCheckpointStore",
    "MemoryCheckpointStore",
]
