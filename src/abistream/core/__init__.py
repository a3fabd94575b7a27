"""Core data models, configuration and the log synchronization use case.

This package provides:
- Data models (LogEntry, SyncCheckpoint, SyncState)
- Configuration classes (SyncConfig, RpcConfig)
- Collaborator ports (ILogsProvider, ILogSubscription, ICheckpointStore)
"""

from abistream.core.config import RpcConfig, SyncConfig
from abistream.core.models import LogEntry, SyncCheckpoint, SyncState

__all__ = [
    "RpcConfig",
    "SyncConfig",
    "LogEntry",
    "SyncCheckpoint",
    "SyncState",
]
