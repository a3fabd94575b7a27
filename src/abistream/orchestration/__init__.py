"""Helpers for resumable synchronization (checkpoint keys, topic filters)."""

from abistream.orchestration.utils import checkpoint_key, normalize_topics

__all__ = [
    "checkpoint_key",
    "normalize_topics",
]
