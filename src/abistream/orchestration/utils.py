"""Key and filter helpers for resumable log synchronization.

Functions
---------
- normalize_topics: lowercase topic filter, keeping None wildcards in place.
- checkpoint_key: persistence key for (address, topic filter, schema version).
"""

from __future__ import annotations

from abistream.core.config import TopicFilter


def normalize_topics(topics: TopicFilter) -> list[str | None]:
    """Lowercase every exact topic; None stays a wildcard."""
    return [t.lower() if t else None for t in topics]


def checkpoint_key(address: str, topics: TopicFilter, schema_version: str) -> str:
    """Stable key for one synchronizer's persisted checkpoint."""
    addr = (address or "").lower()
    topics_part = ",".join(t or "*" for t in normalize_topics(topics))
    return f"{addr}__topics-[{topics_part}]__v{schema_version}"
