from __future__ import annotations

from .constants import DEFAULT_START_BLOCK
from .core.config import RpcConfig, SyncConfig
from .core.models import LogEntry, SyncCheckpoint
from .core.use_cases.log_sync import LogSynchronizer
from .decoding.decoder import DecodedCall, DecodedEvent, DecodedParam, Decoder, SchemaCatalog
from .decoding.registry import SelectorRegistry, compute_event_topic, compute_function_selector
from .decoding.specs import ParamDescriptor, SchemaEntry, load_schema
from .errors import (
    AbiStreamError,
    DecodeError,
    RegistrationError,
    RpcError,
    SyncClosedError,
    SyncQueryError,
    TransformError,
    UnknownSelectorError,
)

__all__ = [
    "DEFAULT_START_BLOCK",
    "RpcConfig",
    "SyncConfig",
    "LogEntry",
    "SyncCheckpoint",
    "LogSynchronizer",
    "DecodedCall",
    "DecodedEvent",
    "DecodedParam",
    "Decoder",
    "SchemaCatalog",
    "SelectorRegistry",
    "compute_event_topic",
    "compute_function_selector",
    "ParamDescriptor",
    "SchemaEntry",
    "load_schema",
    "AbiStreamError",
    "DecodeError",
    "RegistrationError",
    "RpcError",
    "SyncClosedError",
    "SyncQueryError",
    "TransformError",
    "UnknownSelectorError",
]
