"""Contract-interface decoding.

This package provides:
- Schema models (ParamDescriptor, SchemaEntry) for standard ABI JSON
- Parameter codec (head/tail decoding, canonical types, log split)
- Selector registry (4-byte selectors / 32-byte topics)
- Decoder facade for call data, return data and logs
"""

from abistream.decoding.decoder import DecodedCall, DecodedEvent, DecodedParam, Decoder, SchemaCatalog
from abistream.decoding.registry import (
    SelectorRegistry,
    canonical_signature,
    compute_event_topic,
    compute_function_selector,
)
from abistream.decoding.specs import ParamDescriptor, SchemaEntry, load_schema

__all__ = [
    "DecodedCall",
    "DecodedEvent",
    "DecodedParam",
    "Decoder",
    "SchemaCatalog",
    "SelectorRegistry",
    "canonical_signature",
    "compute_event_topic",
    "compute_function_selector",
    "ParamDescriptor",
    "SchemaEntry",
    "load_schema",
]
