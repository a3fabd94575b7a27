"""Schema primitives for the standard contract-interface (ABI) JSON format.

Defines immutable pydantic models mirroring one ABI entry:
- `ParamDescriptor`: one input/output parameter (recursive for tuples)
- `SchemaEntry`: one function/event/constructor/error/fallback/receive item
- `load_schema(...)`: parse a JSON file, a JSON string or an already-loaded list
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from abistream.errors import RegistrationError

SchemaKind = Literal["function", "event", "constructor", "error", "fallback", "receive"]


class ParamDescriptor(BaseModel):
    """One ABI parameter: `{name, type, indexed?, components?}`."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    type: str
    indexed: bool = False
    components: tuple[ParamDescriptor, ...] | None = None


ParamDescriptor.model_rebuild()


class SchemaEntry(BaseModel):
    """One ABI item. `kind` is read from / written to the ABI key `type`."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    kind: SchemaKind = Field(default="function", alias="type")
    name: str | None = None
    inputs: tuple[ParamDescriptor, ...] = ()
    outputs: tuple[ParamDescriptor, ...] = ()
    anonymous: bool = False

    @property
    def is_event(self) -> bool:
        return self.kind == "event"


AbiJson = Iterable[dict[str, Any] | SchemaEntry]
AbiSpec = AbiJson | Path | str


def _load_abi(abi: AbiSpec) -> Any:
    if isinstance(abi, str):
        text = abi.strip()
        if not text.startswith(("[", "{")):
            return json.loads(Path(abi).read_text())
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise RegistrationError(f"Invalid ABI JSON: {exc}") from exc
    if isinstance(abi, Path):
        return json.loads(abi.read_text())
    return abi


def parse_entries(entries: Any) -> list[SchemaEntry]:
    """Validate a list of ABI items (dicts or `SchemaEntry`) into `SchemaEntry` objects."""
    if not isinstance(entries, (list, tuple)):
        raise RegistrationError(f"Expected ABI list, got {type(entries).__name__}")
    out: list[SchemaEntry] = []
    for entry in entries:
        if isinstance(entry, SchemaEntry):
            out.append(entry)
            continue
        try:
            out.append(SchemaEntry.model_validate(entry))
        except ValidationError as exc:
            raise RegistrationError(f"Invalid ABI entry: {entry!r}") from exc
    return out


def load_schema(abi: AbiSpec) -> list[SchemaEntry]:
    """Load ABI entries from a file path, a JSON string or an in-memory list."""
    loaded = _load_abi(abi)
    if isinstance(loaded, dict) and "abi" in loaded:
        # Hardhat/Foundry artifacts wrap the ABI
        loaded = loaded["abi"]
    return parse_entries(list(loaded) if not isinstance(loaded, (dict, str)) else loaded)
