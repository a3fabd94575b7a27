"""Error hierarchy for decoding and log synchronization.

- `DecodeError` / `UnknownSelectorError` / `RegistrationError`: raised
  synchronously by the decoding layer.
- `SyncQueryError` / `TransformError` / `SyncClosedError`: surfaced by the
  synchronizer to whoever started it.
- `RpcError`: a node answered with a JSON-RPC error object or garbage.
"""

from __future__ import annotations


class AbiStreamError(Exception):
    """Base class for every error raised by abistream."""


class DecodeError(AbiStreamError):
    """Binary blob is shorter than its declared offsets/lengths require."""


class UnknownSelectorError(AbiStreamError, LookupError):
    """Selector or topic is not present in the selector table."""

    def __init__(self, selector: str) -> None:
        super().__init__(f"unknown selector: {selector}")
        self.selector = selector


class RegistrationError(AbiStreamError, TypeError):
    """Register/unregister received something that is not a list of schema entries."""


class RpcError(AbiStreamError):
    """JSON-RPC error response or malformed result."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(f"RPC error: {code} {message}" if code is not None else f"RPC error: {message}")
        self.code = code


class SyncQueryError(AbiStreamError):
    """Historical log query (or chain head lookup) failed."""


class TransformError(AbiStreamError):
    """Per-entry transform callback raised."""

    def __init__(self, block_number: int, log_index: int) -> None:
        super().__init__(f"transform failed for log {block_number}-{log_index}")
        self.block_number = block_number
        self.log_index = log_index


class SyncClosedError(AbiStreamError, RuntimeError):
    """Operation attempted on a closed synchronizer."""
