import asyncio
import sys
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.table import Table

from abistream.clients.rpc import RPC
from abistream.constants import DEFAULT_START_BLOCK
from abistream.core.config import RpcConfig, SyncConfig
from abistream.core.models import LogEntry
from abistream.core.use_cases.log_sync import LogSynchronizer
from abistream.decoding.decoder import DecodedEvent, Decoder
from abistream.decoding.registry import canonical_signature
from abistream.errors import AbiStreamError
from abistream.storage.checkpoints import JsonCheckpointStore

console = Console()


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format="{time:HH:mm:ss} | {level: <7} | {message}")


@click.group()
@click.option("--log-level", default="INFO", show_default=True, help="Log level for stderr")
def cli(log_level: str) -> None:
    """abistream: ABI decoding and resumable contract log sync."""
    _configure_logging(log_level)


@cli.command("selectors")
@click.argument("abi", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def selectors_cmd(abi: Path) -> None:
    """List the selectors/topics of every named entry in an ABI file."""
    try:
        decoder = Decoder.from_abi(abi)
    except AbiStreamError as e:
        raise click.ClickException(str(e)) from e

    table = Table(title=abi.name)
    table.add_column("kind")
    table.add_column("selector / topic0")
    table.add_column("signature")
    for key, entry in decoder.registry.selectors().items():
        table.add_row(entry.kind, key, canonical_signature(entry))
    console.print(table)


@cli.command("decode-call")
@click.argument("abi", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("calldata")
def decode_call_cmd(abi: Path, calldata: str) -> None:
    """Decode 0x-hex CALLDATA against ABI."""
    try:
        call = Decoder.from_abi(abi).decode_method_call(calldata)
    except AbiStreamError as e:
        raise click.ClickException(str(e)) from e

    console.print(f"[bold]{call.name}[/]")
    for p in call.params:
        console.print(f"  {p.name or '_'} ({p.type}) = {p.value}")


def _print_event(ev: DecodedEvent, entry: LogEntry) -> None:
    args = ", ".join(f"{p.name}={p.value}" for p in ev.params)
    console.print(f"[cyan]{entry.block_number}[/]:{entry.log_index} [bold]{ev.name}[/]({args})")


@cli.command("sync")
@click.option("--rpc", "rpc_url", required=True, help="RPC endpoint URL")
@click.option("--abi", "abi_path", required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--contract", required=True, help="Emitter contract address")
@click.option("--topic", "topics", multiple=True, help="Positional topic filter; '*' for any. Repeat per position")
@click.option("--from-block", type=int, default=DEFAULT_START_BLOCK, show_default=True)
@click.option("--state-dir", type=click.Path(file_okay=False, path_type=Path), default=Path("./.abistream"), show_default=True)
@click.option("--schema-version", default="1", show_default=True, help="Bump to invalidate stored checkpoints")
@click.option("--poll-interval", type=float, default=4.0, show_default=True, help="Seconds between head polls")
@click.option("--refresh/--no-refresh", default=False, show_default=True, help="Drop the checkpoint and resync")
def sync_cmd(
    rpc_url: str,
    abi_path: Path,
    contract: str,
    topics: tuple[str, ...],
    from_block: int,
    state_dir: Path,
    schema_version: str,
    poll_interval: float,
    refresh: bool,
) -> None:
    """Backfill and follow a contract's logs, printing each decoded event."""
    try:
        decoder = Decoder.from_abi(abi_path)
    except AbiStreamError as e:
        raise click.ClickException(str(e)) from e
    rpc_config = RpcConfig(rpc_url=rpc_url, poll_interval_s=poll_interval)
    sync_config = SyncConfig(
        address=contract,
        topics=[None if t == "*" else t for t in topics],
        start_block=from_block,
        schema_version=schema_version,
    )

    async def transform(entry: LogEntry) -> dict | None:
        ev = decoder.decode_log(entry)
        if ev is None:
            return None
        _print_event(ev, entry)
        return {
            "block_number": entry.block_number,
            "log_index": entry.log_index,
            "tx_hash": entry.tx_hash,
            "event": ev.name,
            "values": ev.as_dict(),
        }

    async def run() -> None:
        rpc = RPC.from_config(rpc_config)
        sync = LogSynchronizer(rpc, config=sync_config, transform=transform, store=JsonCheckpointStore(state_dir))
        try:
            if refresh:
                await sync.refresh()
            else:
                await sync.start()
            console.print(
                f"[bold]live[/]: {len(sync.results)} events so far • last block {sync.last_processed_block}"
            )
            await sync.wait()
        finally:
            await sync.close()
            await rpc.aclose()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("[yellow]interrupted[/]")
    except AbiStreamError as e:
        raise click.ClickException(str(e)) from e


if __name__ == "__main__":
    cli()
