from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from abistream.core.config import SyncConfig
from abistream.core.interfaces import ICheckpointStore, ILogsProvider, ILogSubscription, Transform
from abistream.core.models import LogEntry, SyncCheckpoint, SyncState
from abistream.errors import SyncClosedError, SyncQueryError, TransformError
from abistream.orchestration.utils import checkpoint_key, normalize_topics


# ---------------------------------------------------------------------------
# LogSynchronizer
# ---------------------------------------------------------------------------


class LogSynchronizer:
    """
    Backfill historical logs, then follow live ones, without gaps or duplicates.

    State machine::

        initializing -> backfilling -> live
                            ^           |
                            +- refreshing <- refresh()

        any state -> closed

    - Entries are processed strictly one at a time in arrival order; each
      transform is awaited before the next entry is looked at.
    - A session-scoped (block_number, log_index) set stops the same log from
      reaching the transform twice (e.g. live feed racing the backfill tail).
    - Backfill persists one checkpoint per batch; live delivery persists after
      every entry.
    - Without a checkpoint store everything stays in memory.

    Errors
    ------
    - `SyncQueryError`: head lookup, historical query or subscription failed;
      raised from `start()` / `refresh()`. Not retried here.
    - `TransformError`: the transform raised; the rest of the batch is skipped
      and no checkpoint is written for it.
    """

    def __init__(
        self,
        logs_provider: ILogsProvider,
        *,
        config: SyncConfig,
        transform: Transform,
        store: ICheckpointStore | None = None,
        output: list[Any] | None = None,
    ) -> None:
        self._provider = logs_provider
        self._config = config
        self._transform = transform
        self._store = store
        self._topics = normalize_topics(config.topics)
        self._key = checkpoint_key(config.address, config.topics, config.schema_version)

        # shared, caller-visible aggregation list (may be fed by several synchronizers)
        self._output: list[Any] = output if output is not None else []
        self._results: list[Any] = []
        self._seen: set[tuple[int, int]] = set()
        self._last_block = config.start_block
        # block of an entry whose transform failed; the next backfill re-reads from it
        self._retry_block: int | None = None
        self._state: SyncState = "initializing"
        self._loaded = False

        # bumped by refresh/close; work started under an older epoch is discarded
        self._epoch = 0
        # one start/refresh pass at a time
        self._sync_lock = asyncio.Lock()
        self._subscription: ILogSubscription | None = None
        self._live_task: asyncio.Task[None] | None = None

    # ---- observable state ----

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def key(self) -> str:
        return self._key

    @property
    def last_processed_block(self) -> int:
        return self._last_block

    @property
    def results(self) -> list[Any]:
        """Results emitted by this synchronizer (restored ones first)."""
        return list(self._results)

    @property
    def output(self) -> list[Any]:
        return self._output

    # ---- lifecycle ----

    async def start(self) -> None:
        """Load the checkpoint, backfill, then go live.

        Returns once the live subscription is open. May be called again after a
        failed attempt; it resumes from the in-memory progress. Returns early
        when a concurrent `refresh()` supersedes it.
        """
        self._ensure_open()
        epoch = self._epoch
        async with self._sync_lock:
            self._ensure_open()
            if epoch != self._epoch:
                return
            if self._live_task is not None and not self._live_task.done():
                return
            await self._stop_live()
            if not self._loaded:
                await self._load_checkpoint()
                self._ensure_open()
                if epoch != self._epoch:
                    return
            await self._sync(epoch)

    async def refresh(self) -> None:
        """Drop all progress and resync from the start block."""
        self._ensure_open()
        # invalidate any start() still in flight before waiting for it
        self._epoch += 1
        async with self._sync_lock:
            self._ensure_open()
            logger.info(f"[LogSync] refreshing {self._key}")
            self._state = "refreshing"
            epoch = self._epoch
            await self._stop_live()
            if self._store is not None:
                await self._store.delete(self._key)
            self._results.clear()
            self._output.clear()
            self._seen.clear()
            self._last_block = self._config.start_block
            self._retry_block = None
            self._loaded = True
            if epoch != self._epoch:
                return
            await self._sync(epoch)

    async def close(self) -> None:
        """Cancel the live subscription. Terminal."""
        if self._state == "closed":
            return
        self._state = "closed"
        self._epoch += 1
        await self._stop_live()
        logger.info(f"[LogSync] closed {self._key}")

    async def wait(self) -> None:
        """Block until the live task ends; re-raises the error that ended it."""
        task = self._live_task
        if task is None:
            return
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()

    def _ensure_open(self) -> None:
        if self._state == "closed":
            raise SyncClosedError("synchronizer is closed")

    async def __aenter__(self) -> LogSynchronizer:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ---- INITIALIZING ----

    async def _load_checkpoint(self) -> None:
        self._loaded = True
        if self._store is None:
            return
        cp = await self._store.get(self._key)
        if cp is None:
            logger.info(f"[LogSync] no checkpoint for {self._key}, starting at {self._last_block}")
            return
        self._last_block = max(self._last_block, cp.last_processed_block)
        self._results.extend(cp.results)
        self._output.extend(cp.results)
        logger.info(
            f"[LogSync] resumed {self._key} at block {self._last_block} "
            f"({len(cp.results)} stored results)"
        )

    # ---- BACKFILLING -> LIVE ----

    async def _sync(self, epoch: int) -> None:
        self._state = "backfilling"
        head = await self._backfill(epoch)
        if epoch != self._epoch:
            return
        await self._go_live(epoch, max(head, self._last_block) + 1)

    async def _backfill(self, epoch: int) -> int:
        """Process [last_processed_block + 1, head]; returns the head used."""
        from_block = self._last_block + 1
        if self._retry_block is not None:
            from_block = min(from_block, self._retry_block)
        try:
            head = await self._provider.latest_block()
            entries: list[LogEntry] = []
            if head >= from_block:
                entries = await self._provider.query_logs(
                    address=self._config.address,
                    topics=self._topics,
                    from_block=from_block,
                    to_block=head,
                )
        except Exception as e:
            raise SyncQueryError(f"log query failed for {self._key} from block {from_block}: {e}") from e

        logger.info(f"[LogSync] backfill {self._key}: {len(entries)} logs in [{from_block}, {head}]")
        for entry in entries:
            if epoch != self._epoch:
                return head
            await self._process_entry(entry, epoch)

        if epoch == self._epoch:
            self._retry_block = None
            await self._save()
        return head

    async def _go_live(self, epoch: int, from_block: int) -> None:
        try:
            subscription = await self._provider.subscribe_logs(
                address=self._config.address,
                topics=self._topics,
                from_block=from_block,
            )
        except Exception as e:
            raise SyncQueryError(f"live subscription failed for {self._key} from block {from_block}: {e}") from e
        if epoch != self._epoch:
            # closed or refreshed while subscribing
            await subscription.unsubscribe()
            return
        self._subscription = subscription
        self._state = "live"
        self._live_task = asyncio.create_task(self._consume(subscription, epoch))
        self._live_task.add_done_callback(self._on_live_done)
        logger.info(f"[LogSync] live {self._key} from block {from_block}")

    async def _consume(self, subscription: ILogSubscription, epoch: int) -> None:
        async for entry in subscription:
            if epoch != self._epoch:
                break
            if await self._process_entry(entry, epoch):
                await self._save()

    def _on_live_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"[LogSync] live delivery stopped for {self._key}")

    async def _stop_live(self) -> None:
        subscription, self._subscription = self._subscription, None
        task, self._live_task = self._live_task, None
        if subscription is not None:
            await subscription.unsubscribe()
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.wait({task})

    # ---- per-entry pipeline ----

    async def _process_entry(self, entry: LogEntry, epoch: int) -> bool:
        """Dedup, transform and record one entry.

        Returns True when the entry was recorded (and progress may be saved).
        """
        key = entry.dedup_key
        if key in self._seen:
            logger.debug(f"[LogSync] duplicate log {key[0]}-{key[1]} skipped")
            return False
        self._seen.add(key)

        try:
            result = await self._transform(entry)
        except Exception as e:
            if epoch != self._epoch:
                # stale pass; the current one owns the dedup set and retry marker
                return False
            self._seen.discard(key)
            if self._retry_block is None or entry.block_number < self._retry_block:
                self._retry_block = entry.block_number
            raise TransformError(entry.block_number, entry.log_index) from e

        if epoch != self._epoch:
            # refresh/close landed while the transform was running
            return False
        if result:
            self._results.append(result)
            self._output.append(result)
        self._last_block = max(self._last_block, entry.block_number)
        return True

    async def _save(self) -> None:
        if self._store is None:
            return
        await self._store.set(self._key, SyncCheckpoint(self._last_block, list(self._results)))
