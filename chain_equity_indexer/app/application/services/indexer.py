from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from chain_equity_indexer.app.application.services.batch_committer import BatchCommitter
from chain_equity_indexer.app.application.services.block_bounds import (
    BlockRange,
    confirmation_safe_head,
    resume_point,
)
from chain_equity_indexer.app.application.services.catch_up_scanner import (
    CatchUpScanner,
    ScanResult,
)
from chain_equity_indexer.app.application.services.dispatcher import EventDispatcher
from chain_equity_indexer.app.application.services.handlers import EventHandlers
from chain_equity_indexer.app.application.services.live_watcher import LiveWatcher
from chain_equity_indexer.app.domain.errors import CatchUpError
from chain_equity_indexer.app.domain.ports.out import (
    ChainClient,
    CheckpointStore,
    DerivedStateStore,
    EventDecoder,
    EventStore,
)
from chain_equity_indexer.app.infrastructure.adapters.storage.checkpoint_store import (
    SqlAlchemyCheckpointStore,
)
from chain_equity_indexer.app.infrastructure.adapters.storage.derived_state_store import (
    SqlAlchemyDerivedStateStore,
)
from chain_equity_indexer.app.infrastructure.adapters.storage.event_store import (
    SqlAlchemyEventStore,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexerOptions:
    start_block: int = 0
    confirmation_blocks: int = 3
    batch_size: int = 100
    checkpoint_interval: float = 10.0
    indexer_version: str = "1.0.0"


@dataclass
class IndexerState:
    running: bool = False
    healthy: bool = False
    last_scan: ScanResult | None = None


class EquityIndexer:
    """
    Controller owning one indexer instance: catch-up, then live watching.

    start() and stop() are idempotent. start() raises CatchUpError when the
    initial catch-up fails, leaving the indexer stopped and unhealthy.
    """

    def __init__(
        self,
        *,
        engine: AsyncEngine,
        chain: ChainClient,
        decoder: EventDecoder,
        options: IndexerOptions = IndexerOptions(),
        event_store: EventStore | None = None,
        derived_store: DerivedStateStore | None = None,
        checkpoint_store: CheckpointStore | None = None,
    ) -> None:
        self._engine = engine
        self._chain = chain
        self._options = options
        self._checkpoints = checkpoint_store or SqlAlchemyCheckpointStore()

        handlers = EventHandlers(chain=chain, derived=derived_store or SqlAlchemyDerivedStateStore())
        self._dispatcher = EventDispatcher(decoder=decoder, handlers=handlers)
        self._committer = BatchCommitter(
            engine=engine,
            dispatcher=self._dispatcher,
            event_store=event_store or SqlAlchemyEventStore(),
            checkpoint_store=self._checkpoints,
        )
        self._scanner = CatchUpScanner(
            engine=engine,
            chain=chain,
            committer=self._committer,
            checkpoint_store=self._checkpoints,
            start_block=options.start_block,
            confirmation_blocks=options.confirmation_blocks,
            batch_size=options.batch_size,
        )
        self._watcher = LiveWatcher(
            chain=chain,
            committer=self._committer,
            confirmation_blocks=options.confirmation_blocks,
            checkpoint_interval=options.checkpoint_interval,
        )
        self.state = IndexerState()
        self._stop_requested = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self.state.running

    @property
    def is_healthy(self) -> bool:
        return self.state.healthy

    @property
    def chain(self) -> ChainClient:
        return self._chain

    @property
    def committer(self) -> BatchCommitter:
        return self._committer

    @property
    def scanner(self) -> CatchUpScanner:
        return self._scanner

    @property
    def watcher(self) -> LiveWatcher:
        return self._watcher

    async def last_indexed_block(self) -> int | None:
        async with self._engine.connect() as conn:
            return await self._checkpoints.get_last_indexed_block(conn)

    async def start(self) -> None:
        if self.state.running:
            logger.warning("Indexer is already running")
            return

        logger.info("Starting event indexer (version %s)...", self._options.indexer_version)
        self.state.running = True
        self.state.healthy = False
        self._stop_requested.clear()

        try:
            async with self._engine.begin() as conn:
                await self._checkpoints.set_indexer_version(conn, self._options.indexer_version)
            self.state.last_scan = await self._scanner.run(stop_event=self._stop_requested)
            live_from = resume_point(await self.last_indexed_block(), self._options.start_block) + 1
        except Exception as exc:
            self.state.running = False
            logger.exception("Catch-up failed; indexer not started")
            raise CatchUpError("Catch-up failed; indexer not started") from exc

        if self._stop_requested.is_set():
            self.state.running = False
            logger.info("Stop requested during catch-up; live watchers not started")
            return

        await self._watcher.start(from_block=live_from)
        self.state.healthy = True
        logger.info("Event indexer started")

    async def stop(self) -> None:
        if not self.state.running:
            return

        logger.info("Stopping event indexer...")
        self._stop_requested.set()
        self.state.running = False
        self.state.healthy = False
        await self._watcher.stop()
        logger.info("Event indexer stopped")

    async def rescan(self, from_block: int, to_block: int | None = None) -> ScanResult:
        """
        Re-run catch-up over an explicit range. Without to_block the range
        ends at the current confirmation-safe head. The checkpoint only moves
        forward.
        """
        if to_block is None:
            head = await self._chain.get_current_head()
            to_block = confirmation_safe_head(head, self._options.confirmation_blocks)

        BlockRange(from_block=from_block, to_block=to_block).validate()
        logger.info("Rescanning blocks %s to %s", from_block, to_block)
        result = await self._scanner.scan_range(from_block, to_block)
        logger.info("Rescan complete")
        return result

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        """
        start(), then serve until `stop_event` is set. A stop arriving during
        catch-up halts it after the batch in flight.
        """
        relay = asyncio.create_task(self._stop_on(stop_event), name="stop-relay")
        try:
            await self.start()
            await stop_event.wait()
        finally:
            relay.cancel()
            await asyncio.gather(relay, return_exceptions=True)
            await self.stop()

    async def _stop_on(self, stop_event: asyncio.Event) -> None:
        await stop_event.wait()
        self._stop_requested.set()
