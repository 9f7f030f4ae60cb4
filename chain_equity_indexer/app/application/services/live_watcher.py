from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from chain_equity_indexer.app.application.services.batch_committer import BatchCommitter
from chain_equity_indexer.app.application.services.block_bounds import confirmation_safe_head
from chain_equity_indexer.app.domain.events import (
    EVENTS_OF_INTEREST,
    ContractRole,
    EventKind,
    RawLog,
    sort_logs,
)
from chain_equity_indexer.app.domain.ports.out import ChainClient, LogSubscription

logger = logging.getLogger(__name__)


class LiveWatcher:
    """
    Follows new events after catch-up.

    One consumer task per (contract, event kind) subscription feeds batches
    into the shared BatchCommitter. A separate timer task advances the
    checkpoint to the confirmation-safe head on a fixed interval, so quiet
    periods still move durable progress forward.
    """

    def __init__(
        self,
        *,
        chain: ChainClient,
        committer: BatchCommitter,
        confirmation_blocks: int = 3,
        checkpoint_interval: float = 10.0,
        events_of_interest: Sequence[tuple[ContractRole, EventKind]] = EVENTS_OF_INTEREST,
    ) -> None:
        self._chain = chain
        self._committer = committer
        self._confirmation_blocks = confirmation_blocks
        self._checkpoint_interval = checkpoint_interval
        self._events_of_interest = tuple(events_of_interest)
        self._subscriptions: list[LogSubscription] = []
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    async def start(self, *, from_block: int | None = None) -> None:
        if self._tasks:
            logger.warning("Live watcher is already running")
            return

        logger.info("Starting event watchers from block %s", from_block)
        for role, kind in self._events_of_interest:
            subscription = self._chain.subscribe(role=role, event_kind=kind, from_block=from_block)
            self._subscriptions.append(subscription)
            self._tasks.append(
                asyncio.create_task(
                    self._consume(subscription, role, kind),
                    name=f"watch:{role.value}.{kind.value}",
                )
            )

        self._tasks.append(asyncio.create_task(self._checkpoint_loop(), name="checkpoint-sync"))
        logger.info("Event watchers started (%s subscriptions)", len(self._subscriptions))

    async def stop(self) -> None:
        if not self._tasks and not self._subscriptions:
            return

        logger.info("Stopping event watchers...")
        for subscription in self._subscriptions:
            await subscription.aclose()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

        self._subscriptions.clear()
        self._tasks.clear()
        logger.info("Event watchers stopped")

    async def process_batch(self, logs: Sequence[RawLog]) -> None:
        """Apply one delivered batch; failures are logged, never raised."""
        if not logs:
            return
        try:
            await self._committer.commit(sort_logs(logs))
        except Exception:
            logger.exception(
                "Failed to process live batch of %s logs (blocks %s..%s)",
                len(logs),
                min(log.block_number for log in logs),
                max(log.block_number for log in logs),
            )

    async def sync_checkpoint(self) -> bool:
        head = await self._chain.get_current_head()
        safe_head = confirmation_safe_head(head, self._confirmation_blocks)
        advanced = await self._committer.advance_checkpoint(safe_head)
        if advanced:
            logger.debug("Checkpoint advanced to safe head %s", safe_head)
        return advanced

    async def _consume(
        self,
        subscription: LogSubscription,
        role: ContractRole,
        kind: EventKind,
    ) -> None:
        try:
            async for batch in subscription:
                await self.process_batch(batch)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Subscription %s.%s terminated", role.value, kind.value)

    async def _checkpoint_loop(self) -> None:
        while True:
            await asyncio.sleep(self._checkpoint_interval)
            try:
                await self.sync_checkpoint()
            except Exception:
                logger.exception("Error updating last indexed block")
