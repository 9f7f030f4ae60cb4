from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from chain_equity_indexer.app.application.services.dispatcher import EventDispatcher
from chain_equity_indexer.app.domain.events import RawLog
from chain_equity_indexer.app.domain.ports.out import CheckpointStore, EventStore

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    received: int
    unknown: int = 0
    stored: int = 0
    handled: int = 0
    failed: int = 0
    checkpoint_advanced: bool = False


class BatchCommitter:
    """
    Applies an ordered batch of logs as one storage transaction:
    raw events, handler effects and (optionally) the checkpoint.

    - Storage errors roll the whole batch back and propagate; the checkpoint
      is not advanced.
    - Any other handler error is logged and only that event is skipped.

    All writers share one lock, so batches from catch-up, rescan and live
    subscriptions are applied one at a time.
    """

    def __init__(
        self,
        *,
        engine: AsyncEngine,
        dispatcher: EventDispatcher,
        event_store: EventStore,
        checkpoint_store: CheckpointStore,
        lock: asyncio.Lock | None = None,
    ) -> None:
        self._engine = engine
        self._dispatcher = dispatcher
        self._events = event_store
        self._checkpoints = checkpoint_store
        self._lock = lock or asyncio.Lock()

    async def commit(
        self,
        logs: Sequence[RawLog],
        *,
        checkpoint: int | None = None,
        store_raw: bool = True,
    ) -> BatchResult:
        result = BatchResult(received=len(logs))

        async with self._lock:
            async with self._engine.begin() as conn:
                for log in logs:
                    item = self._dispatcher.classify(log)
                    if item is None:
                        result.unknown += 1
                        continue

                    if store_raw and await self._events.insert_raw_event(conn, item=item):
                        result.stored += 1

                    try:
                        await self._dispatcher.dispatch(conn, item)
                    except SQLAlchemyError:
                        raise
                    except Exception:
                        result.failed += 1
                        logger.exception(
                            "Error processing %s event at block %s, log_index %s; skipped",
                            item.kind.value,
                            log.block_number,
                            log.log_index,
                        )
                        continue
                    result.handled += 1

                if checkpoint is not None and checkpoint >= 0:
                    result.checkpoint_advanced = await self._checkpoints.advance_last_indexed_block(
                        conn, checkpoint
                    )

        logger.debug(
            "Batch committed: received=%s stored=%s handled=%s unknown=%s failed=%s checkpoint=%s",
            result.received,
            result.stored,
            result.handled,
            result.unknown,
            result.failed,
            checkpoint,
        )
        return result

    async def advance_checkpoint(self, block_number: int) -> bool:
        """Advance last_indexed_block on its own; never moves it backwards."""
        if block_number < 0:
            return False
        async with self._lock:
            async with self._engine.begin() as conn:
                return await self._checkpoints.advance_last_indexed_block(conn, block_number)
