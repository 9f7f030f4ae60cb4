from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncEngine

from chain_equity_indexer.app.application.services.batch_committer import BatchCommitter
from chain_equity_indexer.app.application.services.block_bounds import BlockRange, pending_range
from chain_equity_indexer.app.domain.events import (
    EVENTS_OF_INTEREST,
    ContractRole,
    EventKind,
    RawLog,
    sort_logs,
)
from chain_equity_indexer.app.domain.ports.out import ChainClient, CheckpointStore

logger = logging.getLogger(__name__)


class ScannerState(str, Enum):
    IDLE = "idle"
    COMPUTING_RANGE = "computing_range"
    FETCHING = "fetching"
    COMMITTING = "committing"
    DONE = "done"


@dataclass(frozen=True)
class ScanResult:
    from_block: int
    to_block: int
    logs: int
    batches: int
    # True when a stop request ended the scan before every batch was committed.
    interrupted: bool = False


def _chunks(seq: Sequence[RawLog], size: int) -> Iterable[Sequence[RawLog]]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


class CatchUpScanner:
    """
    Indexes historical blocks from the last checkpoint up to the
    confirmation-safe head.

    Flow: IDLE -> COMPUTING_RANGE -> FETCHING -> COMMITTING -> DONE.

    Fetched logs are merged across all (contract, event kind) pairs, sorted
    by (block_number, log_index) and committed in fixed-size batches. The
    checkpoint committed with each batch is the highest block the committed
    prefix fully covers, so a crash between batches only repeats work.
    """

    def __init__(
        self,
        *,
        engine: AsyncEngine,
        chain: ChainClient,
        committer: BatchCommitter,
        checkpoint_store: CheckpointStore,
        start_block: int = 0,
        confirmation_blocks: int = 3,
        batch_size: int = 100,
        events_of_interest: Sequence[tuple[ContractRole, EventKind]] = EVENTS_OF_INTEREST,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if confirmation_blocks < 0:
            raise ValueError("confirmation_blocks must be non-negative")
        self._engine = engine
        self._chain = chain
        self._committer = committer
        self._checkpoints = checkpoint_store
        self._start_block = start_block
        self._confirmation_blocks = confirmation_blocks
        self._batch_size = batch_size
        self._events_of_interest = tuple(events_of_interest)
        self._state = ScannerState.IDLE

    @property
    def state(self) -> ScannerState:
        return self._state

    def _transition(self, state: ScannerState) -> None:
        logger.debug("Catch-up scanner: %s -> %s", self._state.value, state.value)
        self._state = state

    async def compute_range(self) -> BlockRange | None:
        async with self._engine.connect() as conn:
            last_indexed = await self._checkpoints.get_last_indexed_block(conn)

        head = await self._chain.get_current_head()
        block_range = pending_range(
            last_indexed_block=last_indexed,
            start_block=self._start_block,
            head=head,
            confirmation_blocks=self._confirmation_blocks,
        )
        logger.info(
            "Last indexed block: %s, current head: %s, confirmations: %s",
            last_indexed,
            head,
            self._confirmation_blocks,
        )
        return block_range

    async def run(self, *, stop_event: asyncio.Event | None = None) -> ScanResult | None:
        """
        Catch up to the safe head. Returns None when there was nothing to do.

        When `stop_event` is set, the batch in flight finishes and no further
        batch is committed.
        """
        self._transition(ScannerState.COMPUTING_RANGE)
        block_range = await self.compute_range()
        if block_range is None:
            logger.info("Catch-up: already at confirmation-safe head")
            self._transition(ScannerState.DONE)
            return None

        logger.info(
            "Catching up from block %s to %s",
            block_range.from_block,
            block_range.to_block,
        )
        result = await self.scan_range(
            block_range.from_block,
            block_range.to_block,
            stop_event=stop_event,
        )
        self._transition(ScannerState.DONE)
        return result

    async def scan_range(
        self,
        from_block: int,
        to_block: int,
        *,
        stop_event: asyncio.Event | None = None,
    ) -> ScanResult:
        BlockRange(from_block=from_block, to_block=to_block).validate()

        self._transition(ScannerState.FETCHING)
        logs = await self.fetch_logs(from_block, to_block)

        self._transition(ScannerState.COMMITTING)
        batches, interrupted = await self.commit_logs(logs, to_block=to_block, stop_event=stop_event)

        self._transition(ScannerState.IDLE)
        logger.info(
            "Scanned %s events from blocks %s to %s in %s batches",
            len(logs),
            from_block,
            to_block,
            batches,
        )
        return ScanResult(
            from_block=from_block,
            to_block=to_block,
            logs=len(logs),
            batches=batches,
            interrupted=interrupted,
        )

    async def fetch_logs(self, from_block: int, to_block: int) -> list[RawLog]:
        merged: list[RawLog] = []
        for role, kind in self._events_of_interest:
            try:
                logs = await self._chain.get_logs(
                    role=role,
                    event_kind=kind,
                    from_block=from_block,
                    to_block=to_block,
                )
            except Exception:
                logger.exception(
                    "Error getting %s.%s logs for blocks [%s, %s]",
                    role.value,
                    kind.value,
                    from_block,
                    to_block,
                )
                continue
            merged.extend(logs)

        # Never persist anything past the requested (confirmation-safe) bound.
        bounded = [log for log in merged if from_block <= log.block_number <= to_block]
        if len(bounded) != len(merged):
            logger.warning(
                "Dropped %s logs outside blocks [%s, %s]",
                len(merged) - len(bounded),
                from_block,
                to_block,
            )
        return sort_logs(bounded)

    async def commit_logs(
        self,
        logs: Sequence[RawLog],
        *,
        to_block: int,
        stop_event: asyncio.Event | None = None,
    ) -> tuple[int, bool]:
        """Return (committed batches, interrupted by a stop request)."""
        if stop_event is not None and stop_event.is_set():
            logger.info("Stop requested; catch-up not committed")
            return 0, True

        if not logs:
            await self._committer.advance_checkpoint(to_block)
            return 0, False

        batches = list(_chunks(logs, self._batch_size))
        for idx, batch in enumerate(batches):
            # Every committed batch already carries its checkpoint.
            if stop_event is not None and stop_event.is_set():
                logger.info("Stop requested; catch-up halted after %s/%s batches", idx, len(batches))
                return idx, True

            if idx + 1 < len(batches):
                checkpoint = batches[idx + 1][0].block_number - 1
            else:
                checkpoint = to_block

            result = await self._committer.commit(batch, checkpoint=checkpoint)
            logger.info(
                "Processed batch %s/%s (%s events, %s handled, %s failed)",
                idx + 1,
                len(batches),
                len(batch),
                result.handled,
                result.failed,
            )
        return len(batches), False
