from __future__ import annotations

import logging
from typing import assert_never

from sqlalchemy.ext.asyncio import AsyncConnection

from chain_equity_indexer.app.application.services.handlers import EventHandlers
from chain_equity_indexer.app.domain.events import (
    ClassifiedLog,
    CorporateActionRecorded,
    Issued,
    RawLog,
    SplitExecuted,
    TokenLinked,
    Transfer,
)
from chain_equity_indexer.app.domain.ports.out import EventDecoder

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Classifies raw logs and routes each decoded event to its handler.

    Logs outside the known (contract, event) set are logged and dropped:
    they are neither stored nor retried.
    """

    def __init__(self, *, decoder: EventDecoder, handlers: EventHandlers) -> None:
        self._decoder = decoder
        self._handlers = handlers

    def classify(self, log: RawLog) -> ClassifiedLog | None:
        item = self._decoder.classify(log)
        if item is None:
            logger.warning(
                "Unknown event from %s at block %s, log_index %s; dropped",
                log.address,
                log.block_number,
                log.log_index,
            )
        return item

    async def dispatch(self, conn: AsyncConnection, item: ClassifiedLog) -> None:
        log, event = item.log, item.event
        match event:
            case TokenLinked():
                await self._handlers.on_token_linked(conn, log, event)
            case Issued():
                await self._handlers.on_issued(conn, log, event)
            case Transfer():
                await self._handlers.on_transfer(conn, log, event)
            case SplitExecuted():
                await self._handlers.on_split_executed(conn, log, event)
            case CorporateActionRecorded():
                await self._handlers.on_corporate_action_recorded(conn, log, event)
            case _:
                assert_never(event)
