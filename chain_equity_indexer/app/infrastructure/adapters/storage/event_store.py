from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncConnection

from chain_equity_indexer.app.domain.events import ClassifiedLog
from chain_equity_indexer.app.domain.ports.out import EventStore
from chain_equity_indexer.app.infrastructure.db.dialect import dialect_insert
from chain_equity_indexer.app.infrastructure.db.models.events import RawEventsDB

logger = logging.getLogger(__name__)


def to_hex(value: bytes | None) -> str | None:
    if value is None:
        return None
    return "0x" + bytes(value).hex()


class SqlAlchemyEventStore(EventStore):
    """
    Raw event persistence with INSERT ... ON CONFLICT (block_number, log_index)
    DO NOTHING, so replaying a block range is a silent no-op.
    """

    async def insert_raw_event(
        self,
        conn: AsyncConnection,
        *,
        item: ClassifiedLog,
    ) -> bool:
        log = item.log
        stmt = (
            dialect_insert(conn, RawEventsDB)
            .values(
                event_type=item.kind.value,
                contract_address=log.address.lower(),
                topics=[to_hex(t) for t in log.topics],
                data=bytes(log.data),
                block_number=log.block_number,
                log_index=log.log_index,
                block_timestamp=log.block_timestamp,
                tx_hash=to_hex(log.transaction_hash),
            )
            .on_conflict_do_nothing(index_elements=["block_number", "log_index"])
        )
        result = await conn.execute(stmt)
        inserted = result.rowcount == 1

        if not inserted:
            logger.debug(
                "Raw event already stored: block=%s log_index=%s",
                log.block_number,
                log.log_index,
            )
        return inserted
