from __future__ import annotations

import logging
from typing import Final

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from chain_equity_indexer.app.domain.ports.out import CheckpointStore
from chain_equity_indexer.app.infrastructure.db.dialect import dialect_insert
from chain_equity_indexer.app.infrastructure.db.models.meta import MetaDB

logger = logging.getLogger(__name__)

LAST_INDEXED_BLOCK_KEY: Final[str] = "last_indexed_block"
INDEXER_VERSION_KEY: Final[str] = "indexer_version"


class SqlAlchemyCheckpointStore(CheckpointStore):
    """
    Checkpoint rows in the meta key/value table.

    last_indexed_block never decreases: advance_last_indexed_block() is a
    no-op when the stored value is already at or past the given block.
    """

    async def get_value(self, conn: AsyncConnection, key: str) -> str | None:
        result = await conn.execute(select(MetaDB.value).where(MetaDB.key == key))
        return result.scalar_one_or_none()

    async def set_value(self, conn: AsyncConnection, key: str, value: str) -> None:
        stmt = dialect_insert(conn, MetaDB).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded["value"]},
        )
        await conn.execute(stmt)

    async def get_last_indexed_block(self, conn: AsyncConnection) -> int | None:
        value = await self.get_value(conn, LAST_INDEXED_BLOCK_KEY)
        return int(value) if value is not None else None

    async def advance_last_indexed_block(
        self,
        conn: AsyncConnection,
        block_number: int,
    ) -> bool:
        current = await self.get_last_indexed_block(conn)
        if current is not None and block_number <= current:
            return False

        await self.set_value(conn, LAST_INDEXED_BLOCK_KEY, str(block_number))
        logger.debug("Checkpoint advanced: %s -> %s", current, block_number)
        return True

    async def set_indexer_version(self, conn: AsyncConnection, version: str) -> None:
        await self.set_value(conn, INDEXER_VERSION_KEY, version)

    async def get_indexer_version(self, conn: AsyncConnection) -> str | None:
        return await self.get_value(conn, INDEXER_VERSION_KEY)
