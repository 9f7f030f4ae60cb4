"""
Read-only views over the materialized tables, for the API layer and the
status command. Nothing here writes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncConnection

from chain_equity_indexer.app.infrastructure.adapters.storage.checkpoint_store import (
    SqlAlchemyCheckpointStore,
)
from chain_equity_indexer.app.infrastructure.db.models.corporate_actions import CorporateActionsDB
from chain_equity_indexer.app.infrastructure.db.models.events import RawEventsDB
from chain_equity_indexer.app.infrastructure.db.models.shareholders import ShareholdersDB
from chain_equity_indexer.app.infrastructure.db.models.transactions import TransactionsDB


@dataclass(frozen=True)
class IndexerStatus:
    last_indexed_block: int | None
    indexer_version: str | None
    events: int
    transactions: int
    corporate_actions: int
    shareholders: int


async def _count(conn: AsyncConnection, model: Any) -> int:
    result = await conn.execute(select(func.count()).select_from(model))
    return int(result.scalar_one())


async def get_indexer_status(conn: AsyncConnection) -> IndexerStatus:
    checkpoints = SqlAlchemyCheckpointStore()
    return IndexerStatus(
        last_indexed_block=await checkpoints.get_last_indexed_block(conn),
        indexer_version=await checkpoints.get_indexer_version(conn),
        events=await _count(conn, RawEventsDB),
        transactions=await _count(conn, TransactionsDB),
        corporate_actions=await _count(conn, CorporateActionsDB),
        shareholders=await _count(conn, ShareholdersDB),
    )


async def list_events(
    conn: AsyncConnection,
    *,
    event_type: str | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    stmt = select(RawEventsDB.__table__).order_by(RawEventsDB.block_number, RawEventsDB.log_index)
    if event_type is not None:
        stmt = stmt.where(RawEventsDB.event_type == event_type)
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await conn.execute(stmt)
    return [dict(r) for r in result.mappings().all()]


async def list_transactions(
    conn: AsyncConnection,
    *,
    address: str | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    stmt = select(TransactionsDB.__table__).order_by(
        TransactionsDB.block_number, TransactionsDB.log_index
    )
    if address is not None:
        addr = address.lower()
        stmt = stmt.where(
            (TransactionsDB.from_address == addr) | (TransactionsDB.to_address == addr)
        )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await conn.execute(stmt)
    return [dict(r) for r in result.mappings().all()]


async def list_corporate_actions(conn: AsyncConnection) -> list[dict[str, Any]]:
    stmt = select(CorporateActionsDB.__table__).order_by(
        CorporateActionsDB.block_number, CorporateActionsDB.log_index
    )
    result = await conn.execute(stmt)
    return [dict(r) for r in result.mappings().all()]


async def list_shareholders(conn: AsyncConnection) -> list[dict[str, Any]]:
    result = await conn.execute(
        select(ShareholdersDB.__table__).order_by(ShareholdersDB.address)
    )
    return [dict(r) for r in result.mappings().all()]


async def get_shareholder(conn: AsyncConnection, address: str) -> dict[str, Any] | None:
    result = await conn.execute(
        select(ShareholdersDB.__table__).where(ShareholdersDB.address == address.lower())
    )
    row = result.mappings().one_or_none()
    return dict(row) if row is not None else None
