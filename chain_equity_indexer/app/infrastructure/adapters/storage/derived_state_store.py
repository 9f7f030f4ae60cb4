from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import bindparam, select, update
from sqlalchemy.ext.asyncio import AsyncConnection

from chain_equity_indexer.app.domain.events import RawLog, TransactionKind, effective_balance
from chain_equity_indexer.app.domain.ports.out import DerivedStateStore
from chain_equity_indexer.app.infrastructure.adapters.storage.event_store import to_hex
from chain_equity_indexer.app.infrastructure.db.dialect import dialect_insert
from chain_equity_indexer.app.infrastructure.db.models.corporate_actions import CorporateActionsDB
from chain_equity_indexer.app.infrastructure.db.models.shareholders import ShareholdersDB
from chain_equity_indexer.app.infrastructure.db.models.transactions import TransactionsDB

logger = logging.getLogger(__name__)


class SqlAlchemyDerivedStateStore(DerivedStateStore):
    """
    Writes the materialized projections: transactions, corporate_actions and
    shareholders.

    History tables are insert-or-ignore on (block_number, log_index).
    Shareholder rows are last-write-wins upserts: every write carries a
    balance freshly read from the chain, never a locally accumulated delta.
    """

    async def insert_transaction(
        self,
        conn: AsyncConnection,
        *,
        log: RawLog,
        kind: TransactionKind,
        from_address: str | None,
        to_address: str,
        amount: int,
    ) -> bool:
        stmt = (
            dialect_insert(conn, TransactionsDB)
            .values(
                tx_hash=to_hex(log.transaction_hash) or "",
                from_address=from_address.lower() if from_address else None,
                to_address=to_address.lower(),
                amount=str(amount),
                block_number=log.block_number,
                block_timestamp=log.block_timestamp,
                log_index=log.log_index,
                event_type=kind.value,
            )
            .on_conflict_do_nothing(index_elements=["block_number", "log_index"])
        )
        result = await conn.execute(stmt)
        return result.rowcount == 1

    async def insert_corporate_action(
        self,
        conn: AsyncConnection,
        *,
        log: RawLog,
        action_id: int,
        action_type: str,
        data: bytes,
    ) -> bool:
        stmt = (
            dialect_insert(conn, CorporateActionsDB)
            .values(
                action_id=str(action_id),
                action_type=action_type,
                data=bytes(data) if data else None,
                block_number=log.block_number,
                block_timestamp=log.block_timestamp,
                log_index=log.log_index,
            )
            .on_conflict_do_nothing(index_elements=["block_number", "log_index"])
        )
        result = await conn.execute(stmt)
        return result.rowcount == 1

    async def upsert_shareholder(
        self,
        conn: AsyncConnection,
        *,
        address: str,
        balance: int,
        multiplier: int,
        block_number: int,
    ) -> None:
        stmt = dialect_insert(conn, ShareholdersDB).values(
            address=address.lower(),
            balance=str(balance),
            effective_balance=str(effective_balance(balance, multiplier)),
            last_updated_block=block_number,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["address"],
            set_={
                "balance": stmt.excluded.balance,
                "effective_balance": stmt.excluded.effective_balance,
                "last_updated_block": stmt.excluded.last_updated_block,
            },
        )
        await conn.execute(stmt)

    async def recompute_effective_balances(
        self,
        conn: AsyncConnection,
        *,
        multiplier: int,
    ) -> int:
        """
        Full-table pass after a split: effective_balance is re-derived from
        each stored raw balance and the new multiplier. Returns the number of
        rows rewritten.
        """
        result = await conn.execute(select(ShareholdersDB.address, ShareholdersDB.balance))
        rows = result.all()
        if not rows:
            return 0

        payload: list[dict[str, Any]] = [
            {
                "b_address": row.address,
                "b_effective_balance": str(effective_balance(int(row.balance), multiplier)),
            }
            for row in rows
        ]
        stmt = (
            update(ShareholdersDB.__table__)
            .where(ShareholdersDB.__table__.c.address == bindparam("b_address"))
            .values(effective_balance=bindparam("b_effective_balance"))
        )
        await conn.execute(stmt, payload)

        logger.info("Recomputed effective balances for %s shareholders", len(payload))
        return len(payload)
