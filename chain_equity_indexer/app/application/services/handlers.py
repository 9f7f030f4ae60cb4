from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncConnection

from chain_equity_indexer.app.domain.events import (
    ZERO_ADDRESS,
    ContractRole,
    CorporateActionRecord,
    CorporateActionRecorded,
    Issued,
    RawLog,
    SplitExecuted,
    TokenLinked,
    Transfer,
    TransactionKind,
)
from chain_equity_indexer.app.domain.ports.out import ChainClient, DerivedStateStore

logger = logging.getLogger(__name__)


class EventHandlers:
    """
    Business semantics per event kind.

    Balances are read through from the token contract (balanceOf, splitFactor)
    rather than derived from event amounts. Every handler performs its chain
    reads before its first write, so a failed read leaves nothing behind in
    the batch transaction.
    """

    def __init__(self, *, chain: ChainClient, derived: DerivedStateStore) -> None:
        self._chain = chain
        self._derived = derived

    async def read_split_factor(self) -> int:
        value = await self._chain.read_contract_value(
            role=ContractRole.TOKEN,
            fn_name="splitFactor",
        )
        return int(value)

    async def read_balance(self, address: str) -> int:
        value = await self._chain.read_contract_value(
            role=ContractRole.TOKEN,
            fn_name="balanceOf",
            args=(address,),
        )
        return int(value)

    async def read_corporate_action(self, action_id: int) -> CorporateActionRecord:
        value = await self._chain.read_contract_value(
            role=ContractRole.CAP_TABLE,
            fn_name="getCorporateAction",
            args=(action_id,),
        )
        return _corporate_action_record(value)

    async def on_token_linked(self, conn: AsyncConnection, log: RawLog, event: TokenLinked) -> None:
        _ = conn  # raw event only
        logger.info(
            "TokenLinked capTable=%s token=%s at block %s",
            event.cap_table,
            event.token,
            log.block_number,
        )

    async def on_issued(self, conn: AsyncConnection, log: RawLog, event: Issued) -> None:
        balance, multiplier = await asyncio.gather(
            self.read_balance(event.to),
            self.read_split_factor(),
        )

        await self._derived.insert_transaction(
            conn,
            log=log,
            kind=TransactionKind.ISSUED,
            from_address=None,
            to_address=event.to,
            amount=event.amount,
        )
        await self._derived.upsert_shareholder(
            conn,
            address=event.to,
            balance=balance,
            multiplier=multiplier,
            block_number=log.block_number,
        )
        logger.info("Issued %s to %s at block %s", event.amount, event.to, log.block_number)

    async def on_transfer(self, conn: AsyncConnection, log: RawLog, event: Transfer) -> None:
        # Mints are booked by the matching Issued event.
        if event.sender == ZERO_ADDRESS:
            logger.debug("Skipping mint Transfer at block %s", log.block_number)
            return

        from_balance, to_balance, multiplier = await asyncio.gather(
            self.read_balance(event.sender),
            self.read_balance(event.recipient),
            self.read_split_factor(),
        )

        await self._derived.insert_transaction(
            conn,
            log=log,
            kind=TransactionKind.TRANSFER,
            from_address=event.sender,
            to_address=event.recipient,
            amount=event.value,
        )
        for address, balance in ((event.sender, from_balance), (event.recipient, to_balance)):
            await self._derived.upsert_shareholder(
                conn,
                address=address,
                balance=balance,
                multiplier=multiplier,
                block_number=log.block_number,
            )
        logger.info(
            "Transfer %s from %s to %s at block %s",
            event.value,
            event.sender,
            event.recipient,
            log.block_number,
        )

    async def on_split_executed(
        self,
        conn: AsyncConnection,
        log: RawLog,
        event: SplitExecuted,
    ) -> None:
        # The contract's current factor is authoritative, not the payload.
        multiplier = await self.read_split_factor()
        updated = await self._derived.recompute_effective_balances(conn, multiplier=multiplier)
        logger.info(
            "SplitExecuted %s -> %s at block %s (chain factor=%s, shareholders=%s)",
            event.old_factor,
            event.new_factor,
            log.block_number,
            multiplier,
            updated,
        )

    async def on_corporate_action_recorded(
        self,
        conn: AsyncConnection,
        log: RawLog,
        event: CorporateActionRecorded,
    ) -> None:
        record = await self.read_corporate_action(event.action_id)
        await self._derived.insert_corporate_action(
            conn,
            log=log,
            action_id=event.action_id,
            action_type=event.action_type,
            data=record.data,
        )
        logger.info(
            "CorporateActionRecorded %s (id=%s) at block %s",
            event.action_type,
            event.action_id,
            log.block_number,
        )


def _corporate_action_record(value: Any) -> CorporateActionRecord:
    """Accept the struct either as a positional tuple or a name-keyed mapping."""
    if isinstance(value, Mapping):
        fields = (
            value["id"],
            value["actionType"],
            value["data"],
            value["blockNumber"],
            value["timestamp"],
        )
    else:
        fields = tuple(value)
        if len(fields) != 5:
            raise ValueError(f"Unexpected getCorporateAction result: {value!r}")

    action_id, action_type, data, block_number, timestamp = fields
    return CorporateActionRecord(
        action_id=int(action_id),
        action_type=str(action_type),
        data=bytes(data or b""),
        block_number=int(block_number),
        timestamp=int(timestamp),
    )
