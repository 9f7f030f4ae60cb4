from __future__ import annotations

from typing import Any, Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncConnection

from chain_equity_indexer.app.domain.events import (
    ClassifiedLog,
    ContractRole,
    EventKind,
    RawLog,
    TransactionKind,
)


class LogSubscription(Protocol):
    """
    Cancellable asynchronous stream of log batches for one
    (contract, event kind) pair.

    Iteration ends once aclose() has been awaited.
    """

    def __aiter__(self) -> "LogSubscription": ...

    async def __anext__(self) -> list[RawLog]: ...

    async def aclose(self) -> None: ...


class ChainClient(Protocol):
    """
    Port for read-only access to the chain endpoint.

    Implementations wrap every call except subscribe() in the retry policy;
    after the last attempt the original error propagates un-wrapped.
    """

    async def get_current_head(self) -> int: ...

    async def check_connection(self, *, expected_chain_id: int) -> None:
        """Raise ChainConnectionError unless the endpoint serves expected_chain_id."""
        ...

    async def get_logs(
        self,
        *,
        role: ContractRole,
        event_kind: EventKind,
        from_block: int,
        to_block: int,
    ) -> list[RawLog]: ...

    async def read_contract_value(
        self,
        *,
        role: ContractRole,
        fn_name: str,
        args: Sequence[Any] = (),
        at_block: int | None = None,
    ) -> Any: ...

    def subscribe(
        self,
        *,
        role: ContractRole,
        event_kind: EventKind,
        from_block: int | None = None,
    ) -> LogSubscription:
        """Stream logs from `from_block` onward, or from the current head when None."""
        ...


class EventDecoder(Protocol):
    def classify(self, log: RawLog) -> ClassifiedLog | None:
        """
        Determine the emitting contract role and decode the event.

        Return None for logs outside the known (contract, event) set or
        logs whose payload cannot be decoded.
        """
        ...


class EventStore(Protocol):
    """
    Append-only store of raw events, keyed by (block_number, log_index).
    """

    async def insert_raw_event(
        self,
        conn: AsyncConnection,
        *,
        item: ClassifiedLog,
    ) -> bool: ...


class DerivedStateStore(Protocol):
    """
    Port for transactions, corporate actions and shareholder balances.

    Transaction and corporate action inserts are insert-or-ignore on
    (block_number, log_index); shareholder writes are upserts by address.
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
    ) -> bool: ...

    async def insert_corporate_action(
        self,
        conn: AsyncConnection,
        *,
        log: RawLog,
        action_id: int,
        action_type: str,
        data: bytes,
    ) -> bool: ...

    async def upsert_shareholder(
        self,
        conn: AsyncConnection,
        *,
        address: str,
        balance: int,
        multiplier: int,
        block_number: int,
    ) -> None: ...

    async def recompute_effective_balances(
        self,
        conn: AsyncConnection,
        *,
        multiplier: int,
    ) -> int: ...


class CheckpointStore(Protocol):
    async def get_last_indexed_block(self, conn: AsyncConnection) -> int | None: ...

    async def advance_last_indexed_block(
        self,
        conn: AsyncConnection,
        block_number: int,
    ) -> bool: ...

    async def set_indexer_version(self, conn: AsyncConnection, version: str) -> None: ...
