from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Sequence

from eth_abi import encode as abi_encode
from eth_utils import keccak

from chain_equity_indexer.app.domain.errors import ChainConnectionError
from chain_equity_indexer.app.domain.events import (
    SCALE,
    ZERO_ADDRESS,
    ContractRole,
    EventKind,
    RawLog,
)
from chain_equity_indexer.app.registry.contracts import ContractRegistry

CAP_TABLE = "0x" + "c0" * 20
TOKEN = "0x" + "70" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "ca" * 20


class FakeSubscription:
    """Subscription fed by the test through push()."""

    def __init__(self, role: ContractRole, event_kind: EventKind, from_block: int | None) -> None:
        self.role = role
        self.event_kind = event_kind
        self.from_block = from_block
        self.closed = False
        self._queue: asyncio.Queue[list[RawLog] | None] = asyncio.Queue()

    def push(self, batch: list[RawLog]) -> None:
        self._queue.put_nowait(batch)

    def __aiter__(self) -> "FakeSubscription":
        return self

    async def __anext__(self) -> list[RawLog]:
        batch = await self._queue.get()
        if batch is None:
            raise StopAsyncIteration
        return batch

    async def aclose(self) -> None:
        self.closed = True
        self._queue.put_nowait(None)


class FakeChainClient:
    """
    In-memory chain: a list of logs plus the current contract state that
    read-through handlers query (balances, split factor, corporate actions).
    """

    def __init__(self, *, registry: ContractRegistry, head: int = 0, chain_id: int = 31337) -> None:
        self.registry = registry
        self.head = head
        self.chain_id = chain_id
        self.logs: list[RawLog] = []
        self.balances: dict[str, int] = {}
        self.split_factor = SCALE
        self.corporate_actions: dict[int, tuple[int, str, bytes, int, int]] = {}

        self.failing_pairs: set[tuple[ContractRole, EventKind]] = set()
        self.read_errors: dict[str, Exception] = {}
        self.head_error: Exception | None = None
        self.ignore_block_range = False
        # When set, get_logs blocks until the event is set.
        self.logs_gate: asyncio.Event | None = None

        self.get_logs_calls: list[tuple[ContractRole, EventKind, int, int]] = []
        self.reads: list[tuple[str, tuple[Any, ...]]] = []
        self.subscriptions: list[FakeSubscription] = []

    def subscription_for(self, role: ContractRole, event_kind: EventKind) -> FakeSubscription:
        for sub in self.subscriptions:
            if sub.role == role and sub.event_kind == event_kind:
                return sub
        raise KeyError((role, event_kind))

    async def get_current_head(self) -> int:
        if self.head_error is not None:
            raise self.head_error
        return self.head

    async def check_connection(self, *, expected_chain_id: int) -> None:
        if self.chain_id != expected_chain_id:
            raise ChainConnectionError(
                f"Chain ID mismatch: expected {expected_chain_id}, got {self.chain_id}"
            )

    async def get_logs(
        self,
        *,
        role: ContractRole,
        event_kind: EventKind,
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        self.get_logs_calls.append((role, event_kind, from_block, to_block))
        if self.logs_gate is not None:
            await self.logs_gate.wait()
        if (role, event_kind) in self.failing_pairs:
            raise ConnectionError(f"{role.value}.{event_kind.value} unavailable")

        address = self.registry.address_of(role)
        topic0 = self.registry.topic0(role, event_kind)
        out = [log for log in self.logs if log.address == address and log.topic0 == topic0]
        if not self.ignore_block_range:
            out = [log for log in out if from_block <= log.block_number <= to_block]
        # Deliberately unsorted so callers have to order logs themselves.
        return list(reversed(out))

    async def read_contract_value(
        self,
        *,
        role: ContractRole,
        fn_name: str,
        args: Sequence[Any] = (),
        at_block: int | None = None,
    ) -> Any:
        self.reads.append((fn_name, tuple(args)))
        if fn_name in self.read_errors:
            raise self.read_errors[fn_name]

        if fn_name == "splitFactor":
            return self.split_factor
        if fn_name == "balanceOf":
            return self.balances.get(str(args[0]).lower(), 0)
        if fn_name == "getCorporateAction":
            return self.corporate_actions[int(args[0])]
        raise ValueError(f"execution reverted: unknown function {fn_name}")

    def subscribe(
        self,
        *,
        role: ContractRole,
        event_kind: EventKind,
        from_block: int | None = None,
    ) -> FakeSubscription:
        sub = FakeSubscription(role, event_kind, from_block)
        self.subscriptions.append(sub)
        return sub


class LogBuilder:
    """Builds ABI-encoded logs for the CapTable / ChainEquityToken events."""

    def __init__(self, registry: ContractRegistry) -> None:
        self._registry = registry

    def _log(
        self,
        role: ContractRole,
        kind: EventKind,
        *,
        indexed: Sequence[tuple[str, Any]],
        data_types: Sequence[str],
        data_values: Sequence[Any],
        block: int,
        log_index: int,
    ) -> RawLog:
        topics = (self._registry.topic0(role, kind),) + tuple(
            abi_encode([typ], [value]) for typ, value in indexed
        )
        return RawLog(
            address=self._registry.address_of(role),
            topics=topics,
            data=abi_encode(list(data_types), list(data_values)),
            block_number=block,
            log_index=log_index,
            transaction_hash=keccak(text=f"tx:{block}:{log_index}"),
            block_timestamp=1_700_000_000 + block * 12,
        )

    def issued(self, to: str, amount: int, *, block: int, log_index: int = 0) -> RawLog:
        return self._log(
            ContractRole.TOKEN,
            EventKind.ISSUED,
            indexed=[("address", to)],
            data_types=["uint256"],
            data_values=[amount],
            block=block,
            log_index=log_index,
        )

    def transfer(
        self,
        sender: str,
        recipient: str,
        value: int,
        *,
        block: int,
        log_index: int = 0,
    ) -> RawLog:
        return self._log(
            ContractRole.TOKEN,
            EventKind.TRANSFER,
            indexed=[("address", sender), ("address", recipient)],
            data_types=["uint256"],
            data_values=[value],
            block=block,
            log_index=log_index,
        )

    def mint(self, recipient: str, value: int, *, block: int, log_index: int = 0) -> RawLog:
        return self.transfer(ZERO_ADDRESS, recipient, value, block=block, log_index=log_index)

    def split(self, old_factor: int, new_factor: int, *, block: int, log_index: int = 0) -> RawLog:
        return self._log(
            ContractRole.TOKEN,
            EventKind.SPLIT_EXECUTED,
            indexed=[],
            data_types=["uint256", "uint256", "uint256"],
            data_values=[old_factor, new_factor, block],
            block=block,
            log_index=log_index,
        )

    def token_linked(self, *, block: int, log_index: int = 0) -> RawLog:
        return self._log(
            ContractRole.CAP_TABLE,
            EventKind.TOKEN_LINKED,
            indexed=[("address", CAP_TABLE), ("address", TOKEN)],
            data_types=[],
            data_values=[],
            block=block,
            log_index=log_index,
        )

    def corporate_action(
        self,
        action_id: int,
        action_type: str,
        *,
        block: int,
        log_index: int = 0,
    ) -> RawLog:
        return self._log(
            ContractRole.CAP_TABLE,
            EventKind.CORPORATE_ACTION_RECORDED,
            indexed=[("uint256", action_id)],
            data_types=["string", "uint256"],
            data_values=[action_type, block],
            block=block,
            log_index=log_index,
        )


async def wait_until(
    predicate: Callable[[], Awaitable[bool]],
    *,
    timeout: float = 2.0,
    interval: float = 0.01,
) -> None:
    async def _poll() -> None:
        while not await predicate():
            await asyncio.sleep(interval)

    await asyncio.wait_for(_poll(), timeout=timeout)
