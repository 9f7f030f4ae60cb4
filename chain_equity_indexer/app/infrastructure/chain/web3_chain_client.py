from __future__ import annotations

import logging
from typing import Any, Sequence

from eth_utils import is_hex_address
from web3 import AsyncWeb3
from web3.contract.async_contract import AsyncContract
from web3.types import BlockIdentifier, FilterParams, LogReceipt

from chain_equity_indexer.app.domain.errors import ChainConnectionError
from chain_equity_indexer.app.domain.events import ContractRole, EventKind, RawLog
from chain_equity_indexer.app.domain.ports.out import ChainClient, LogSubscription
from chain_equity_indexer.app.infrastructure.chain.retry import RetryPolicy
from chain_equity_indexer.app.infrastructure.chain.subscription import PollingLogSubscription
from chain_equity_indexer.app.registry.contracts import ContractRegistry

logger = logging.getLogger(__name__)


class Web3ChainClient(ChainClient):
    """
    Chain client adapter using AsyncWeb3.

    Every call except subscribe() goes through the retry policy. Log filters
    are single-event (address + topic0) so decoding stays unambiguous.
    """

    def __init__(
        self,
        *,
        w3: AsyncWeb3,
        registry: ContractRegistry,
        retry_policy: RetryPolicy,
        poll_interval: float = 2.0,
    ) -> None:
        self._w3 = w3
        self._registry = registry
        self._retry = retry_policy
        self._poll_interval = poll_interval
        self._contracts: dict[ContractRole, AsyncContract] = {}

    @property
    def registry(self) -> ContractRegistry:
        return self._registry

    async def get_current_head(self) -> int:
        return await self._retry.call(self._block_number)

    async def get_chain_id(self) -> int:
        return await self._retry.call(self._chain_id)

    async def check_connection(self, *, expected_chain_id: int) -> None:
        chain_id = await self.get_chain_id()
        if chain_id != expected_chain_id:
            raise ChainConnectionError(
                f"Chain ID mismatch: expected {expected_chain_id}, got {chain_id}"
            )
        logger.info("Connected to chain_id=%s", chain_id)

    async def get_logs(
        self,
        *,
        role: ContractRole,
        event_kind: EventKind,
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        params: FilterParams = {
            "address": self._w3.to_checksum_address(self._registry.address_of(role)),
            "topics": ["0x" + self._registry.topic0(role, event_kind).hex()],
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        entries = await self._retry.call(self._w3.eth.get_logs, params)

        logger.debug(
            "Fetched %s %s.%s logs in blocks [%s, %s]",
            len(entries),
            role.value,
            event_kind.value,
            from_block,
            to_block,
        )
        return [_to_raw_log(e) for e in entries]

    async def read_contract_value(
        self,
        *,
        role: ContractRole,
        fn_name: str,
        args: Sequence[Any] = (),
        at_block: int | None = None,
    ) -> Any:
        contract = self._contract(role)
        call_args = [
            self._w3.to_checksum_address(a) if isinstance(a, str) and is_hex_address(a) else a
            for a in args
        ]
        fn = getattr(contract.functions, fn_name)(*call_args)
        block_identifier: BlockIdentifier = at_block if at_block is not None else "latest"
        return await self._retry.call(fn.call, block_identifier=block_identifier)

    def subscribe(
        self,
        *,
        role: ContractRole,
        event_kind: EventKind,
        from_block: int | None = None,
    ) -> LogSubscription:
        return PollingLogSubscription(
            client=self,
            role=role,
            event_kind=event_kind,
            poll_interval=self._poll_interval,
            from_block=from_block,
        )

    def _contract(self, role: ContractRole) -> AsyncContract:
        contract = self._contracts.get(role)
        if contract is None:
            info = self._registry.get(role)
            contract = self._w3.eth.contract(
                address=self._w3.to_checksum_address(info.address),
                abi=info.abi,
            )
            self._contracts[role] = contract
        return contract

    async def _block_number(self) -> int:
        return int(await self._w3.eth.block_number)

    async def _chain_id(self) -> int:
        return int(await self._w3.eth.chain_id)


def _as_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


def _to_raw_log(entry: LogReceipt) -> RawLog:
    tx_hash = entry.get("transactionHash")
    # Non-standard log field; some nodes (anvil, recent geth) include it.
    timestamp = entry.get("blockTimestamp")  # type: ignore[misc]
    return RawLog(
        address=str(entry["address"]).lower(),
        topics=tuple(bytes(t) for t in entry["topics"]),
        data=bytes(entry["data"]),
        block_number=_as_int(entry["blockNumber"]),
        log_index=_as_int(entry["logIndex"]),
        transaction_hash=bytes(tx_hash) if tx_hash is not None else None,
        block_timestamp=_as_int(timestamp) if timestamp is not None else None,
    )
