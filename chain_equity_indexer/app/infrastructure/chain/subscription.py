from __future__ import annotations

import asyncio
import logging

from chain_equity_indexer.app.domain.events import ContractRole, EventKind, RawLog, sort_logs
from chain_equity_indexer.app.domain.ports.out import ChainClient, LogSubscription

logger = logging.getLogger(__name__)


class PollingLogSubscription(LogSubscription):
    """
    Log subscription over plain HTTP: polls the head and fetches new logs
    for one (contract, event kind) pair.

    Starts at `from_block` when given, otherwise at the head observed on the
    first poll ("from now"). Only non-empty batches are yielded. Chain errors
    while polling are logged and polling continues.
    """

    def __init__(
        self,
        *,
        client: ChainClient,
        role: ContractRole,
        event_kind: EventKind,
        poll_interval: float,
        from_block: int | None = None,
    ) -> None:
        self._client = client
        self._role = role
        self._event_kind = event_kind
        self._poll_interval = poll_interval
        self._next_block = from_block
        self._closed = asyncio.Event()

    def __aiter__(self) -> "PollingLogSubscription":
        return self

    async def __anext__(self) -> list[RawLog]:
        while not self._closed.is_set():
            try:
                logs = await self._poll()
            except Exception:
                logger.exception(
                    "Polling %s.%s failed; retrying in %ss",
                    self._role.value,
                    self._event_kind.value,
                    self._poll_interval,
                )
                logs = []

            if logs and not self._closed.is_set():
                return logs
            await self._wait()

        raise StopAsyncIteration

    async def aclose(self) -> None:
        self._closed.set()

    async def _poll(self) -> list[RawLog]:
        head = await self._client.get_current_head()
        if self._next_block is None:
            self._next_block = head + 1
            return []
        if head < self._next_block:
            return []

        logs = await self._client.get_logs(
            role=self._role,
            event_kind=self._event_kind,
            from_block=self._next_block,
            to_block=head,
        )
        self._next_block = head + 1
        return sort_logs(logs)

    async def _wait(self) -> None:
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=self._poll_interval)
        except asyncio.TimeoutError:
            pass
