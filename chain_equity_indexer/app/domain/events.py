from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final, Iterable


ZERO_ADDRESS: Final[str] = "0x0000000000000000000000000000000000000000"

# Fixed-point base of the token's splitFactor (1.0x == 1e18).
SCALE: Final[int] = 10**18


class ContractRole(str, Enum):
    """Role of an emitting contract within the cap-table system."""

    CAP_TABLE = "capTable"
    TOKEN = "token"


class EventKind(str, Enum):
    """
    Known event kinds. The value is the ABI event name.
    """

    TOKEN_LINKED = "TokenLinked"
    ISSUED = "Issued"
    TRANSFER = "Transfer"
    SPLIT_EXECUTED = "SplitExecuted"
    CORPORATE_ACTION_RECORDED = "CorporateActionRecorded"


class TransactionKind(str, Enum):
    ISSUED = "ISSUED"
    TRANSFER = "TRANSFER"


# (contract role, event kind) pairs the indexer queries and subscribes to.
EVENTS_OF_INTEREST: Final[tuple[tuple[ContractRole, EventKind], ...]] = (
    (ContractRole.TOKEN, EventKind.ISSUED),
    (ContractRole.TOKEN, EventKind.TRANSFER),
    (ContractRole.TOKEN, EventKind.SPLIT_EXECUTED),
    (ContractRole.CAP_TABLE, EventKind.TOKEN_LINKED),
    (ContractRole.CAP_TABLE, EventKind.CORPORATE_ACTION_RECORDED),
)


@dataclass(frozen=True)
class RawLog:
    """
    A single on-chain log as returned by the chain endpoint.

    (block_number, log_index) is the natural key of the log, independent of
    which contract emitted it.
    """

    address: str
    topics: tuple[bytes, ...]
    data: bytes
    block_number: int
    log_index: int
    transaction_hash: bytes | None = None
    block_timestamp: int | None = None

    @property
    def key(self) -> tuple[int, int]:
        return self.block_number, self.log_index

    @property
    def topic0(self) -> bytes | None:
        return self.topics[0] if self.topics else None


# ---------------------------------------------------------------------------
# Decoded event variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenLinked:
    cap_table: str
    token: str


@dataclass(frozen=True)
class Issued:
    to: str
    amount: int


@dataclass(frozen=True)
class Transfer:
    sender: str
    recipient: str
    value: int


@dataclass(frozen=True)
class SplitExecuted:
    old_factor: int
    new_factor: int
    block_number: int


@dataclass(frozen=True)
class CorporateActionRecorded:
    action_id: int
    action_type: str
    block_number: int


DecodedEvent = TokenLinked | Issued | Transfer | SplitExecuted | CorporateActionRecorded


@dataclass(frozen=True)
class ClassifiedLog:
    """A raw log paired with its emitting role, kind and decoded payload."""

    log: RawLog
    role: ContractRole
    kind: EventKind
    event: DecodedEvent


@dataclass(frozen=True)
class CorporateActionRecord:
    """Full corporate action as returned by CapTable.getCorporateAction."""

    action_id: int
    action_type: str
    data: bytes
    block_number: int
    timestamp: int


def sort_logs(logs: Iterable[RawLog]) -> list[RawLog]:
    """Canonical application order: block number, then log index."""
    return sorted(logs, key=lambda log: (log.block_number, log.log_index))


def effective_balance(balance: int, multiplier: int) -> int:
    # Integer-only; never route through float.
    return balance * multiplier // SCALE
