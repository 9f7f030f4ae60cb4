from __future__ import annotations

from sqlalchemy import (
    JSON,
    BigInteger,
    Index,
    Integer,
    LargeBinary,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from chain_equity_indexer.app.infrastructure.db.db_base import BaseDB


class RawEventsDB(BaseDB):
    """
    Append-only log of every on-chain event the indexer has accepted.

    One row per (block_number, log_index): this pair is the natural key of a
    log regardless of which contract emitted it. Rows are never updated or
    deleted; derived tables can be rebuilt by replaying this one.
    """

    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("block_number", "log_index", name="uq_events_block_log"),
        Index("ix_events_type_block", "event_type", "block_number"),
        Index("ix_events_contract_block", "contract_address", "block_number"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    """ABI event name, e.g. "Transfer"."""
    event_type: Mapped[str] = mapped_column(Text, nullable=False)

    """Emitting contract address (lowercase 0x-hex)."""
    contract_address: Mapped[str] = mapped_column(Text, nullable=False)

    """Raw topics as a JSON list of 0x-hex strings."""
    topics: Mapped[list[str]] = mapped_column(JSON, nullable=False)

    """ABI-encoded non-indexed args."""
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    """Unix timestamp of the block; not every endpoint provides it."""
    block_timestamp: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    tx_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
