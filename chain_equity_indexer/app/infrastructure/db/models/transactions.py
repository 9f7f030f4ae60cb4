from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from chain_equity_indexer.app.infrastructure.db.db_base import BaseDB


class TransactionsDB(BaseDB):
    """
    Equity movements projected from Issued / Transfer events.

    Amounts are arbitrary-precision integers stored as decimal strings.
    from_address is NULL for issuance (mint from nothing).
    """

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("block_number", "log_index", name="uq_transactions_block_log"),
        Index("ix_transactions_from", "from_address"),
        Index("ix_transactions_to", "to_address"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    tx_hash: Mapped[str] = mapped_column(Text, nullable=False)
    from_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    to_address: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[str] = mapped_column(Text, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_timestamp: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # ISSUED | TRANSFER
    event_type: Mapped[str] = mapped_column(Text, nullable=False)
