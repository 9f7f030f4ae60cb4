from __future__ import annotations

from sqlalchemy import BigInteger, Integer, LargeBinary, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from chain_equity_indexer.app.infrastructure.db.db_base import BaseDB


class CorporateActionsDB(BaseDB):
    """
    Structural events (split, symbol change, token replacement, ...)
    recorded by the CapTable contract, with their opaque payload.
    """

    __tablename__ = "corporate_actions"
    __table_args__ = (
        UniqueConstraint("block_number", "log_index", name="uq_corporate_actions_block_log"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    """On-chain id of the action as a decimal string."""
    action_id: Mapped[str] = mapped_column(Text, nullable=False)

    action_type: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_timestamp: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
