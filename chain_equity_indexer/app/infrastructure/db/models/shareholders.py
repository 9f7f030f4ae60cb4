from __future__ import annotations

from sqlalchemy import BigInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from chain_equity_indexer.app.infrastructure.db.db_base import BaseDB


class ShareholdersDB(BaseDB):
    """
    Current balance per holder address.

    effective_balance == balance * splitFactor // 10**18 at all times.
    Rows are kept when the balance drops to zero.
    """

    __tablename__ = "shareholders"

    address: Mapped[str] = mapped_column(Text, primary_key=True)
    balance: Mapped[str] = mapped_column(Text, nullable=False)
    effective_balance: Mapped[str] = mapped_column(Text, nullable=False)
    last_updated_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
