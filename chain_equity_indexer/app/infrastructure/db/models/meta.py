from __future__ import annotations

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from chain_equity_indexer.app.infrastructure.db.db_base import BaseDB


class MetaDB(BaseDB):
    """Key/value indexer metadata (last_indexed_block, indexer_version)."""

    __tablename__ = "meta"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
