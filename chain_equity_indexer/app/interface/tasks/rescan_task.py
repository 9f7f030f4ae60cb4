from __future__ import annotations

import logging
from typing import Literal

from chain_equity_indexer.app.infrastructure.db.engine import create_app_async_engine
from chain_equity_indexer.app.infrastructure.factories.equity_indexer_factory import (
    equity_indexer_factory,
)

logger = logging.getLogger(__name__)

_LATEST: Literal["latest"] = "latest"


def _parse_to_block(to_block: int | str | None) -> int | None:
    """None / "" / "latest" mean: up to the confirmation-safe head."""
    if to_block is None or isinstance(to_block, int):
        return to_block
    tb_str = to_block.strip().lower()
    if tb_str in ("", _LATEST):
        return None
    return int(tb_str)


async def rescan_task(
    *,
    from_block: int | str,
    to_block: int | str | None = None,
    backend: str = "web3",
) -> None:
    """
    Task: operator-triggered backfill over [from_block, to_block].

    Replays are idempotent; the checkpoint is only moved forward.
    """
    engine = create_app_async_engine()
    try:
        indexer = equity_indexer_factory(backend=backend, engine=engine)
        result = await indexer.rescan(int(from_block), _parse_to_block(to_block))
        logger.info(
            "Rescan finished",
            extra={
                "from_block": result.from_block,
                "to_block": result.to_block,
                "logs": result.logs,
                "batches": result.batches,
            },
        )
    finally:
        await engine.dispose()
