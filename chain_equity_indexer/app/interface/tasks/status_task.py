from __future__ import annotations

import logging

from chain_equity_indexer.app.infrastructure.adapters.storage.queries import (
    IndexerStatus,
    get_indexer_status,
)
from chain_equity_indexer.app.infrastructure.db.engine import create_app_async_engine

logger = logging.getLogger(__name__)


async def status_task() -> IndexerStatus:
    """Task: report checkpoint, indexer version and row counts per table."""
    engine = create_app_async_engine()
    try:
        async with engine.connect() as conn:
            status = await get_indexer_status(conn)
    finally:
        await engine.dispose()

    logger.info(
        "last_indexed_block=%s version=%s events=%s transactions=%s corporate_actions=%s shareholders=%s",
        status.last_indexed_block,
        status.indexer_version,
        status.events,
        status.transactions,
        status.corporate_actions,
        status.shareholders,
    )
    return status
