from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from chain_equity_indexer.app.config import settings
from chain_equity_indexer.app.infrastructure.db.engine import create_app_async_engine
from chain_equity_indexer.app.infrastructure.factories.equity_indexer_factory import (
    equity_indexer_factory,
)

logger = logging.getLogger(__name__)


async def start_indexer_task(
    *,
    backend: str = "web3",
) -> None:
    """
    Task: catch up to the confirmation-safe head, then follow new events
    until SIGINT / SIGTERM.

    Raises CatchUpError when the initial catch-up fails.
    """
    engine = create_app_async_engine()
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform (e.g. Windows event loops).
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    try:
        indexer = equity_indexer_factory(backend=backend, engine=engine)
        await indexer.chain.check_connection(expected_chain_id=settings.chain_id)

        logger.info(
            "Starting indexer",
            extra={"chain_id": settings.chain_id, "start_block": settings.start_block},
        )
        await indexer.run_forever(stop_event)
    finally:
        await engine.dispose()
