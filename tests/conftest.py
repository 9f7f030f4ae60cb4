from __future__ import annotations

import logging
from typing import Any, AsyncIterator

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from chain_equity_indexer.app.application.services.indexer import EquityIndexer, IndexerOptions
from chain_equity_indexer.app.infrastructure.db import models  # noqa: F401
from chain_equity_indexer.app.infrastructure.db.db_base import BaseDB
from chain_equity_indexer.app.infrastructure.decoders.chain_equity.chain_equity_decoder import (
    ChainEquityEventDecoder,
)
from chain_equity_indexer.app.registry.contracts import ContractRegistry
from tests.fakes import CAP_TABLE, TOKEN, FakeChainClient, LogBuilder


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'indexer.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(BaseDB.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def registry() -> ContractRegistry:
    return ContractRegistry.from_addresses(cap_table_address=CAP_TABLE, token_address=TOKEN)


@pytest.fixture
def chain(registry: ContractRegistry) -> FakeChainClient:
    return FakeChainClient(registry=registry)


@pytest.fixture
def logs(registry: ContractRegistry) -> LogBuilder:
    return LogBuilder(registry)


@pytest.fixture
def decoder(registry: ContractRegistry) -> ChainEquityEventDecoder:
    return ChainEquityEventDecoder(registry=registry)


@pytest.fixture
def options() -> IndexerOptions:
    # Long interval: tests drive checkpoint syncs explicitly.
    return IndexerOptions(
        start_block=0,
        confirmation_blocks=3,
        batch_size=100,
        checkpoint_interval=3600.0,
        indexer_version="1.0.0-test",
    )


@pytest.fixture
async def indexer(
    engine: AsyncEngine,
    chain: FakeChainClient,
    decoder: ChainEquityEventDecoder,
    options: IndexerOptions,
) -> AsyncIterator[EquityIndexer]:
    indexer = EquityIndexer(engine=engine, chain=chain, decoder=decoder, options=options)
    yield indexer
    await indexer.stop()


@pytest.fixture
def count_rows(engine: AsyncEngine):
    async def _count(model: Any) -> int:
        async with engine.connect() as conn:
            result = await conn.execute(select(func.count()).select_from(model))
            return int(result.scalar_one())

    return _count


@pytest.fixture(autouse=True)
def _quiet_sqlalchemy() -> None:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
