from __future__ import annotations

from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine
from web3 import AsyncHTTPProvider, AsyncWeb3

from chain_equity_indexer.app.application.services.indexer import EquityIndexer, IndexerOptions
from chain_equity_indexer.app.config import Settings, settings
from chain_equity_indexer.app.infrastructure.chain.retry import RetryPolicy
from chain_equity_indexer.app.infrastructure.chain.web3_chain_client import Web3ChainClient
from chain_equity_indexer.app.infrastructure.decoders.chain_equity.chain_equity_decoder import (
    ChainEquityEventDecoder,
)
from chain_equity_indexer.app.registry.deployments import contract_registry_from_settings

EquityIndexerFactory = Callable[[AsyncEngine, Settings], EquityIndexer]

_EQUITY_INDEXER_REGISTRY: Dict[str, EquityIndexerFactory] = {}


def indexer_options_from_settings(cfg: Settings) -> IndexerOptions:
    return IndexerOptions(
        start_block=cfg.start_block,
        confirmation_blocks=cfg.confirmation_blocks,
        batch_size=cfg.batch_size,
        checkpoint_interval=cfg.checkpoint_interval_seconds,
        indexer_version=cfg.indexer_version,
    )


def make_web3_chain_client(cfg: Settings) -> Web3ChainClient:
    """
    Wire the chain side:
    - contract registry (addresses from env or deployments export, bundled ABIs)
    - AsyncWeb3 HTTP provider
    - retry policy for every RPC call
    """
    registry = contract_registry_from_settings(cfg)
    w3 = AsyncWeb3(
        AsyncHTTPProvider(
            cfg.rpc_url,
            request_kwargs={"timeout": cfg.rpc_timeout_seconds},
        )
    )
    return Web3ChainClient(
        w3=w3,
        registry=registry,
        retry_policy=RetryPolicy(
            max_attempts=cfg.rpc_max_attempts,
            base_delay=cfg.rpc_retry_base_delay,
        ),
        poll_interval=cfg.poll_interval_seconds,
    )


def _make_web3_indexer(engine: AsyncEngine, cfg: Settings) -> EquityIndexer:
    chain = make_web3_chain_client(cfg)
    decoder = ChainEquityEventDecoder(registry=chain.registry)
    return EquityIndexer(
        engine=engine,
        chain=chain,
        decoder=decoder,
        options=indexer_options_from_settings(cfg),
    )


# Register backends
_EQUITY_INDEXER_REGISTRY["web3"] = _make_web3_indexer


def equity_indexer_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    cfg: Settings = settings,
) -> EquityIndexer:
    """
    Create an equity indexer for the given chain backend.

    The factory wires:
    - the chain client adapter (AsyncWeb3 + retry policy),
    - the ABI-based CapTable / ChainEquityToken decoder,
    - the SQLAlchemy stores behind the indexer controller.
    """
    try:
        factory = _EQUITY_INDEXER_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported equity indexer backend: {backend!r}")

    return factory(engine, cfg)
