from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from chain_equity_indexer.app.config import settings


def create_app_async_engine(*, echo: bool = False, url: str | None = None) -> AsyncEngine:
    """
    AsyncEngine shared by the indexer tasks and the alembic env.

    `url` overrides DATABASE_URL; both postgresql+asyncpg:// and
    sqlite+aiosqlite:// are supported by the storage adapters.
    """
    return create_async_engine(
        url or settings.database_url,
        echo=echo,
        pool_pre_ping=True,
    )
