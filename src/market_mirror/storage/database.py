"""Store handle for the log processors.

One decoded log is one unit of work: ``MirrorStore.unit_of_work`` yields an
``AsyncSession`` that commits when the log was processed and rolls back if
its handler raised.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from market_mirror.storage.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from market_mirror.config import DatabaseSettings

logger = logging.getLogger(__name__)

_SYNC_POSTGRES = "postgresql://"
_ASYNC_POSTGRES = "postgresql+asyncpg://"


def normalize_async_database_url(database_url: str) -> str:
    """Rewrite a plain ``postgresql://`` URL to use the asyncpg driver."""
    if database_url.startswith(_SYNC_POSTGRES):
        logger.warning("DATABASE_URL has no async driver; switching %s to %s", _SYNC_POSTGRES, _ASYNC_POSTGRES)
        return _ASYNC_POSTGRES + database_url[len(_SYNC_POSTGRES) :]
    return database_url


class MirrorStore:
    """Owns the async engine the processors write through.

    Example:
        ```python
        store = MirrorStore.from_settings(get_settings().database)
        await router.dispatch(store, Direction.APPLY, "TokensTransferred", log)
        await store.dispose()
        ```
    """

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ) -> None:
        self.database_url = normalize_async_database_url(database_url)
        engine_options: dict[str, Any] = {"echo": echo}
        # SQLite uses a static/singleton pool that rejects sizing options.
        if not self.database_url.startswith("sqlite"):
            engine_options.update(pool_size=pool_size, max_overflow=max_overflow)
        self._engine_options = engine_options
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: DatabaseSettings, *, echo: bool = False) -> MirrorStore:
        return cls(settings.url, echo=echo)

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.database_url, **self._engine_options)
            self._sessions = async_sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._engine

    def _session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._sessions is None:
            self._sessions = async_sessionmaker(bind=self.engine, expire_on_commit=False)
        return self._sessions

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """Session for processing one log; committed on success, rolled back on error."""
        async with self._session_factory()() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_schema(self) -> None:
        """Create every mirrored table. Deployed databases are migrated with alembic instead."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Created mirror schema (%d tables)", len(Base.metadata.tables))

    async def dispose(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None
        logger.info("Mirror store connections closed")
