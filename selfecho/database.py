import logging

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from selfecho.models import Base
from settings import settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns an async engine for schema management outside of Alembic."""

    _engine: AsyncEngine | None

    def __init__(self) -> None:
        self._engine = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call init_db() first.")
        return self._engine

    def init_db(self, database_url: str | None = None) -> AsyncEngine:
        """Create the engine; DATABASE_URL (or host + name) is used when no URL is given."""
        if self._engine is not None:
            return self._engine

        url = database_url or settings.database.async_url
        engine_args = {} if url.startswith("sqlite") else settings.database.engine_args
        self._engine = create_async_engine(url, **engine_args)
        logger.info("Database engine initialized")
        return self._engine

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")


    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Database engine closed")
