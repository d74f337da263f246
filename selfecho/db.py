from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi_async_sqlalchemy import SQLAlchemyMiddleware, db
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.applications import Starlette

from settings import settings


def init_sqlalchemy(engine: AsyncEngine | None = None) -> None:
    """Bind the global ``db`` session factory outside of a FastAPI app."""
    # A throwaway Starlette app is enough; the middleware configures ``db`` on construction.
    if engine is not None:
        SQLAlchemyMiddleware(Starlette(), custom_engine=engine)
    else:
        SQLAlchemyMiddleware(
            Starlette(), db_url=settings.database.async_url, engine_args=settings.database.engine_args
        )


@asynccontextmanager
async def fastapi_sqlalchemy_context(engine: AsyncEngine | None = None) -> AsyncGenerator[None, None]:
    """Initialize fastapi_async_sqlalchemy for standalone scripts and open a session."""
    init_sqlalchemy(engine)

    async with db():
        yield
