"""
FastAPI application factory for the selfecho mailbox API.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi_async_sqlalchemy import SQLAlchemyMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from selfecho.api.health import router as health_router
from selfecho.api.middlewares.auto_commit import AutoCommitMiddleware
from selfecho.api.routes import api_router
from selfecho.container import ApplicationContainer
from selfecho.exceptions import BaseError, ErrorType
from settings import settings

logger = logging.getLogger(__name__)


def _setup_error_handlers(app: FastAPI) -> None:
    """Setup FastAPI exception handlers."""

    @app.exception_handler(HTTPException)
    async def handle_http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code or 400, content={"error": exc.detail})

    @app.exception_handler(BaseError)
    async def handle_app_error(request: Request, exc: BaseError) -> JSONResponse:
        if exc.status_code >= 400 and exc.status_code < 500:
            logger.warning(f"A user-related (HTTP 4xx) error occurred; {exc}", extra=exc.extra)
        else:
            logger.exception(f"An app exception occurred; {exc}", exc_info=exc, extra=exc.extra)

        return JSONResponse(
            status_code=exc.status_code, content={"error": exc.error_type.value, "error_description": exc.message}
        )

    @app.exception_handler(Exception)
    async def handle_generic_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"An unhandled exception occurred; error: {exc}", exc_info=exc)

        return JSONResponse(status_code=500, content={"error": ErrorType.UNHANDLED_EXCEPTION.value})


def create_app(container: ApplicationContainer, engine: AsyncEngine | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``engine`` replaces the engine built from DATABASE_URL; tests pass one bound
    to a temporary SQLite file.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.started_at = time.monotonic()
        yield
        await container.controllers.mailbox_controller().shutdown()

    app = FastAPI(
        title="selfecho API",
        description="Mailbox sync and cache backend",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container
    app.state.started_at = time.monotonic()

    _setup_error_handlers(app)

    # Added first so it runs inside the session opened by SQLAlchemyMiddleware.
    app.add_middleware(AutoCommitMiddleware)

    if engine is not None:
        app.add_middleware(SQLAlchemyMiddleware, custom_engine=engine)
    else:
        app.add_middleware(
            SQLAlchemyMiddleware, db_url=settings.database.async_url, engine_args=settings.database.engine_args
        )

    app.include_router(api_router, prefix="/api")
    app.include_router(health_router)

    return app
