import logging
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi_async_sqlalchemy import db
from fastapi_async_sqlalchemy.exceptions import MissingSessionError
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class AutoCommitMiddleware(BaseHTTPMiddleware):
    """Commits the request session after the handler returns, rolls it back if the handler raises.

    Controllers that need their writes visible earlier (the sync engine, account
    registration) commit explicitly; this catches everything else.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        try:
            response = await call_next(request)
        except Exception as e:
            await self._finish(commit=False, reason=str(e))
            raise

        if response.status_code >= 400:
            await self._finish(commit=False, reason=f"HTTP {response.status_code}")
        else:
            await self._finish(commit=True)
        return response

    async def _finish(self, commit: bool, reason: str = "") -> None:
        try:
            session = db.session
        except MissingSessionError:
            logger.debug("No database session found for request")
            return

        try:
            if commit:
                await session.commit()
                logger.debug("Request transaction committed")
            else:
                await session.rollback()
                logger.debug(f"Request transaction rolled back; {reason}")
        except Exception as e:
            logger.warning(f"Failed to finish request transaction: {e}")
