import logging
import platform
import time

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Request
from fastapi_async_sqlalchemy import db
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from selfecho.api.payloads.health import HealthResponse, ListCacheReport
from selfecho.container import ApplicationContainer
from selfecho.controllers.mailbox.mailbox_controller import MailboxController
from selfecho.utils.list_cache import ListCache

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
@inject
async def health_check(
    request: Request,
    list_cache: ListCache = Depends(Provide[ApplicationContainer.controllers.list_cache]),
    mailbox_controller: MailboxController = Depends(Provide[ApplicationContainer.controllers.mailbox_controller]),
) -> HealthResponse:
    status = "ok"
    latency_ms: float | None = None
    started = time.perf_counter()
    try:
        await db.session.execute(text("SELECT 1"))
        latency_ms = round((time.perf_counter() - started) * 1000, 3)
    except SQLAlchemyError as e:
        logger.warning(f"Health check database probe failed: {e}")
        status = "degraded"

    cache_stats = list_cache.stats()
    return HealthResponse(
        status=status,
        uptime_seconds=round(time.monotonic() - request.app.state.started_at, 3),
        database_latency_ms=latency_ms,
        list_cache=ListCacheReport(
            entries=cache_stats.entries,
            hits=cache_stats.hits,
            misses=cache_stats.misses,
            hit_rate=cache_stats.hit_rate,
            ttl_seconds=cache_stats.ttl_seconds,
        ),
        background_refreshes=mailbox_controller.stats()["background_refreshes"],
        python_version=platform.python_version(),
    )
