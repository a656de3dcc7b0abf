"""
StripBooth Backend — Health Check Route
========================================

What:  Liveness/readiness probe for the booth's process supervisor.
How:   SELECT 1 against the database and a writability check on the
       blob store root. Database down → unhealthy (503); storage root not
       writable → degraded (200, uploads will fail but the cashier screens
       still work).
"""

import logging
import os
import time

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from stripbooth import __version__
from stripbooth.database import engine
from stripbooth.schemas.common import HealthResponse
from stripbooth.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    storage_status = "writable"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    if not os.access(storage_service.storage_root, os.W_OK):
        storage_status = "unavailable"
        if overall == "healthy":
            overall = "degraded"
        logger.warning("Health check: storage root %s not writable", storage_service.storage_root)

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
