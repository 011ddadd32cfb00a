"""
NoteGenius Backend — Health Check Route
=========================================

What:  GET /health for container probes and uptime monitors.
How:   Probes the database with SELECT 1, reports Gemini and identity
       provider readiness without spending generation tokens.

Status levels:
    healthy    database reachable, Gemini and identity provider ready (200)
    degraded   database reachable, Gemini or identity provider not ready (200)
    unhealthy  database unreachable (503)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from notegenius import __version__
from notegenius.config import settings
from notegenius.database import engine
from notegenius.schemas.note import HealthResponse
from notegenius.services.gemini_service import CircuitBreaker, gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


async def _database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Health check: database unreachable: %s", str(e))
        return "disconnected"
    return "connected"


async def _gemini_status() -> str:
    if not settings.gemini_configured:
        return "unconfigured"
    if gemini_service.circuit_breaker.state == CircuitBreaker.OPEN:
        return "circuit_open"
    return "available" if await gemini_service.health_check() else "unavailable"


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(response: Response) -> HealthResponse:
    database = await _database_status()
    gemini = await _gemini_status()
    identity_provider = "configured" if settings.identity_provider_configured else "unconfigured"

    if database != "connected":
        overall = "unhealthy"
        response.status_code = 503
    elif gemini != "available" or identity_provider != "configured":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=database,
        gemini=gemini,
        identity_provider=identity_provider,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
