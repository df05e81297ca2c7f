"""Health and readiness endpoints.

  /health (liveness): "is the process alive?"  Always 200; the
    `status` field says "degraded" when a configured backend is
    unreachable, and `checks` says which one.

  /ready (readiness): "can this instance serve registry calls?"
    503 when the backend holding the credential store is down, so the
    load balancer stops routing here without restarting the process.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from app.core.config import SETTINGS
from app.db.engine import engine
from app.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _check_database(),
        "redis": await _check_redis(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {
        "status": overall,
        "store": SETTINGS.store_backend,
        "checks": checks,
    }


@router.get("/ready")
async def ready() -> Response:
    backend = SETTINGS.store_backend
    if backend == "postgres":
        store_status = await _check_database()
    elif backend == "redis":
        store_status = await _check_redis()
    else:
        store_status = "ok"

    if store_status != "ok":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
