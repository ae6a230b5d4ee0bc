"""
Health check endpoint.

    GET /health → 200 {"status": "healthy",   "database": "ok", "redis": "ok", "worker": ...}
                  503 {"status": "unhealthy", "database": "error: ...", ...}

Every dependency is checked even when an earlier one fails, so one response
shows everything that is down. "worker" is informational only: "running"
for an in-process pool, "external" when jobs are run by `python -m worker.main`.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, get_redis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
) -> JSONResponse:
    checks = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check: database unreachable: {e}")
        checks["database"] = f"error: {e.__class__.__name__}"

    try:
        await redis.ping()
        checks["redis"] = "ok"
    except RedisError as e:
        logger.error(f"Health check: redis unreachable: {e}")
        checks["redis"] = f"error: {e.__class__.__name__}"

    pool = request.app.state.worker_pool
    checks["worker"] = "running" if pool is not None and pool.running else "external"

    healthy = checks["database"] == "ok" and checks["redis"] == "ok"
    return JSONResponse(
        {"status": "healthy" if healthy else "unhealthy", **checks},
        status_code=200 if healthy else 503,
    )
