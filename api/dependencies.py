"""
FastAPI dependency injection.

How this works:
- An endpoint declares `repository: JobRepository = Depends(get_repository)`
- FastAPI calls get_repository() before your endpoint runs
- Your endpoint receives the object and uses it

Every service lives on app.state, put there once by init_services() in
api/main.py (the composition root). Tests call init_services() with an
in-memory database and fakeredis, so the endpoints never know the difference.
"""

from typing import AsyncGenerator, Optional

from fastapi import Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from metrics.evaluator import MetricsEvaluator
from metrics.registry import MetricRegistry
from models.repository import JobRepository
from streaming.bus import JobEventBus
from streaming.cancellation import CancellationRegistry
from worker.pool import WorkerPool


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yields an async database session, auto-closes when the request ends."""
    async with request.app.state.session_factory() as session:
        yield session


async def get_redis(request: Request) -> Redis:
    """Returns the Redis client stored on the app during startup."""
    return request.app.state.redis


def get_repository(request: Request) -> JobRepository:
    return request.app.state.repository


def get_bus(request: Request) -> JobEventBus:
    return request.app.state.bus


def get_cancellations(request: Request) -> CancellationRegistry:
    return request.app.state.cancellations


def get_worker_pool(request: Request) -> Optional[WorkerPool]:
    """The in-process pool, or None when jobs run in separate worker processes."""
    return request.app.state.worker_pool


def get_metric_registry(request: Request) -> MetricRegistry:
    return request.app.state.metric_registry


def get_evaluator(request: Request) -> MetricsEvaluator:
    return request.app.state.evaluator
