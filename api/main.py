"""
FastAPI application factory.

This file:
1. Creates the FastAPI app
2. Builds the services (init_services — the composition root)
3. Registers all routers (jobs, metrics, providers, worker, health)
4. Runs startup/shutdown logic (tables, Redis, in-process worker pool)

The `lifespan` context manager is FastAPI's way of handling startup/shutdown.

To run:  uvicorn api.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from redis.asyncio import Redis as AsyncRedis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.routers import health, jobs, metrics, providers, worker
from config.settings import settings
from metrics.builtin import register_builtin_metrics
from metrics.cache import MetricsCache
from metrics.evaluator import MetricsEvaluator
from metrics.registry import MetricRegistry
from models.base import AsyncSessionLocal, Base, async_engine
from models.repository import JobRepository
from streaming.bus import JobEventBus
from streaming.cancellation import CancellationRegistry
from worker.executor import JobExecutor
from worker.pool import WorkerPool

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def init_services(
    app: FastAPI,
    session_factory: async_sessionmaker[AsyncSession],
    redis_client: Optional[AsyncRedis],
) -> None:
    """
    Build every long-lived object once and hang it on app.state.

    The registries are plain instances, not module globals, so each app (and
    each test) gets its own.
    """
    metric_registry = register_builtin_metrics(MetricRegistry())
    cache = MetricsCache() if settings.METRICS_CACHE_ENABLED else None
    evaluator = MetricsEvaluator(metric_registry, cache)
    repository = JobRepository(session_factory)
    bus = JobEventBus()
    cancellations = CancellationRegistry()

    app.state.session_factory = session_factory
    app.state.redis = redis_client
    app.state.repository = repository
    app.state.bus = bus
    app.state.cancellations = cancellations
    app.state.metric_registry = metric_registry
    app.state.metrics_cache = cache
    app.state.evaluator = evaluator
    app.state.executor = JobExecutor(repository, bus, cancellations, evaluator, redis_client)
    app.state.worker_pool = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Runs on startup (before yield) and shutdown (after yield).

    Startup:
    - Creates all DB tables if they don't exist (safe to run multiple times)
    - Connects to Redis and builds the services
    - Starts the worker pool in this process when WORKER_ENABLED

    Shutdown:
    - Stops the worker pool (in-flight jobs finish first)
    - Closes Redis, disposes the DB engine
    """
    # ── Startup ─────────────────────────────────────────────────
    logger.info("Creating database tables...")
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    init_services(app, AsyncSessionLocal, AsyncRedis.from_url(settings.redis_url))

    if settings.WORKER_ENABLED:
        app.state.worker_pool = WorkerPool(app.state.repository, app.state.executor)
        app.state.worker_pool.start()
    logger.info(f"API ready — in-process worker: {settings.WORKER_ENABLED}")

    yield  # app is running and serving requests between startup and shutdown

    # ── Shutdown ────────────────────────────────────────────────
    if app.state.worker_pool is not None:
        await app.state.worker_pool.stop()
    await app.state.redis.close()
    await async_engine.dispose()
    logger.info("API shut down")


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    app = FastAPI(
        title="Prompt Lab",
        description="Run LLM prompts against pluggable providers, stream the output, and score it with text metrics",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Each router adds its endpoints to the app
    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(metrics.router)
    app.include_router(providers.router)
    app.include_router(worker.router)

    return app


# This is what uvicorn imports: `uvicorn api.main:app`
app = create_app()
