"""
Worker process entry point.

The API process can run the claim loop itself (WORKER_ENABLED). For more
throughput, run one or more SEPARATE worker processes against the same
database instead:

    python -m worker.main

Each process builds its own event bus and cancellation registry. Events
published here only reach subscribers in this process, and a cancel request
made through another process's API reaches this worker through the job's
cancel_requested column (checked on every poll for running jobs).

Stops on Ctrl+C (SIGINT) or SIGTERM after in-flight jobs finish.
"""

import asyncio
import logging
import signal

from redis.asyncio import Redis

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


async def sync_cancellations_once(
    repository: JobRepository,
    cancellations: CancellationRegistry,
    worker_id: str,
) -> None:
    """
    Mirror cancel_requested flags of this worker's jobs into the local registry.

    Ids that dropped out of the poll (finished, or claimed elsewhere after a
    retry) are removed, so the registry only ever holds live requests.
    """
    requested = set(await repository.cancel_requested_ids(worker_id))
    for job_id in requested:
        cancellations.cancel_job(job_id)
    for job_id in cancellations.job_ids() - requested:
        cancellations.remove_job(job_id)


async def sync_cancellations(
    repository: JobRepository,
    cancellations: CancellationRegistry,
    worker_id: str,
    interval: float,
) -> None:
    while True:
        try:
            await sync_cancellations_once(repository, cancellations, worker_id)
        except Exception as e:
            logger.error(f"Cancellation sync error: {e}")
        await asyncio.sleep(interval)


async def run() -> None:
    # Safe to call multiple times; the API may have created the tables already
    logger.info("Ensuring database tables exist...")
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    redis_client = Redis.from_url(settings.redis_url)
    repository = JobRepository(AsyncSessionLocal)
    cancellations = CancellationRegistry()
    cache = MetricsCache() if settings.METRICS_CACHE_ENABLED else None
    evaluator = MetricsEvaluator(register_builtin_metrics(MetricRegistry()), cache)
    executor = JobExecutor(repository, JobEventBus(), cancellations, evaluator, redis_client)

    pool = WorkerPool(repository, executor)
    pool.start()
    watcher = asyncio.create_task(
        sync_cancellations(repository, cancellations, pool.worker_id, settings.WORKER_POLL_INTERVAL)
    )

    # ── Graceful shutdown on Ctrl+C or SIGTERM ──────────────────
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_event.set)

    logger.info("Worker process running. Press Ctrl+C to stop.")
    await shutdown_event.wait()

    logger.info("Shutdown signal received, stopping...")
    watcher.cancel()
    await pool.stop()
    await redis_client.close()
    await async_engine.dispose()
    logger.info("Worker process exited")


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
