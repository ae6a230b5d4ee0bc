"""
Worker pool — claims PENDING jobs and runs them on the event loop.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                    WorkerPool                            │
    │                                                         │
    │  Claim loop (one asyncio task)                          │
    │  ┌───────────────────────────┐                          │
    │  │ semaphore.acquire()       │  ← waits while N jobs    │
    │  │ claim_next_pending()      │    are already running   │
    │  └──────────┬────────────────┘                          │
    │             │ create_task()                              │
    │             ▼                                            │
    │  ┌──────────────────────────────────────────┐           │
    │  │ JobExecutor.execute(job_id)  × N          │           │
    │  │  releases the semaphore when it finishes  │           │
    │  └──────────────────────────────────────────┘           │
    └─────────────────────────────────────────────────────────┘

Jobs are I/O bound (waiting on the provider), so they share one event loop
instead of a thread pool. The semaphore (WORKER_CONCURRENCY) is the
backpressure: the loop does not claim a job it has no slot for.

Polling: when a claim finds nothing, the loop sleeps and doubles the sleep
up to WORKER_MAX_POLL_INTERVAL; any successful claim resets it.
"""

import asyncio
import logging
import uuid
from typing import Optional

from config.settings import settings
from models.repository import JobRepository
from worker.executor import JobExecutor

logger = logging.getLogger(__name__)


class WorkerPool:

    def __init__(
        self,
        repository: JobRepository,
        executor: JobExecutor,
        concurrency: Optional[int] = None,
        poll_interval: Optional[float] = None,
        max_poll_interval: Optional[float] = None,
        worker_id: Optional[str] = None,
    ):
        self._repository = repository
        self._executor = executor
        self.concurrency = concurrency or settings.WORKER_CONCURRENCY
        self._poll_interval = poll_interval or settings.WORKER_POLL_INTERVAL
        self._max_poll_interval = max_poll_interval or settings.WORKER_MAX_POLL_INTERVAL
        self.worker_id = worker_id or f"worker-{uuid.uuid4().hex[:8]}"
        self._semaphore = asyncio.Semaphore(self.concurrency)
        self._tasks: set[asyncio.Task] = set()
        self._loop_task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    def start(self) -> None:
        """Start the claim loop on the running event loop."""
        self._running = True
        self._loop_task = asyncio.create_task(self._claim_loop())
        logger.info(f"Worker pool {self.worker_id} started with concurrency {self.concurrency}")

    async def stop(self) -> None:
        """Stop claiming, then wait for in-flight jobs to finish."""
        self._running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info(f"Worker pool {self.worker_id} stopped")

    async def run_once(self) -> Optional[str]:
        """Claim and fully execute at most one job. Returns its id, or None."""
        job_id = await self._repository.claim_next_pending(self.worker_id)
        if job_id is not None:
            await self._executor.execute(job_id)
        return job_id

    async def drain(self) -> int:
        """Run claimed jobs one by one until none are pending. Returns how many ran."""
        count = 0
        while await self.run_once() is not None:
            count += 1
        return count

    async def _claim_loop(self) -> None:
        interval = self._poll_interval
        while self._running:
            await self._semaphore.acquire()
            try:
                job_id = await self._repository.claim_next_pending(self.worker_id)
            except Exception as e:
                logger.error(f"Claim error: {e}", exc_info=True)
                job_id = None

            if job_id is None:
                self._semaphore.release()
                await asyncio.sleep(interval)
                interval = min(interval * 2, self._max_poll_interval)
                continue

            interval = self._poll_interval
            logger.debug(f"Claimed job {job_id}")
            task = asyncio.create_task(self._execute(job_id))
            self._tasks.add(task)
            task.add_done_callback(self._on_job_done)

    async def _execute(self, job_id: str) -> None:
        try:
            await self._executor.execute(job_id)
        finally:
            self._semaphore.release()

    def _on_job_done(self, task: asyncio.Task) -> None:
        """
        Fired when a job task finishes. Only logs unexpected exceptions: all
        normal success/failure handling happens inside JobExecutor.execute().
        """
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error(f"Unhandled worker exception: {exc}")
