"""
Cooperative cancellation.

CancellationRegistry is the process-wide record of "job X has been asked to
stop". Membership only means *should stop at the next checkpoint*, never
*has stopped*. The executor removes the id once the job reaches a terminal
state, so ids don't accumulate.

The executor does not reach into the registry directly: it receives a
CancellationToken for its job and checks `token.cancelled` at every
checkpoint, or awaits `token.wait()` to race a slow provider call.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class CancellationRegistry:

    def __init__(self):
        self._cancelled: set[str] = set()
        self._events: dict[str, asyncio.Event] = {}

    def cancel_job(self, job_id: str) -> None:
        """Flag a job for cancellation. Repeated calls are no-ops."""
        if job_id in self._cancelled:
            return
        self._cancelled.add(job_id)
        event = self._events.get(job_id)
        if event is not None:
            event.set()
        logger.info(f"Cancellation requested for job {job_id}")

    def is_job_cancelled(self, job_id: str) -> bool:
        return job_id in self._cancelled

    def remove_job(self, job_id: str) -> None:
        self._cancelled.discard(job_id)
        self._events.pop(job_id, None)

    def job_ids(self) -> set[str]:
        return set(self._cancelled)

    def token(self, job_id: str) -> "CancellationToken":
        return CancellationToken(self, job_id)

    def _event_for(self, job_id: str) -> asyncio.Event:
        event = self._events.get(job_id)
        if event is None:
            event = asyncio.Event()
            if job_id in self._cancelled:
                event.set()
            self._events[job_id] = event
        return event

    def __len__(self) -> int:
        return len(self._cancelled)


class CancellationToken:
    """One job's view of the registry, passed down the execution call chain."""

    def __init__(self, registry: CancellationRegistry, job_id: str):
        self._registry = registry
        self.job_id = job_id

    @property
    def cancelled(self) -> bool:
        return self._registry.is_job_cancelled(self.job_id)

    async def wait(self) -> None:
        """Return once cancellation has been requested."""
        await self._registry._event_for(self.job_id).wait()
