"""
Reference-counted connection sharing.

Several consumers of the same job's stream (e.g. two UI panels) share one
underlying connection:

    conn = await pool.get_connection(job_id)    # opens on first use
    ...
    await pool.release_connection(job_id)       # closes when the last user leaves
"""

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class ConnectionPool:

    def __init__(self, factory: Callable[[str], Any]):
        self._factory = factory
        self._connections: dict[str, Any] = {}
        self._refcounts: dict[str, int] = {}
        self._opening: dict[str, asyncio.Lock] = {}

    async def get_connection(self, job_id: str):
        # Concurrent first gets for one job wait on the same lock, so only one opens
        lock = self._opening.setdefault(job_id, asyncio.Lock())
        async with lock:
            if job_id not in self._connections:
                connection = self._factory(job_id)
                if inspect.isawaitable(connection):
                    connection = await connection
                self._connections[job_id] = connection
                self._refcounts[job_id] = 0
                logger.debug(f"Opened stream connection for job {job_id}")
            self._refcounts[job_id] += 1
            return self._connections[job_id]

    async def release_connection(self, job_id: str) -> None:
        if job_id not in self._refcounts:
            return
        self._refcounts[job_id] -= 1
        if self._refcounts[job_id] > 0:
            return
        connection = self._connections.pop(job_id)
        del self._refcounts[job_id]
        self._drop_lock(job_id)
        await _close(connection)
        logger.debug(f"Closed stream connection for job {job_id}")

    def refcount(self, job_id: str) -> int:
        return self._refcounts.get(job_id, 0)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._connections

    def _drop_lock(self, job_id: str) -> None:
        lock = self._opening.get(job_id)
        if lock is not None and not lock.locked():
            del self._opening[job_id]

    async def close_all(self) -> None:
        for job_id in list(self._connections):
            connection = self._connections.pop(job_id)
            self._refcounts.pop(job_id, None)
            self._drop_lock(job_id)
            await _close(connection)


async def _close(connection) -> None:
    closer = getattr(connection, "aclose", None) or getattr(connection, "close", None)
    if closer is None:
        return
    result = closer()
    if inspect.isawaitable(result):
        await result
