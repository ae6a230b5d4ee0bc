"""
Job persistence — the only code that issues SQL against the jobs table.

The orchestrator, the worker claim loop and the API routers all go through
JobRepository. Each method opens its own short-lived session from the factory,
so callers never share a session across await points.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.enums import ACTIVE_STATUSES, JobStatus
from models.job import Job

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 100


@dataclass
class JobSummary:
    """Row shape for job history lists — no prompt, truncated result."""
    id: str
    status: str
    created_at: datetime
    provider: str
    model: str
    cost_usd: Optional[float]
    avg_score: Optional[float]
    result_snippet: Optional[str]


def _snippet(result: Optional[str]) -> Optional[str]:
    if not result:
        return None
    collapsed = " ".join(result.split())
    if len(collapsed) > SNIPPET_LENGTH:
        return collapsed[:SNIPPET_LENGTH] + "..."
    return collapsed


def _to_summary(job: Job) -> JobSummary:
    avg_score = None
    if isinstance(job.metrics, dict):
        avg_score = job.metrics.get("avg_score")
    return JobSummary(
        id=job.id,
        status=job.status,
        created_at=job.created_at,
        provider=job.provider,
        model=job.model,
        cost_usd=job.cost_usd,
        avg_score=avg_score,
        result_snippet=_snippet(job.result),
    )


class JobRepository:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, **fields: Any) -> Job:
        job = Job(status=JobStatus.PENDING.value, **fields)
        async with self._session_factory() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)
        logger.info(f"Job created: {job.id} [{job.provider}/{job.model}]")
        return job

    async def find_by_id(self, job_id: str) -> Optional[Job]:
        async with self._session_factory() as session:
            return await session.get(Job, job_id)

    async def find_previous(self, job: Job) -> Optional[Job]:
        """The newest job created before `job`, the default comparison for a diff."""
        query = (
            select(Job)
            .where(Job.created_at < job.created_at)
            .order_by(Job.created_at.desc(), Job.id.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            return (await session.execute(query)).scalars().first()

    async def update(self, job_id: str, **fields: Any) -> Optional[Job]:
        """Apply a partial update. Returns None if the job does not exist."""
        async with self._session_factory() as session:
            job = await session.get(Job, job_id)
            if job is None:
                return None
            for name, value in fields.items():
                setattr(job, name, value)
            await session.commit()
            await session.refresh(job)
            return job

    async def list_jobs(
        self,
        provider: Optional[str] = None,
        status: Optional[JobStatus] = None,
        since: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[JobSummary]:
        query = select(Job).where(*self._conditions(provider, status, since))
        query = query.order_by(Job.created_at.desc()).offset(offset).limit(limit)
        async with self._session_factory() as session:
            jobs = (await session.execute(query)).scalars().all()
        return [_to_summary(j) for j in jobs]

    async def count(
        self,
        provider: Optional[str] = None,
        status: Optional[JobStatus] = None,
        since: Optional[datetime] = None,
    ) -> int:
        query = select(func.count(Job.id)).where(*self._conditions(provider, status, since))
        async with self._session_factory() as session:
            return (await session.execute(query)).scalar() or 0

    async def count_by_status(self) -> dict[str, int]:
        """Single GROUP BY query; statuses with no jobs are reported as 0."""
        query = select(Job.status, func.count(Job.id)).group_by(Job.status)
        async with self._session_factory() as session:
            rows = (await session.execute(query)).all()
        counts = {status.value: 0 for status in JobStatus}
        for status, n in rows:
            counts[status] = n
        return counts

    async def delete(self, job_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(delete(Job).where(Job.id == job_id))
            await session.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Job deleted: {job_id}")
        return deleted

    async def claim_next_pending(self, worker_id: str) -> Optional[str]:
        """
        Claim the oldest unclaimed PENDING job for this worker.

        Two steps: pick a candidate, then a conditional UPDATE that only
        succeeds if nobody claimed it in between (compare-and-set on
        status + claimed_at). Returns the claimed job id, or None.
        """
        candidate_query = (
            select(Job.id)
            .where(Job.status == JobStatus.PENDING.value, Job.claimed_at.is_(None))
            .order_by(Job.created_at)
            .limit(1)
        )
        async with self._session_factory() as session:
            job_id = (await session.execute(candidate_query)).scalar_one_or_none()
            if job_id is None:
                return None

            now = datetime.now(timezone.utc)
            result = await session.execute(
                update(Job)
                .where(
                    Job.id == job_id,
                    Job.status == JobStatus.PENDING.value,
                    Job.claimed_at.is_(None),
                )
                .values(worker_id=worker_id, claimed_at=now, updated_at=now)
            )
            await session.commit()

        if result.rowcount == 0:
            return None
        return job_id

    async def cancel_if_unclaimed(self, job_id: str) -> bool:
        """
        PENDING → CANCELLED for a job no worker has claimed yet.

        Same compare-and-set as the claim, so exactly one of "cancelled here"
        and "claimed by a worker" wins. Returns True if this call cancelled it.
        """
        now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            result = await session.execute(
                update(Job)
                .where(
                    Job.id == job_id,
                    Job.status == JobStatus.PENDING.value,
                    Job.claimed_at.is_(None),
                )
                .values(
                    status=JobStatus.CANCELLED.value,
                    cancel_requested=True,
                    completed_at=now,
                    updated_at=now,
                )
            )
            await session.commit()
        cancelled = result.rowcount > 0
        if cancelled:
            logger.info(f"Job {job_id} cancelled before any worker claimed it")
        return cancelled

    async def cancel_requested_ids(self, worker_id: Optional[str] = None) -> list[str]:
        """
        Active jobs whose cancellation was requested, possibly by another process.

        With worker_id, only the jobs that worker has claimed.
        """
        query = select(Job.id).where(
            Job.cancel_requested.is_(True),
            Job.status.in_([s.value for s in ACTIVE_STATUSES]),
        )
        if worker_id is not None:
            query = query.where(Job.worker_id == worker_id)
        async with self._session_factory() as session:
            return list((await session.execute(query)).scalars().all())

    @staticmethod
    def _conditions(provider, status, since) -> list:
        conditions = []
        if provider:
            conditions.append(Job.provider == provider)
        if status:
            conditions.append(Job.status == JobStatus(status).value)
        if since:
            conditions.append(Job.created_at > since)
        return conditions
