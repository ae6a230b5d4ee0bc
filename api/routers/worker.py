"""
Worker endpoints.

GET /worker/status      → Claim loop state, pending count, DLQ count
GET /worker/dead-letter → Jobs that failed permanently, oldest first

The pool is only visible here when it runs inside the API process
(WORKER_ENABLED). A standalone worker (python -m worker.main) shares the
database and Redis, so the counts are still accurate.
"""

from fastapi import APIRouter, Depends, Query, Request
from redis.asyncio import Redis

from api.dependencies import get_redis, get_repository
from api.schemas.worker import DeadLetterEntry, WorkerStatus
from models.enums import JobStatus
from models.repository import JobRepository
from worker.retry import DEAD_LETTER_KEY, read_dead_letters

router = APIRouter(prefix="/worker", tags=["worker"])


@router.get("/status", response_model=WorkerStatus)
async def get_worker_status(
    request: Request,
    repository: JobRepository = Depends(get_repository),
    redis: Redis = Depends(get_redis),
) -> WorkerStatus:
    pending = await repository.count(status=JobStatus.PENDING)
    dlq_count = await redis.llen(DEAD_LETTER_KEY)

    pool = request.app.state.worker_pool
    if pool is None:
        return WorkerStatus(running=False, pending_jobs=pending, dead_letter_count=dlq_count)
    return WorkerStatus(
        running=pool.running,
        worker_id=pool.worker_id,
        concurrency=pool.concurrency,
        active_jobs=pool.active_jobs,
        pending_jobs=pending,
        dead_letter_count=dlq_count,
    )


@router.get("/dead-letter", response_model=list[DeadLetterEntry])
async def get_dead_letter_jobs(
    limit: int = Query(100, ge=1, le=1000),
    redis: Redis = Depends(get_redis),
) -> list[DeadLetterEntry]:
    """
    List jobs in the dead-letter queue.

    Nothing consumes the queue automatically: review the cause, then
    resubmit the job through POST /jobs/.
    """
    return [DeadLetterEntry(**entry) for entry in await read_dead_letters(redis, limit)]
