"""
Retry handler — decides what happens when a job attempt fails.

This is the JOB-level retry. The resilience wrapper has already retried the
individual provider call; by the time a failure reaches this handler, that
attempt is over.

Two outcomes:
1. attempt_count < max_attempts and retryable category → back to PENDING,
   claim markers cleared so the claim loop picks it up again
2. otherwise → FAILED, pushed to the dead-letter queue

    RUNNING → (error) → PENDING   (retryable, attempts left)
    RUNNING → (error) → FAILED    (non-retryable or exhausted → DLQ)
    EVALUATING → (error) → FAILED (the provider already answered; never re-run)

The dead-letter queue is a Redis list of JSON entries. Nothing consumes it
automatically: someone reviews it, fixes the cause and resubmits.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from models.enums import JobStatus
from models.job import Job
from models.repository import JobRepository
from providers.errors import CategorizedError, should_retry_error
from worker.state import can_transition, check_transition

logger = logging.getLogger(__name__)

DEAD_LETTER_KEY = "promptlab:dead_letter"


class RetryHandler:

    def __init__(self, repository: JobRepository, redis_client: Optional[Redis] = None):
        self._repository = repository
        self._redis = redis_client

    async def handle_failure(
        self,
        job: Job,
        current: JobStatus,
        error: CategorizedError,
        attempt_count: int,
    ) -> JobStatus:
        """
        Persist the outcome of a failed attempt and return the new status
        (PENDING or FAILED).

        Args:
            job: the job as loaded at the start of the attempt
            current: status the job is in when the error surfaced
            error: categorized failure
            attempt_count: attempts made so far, including this one
        """
        if (
            can_transition(current, JobStatus.PENDING)
            and should_retry_error(error.type, attempt_count, job.max_attempts)
        ):
            # ── Retry: send back to PENDING ─────────────────────
            await self._repository.update(
                job.id,
                status=JobStatus.PENDING.value,
                result=None,
                error_message=error.message,
                error_type=error.type.value,
                worker_id=None,
                claimed_at=None,
            )
            logger.info(
                f"Job {job.id} will be retried ({attempt_count}/{job.max_attempts}) "
                f"after {error.type.value}"
            )
            return JobStatus.PENDING

        # ── Exhausted or fatal: dead-letter queue ───────────────
        check_transition(current, JobStatus.FAILED)
        await self._repository.update(
            job.id,
            status=JobStatus.FAILED.value,
            error_message=error.message,
            error_type=error.type.value,
            result=None,
            metrics=None,
            completed_at=datetime.now(timezone.utc),
        )
        await self._push_to_dead_letter(job, error, attempt_count)
        logger.warning(
            f"Job {job.id} failed permanently after {attempt_count}/{job.max_attempts} attempts "
            f"[{error.type.value}], moved to dead-letter queue"
        )
        return JobStatus.FAILED

    async def _push_to_dead_letter(self, job: Job, error: CategorizedError, attempt_count: int) -> None:
        if self._redis is None:
            return
        entry = json.dumps({
            "job_id": job.id,
            "provider": job.provider,
            "model": job.model,
            "error": error.message,
            "error_type": error.type.value,
            "attempt_count": attempt_count,
            "failed_at": datetime.now(timezone.utc).isoformat(),
        })
        try:
            await self._redis.rpush(DEAD_LETTER_KEY, entry)
        except RedisError as e:
            # The job row already says FAILED; the queue is an operator convenience
            logger.error(f"Could not dead-letter job {job.id}: {e}")


async def read_dead_letters(redis_client: Redis, limit: int = 100) -> list[dict]:
    """Oldest first. Used by the API and by operators from a shell."""
    raw = await redis_client.lrange(DEAD_LETTER_KEY, 0, limit - 1)
    return [json.loads(item) for item in raw]
