"""
Pydantic schemas for the /worker endpoints.

WorkerStatus: claim loop state plus queue depths.
DeadLetterEntry: one permanently failed job as stored in Redis.
"""

from typing import Optional

from pydantic import BaseModel


class WorkerStatus(BaseModel):
    """Response body for GET /worker/status."""

    running: bool              # False when the pool runs in a separate process
    worker_id: Optional[str] = None
    concurrency: Optional[int] = None
    active_jobs: int = 0
    pending_jobs: int          # PENDING rows waiting to be claimed
    dead_letter_count: int     # how many jobs permanently failed


class DeadLetterEntry(BaseModel):
    job_id: str
    provider: str
    model: str
    error: str
    error_type: str
    attempt_count: int
    failed_at: str
