"""
Job endpoints.

POST   /jobs/               → Submit a new job (persisted as PENDING)
GET    /jobs/               → List job summaries with filtering + pagination
GET    /jobs/stats          → Job counts per status
GET    /jobs/{job_id}       → Get a single job by ID
DELETE /jobs/{job_id}       → Delete a job (stops it first if it is running)
POST   /jobs/{job_id}/cancel → Request cancellation (idempotent)
POST   /jobs/{job_id}/retry  → New PENDING job with the same inputs as a finished one
GET    /jobs/{job_id}/diff   → The job next to another one (default: the previous job)
GET    /jobs/{job_id}/stream → Server-sent events while the job runs

The API layer is intentionally thin:
- Validate input (Pydantic + the provider registry)
- Talk to the repository / event bus / cancellation registry
- Return the response

It does NOT execute jobs — that's the worker pool's job.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from api.dependencies import get_bus, get_cancellations, get_repository, get_worker_pool
from api.schemas.job import (
    CancelResponse,
    JobCreate,
    JobDiffResponse,
    JobListResponse,
    JobResponse,
    JobRetryResponse,
    JobStats,
    JobSummaryResponse,
)
from models.enums import JobStatus
from models.job import Job
from models.repository import JobRepository
from providers.errors import ProviderNotFoundError
from providers.registry import get_provider
from streaming.bus import JobEventBus
from streaming.cancellation import CancellationRegistry
from streaming.events import DoneEvent, StatusEvent, to_sse
from worker.pool import WorkerPool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


async def _get_or_404(repository: JobRepository, job_id: str) -> Job:
    job = await repository.find_by_id(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job


@router.post("/", response_model=JobResponse, status_code=201)
async def create_job(
    job_in: JobCreate,
    repository: JobRepository = Depends(get_repository),
) -> JobResponse:
    """
    Submit a new job.

    The job is saved with status=PENDING. The worker pool's claim loop picks
    it up; nothing is executed inside this request.
    """
    try:
        provider = get_provider(job_in.provider)
    except ProviderNotFoundError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if job_in.model not in provider.models:
        raise HTTPException(
            status_code=422,
            detail=f"Model '{job_in.model}' is not available for provider '{job_in.provider}'. "
                   f"Available: {provider.models}",
        )

    job = await repository.create(
        prompt=job_in.rendered_prompt(),
        template=job_in.template,
        input_data=job_in.input_data,
        provider=job_in.provider,
        model=job_in.model,
        temperature=job_in.temperature,
        top_p=job_in.top_p,
        max_tokens=job_in.max_tokens,
        selected_metrics=(
            [m.model_dump(exclude_none=True) for m in job_in.metrics]
            if job_in.metrics is not None else None
        ),
        disabled_metrics=job_in.disabled_metrics,
        reference_text=job_in.reference_text,
    )
    return JobResponse.model_validate(job)


@router.get("/", response_model=JobListResponse)
async def list_jobs(
    status: Optional[JobStatus] = Query(None, description="Filter by job status"),
    provider: Optional[str] = Query(None, description="Filter by provider name"),
    since: Optional[datetime] = Query(None, description="Only jobs created after this time"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Jobs per page"),
    repository: JobRepository = Depends(get_repository),
) -> JobListResponse:
    """
    List job summaries, newest first.

    Pagination works with OFFSET/LIMIT:
    - page=1, page_size=20 → rows 0-19
    - page=2, page_size=20 → rows 20-39
    """
    total = await repository.count(provider=provider, status=status, since=since)
    summaries = await repository.list_jobs(
        provider=provider,
        status=status,
        since=since,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return JobListResponse(
        jobs=[JobSummaryResponse.model_validate(s) for s in summaries],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=JobStats)
async def get_job_stats(
    repository: JobRepository = Depends(get_repository),
) -> JobStats:
    counts = await repository.count_by_status()
    return JobStats(total_jobs=sum(counts.values()), **counts)


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: str,
    repository: JobRepository = Depends(get_repository),
) -> JobResponse:
    job = await _get_or_404(repository, job_id)
    return JobResponse.model_validate(job)


@router.delete("/{job_id}", status_code=204)
async def delete_job(
    job_id: str,
    repository: JobRepository = Depends(get_repository),
    cancellations: CancellationRegistry = Depends(get_cancellations),
    worker_pool: Optional[WorkerPool] = Depends(get_worker_pool),
) -> None:
    """Delete a job. A job running in this process is flagged so its executor stops."""
    job = await _get_or_404(repository, job_id)
    if worker_pool is not None and not JobStatus(job.status).is_terminal and job.claimed_at is not None:
        cancellations.cancel_job(job_id)
    await repository.delete(job_id)


@router.post("/{job_id}/cancel", response_model=CancelResponse)
async def cancel_job(
    job_id: str,
    repository: JobRepository = Depends(get_repository),
    bus: JobEventBus = Depends(get_bus),
    cancellations: CancellationRegistry = Depends(get_cancellations),
    worker_pool: Optional[WorkerPool] = Depends(get_worker_pool),
) -> CancelResponse:
    """
    Request cancellation. Always succeeds for an existing job.

    - terminal job        → nothing to do, current status returned
    - unclaimed pending   → cancelled right here, no worker involved
    - claimed / running   → cancel_requested set; the executor stops at its
                            next checkpoint. With an in-process pool the local
                            registry is flagged too, otherwise the worker
                            process picks the column up on its next sync.
    """
    job = await _get_or_404(repository, job_id)
    status = JobStatus(job.status)
    if status.is_terminal:
        return CancelResponse(job_id=job_id, status=status.value, cancel_requested=job.cancel_requested)

    if await repository.cancel_if_unclaimed(job_id):
        bus.publish(job_id, StatusEvent(JobStatus.CANCELLED))
        bus.publish(job_id, DoneEvent())
        return CancelResponse(job_id=job_id, status=JobStatus.CANCELLED.value)

    job = await repository.update(job_id, cancel_requested=True)
    if worker_pool is not None:
        cancellations.cancel_job(job_id)
        # The executor may have finished between the claim check and the flag
        job = await repository.find_by_id(job_id)
        if job is None or JobStatus(job.status).is_terminal:
            cancellations.remove_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return CancelResponse(job_id=job_id, status=job.status)


@router.get("/{job_id}/diff", response_model=JobDiffResponse)
async def diff_jobs(
    job_id: str,
    other_id: Optional[str] = Query(None, description="Job to compare with; defaults to the previous job"),
    repository: JobRepository = Depends(get_repository),
) -> JobDiffResponse:
    """
    Put two jobs side by side, e.g. the same prompt on two models.

    Without other_id the job is compared with the one created just before it.
    """
    base = await repository.find_by_id(job_id)
    if base is None:
        raise HTTPException(status_code=404, detail="Base job not found")

    if other_id is not None:
        compare = await repository.find_by_id(other_id)
        if compare is None:
            raise HTTPException(status_code=404, detail="Compare job not found")
    else:
        compare = await repository.find_previous(base)
        if compare is None:
            raise HTTPException(status_code=404, detail="No previous job found to compare with")

    return JobDiffResponse(
        base_job=JobResponse.model_validate(base),
        compare_job=JobResponse.model_validate(compare),
    )


@router.post("/{job_id}/retry", response_model=JobRetryResponse, status_code=201)
async def retry_job(
    job_id: str,
    repository: JobRepository = Depends(get_repository),
) -> JobRetryResponse:
    """
    Submit a finished job again as a brand-new PENDING job.

    The original row is left untouched; only its inputs are copied. Jobs
    still in flight are rejected with 409 since their own retries are
    handled by the worker.
    """
    original = await _get_or_404(repository, job_id)
    if not JobStatus(original.status).is_terminal:
        raise HTTPException(
            status_code=409,
            detail=f"Job {job_id} is still {original.status} and cannot be retried",
        )

    job = await repository.create(
        prompt=original.prompt,
        template=original.template,
        input_data=original.input_data,
        provider=original.provider,
        model=original.model,
        temperature=original.temperature,
        top_p=original.top_p,
        max_tokens=original.max_tokens,
        selected_metrics=original.selected_metrics,
        disabled_metrics=list(original.disabled_metrics or []),
        reference_text=original.reference_text,
        max_attempts=original.max_attempts,
    )
    logger.info(f"Job {job_id} retried as {job.id}")
    return JobRetryResponse(original_job_id=job_id, new_job=JobResponse.model_validate(job))


@router.get("/{job_id}/stream", response_model=None)
async def stream_job(
    job_id: str,
    repository: JobRepository = Depends(get_repository),
    bus: JobEventBus = Depends(get_bus),
):
    """
    Live events for one job: status, token, metrics, error, done.

    A job that already finished has nothing left to stream, so its final
    state is returned as plain JSON instead.
    """
    job = await _get_or_404(repository, job_id)
    if JobStatus(job.status).is_terminal:
        return JSONResponse(JobResponse.model_validate(job).model_dump(mode="json"))

    stream = bus.open_stream(job_id)
    # Subscribed; re-read so a job that finished in between still ends the stream
    job = await repository.find_by_id(job_id)
    current = JobStatus(job.status) if job is not None else JobStatus.CANCELLED

    async def _generate():
        try:
            yield to_sse(StatusEvent(current))
            if current.is_terminal:
                yield to_sse(DoneEvent())
                return
            async for event in stream:
                yield to_sse(event)
        finally:
            stream.close()

    return EventSourceResponse(_generate())
