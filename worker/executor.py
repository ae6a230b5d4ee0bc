"""
Job executor — runs a single job through its state machine.

This is the code that actually DOES THE WORK. The worker pool calls
executor.execute(job_id) for every job it claims, and this method handles the
full lifecycle:

    1. Load the job, checkpoint, mark RUNNING (attempt_count++)
    2. Look up the provider and stream (or complete) through the resilience
       wrapper, forwarding every chunk to the event bus as a TokenEvent
    3. Mark EVALUATING, compute the selected metrics over the output
    4. Mark COMPLETED with result, metrics (+ avg_score), tokens and cost
    5. On failure: delegate to RetryHandler (re-pend or fail + dead-letter)

Cancellation checkpoints (token.cancelled):
    - before the provider call starts
    - before each chunk is forwarded
    - after the provider returns, and after metric evaluation
While waiting on the provider we also race its next chunk against the
cancellation event, so a cancel does not wait for a slow chunk to arrive.

Cancellation is cooperative: the HTTP request to the provider is dropped but
the provider may still finish (and bill) the generation. Its output is
discarded. Timeouts behave the same way.

execute() never raises. Every outcome ends as a persisted status plus events
on the bus; the last event for a terminal job is always DoneEvent.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Optional

from redis.asyncio import Redis

from config.settings import settings
from metrics.evaluator import MetricsEvaluator, parse_selections
from metrics.scoring import with_average_score
from models.enums import ErrorType, JobStatus
from models.job import Job
from models.repository import JobRepository
from providers.base import AbstractProvider, ProviderOptions, StreamChunk
from providers.errors import ProviderTimeoutError, categorize_error
from providers.pricing import estimate_tokens
from providers.registry import get_provider
from providers.resilience import call_with_resilience
from streaming.bus import JobEventBus
from streaming.cancellation import CancellationRegistry, CancellationToken
from streaming.events import DoneEvent, ErrorEvent, MetricsEvent, StatusEvent, TokenEvent
from worker.retry import RetryHandler
from worker.state import check_transition

logger = logging.getLogger(__name__)

# Returned by _race() when cancellation won
_CANCELLED = object()


@dataclass
class ProviderOutcome:
    output: str
    tokens: int = 0
    cost: float = 0.0
    cancelled: bool = False


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _next_or_none(chunks: AsyncIterator[StreamChunk]) -> Optional[StreamChunk]:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


class JobExecutor:

    def __init__(
        self,
        repository: JobRepository,
        bus: JobEventBus,
        cancellations: CancellationRegistry,
        evaluator: MetricsEvaluator,
        redis_client: Optional[Redis] = None,
        timeout_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
    ):
        self._repository = repository
        self._bus = bus
        self._cancellations = cancellations
        self._evaluator = evaluator
        self._retry_handler = RetryHandler(repository, redis_client)
        self._timeout_ms = timeout_ms if timeout_ms is not None else settings.PROVIDER_TIMEOUT_MS
        self._max_retries = max_retries

    async def execute(self, job_id: str) -> Optional[JobStatus]:
        """
        Run one attempt of a job. Returns the status the job ended in
        (PENDING when it was re-queued for another attempt), or None if the
        job does not exist.
        """
        job = await self._repository.find_by_id(job_id)
        if job is None:
            logger.warning(f"Job {job_id} not found, skipping")
            return None

        status = JobStatus(job.status)
        if status is not JobStatus.PENDING:
            logger.warning(f"Job {job_id} is {status.value}, not pending; skipping")
            if status.is_terminal:
                self._cancellations.remove_job(job_id)
            return status

        try:
            final = await self._run(job, self._cancellations.token(job_id))
        except Exception as e:
            logger.error(f"Job {job_id} crashed: {e}", exc_info=True)
            final = await self._mark_crashed(job_id, e)

        if final.is_terminal:
            self._cancellations.remove_job(job_id)
        return final

    async def _run(self, job: Job, token: CancellationToken) -> JobStatus:
        status = JobStatus.PENDING

        # ── Checkpoint: before the provider call ────────────────
        if token.cancelled or job.cancel_requested:
            return await self._cancel(job, status, "")

        attempt = job.attempt_count + 1
        status = await self._transition(
            job.id, status, JobStatus.RUNNING,
            started_at=_now(), attempt_count=attempt,
        )
        logger.info(
            f"Job {job.id} started [{job.provider}/{job.model}] "
            f"attempt {attempt}/{job.max_attempts}"
        )

        if token.cancelled:
            return await self._cancel(job, status, "")

        # ── Step 1: Provider call ───────────────────────────────
        start_time = time.monotonic()
        try:
            provider = get_provider(job.provider)
            options = ProviderOptions(
                model=job.model,
                temperature=job.temperature,
                top_p=job.top_p,
                max_tokens=job.max_tokens,
                request_id=job.id,
            )
            if provider.supports_streaming:
                outcome = await self._stream(job, provider, options, token)
            else:
                outcome = await self._complete(job, provider, options, token)
        except Exception as e:
            return await self._fail(job, status, e, attempt)

        response_time_ms = int((time.monotonic() - start_time) * 1000)
        if outcome.cancelled or token.cancelled:
            return await self._cancel(job, status, outcome.output)

        # ── Step 2: Metrics ─────────────────────────────────────
        status = await self._transition(job.id, status, JobStatus.EVALUATING)
        try:
            evaluation = await self._evaluator.evaluate(
                outcome.output,
                selections=parse_selections(job.selected_metrics),
                disabled=job.disabled_metrics,
                reference_text=job.reference_text,
                prompt=job.prompt,
            )
        except Exception as e:
            return await self._fail(job, status, e, attempt)

        if token.cancelled:
            return await self._cancel(job, status, outcome.output)

        # ── Step 3: Mark COMPLETED ──────────────────────────────
        bag = dict(evaluation.results)
        bag["response_time_ms"] = response_time_ms
        if outcome.cost > 0:
            bag["estimated_cost_usd"] = outcome.cost
        bag = with_average_score(bag)

        status = await self._transition(
            job.id, status, JobStatus.COMPLETED,
            result=outcome.output,
            metrics=bag,
            tokens_used=outcome.tokens,
            cost_usd=outcome.cost,
            error_message=None,
            error_type=None,
            completed_at=_now(),
        )
        self._bus.publish(job.id, MetricsEvent(bag))
        self._bus.publish(job.id, DoneEvent())
        logger.info(
            f"Job {job.id} [{job.provider}/{job.model}] completed in {response_time_ms}ms "
            f"({outcome.tokens} tokens, ${outcome.cost:.6f})"
        )
        return status

    # ── Provider interaction ────────────────────────────────────

    async def _stream(
        self,
        job: Job,
        provider: AbstractProvider,
        options: ProviderOptions,
        token: CancellationToken,
    ) -> ProviderOutcome:
        """
        Forward chunks to the bus until the final chunk or the generator ends.

        Only opening the stream (up to the first chunk) goes through the
        resilience wrapper: once tokens have been forwarded a stream cannot
        be restarted, so a mid-stream failure fails the attempt instead.
        """
        timeout_ms = self._timeout_ms

        async def open_stream():
            chunks = provider.stream(job.prompt, options)
            first = await _next_or_none(chunks)
            return chunks, first

        opened = await self._race(
            call_with_resilience(
                f"{provider.name}.stream",
                open_stream,
                timeout_ms=timeout_ms,
                max_retries=self._max_retries,
                provider=provider.name,
                model=job.model,
                request_id=job.id,
            ),
            token,
        )
        if opened is _CANCELLED:
            return ProviderOutcome(output="", cancelled=True)

        chunks, chunk = opened
        parts: list[str] = []
        usage: dict = {}
        try:
            while chunk is not None:
                # ── Checkpoint: before forwarding ───────────────
                if token.cancelled:
                    return ProviderOutcome(output="".join(parts), cancelled=True)

                if chunk.content:
                    parts.append(chunk.content)
                    self._bus.publish(job.id, TokenEvent(chunk.content))
                if chunk.is_final:
                    usage = chunk.extra
                    break

                chunk = await self._race(self._next_chunk(chunks, timeout_ms), token)
                if chunk is _CANCELLED:
                    return ProviderOutcome(output="".join(parts), cancelled=True)
        finally:
            await chunks.aclose()

        output = "".join(parts)
        input_tokens = estimate_tokens(job.prompt)
        output_tokens = estimate_tokens(output)
        tokens = usage.get("tokens", input_tokens + output_tokens)
        cost = usage.get("cost")
        if cost is None:
            cost = provider.cost(job.model, input_tokens, output_tokens)
        return ProviderOutcome(output=output, tokens=tokens, cost=cost)

    async def _complete(
        self,
        job: Job,
        provider: AbstractProvider,
        options: ProviderOptions,
        token: CancellationToken,
    ) -> ProviderOutcome:
        result = await self._race(
            call_with_resilience(
                f"{provider.name}.complete",
                lambda: provider.complete(job.prompt, options),
                timeout_ms=self._timeout_ms,
                max_retries=self._max_retries,
                provider=provider.name,
                model=job.model,
                request_id=job.id,
            ),
            token,
        )
        if result is _CANCELLED or token.cancelled:
            return ProviderOutcome(output="", cancelled=True)

        # Non-streaming providers still reach subscribers as one token event
        if result.output:
            self._bus.publish(job.id, TokenEvent(result.output))
        return ProviderOutcome(output=result.output, tokens=result.tokens, cost=result.cost)

    async def _next_chunk(self, chunks: AsyncIterator[StreamChunk], timeout_ms: int):
        try:
            return await asyncio.wait_for(_next_or_none(chunks), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise ProviderTimeoutError(f"No stream chunk received within {timeout_ms}ms")

    @staticmethod
    async def _race(awaitable: Awaitable, token: CancellationToken):
        """
        Await `awaitable` unless cancellation is requested first.

        Returns its result, or _CANCELLED. The losing side is cancelled; if
        the provider call loses, its result (if it ever arrives) is dropped.
        """
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Abandoned provider call for job {token.job_id} raised: {e}")
        return _CANCELLED

    # ── Transitions ─────────────────────────────────────────────

    async def _transition(self, job_id: str, current: JobStatus, target: JobStatus, **fields) -> JobStatus:
        check_transition(current, target)
        await self._repository.update(job_id, status=target.value, **fields)
        self._bus.publish(job_id, StatusEvent(target))
        return target

    async def _cancel(self, job: Job, current: JobStatus, partial_output: str) -> JobStatus:
        status = await self._transition(
            job.id, current, JobStatus.CANCELLED,
            result=partial_output or None,
            cancel_requested=True,
            error_message=None,
            error_type=None,
            completed_at=_now(),
        )
        self._bus.publish(job.id, DoneEvent())
        logger.info(f"Job {job.id} cancelled while {current.value} ({len(partial_output)} chars kept)")
        return status

    async def _fail(self, job: Job, current: JobStatus, error: Exception, attempt: int) -> JobStatus:
        categorized = categorize_error(error)
        logger.error(
            f"Job {job.id} [{job.provider}/{job.model}] failed "
            f"[{categorized.type.value}] attempt {attempt}/{job.max_attempts}: {categorized.message}"
        )

        # RetryHandler decides: retry or dead-letter
        status = await self._retry_handler.handle_failure(job, current, categorized, attempt)
        self._bus.publish(job.id, StatusEvent(status))
        if status is JobStatus.FAILED:
            self._bus.publish(job.id, ErrorEvent(categorized.message, categorized.type.value))
            self._bus.publish(job.id, DoneEvent())
        return status

    async def _mark_crashed(self, job_id: str, error: Exception) -> JobStatus:
        """Last resort when the state machine itself broke (DB down, bad transition)."""
        message = str(error) or error.__class__.__name__
        try:
            await self._repository.update(
                job_id,
                status=JobStatus.FAILED.value,
                error_message=message,
                error_type=ErrorType.UNKNOWN.value,
                completed_at=_now(),
            )
        except Exception as e:
            logger.error(f"Could not record failure of job {job_id}: {e}")
        self._bus.publish(job_id, StatusEvent(JobStatus.FAILED))
        self._bus.publish(job_id, ErrorEvent(message, ErrorType.UNKNOWN.value))
        self._bus.publish(job_id, DoneEvent())
        return JobStatus.FAILED
