"""
Resilience wrapper — timeout + categorized retry around a provider call.

    result = await call_with_resilience(
        "openai.complete",
        lambda: provider.complete(prompt, options),
        max_retries=3,
    )

Each attempt calls `fn()` again, so `fn` must start a fresh request every time.

Lifecycle of one call:
    attempt 1 → (fails, retryable category, attempts left) → sleep → attempt 2 → ...
    attempt N → (fails, non-retryable OR attempt N == max_retries) → re-raise

`max_retries` is the total number of attempts: max_retries=3 means at most
three calls to fn().

Delay before the next attempt is the category's suggested delay
(rate_limit 60s, network_error 5s, timeout 2s), otherwise exponential backoff
from RETRY_BASE_DELAY_MS capped at RETRY_MAX_DELAY_MS.

Timeouts abandon the wait, not the request. asyncio.wait_for cancels our
coroutine, but a request the provider already accepted may still complete
(and be billed) on their side. Its result is discarded.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from config.settings import settings
from providers.errors import ProviderTimeoutError, categorize_error, should_retry_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Indirection so tests can skip real back-off sleeps
_sleep = asyncio.sleep


def backoff_delay_ms(attempt: int) -> int:
    """Exponential backoff for attempt 1, 2, 3, ... capped at RETRY_MAX_DELAY_MS."""
    delay = settings.RETRY_BASE_DELAY_MS * (2 ** (attempt - 1))
    return min(settings.RETRY_MAX_DELAY_MS, delay)


async def call_with_resilience(
    label: str,
    fn: Callable[[], Awaitable[T]],
    timeout_ms: Optional[int] = None,
    max_retries: Optional[int] = None,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    request_id: Optional[str] = None,
) -> T:
    timeout_ms = timeout_ms if timeout_ms is not None else settings.PROVIDER_TIMEOUT_MS
    max_retries = max_retries if max_retries is not None else settings.PROVIDER_MAX_RETRIES
    attempt = 0

    while True:
        attempt += 1
        start = time.monotonic()
        try:
            try:
                result = await asyncio.wait_for(fn(), timeout=timeout_ms / 1000)
            except asyncio.TimeoutError:
                raise ProviderTimeoutError(f"Operation timed out after {timeout_ms}ms")

            duration_ms = int((time.monotonic() - start) * 1000)
            logger.info(
                f"Provider call success: {label} attempt={attempt} duration={duration_ms}ms "
                f"provider={provider} model={model} request_id={request_id}"
            )
            return result

        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            categorized = categorize_error(e)
            logger.warning(
                f"Provider call failed: {label} attempt={attempt} duration={duration_ms}ms "
                f"error_type={categorized.type.value} retryable={categorized.retryable} "
                f"provider={provider} model={model} request_id={request_id}: {categorized.message}"
            )

            if not should_retry_error(categorized.type, attempt, max_retries):
                raise

            delay_ms = categorized.retry_delay_ms or backoff_delay_ms(attempt)
            logger.info(f"Retrying {label} in {delay_ms}ms ({attempt}/{max_retries})")
            await _sleep(delay_ms / 1000)
