"""
Provider error taxonomy.

Every failure coming out of a provider call ends up as one ErrorType. The
retry decisions (providers/resilience.py for a single call, worker/retry.py
for a whole job) only look at the category, never at the raw exception.

Classification order:
1. Our own typed errors (ProviderError subclasses) carry their category.
2. httpx exceptions and HTTP status codes map to a category directly.
3. Anything else falls back to substring matching on the message. That last
   step is best-effort: a message that happens to contain "timeout" will be
   classified as a timeout.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from models.enums import ErrorType

RETRYABLE_ERROR_TYPES = frozenset({
    ErrorType.NETWORK_ERROR,
    ErrorType.TIMEOUT,
    ErrorType.RATE_LIMIT,
})

# Suggested wait before retrying, per category (milliseconds)
RETRY_DELAYS_MS = {
    ErrorType.RATE_LIMIT: 60_000,
    ErrorType.NETWORK_ERROR: 5_000,
    ErrorType.TIMEOUT: 2_000,
}


@dataclass
class CategorizedError:
    type: ErrorType
    message: str
    retryable: bool
    retry_delay_ms: Optional[int] = None


class ProviderError(Exception):
    """Base class for errors raised at the provider boundary."""

    error_type: ErrorType = ErrorType.UNKNOWN

    def __init__(self, message: str, error_type: Optional[ErrorType] = None):
        super().__init__(message)
        if error_type is not None:
            self.error_type = error_type


class ProviderConfigError(ProviderError):
    """Provider cannot run at all (missing API key). Never retried."""

    error_type = ErrorType.PROVIDER_ERROR


class ProviderNotFoundError(ProviderError):
    error_type = ErrorType.PROVIDER_ERROR


class ProviderTimeoutError(ProviderError):
    error_type = ErrorType.TIMEOUT


def _categorize_status(status_code: int) -> ErrorType:
    if status_code == 429:
        return ErrorType.RATE_LIMIT
    if status_code in (401, 403, 404):
        return ErrorType.PROVIDER_ERROR
    if status_code in (400, 422):
        return ErrorType.VALIDATION_ERROR
    if status_code >= 500:
        return ErrorType.NETWORK_ERROR
    return ErrorType.UNKNOWN


def _categorize_message(message: str) -> ErrorType:
    lowered = message.lower()

    if "rate limit" in lowered or "429" in message:
        return ErrorType.RATE_LIMIT

    if (
        "ECONNREFUSED" in message
        or "ENOTFOUND" in message
        or "ETIMEDOUT" in message
        or "fetch failed" in lowered
        or "network" in lowered
        or "connection refused" in lowered
    ):
        return ErrorType.NETWORK_ERROR

    if "timeout" in lowered or "timed out" in lowered or "aborted" in lowered:
        return ErrorType.TIMEOUT

    if (
        "api key" in lowered
        or "authentication" in lowered
        or "unauthorized" in lowered
        or "invalid model" in lowered
        or "model not found" in lowered
    ):
        return ErrorType.PROVIDER_ERROR

    if "validation" in lowered or "invalid input" in lowered or "malformed" in lowered:
        return ErrorType.VALIDATION_ERROR

    return ErrorType.UNKNOWN


def categorize_error(error: BaseException) -> CategorizedError:
    """Map any exception to the error taxonomy."""
    message = str(error) or error.__class__.__name__

    if isinstance(error, ProviderError):
        error_type = error.error_type
    elif isinstance(error, httpx.HTTPStatusError):
        error_type = _categorize_status(error.response.status_code)
    elif isinstance(error, httpx.TimeoutException):
        error_type = ErrorType.TIMEOUT
    elif isinstance(error, httpx.TransportError):
        error_type = ErrorType.NETWORK_ERROR
    elif isinstance(error, TimeoutError):
        error_type = ErrorType.TIMEOUT
    elif isinstance(error, ConnectionError):
        error_type = ErrorType.NETWORK_ERROR
    else:
        error_type = _categorize_message(message)

    return CategorizedError(
        type=error_type,
        message=message,
        retryable=error_type in RETRYABLE_ERROR_TYPES,
        retry_delay_ms=RETRY_DELAYS_MS.get(error_type),
    )


def should_retry_error(error_type: ErrorType, attempt_count: int, max_attempts: int) -> bool:
    """True if another attempt is allowed for this category."""
    if attempt_count >= max_attempts:
        return False
    return error_type in RETRYABLE_ERROR_TYPES
