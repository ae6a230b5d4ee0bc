"""
Shared enumerations used across the entire project.

Using Python enums (inheriting from str) means:
- They serialize to JSON automatically ("pending", not "JobStatus.PENDING")
- They work as SQLAlchemy column values
- They work as FastAPI query parameters
- Typos become immediate errors instead of silent bugs
"""

import enum


class JobStatus(str, enum.Enum):
    PENDING = "pending"          # created, waiting for a worker to claim it
    RUNNING = "running"          # claimed, provider call in progress
    EVALUATING = "evaluating"    # provider finished, metrics being computed
    COMPLETED = "completed"      # result + metrics persisted
    FAILED = "failed"            # non-retryable error or attempts exhausted
    CANCELLED = "cancelled"      # cancel requested and observed at a checkpoint

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({JobStatus.PENDING, JobStatus.RUNNING, JobStatus.EVALUATING})


class ErrorType(str, enum.Enum):
    RATE_LIMIT = "rate_limit"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"      # bad credentials, unknown model
    VALIDATION_ERROR = "validation_error"  # malformed request
    UNKNOWN = "unknown"


class MetricCategory(str, enum.Enum):
    READABILITY = "readability"
    SENTIMENT = "sentiment"
    STRUCTURE = "structure"
    QUALITY = "quality"
    KEYWORDS = "keywords"
    VALIDATION = "validation"
    PERFORMANCE = "performance"
    CUSTOM = "custom"
