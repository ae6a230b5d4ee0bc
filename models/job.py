"""
Job ORM model — maps to the "jobs" table.

Key design decisions:
- UUID string primary key: opaque, generated at creation, never reused
- JSON columns for selected_metrics / disabled_metrics / metrics: the metric
  bag differs per job and per plugin set, no schema changes when plugins change
- error_type next to error_message: the UI shows the message, the retry logic
  reads the category
- attempt_count + max_attempts: drives job-level retry (worker/retry.py)
- worker_id + claimed_at: claim markers so two workers never run the same job
- Timestamps at every lifecycle stage for latency measurement
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from config.settings import settings
from models.base import Base
from models.enums import JobStatus


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(Base):
    __tablename__ = "jobs"

    # ── Identity ────────────────────────────────────────────────
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    # ── Inputs (immutable after creation) ───────────────────────
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    template: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    input_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    top_p: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_tokens: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # [{"id": "keywords", "input": "alpha, beta"}, {"id": "word_count"}]
    selected_metrics: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    disabled_metrics: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    reference_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Lifecycle state ─────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.PENDING.value, nullable=False, index=True
    )
    result: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    metrics: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    tokens_used: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cost_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cancel_requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # ── Retry tracking ──────────────────────────────────────────
    attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(
        Integer, default=lambda: settings.JOB_MAX_ATTEMPTS, nullable=False
    )

    # ── Claim markers ───────────────────────────────────────────
    worker_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ── Lifecycle timestamps ────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Job {self.id} [{self.provider}/{self.model}] {self.status}>"
