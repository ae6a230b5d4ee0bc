"""
Job status transitions.

    PENDING ──► RUNNING ──► EVALUATING ──► COMPLETED
       │          │  │          │
       │          │  └──► FAILED ◄──┘
       │          │
       │          └──► PENDING      (job-level retry)
       │
       └──────────┴──────────┴──► CANCELLED

COMPLETED, FAILED and CANCELLED are terminal: nothing leaves them.
"""

from models.enums import JobStatus


class InvalidTransitionError(Exception):
    def __init__(self, current: JobStatus, target: JobStatus):
        self.current = current
        self.target = target
        super().__init__(f"Invalid job transition: {current.value} -> {target.value}")


ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.CANCELLED}),
    JobStatus.RUNNING: frozenset({
        JobStatus.EVALUATING,
        JobStatus.FAILED,
        JobStatus.CANCELLED,
        JobStatus.PENDING,
    }),
    JobStatus.EVALUATING: frozenset({
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.CANCELLED,
    }),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def can_transition(current, target) -> bool:
    return JobStatus(target) in ALLOWED_TRANSITIONS[JobStatus(current)]


def check_transition(current, target) -> JobStatus:
    """Return the target status, or raise InvalidTransitionError."""
    current, target = JobStatus(current), JobStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)
    return target
