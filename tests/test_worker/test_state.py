"""Tests for the job status transition table."""

import pytest

from models.enums import TERMINAL_STATUSES, JobStatus
from worker.state import InvalidTransitionError, can_transition, check_transition


@pytest.mark.parametrize("current,target", [
    (JobStatus.PENDING, JobStatus.RUNNING),
    (JobStatus.PENDING, JobStatus.CANCELLED),
    (JobStatus.RUNNING, JobStatus.EVALUATING),
    (JobStatus.RUNNING, JobStatus.FAILED),
    (JobStatus.RUNNING, JobStatus.CANCELLED),
    (JobStatus.RUNNING, JobStatus.PENDING),
    (JobStatus.EVALUATING, JobStatus.COMPLETED),
    (JobStatus.EVALUATING, JobStatus.FAILED),
    (JobStatus.EVALUATING, JobStatus.CANCELLED),
])
def test_allowed(current, target):
    assert can_transition(current, target)
    assert check_transition(current, target) == target


@pytest.mark.parametrize("current,target", [
    (JobStatus.PENDING, JobStatus.COMPLETED),
    (JobStatus.PENDING, JobStatus.EVALUATING),
    (JobStatus.RUNNING, JobStatus.COMPLETED),
    (JobStatus.EVALUATING, JobStatus.PENDING),
    (JobStatus.EVALUATING, JobStatus.RUNNING),
])
def test_rejected(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransitionError):
        check_transition(current, target)


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES))
def test_nothing_leaves_a_terminal_status(terminal):
    assert not any(can_transition(terminal, target) for target in JobStatus)


def test_accepts_raw_strings():
    assert can_transition("pending", "running")
    with pytest.raises(InvalidTransitionError, match="completed -> running"):
        check_transition("completed", "running")
