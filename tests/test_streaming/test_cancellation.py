"""Tests for the cancellation registry and tokens."""

import asyncio

import pytest

from streaming.cancellation import CancellationRegistry


def test_cancel_is_idempotent():
    registry = CancellationRegistry()
    registry.cancel_job("job-1")
    registry.cancel_job("job-1")

    assert registry.is_job_cancelled("job-1")
    assert len(registry) == 1


def test_remove_clears_the_flag():
    registry = CancellationRegistry()
    registry.cancel_job("job-1")
    registry.remove_job("job-1")
    registry.remove_job("job-1")

    assert not registry.is_job_cancelled("job-1")
    assert len(registry) == 0


def test_ids_do_not_interfere():
    registry = CancellationRegistry()
    registry.cancel_job("job-1")
    assert not registry.is_job_cancelled("job-2")


def test_token_reflects_registry():
    registry = CancellationRegistry()
    token = registry.token("job-1")
    assert not token.cancelled
    registry.cancel_job("job-1")
    assert token.cancelled


@pytest.mark.asyncio
async def test_token_wait_wakes_on_cancel():
    registry = CancellationRegistry()
    token = registry.token("job-1")

    waiter = asyncio.create_task(token.wait())
    await asyncio.sleep(0)
    assert not waiter.done()

    registry.cancel_job("job-1")
    await asyncio.wait_for(waiter, timeout=1)


@pytest.mark.asyncio
async def test_token_wait_returns_at_once_if_already_cancelled():
    registry = CancellationRegistry()
    registry.cancel_job("job-1")
    await asyncio.wait_for(registry.token("job-1").wait(), timeout=1)


def test_job_ids_is_a_snapshot():
    registry = CancellationRegistry()
    registry.cancel_job("job-1")

    ids = registry.job_ids()
    registry.remove_job("job-1")

    assert ids == {"job-1"}
    assert registry.job_ids() == set()
