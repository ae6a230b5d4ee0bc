"""Tests for the WorkerPool claim loop."""

import asyncio

import pytest

from models.enums import JobStatus
from worker.pool import WorkerPool


async def _wait_for_status(repository, job_id, status, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        job = await repository.find_by_id(job_id)
        if job.status == status.value:
            return job
        await asyncio.sleep(0.01)
    raise AssertionError(f"job {job_id} never reached {status.value}")


def _pool(repository, executor, **kwargs):
    return WorkerPool(
        repository, executor, poll_interval=0.01, max_poll_interval=0.05, worker_id="worker-test", **kwargs
    )


@pytest.mark.asyncio
async def test_run_once_with_nothing_pending(repository, executor):
    assert await _pool(repository, executor).run_once() is None


@pytest.mark.asyncio
async def test_drain_runs_jobs_oldest_first(repository, executor, stub_provider):
    first = await repository.create(prompt="first", provider="stub", model="m1")
    second = await repository.create(prompt="second", provider="stub", model="m1")

    ran = await _pool(repository, executor).drain()

    assert ran == 2
    assert stub_provider.prompts == ["first", "second"]
    for job_id in (first.id, second.id):
        job = await repository.find_by_id(job_id)
        assert job.status == JobStatus.COMPLETED.value
        assert job.worker_id == "worker-test"


@pytest.mark.asyncio
async def test_claim_loop_picks_up_new_jobs(repository, executor, stub_provider):
    pool = _pool(repository, executor, concurrency=2)
    pool.start()
    try:
        assert pool.running
        job = await repository.create(prompt="hi", provider="stub", model="m1")
        done = await _wait_for_status(repository, job.id, JobStatus.COMPLETED)
    finally:
        await pool.stop()

    assert done.result == "Hello"
    assert not pool.running
    assert pool.active_jobs == 0


@pytest.mark.asyncio
async def test_concurrency_limits_jobs_in_flight(repository, executor, use_stub):
    gate = asyncio.Event()
    use_stub(gate=gate)
    jobs = [await repository.create(prompt=str(i), provider="stub", model="m1") for i in range(3)]

    pool = _pool(repository, executor, concurrency=2)
    pool.start()
    try:
        await _wait_for_status(repository, jobs[0].id, JobStatus.RUNNING)
        await _wait_for_status(repository, jobs[1].id, JobStatus.RUNNING)
        await asyncio.sleep(0.05)
        assert pool.active_jobs == 2
        assert (await repository.find_by_id(jobs[2].id)).claimed_at is None

        gate.set()
        for job in jobs:
            await _wait_for_status(repository, job.id, JobStatus.COMPLETED)
    finally:
        await pool.stop()


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_jobs(repository, executor, use_stub):
    gate = asyncio.Event()
    use_stub(gate=gate)
    job = await repository.create(prompt="hi", provider="stub", model="m1")

    pool = _pool(repository, executor)
    pool.start()
    await _wait_for_status(repository, job.id, JobStatus.RUNNING)

    stopping = asyncio.create_task(pool.stop())
    await asyncio.sleep(0.02)
    assert not stopping.done()

    gate.set()
    await stopping
    assert (await repository.find_by_id(job.id)).status == JobStatus.COMPLETED.value
