"""Tests for the reference-counted connection pool."""

import asyncio

import pytest

from streaming.pool import ConnectionPool


class FakeConnection:
    def __init__(self, job_id):
        self.job_id = job_id
        self.closed = False

    async def aclose(self):
        self.closed = True


def _pool():
    created = []

    def factory(job_id):
        conn = FakeConnection(job_id)
        created.append(conn)
        return conn

    return ConnectionPool(factory), created


@pytest.mark.asyncio
async def test_repeated_get_returns_the_same_handle():
    pool, created = _pool()

    first = await pool.get_connection("job-1")
    second = await pool.get_connection("job-1")

    assert first is second
    assert len(created) == 1
    assert pool.refcount("job-1") == 2


@pytest.mark.asyncio
async def test_closed_only_when_last_user_releases():
    pool, created = _pool()
    conn = await pool.get_connection("job-1")
    await pool.get_connection("job-1")

    await pool.release_connection("job-1")
    assert not conn.closed
    assert "job-1" in pool

    await pool.release_connection("job-1")
    assert conn.closed
    assert "job-1" not in pool


@pytest.mark.asyncio
async def test_reopen_after_close_creates_a_new_handle():
    pool, created = _pool()
    first = await pool.get_connection("job-1")
    await pool.release_connection("job-1")

    second = await pool.get_connection("job-1")

    assert second is not first
    assert len(created) == 2


@pytest.mark.asyncio
async def test_one_handle_per_job():
    pool, created = _pool()
    a = await pool.get_connection("job-1")
    b = await pool.get_connection("job-2")
    assert a is not b
    assert [c.job_id for c in created] == ["job-1", "job-2"]


@pytest.mark.asyncio
async def test_release_unknown_job_is_a_no_op():
    pool, _ = _pool()
    await pool.release_connection("never-opened")
    assert pool.refcount("never-opened") == 0


@pytest.mark.asyncio
async def test_async_factory_and_close_all():
    async def factory(job_id):
        return FakeConnection(job_id)

    pool = ConnectionPool(factory)
    conn = await pool.get_connection("job-1")
    await pool.close_all()

    assert conn.closed
    assert "job-1" not in pool


@pytest.mark.asyncio
async def test_concurrent_first_gets_open_one_connection():
    opened = []

    async def slow_factory(job_id):
        await asyncio.sleep(0.01)
        conn = FakeConnection(job_id)
        opened.append(conn)
        return conn

    pool = ConnectionPool(slow_factory)

    first, second = await asyncio.gather(
        pool.get_connection("job-1"),
        pool.get_connection("job-1"),
    )

    assert len(opened) == 1
    assert first is second
    assert pool.refcount("job-1") == 2

    await pool.release_connection("job-1")
    assert not opened[0].closed
    await pool.release_connection("job-1")
    assert opened[0].closed
    assert "job-1" not in pool
