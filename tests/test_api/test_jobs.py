"""
API integration tests for /jobs endpoints.

These use the test HTTP client from conftest.py, which talks to
the FastAPI app with an in-memory SQLite DB and fake Redis.
No Docker, no network — runs in milliseconds.
"""

import asyncio

import pytest

from models.enums import JobStatus
from providers.errors import ProviderConfigError
from streaming.client import parse_sse_lines
from streaming.events import DoneEvent, MetricsEvent, StatusEvent, TokenEvent
from worker.pool import WorkerPool


async def _submit(client, **overrides):
    body = {"prompt": "Say hello", "provider": "stub", "model": "m1", **overrides}
    response = await client.post("/jobs/", json=body)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_job(client, stub_provider):
    """POST /jobs/ should persist the job as pending and run nothing."""
    data = await _submit(client, temperature=0.3, metrics=[{"id": "keywords", "input": "hello"}])

    assert data["status"] == "pending"
    assert data["prompt"] == "Say hello"
    assert data["temperature"] == 0.3
    assert data["selected_metrics"] == [{"id": "keywords", "input": "hello"}]
    assert data["attempt_count"] == 0
    assert data["id"]
    assert stub_provider.calls == 0


@pytest.mark.asyncio
async def test_template_is_rendered_with_input(client, stub_provider):
    data = await _submit(client, prompt=None, template="Translate: {{input}}", input_data="cat")
    assert data["prompt"] == "Translate: cat"
    assert data["template"] == "Translate: {{input}}"

    data = await _submit(client, prompt=None, template="Translate:", input_data="dog")
    assert data["prompt"] == "Translate:\ndog"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"provider": "stub", "model": "m1"},
    {"prompt": "  ", "provider": "stub", "model": "m1"},
    {"prompt": "hi", "provider": "stub", "model": "m1", "temperature": 5},
    {"prompt": "hi", "provider": "nope", "model": "m1"},
    {"prompt": "hi", "provider": "stub", "model": "not-a-model"},
])
async def test_create_job_rejects_invalid_input(client, stub_provider, body):
    response = await client.post("/jobs/", json=body)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_job(client, stub_provider):
    created = await _submit(client)

    response = await client.get(f"/jobs/{created['id']}")

    assert response.status_code == 200
    assert response.json()["id"] == created["id"]


@pytest.mark.asyncio
async def test_get_missing_job_404(client):
    response = await client.get("/jobs/does-not-exist")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_jobs_with_pagination_and_filters(client, app, stub_provider):
    ids = [(await _submit(client, prompt=f"job {i}"))["id"] for i in range(3)]
    await app.state.executor.execute(ids[0])

    page = (await client.get("/jobs/", params={"page": 1, "page_size": 2})).json()
    assert page["total"] == 3
    assert [j["id"] for j in page["jobs"]] == [ids[2], ids[1]]

    completed = (await client.get("/jobs/", params={"status": "completed"})).json()
    assert completed["total"] == 1
    summary = completed["jobs"][0]
    assert summary["result_snippet"] == "Hello"
    assert summary["avg_score"] is not None
    assert "prompt" not in summary

    other = (await client.get("/jobs/", params={"provider": "openai"})).json()
    assert other["total"] == 0


@pytest.mark.asyncio
async def test_stats(client, app, stub_provider):
    first = await _submit(client)
    await _submit(client)
    await app.state.executor.execute(first["id"])

    stats = (await client.get("/jobs/stats")).json()

    assert stats["total_jobs"] == 2
    assert stats["pending"] == 1
    assert stats["completed"] == 1
    assert stats["failed"] == 0


@pytest.mark.asyncio
async def test_delete_job(client, stub_provider):
    created = await _submit(client)

    assert (await client.delete(f"/jobs/{created['id']}")).status_code == 204
    assert (await client.get(f"/jobs/{created['id']}")).status_code == 404
    assert (await client.delete(f"/jobs/{created['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_cancel_pending_job_is_idempotent(client, app, stub_provider):
    created = await _submit(client)

    first = await client.post(f"/jobs/{created['id']}/cancel")
    second = await client.post(f"/jobs/{created['id']}/cancel")

    assert first.status_code == 200
    assert first.json()["status"] == "cancelled"
    assert second.json()["status"] == "cancelled"

    # A worker that claims it later finds nothing to run
    assert await app.state.repository.claim_next_pending("worker-a") is None
    assert stub_provider.calls == 0


@pytest.mark.asyncio
async def test_cancel_claimed_job_is_flagged(client, app, stub_provider):
    """Without an in-process pool only the column is set; the local registry stays empty."""
    created = await _submit(client)
    await app.state.repository.claim_next_pending("worker-a")

    response = await client.post(f"/jobs/{created['id']}/cancel")

    assert response.json() == {"job_id": created["id"], "status": "pending", "cancel_requested": True}
    assert (await app.state.repository.find_by_id(created["id"])).cancel_requested is True
    assert len(app.state.cancellations) == 0

    await app.state.executor.execute(created["id"])
    job = (await client.get(f"/jobs/{created['id']}")).json()
    assert job["status"] == "cancelled"
    assert stub_provider.calls == 0


@pytest.mark.asyncio
async def test_cancel_with_in_process_pool_flags_the_registry(client, app, stub_provider):
    app.state.worker_pool = WorkerPool(app.state.repository, app.state.executor, worker_id="worker-a")
    created = await _submit(client)
    await app.state.repository.claim_next_pending("worker-a")

    await client.post(f"/jobs/{created['id']}/cancel")
    assert app.state.cancellations.is_job_cancelled(created["id"])

    await app.state.executor.execute(created["id"])
    assert (await client.get(f"/jobs/{created['id']}")).json()["status"] == "cancelled"
    assert len(app.state.cancellations) == 0


@pytest.mark.asyncio
async def test_cancel_missing_job_404(client):
    assert (await client.post("/jobs/nope/cancel")).status_code == 404


@pytest.mark.asyncio
async def test_stream_of_finished_job_returns_json(client, app, stub_provider):
    created = await _submit(client)
    await app.state.executor.execute(created["id"])

    response = await client.get(f"/jobs/{created['id']}/stream")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    body = response.json()
    assert body["status"] == "completed"
    assert body["result"] == "Hello"


@pytest.mark.asyncio
async def test_stream_follows_a_running_job(client, app, stub_provider):
    created = await _submit(client)
    job_id = created["id"]
    bus = app.state.bus

    request = asyncio.create_task(client.get(f"/jobs/{job_id}/stream"))
    for _ in range(200):
        if bus.subscriber_count(job_id):
            break
        await asyncio.sleep(0.005)
    assert bus.subscriber_count(job_id) == 1

    await app.state.executor.execute(job_id)
    response = await asyncio.wait_for(request, timeout=5)

    assert response.headers["content-type"].startswith("text/event-stream")

    async def _lines():
        for line in response.text.splitlines():
            yield line

    events = [event async for event in parse_sse_lines(_lines())]
    assert isinstance(events[0], StatusEvent)
    assert [e.content for e in events if isinstance(e, TokenEvent)] == ["Hel", "lo"]
    assert sum(isinstance(e, MetricsEvent) for e in events) == 1
    assert isinstance(events[-1], DoneEvent)
    assert bus.subscriber_count(job_id) == 0


@pytest.mark.asyncio
async def test_diff_defaults_to_the_previous_job(client, stub_provider):
    first = await _submit(client, prompt="Say hello")
    second = await _submit(client, prompt="Say goodbye")

    response = await client.get(f"/jobs/{second['id']}/diff")

    assert response.status_code == 200
    body = response.json()
    assert body["base_job"]["id"] == second["id"]
    assert body["compare_job"]["id"] == first["id"]


@pytest.mark.asyncio
async def test_diff_with_explicit_other_job(client, stub_provider):
    first = await _submit(client)
    second = await _submit(client)
    third = await _submit(client)

    response = await client.get(f"/jobs/{first['id']}/diff", params={"other_id": third["id"]})

    body = response.json()
    assert body["base_job"]["id"] == first["id"]
    assert body["compare_job"]["id"] == third["id"]
    assert second["id"] not in (body["base_job"]["id"], body["compare_job"]["id"])


@pytest.mark.asyncio
async def test_diff_not_found_cases(client, stub_provider):
    only = await _submit(client)

    missing_base = await client.get("/jobs/nope/diff")
    missing_other = await client.get(f"/jobs/{only['id']}/diff", params={"other_id": "nope"})
    no_previous = await client.get(f"/jobs/{only['id']}/diff")

    assert missing_base.status_code == 404
    assert missing_base.json()["detail"] == "Base job not found"
    assert missing_other.json()["detail"] == "Compare job not found"
    assert no_previous.json()["detail"] == "No previous job found to compare with"


@pytest.mark.asyncio
async def test_retry_failed_job_creates_a_new_pending_job(client, app, use_stub):
    use_stub(error=ProviderConfigError("Stub API key not configured. Cannot process request."))
    original = await _submit(client, temperature=0.4, reference_text="hi there", disabled_metrics=["sentiment"])
    assert await app.state.executor.execute(original["id"]) == JobStatus.FAILED

    response = await client.post(f"/jobs/{original['id']}/retry")

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Job retry created successfully"
    assert body["original_job_id"] == original["id"]
    new_job = body["new_job"]
    assert new_job["id"] != original["id"]
    assert new_job["status"] == "pending"
    assert new_job["attempt_count"] == 0
    assert new_job["error_message"] is None
    assert new_job["temperature"] == 0.4
    assert new_job["reference_text"] == "hi there"
    assert new_job["disabled_metrics"] == ["sentiment"]

    # The failed job itself is left as it was
    assert (await client.get(f"/jobs/{original['id']}")).json()["status"] == "failed"


@pytest.mark.asyncio
async def test_retry_rejects_active_and_missing_jobs(client, stub_provider):
    pending = await _submit(client)

    assert (await client.post(f"/jobs/{pending['id']}/retry")).status_code == 409
    assert (await client.post("/jobs/nope/retry")).status_code == 404
