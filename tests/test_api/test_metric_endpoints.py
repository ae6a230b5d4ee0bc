"""API tests for /metrics and /providers."""

import pytest


@pytest.mark.asyncio
async def test_list_metrics_flags_defaults(client):
    response = await client.get("/metrics/")

    assert response.status_code == 200
    catalogue = {m["id"]: m for m in response.json()}
    assert catalogue["word_count"]["is_default"] is True
    assert catalogue["keywords"]["is_default"] is False
    assert catalogue["keywords"]["requires_input"] is True
    assert catalogue["keywords"]["input_label"] == "Keywords"


@pytest.mark.asyncio
async def test_list_metrics_by_category(client):
    response = await client.get("/metrics/", params={"category": "structure"})
    assert {m["category"] for m in response.json()} == {"structure"}


@pytest.mark.asyncio
async def test_metric_categories(client):
    response = await client.get("/metrics/categories")

    assert response.status_code == 200
    body = response.json()
    names = [c["category"] for c in body["categories"]]
    assert names == sorted(names)
    assert body["total"] == len(names)

    structure = next(c for c in body["categories"] if c["category"] == "structure")
    assert structure["count"] == len(structure["plugins"])
    assert {"id": "word_count", "name": "Word Count"} in structure["plugins"]
    assert "is_valid_json" not in [p["id"] for p in structure["plugins"]]


@pytest.mark.asyncio
async def test_get_metric(client):
    assert (await client.get("/metrics/sentiment")).json()["name"] == "Sentiment"
    assert (await client.get("/metrics/nope")).status_code == 404


@pytest.mark.asyncio
async def test_evaluate_text(client):
    body = {
        "text": "Hello world. How are you?",
        "metrics": [{"id": "word_count"}, {"id": "keywords", "input": "hello, bye"}],
    }

    first = (await client.post("/metrics/evaluate", json=body)).json()
    second = (await client.post("/metrics/evaluate", json=body)).json()

    assert first["results"]["word_count"] == 5
    assert first["results"]["keywords"]["found"] == ["hello"]
    assert first["errors"] == []
    assert first["avg_score"] == 0.0
    assert first["cache_hit"] is False
    assert second["cache_hit"] is True
    assert second["results"] == first["results"]


@pytest.mark.asyncio
async def test_evaluate_with_reference_scores_overlap(client):
    body = {"text": "the quick fox", "metrics": [], "reference_text": "the quick brown fox jumps"}

    data = (await client.post("/metrics/evaluate", json=body)).json()

    assert data["results"]["precision"] == 1.0
    assert data["avg_score"] > 0


@pytest.mark.asyncio
async def test_evaluate_without_plugins_is_unavailable(client, app):
    app.state.metric_registry.clear()
    response = await client.post("/metrics/evaluate", json={"text": "hi"})
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_list_providers(client, stub_provider):
    providers = {p["name"]: p for p in (await client.get("/providers/")).json()}

    assert providers["openai"]["builtin"] is True
    assert providers["mock"]["supports_streaming"] is True
    assert providers["stub"] == {
        "name": "stub", "models": ["m1"], "supports_streaming": True, "builtin": False,
    }
