"""
Seed script — submits a few sample jobs against the mock provider and follows one live.

Usage:
    python -m scripts.seed_jobs [--base-url http://localhost:8000]

This creates:
- 1 plain prompt scored with the default metrics
- 1 template job ({{input}} substitution) with a keyword check
- 1 job compared against a reference text (precision / recall / f_score)
- 1 job with sentiment disabled

The mock provider needs no API keys, so this works right after
`uvicorn api.main:app` with WORKER_ENABLED left on.
"""

import argparse
import asyncio

import httpx

from streaming.client import JobStreamConnection, OutputBuffer
from streaming.events import DoneEvent, ErrorEvent, MetricsEvent, StatusEvent, TokenEvent

BASE_URL = "http://localhost:8000"

SAMPLE_JOBS = [
    {
        "prompt": "Explain what a message queue is in two sentences.",
    },
    {
        "template": "Translate to French: {{input}}",
        "input_data": "The weather is nice today.",
        "metrics": [{"id": "word_count"}, {"id": "keywords", "input": "weather, nice"}],
    },
    {
        "prompt": "Summarize: the quick brown fox jumps over the lazy dog.",
        "reference_text": "A quick fox jumps over a lazy dog.",
    },
    {
        "prompt": "List three prime numbers.",
        "disabled_metrics": ["sentiment"],
    },
]


async def follow(client: httpx.AsyncClient, job_id: str) -> None:
    """Print one job's events as they arrive."""
    connection = JobStreamConnection(client, job_id)
    output = OutputBuffer()
    try:
        async for event in connection.events():
            output.apply(event)
            if isinstance(event, StatusEvent):
                print(f"\n  status → {event.status.value} (attempt {output.attempts})")
            elif isinstance(event, TokenEvent):
                print(event.content, end="", flush=True)
            elif isinstance(event, MetricsEvent):
                print(f"\n  metrics: {event.payload}")
            elif isinstance(event, ErrorEvent):
                print(f"\n  error [{event.error_type}]: {event.message}")
            elif isinstance(event, DoneEvent):
                print(f"  done, {len(output.text)} chars of output")
    finally:
        await connection.aclose()


async def seed(base_url: str) -> None:
    async with httpx.AsyncClient(base_url=base_url, timeout=30.0) as client:
        print(f"Submitting {len(SAMPLE_JOBS)} jobs to {base_url}...\n")

        job_ids = []
        for body in SAMPLE_JOBS:
            resp = await client.post("/jobs/", json={"provider": "mock", "model": "mock-echo", **body})
            resp.raise_for_status()
            data = resp.json()
            job_ids.append(data["id"])
            print(f"  [{data['status']}] {data['prompt'][:50]} (id: {data['id'][:8]}...)")

        print(f"\nFollowing job {job_ids[0][:8]}...")
        await follow(client, job_ids[0])

    print("\nCheck status:  curl http://localhost:8000/jobs/stats")
    print("List jobs:     curl http://localhost:8000/jobs/")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Submit sample Prompt Lab jobs")
    parser.add_argument("--base-url", default=BASE_URL)
    args = parser.parse_args()
    asyncio.run(seed(args.base_url))
