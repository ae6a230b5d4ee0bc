"""
SSE client for GET /jobs/{id}/stream.

A JobStreamConnection is one long-lived HTTP request. Several UI consumers of
the same job share it through ConnectionPool:

    pool = ConnectionPool(lambda job_id: JobStreamConnection(client, job_id))
    conn = await pool.get_connection(job_id)
    async for event in conn.events():
        ...
    await pool.release_connection(job_id)

Frames are parsed into the same event dataclasses the server publishes
(streaming/events.py). A job that is already terminal answers with plain JSON
instead of an event stream; events() then yields the final status and done.

OutputBuffer keeps the running text of one job across retried attempts.
"""

import logging
from typing import AsyncIterator, Optional

import httpx

from models.enums import JobStatus
from streaming.events import DoneEvent, JobEvent, StatusEvent, TokenEvent, parse_event

logger = logging.getLogger(__name__)


class JobStreamConnection:

    def __init__(self, client: httpx.AsyncClient, job_id: str):
        self._client = client
        self.job_id = job_id
        self._response: Optional[httpx.Response] = None
        self.closed = False

    async def events(self) -> AsyncIterator[JobEvent]:
        if self.closed:
            raise RuntimeError(f"Stream connection for job {self.job_id} is closed")

        request = self._client.build_request(
            "GET", f"/jobs/{self.job_id}/stream", headers={"Accept": "text/event-stream"}
        )
        self._response = await self._client.send(request, stream=True)
        try:
            self._response.raise_for_status()
            content_type = self._response.headers.get("content-type", "")
            if not content_type.startswith("text/event-stream"):
                await self._response.aread()
                body = self._response.json()
                yield StatusEvent(JobStatus(body["status"]))
                yield DoneEvent()
                return

            async for event in parse_sse_lines(self._response.aiter_lines()):
                yield event
                if isinstance(event, DoneEvent):
                    return
        finally:
            await self._close_response()

    async def aclose(self) -> None:
        self.closed = True
        await self._close_response()

    async def _close_response(self) -> None:
        if self._response is not None:
            await self._response.aclose()
            self._response = None


class OutputBuffer:
    """Output of a job so far, as a subscriber sees it."""

    def __init__(self):
        self.text = ""
        self.attempts = 0

    def apply(self, event: JobEvent) -> None:
        if isinstance(event, TokenEvent):
            self.text += event.content
        elif isinstance(event, StatusEvent):
            if event.status == JobStatus.RUNNING:
                self.attempts += 1
            elif event.status == JobStatus.PENDING:
                # Re-queued: the next attempt streams its output again
                self.text = ""


async def parse_sse_lines(lines: AsyncIterator[str]) -> AsyncIterator[JobEvent]:
    """
    Turn raw SSE lines into events.

    A frame is `event:` and `data:` fields terminated by a blank line.
    Comment lines (": ping") and frames without an event name are skipped.
    """
    event_name = None
    data_lines: list[str] = []
    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if event_name is not None:
                yield parse_event(event_name, "\n".join(data_lines))
            event_name = None
            data_lines = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event_name = value
        elif field == "data":
            data_lines.append(value)

    if event_name is not None:
        yield parse_event(event_name, "\n".join(data_lines))
