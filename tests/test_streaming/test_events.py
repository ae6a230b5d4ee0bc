"""Tests for the event wire format and the SSE client parser."""

import json

import pytest

from models.enums import JobStatus
from streaming.client import parse_sse_lines
from streaming.events import (
    DoneEvent,
    ErrorEvent,
    MetricsEvent,
    StatusEvent,
    TokenEvent,
    parse_event,
    to_sse,
)


def test_to_sse_shape():
    assert to_sse(TokenEvent("Hel")) == {"event": "token", "data": json.dumps({"content": "Hel"})}
    assert to_sse(StatusEvent(JobStatus.RUNNING))["data"] == '{"status": "running"}'


def test_parse_event_inverts_to_sse():
    event = ErrorEvent("boom", "timeout")
    frame = to_sse(event)
    assert parse_event(frame["event"], frame["data"]) == event


def test_parse_unknown_event_raises():
    with pytest.raises(ValueError):
        parse_event("mystery", "{}")


async def _lines(*lines):
    for line in lines:
        yield line


@pytest.mark.asyncio
async def test_parse_sse_lines():
    lines = _lines(
        ": ping",
        "event: status",
        'data: {"status": "running"}',
        "",
        "event: token",
        'data: {"content": "Hel"}',
        "",
        "event: metrics",
        'data: {"word_count": 1}',
        "",
        "event: done",
        'data: {"done": true}',
        "",
    )

    events = [e async for e in parse_sse_lines(lines)]

    assert events == [
        StatusEvent(JobStatus.RUNNING),
        TokenEvent("Hel"),
        MetricsEvent({"word_count": 1}),
        DoneEvent(),
    ]


@pytest.mark.asyncio
async def test_parse_sse_lines_flushes_last_frame_without_blank_line():
    events = [e async for e in parse_sse_lines(_lines("event: done", "data: {}"))]
    assert events == [DoneEvent()]
