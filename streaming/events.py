"""
Stream events — what subscribers of a job receive while it runs.

A tagged union: every event is exactly one of

    StatusEvent   status changed          event: status
    TokenEvent    output chunk            event: token
    MetricsEvent  final metric payload    event: metrics
    ErrorEvent    job-level failure       event: error
    DoneEvent     nothing more will come  event: done

Events are ephemeral: never persisted, no replay for late subscribers.

A retry is visible only as a status event: a StatusEvent(PENDING) after
RUNNING means the attempt was re-queued, and the tokens of the next attempt
start from scratch. Subscribers that accumulate output must reset it there
(streaming.client.OutputBuffer does).
`event_name` + `data()` is the server-sent-events wire form; parse_event()
is the inverse used by the SSE client.
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Union

from models.enums import JobStatus


@dataclass(frozen=True)
class StatusEvent:
    status: JobStatus
    event_name: ClassVar[str] = "status"

    def data(self) -> dict:
        return {"status": JobStatus(self.status).value}


@dataclass(frozen=True)
class TokenEvent:
    content: str
    event_name: ClassVar[str] = "token"

    def data(self) -> dict:
        return {"content": self.content}


@dataclass(frozen=True)
class MetricsEvent:
    payload: dict[str, Any] = field(default_factory=dict)
    event_name: ClassVar[str] = "metrics"

    def data(self) -> dict:
        return dict(self.payload)


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    error_type: str = "unknown"
    event_name: ClassVar[str] = "error"

    def data(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DoneEvent:
    event_name: ClassVar[str] = "done"

    def data(self) -> dict:
        return {"done": True}


JobEvent = Union[StatusEvent, TokenEvent, MetricsEvent, ErrorEvent, DoneEvent]


def to_sse(event: JobEvent) -> dict:
    """Shape expected by sse_starlette's EventSourceResponse."""
    return {"event": event.event_name, "data": json.dumps(event.data())}


def parse_event(event_name: str, data: str) -> JobEvent:
    payload = json.loads(data) if data else {}
    if event_name == StatusEvent.event_name:
        return StatusEvent(JobStatus(payload["status"]))
    if event_name == TokenEvent.event_name:
        return TokenEvent(payload.get("content", ""))
    if event_name == MetricsEvent.event_name:
        return MetricsEvent(payload)
    if event_name == ErrorEvent.event_name:
        return ErrorEvent(payload.get("message", ""), payload.get("error_type", "unknown"))
    if event_name == DoneEvent.event_name:
        return DoneEvent()
    raise ValueError(f"Unknown stream event: {event_name!r}")
