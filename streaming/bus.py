"""
Per-job publish/subscribe channel.

    unsubscribe = bus.subscribe(job_id, listener)   # listener(event) called synchronously
    bus.publish(job_id, TokenEvent("Hel"))
    unsubscribe()                                   # idempotent

Each subscriber gets every event published after it subscribed, in publish
order. There is no backlog: a late subscriber starts with the next event.
One listener raising does not stop delivery to the others.

open_stream() wraps the same mechanism in an asyncio.Queue for async
consumers (the SSE endpoint): it yields events until DoneEvent.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable

from streaming.events import DoneEvent, JobEvent

logger = logging.getLogger(__name__)

Listener = Callable[[JobEvent], None]


class _Subscription:
    """Wrapper so the same function subscribed twice is two distinct entries."""

    __slots__ = ("listener",)

    def __init__(self, listener: Listener):
        self.listener = listener


class JobEventBus:

    def __init__(self):
        self._subscribers: dict[str, list[_Subscription]] = {}

    def subscribe(self, job_id: str, listener: Listener) -> Callable[[], None]:
        subscription = _Subscription(listener)
        self._subscribers.setdefault(job_id, []).append(subscription)

        def unsubscribe() -> None:
            subs = self._subscribers.get(job_id)
            if not subs:
                return
            for i, existing in enumerate(subs):
                if existing is subscription:
                    del subs[i]
                    break
            if not subs:
                self._subscribers.pop(job_id, None)

        return unsubscribe

    def publish(self, job_id: str, event: JobEvent) -> None:
        # Copy: a listener may unsubscribe (itself or others) during delivery
        for subscription in list(self._subscribers.get(job_id, ())):
            try:
                subscription.listener(event)
            except Exception as e:
                logger.error(f"Listener for job {job_id} raised on {event.event_name}: {e}", exc_info=True)

    def subscriber_count(self, job_id: str) -> int:
        return len(self._subscribers.get(job_id, ()))

    def open_stream(self, job_id: str) -> "EventStream":
        """Subscribe now and return an async iterator over the buffered events."""
        return EventStream(self, job_id)


class EventStream:
    """
    Queue-backed subscription for async consumers.

    The subscription exists from construction, so nothing published between
    open_stream() and the first `async for` step is lost. Iteration ends
    after DoneEvent; close() unsubscribes early (client went away).
    """

    def __init__(self, bus: JobEventBus, job_id: str):
        self.job_id = job_id
        self._queue: asyncio.Queue[JobEvent] = asyncio.Queue()
        self._unsubscribe = bus.subscribe(job_id, self._queue.put_nowait)
        self._finished = False

    def __aiter__(self) -> AsyncIterator[JobEvent]:
        return self

    async def __anext__(self) -> JobEvent:
        if self._finished:
            raise StopAsyncIteration
        event = await self._queue.get()
        if isinstance(event, DoneEvent):
            self.close()
        return event

    def close(self) -> None:
        self._finished = True
        self._unsubscribe()
