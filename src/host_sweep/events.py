"""
Event channel between the scheduler and its consumer.

The scheduler only knows the EventSink interface (`async emit(event)`).
EventStream is the live channel: a bounded FIFO queue that a transport
adapter drains, with backpressure when the consumer falls behind.
DiscardingSink serves the synchronous mode, where only the returned summary
matters. TeeSink lets observers such as the inventory recorder see the same
sequence as the consumer.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator

from ._types import CompleteEvent, ScanEvent
from .exceptions import StreamClosed

logger = logging.getLogger(__name__)

# Marks the end of the stream inside the queue
_END = object()


class EventSink(ABC):
    """Consumer side of the scheduler's event sequence."""

    @abstractmethod
    async def emit(self, event: ScanEvent) -> None:
        """Accept one event. May block to apply backpressure."""
        pass


class DiscardingSink(EventSink):
    """Drops intermediate events and keeps the terminal one."""

    def __init__(self):
        self.complete: CompleteEvent | None = None

    async def emit(self, event: ScanEvent) -> None:
        if isinstance(event, CompleteEvent):
            self.complete = event


class TeeSink(EventSink):
    """Forwards each event to several sinks, in the order given."""

    def __init__(self, *sinks: EventSink):
        self.sinks = sinks

    async def emit(self, event: ScanEvent) -> None:
        for sink in self.sinks:
            await sink.emit(event)


class EventStream(EventSink):
    """
    Bounded FIFO channel of scan events.

    The producer calls emit() and finally close(). The consumer iterates with
    `async for`. Events come out in exactly the order they went in. Nothing
    is dropped: emit() waits while the buffer is full.

    When the consumer goes away the transport calls detach(). Buffered
    events are discarded, a producer blocked on a full buffer is released,
    and every later emit() raises StreamClosed.
    """

    def __init__(self, maxsize: int = 256):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._detached = False
        self._closed = False

    @property
    def detached(self) -> bool:
        return self._detached

    async def emit(self, event: ScanEvent) -> None:
        if self._detached:
            raise StreamClosed("Event stream consumer has detached")
        if self._closed:
            raise StreamClosed("Event stream is closed")
        await self._queue.put(event)

    async def close(self) -> None:
        """Mark the end of the sequence. Idempotent."""
        if self._closed or self._detached:
            return
        self._closed = True
        await self._queue.put(_END)

    def detach(self) -> None:
        """Consumer side is gone; release the producer."""
        self._detached = True
        while not self._queue.empty():
            self._queue.get_nowait()

    def __aiter__(self) -> AsyncIterator[ScanEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ScanEvent]:
        while not self._detached:
            item = await self._queue.get()
            if item is _END:
                return
            yield item


def encode_sse(event: ScanEvent, event_id: int | None = None) -> bytes:
    """Frame one event as a Server-Sent Events message."""
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append(f"data: {json.dumps(event.to_dict(), separators=(',', ':'))}")
    return ("\n".join(lines) + "\n\n").encode("utf-8")
