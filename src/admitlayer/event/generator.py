"""
Bounded, asynchronously drained event queue.

Producers call :meth:`EventGenerator.add`, which never waits: when the
queue is at capacity the newest event is dropped and counted. A fixed pool
of drain workers forwards queued events to an :class:`EventSink`.
"""

from __future__ import annotations

import asyncio

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from admitlayer.core.errors import EventQueueOverflow
from admitlayer.event.models import Event
from admitlayer.event.sink import EventSink, RetryableSinkError

logger = structlog.get_logger()


class EventGenerator:
    def __init__(
        self,
        sink: EventSink,
        max_queued_events: int = 1000,
        *,
        max_retries: int = 3,
        retry_backoff: float = 0.5,
    ) -> None:
        if max_queued_events <= 0:
            raise ValueError("max_queued_events must be positive")
        self._sink = sink
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=max_queued_events)
        self._max_retries = max(1, max_retries)
        self._retry_backoff = retry_backoff
        self.dropped = 0
        self.emitted = 0
        self.failed = 0

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    def size(self) -> int:
        return self._queue.qsize()

    def add(self, *events: Event) -> int:
        """Enqueue events without blocking. Returns how many were accepted."""
        accepted = 0
        for event in events:
            try:
                self._offer(event)
            except EventQueueOverflow as exc:
                self.dropped += 1
                logger.warning(
                    "event_dropped",
                    reason=event.reason.value,
                    regarding=str(event.regarding),
                    dropped_total=self.dropped,
                    **exc.details,
                )
            else:
                accepted += 1
        return accepted

    def _offer(self, event: Event) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull as exc:
            raise EventQueueOverflow(
                "event queue is full", details={"capacity": self.capacity}
            ) from exc

    async def run(self, workers: int) -> None:
        """Drain the queue with ``workers`` consumers until cancelled."""
        logger.info("event_generator_started", workers=workers, capacity=self.capacity)
        try:
            async with asyncio.TaskGroup() as tg:
                for index in range(workers):
                    tg.create_task(self._worker(index), name=f"event-worker-{index}")
        finally:
            logger.info("event_generator_stopped", pending=self.size(), dropped=self.dropped)

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._emit(event)
                self.emitted += 1
            except Exception as exc:
                self.failed += 1
                logger.error(
                    "event_emit_failed",
                    worker=index,
                    reason=event.reason.value,
                    regarding=str(event.regarding),
                    error=str(exc),
                )
            finally:
                self._queue.task_done()

    async def _emit(self, event: Event) -> None:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            retry=retry_if_exception_type(RetryableSinkError),
            wait=wait_exponential(multiplier=self._retry_backoff, max=10),
            reraise=True,
        ):
            with attempt:
                await self._sink.emit(event)
