"""Tests for event/generator.py: bounded enqueue and the drain worker pool."""

import asyncio
import time

import pytest
import respx
from admitlayer.event.generator import EventGenerator
from admitlayer.event.models import Event, ObjectReference, Reason
from admitlayer.event.sink import HTTPEventSink
from fakes import RecordingSink
from httpx import Response


def make_event(name: str = "add-label") -> Event:
    return Event(
        regarding=ObjectReference(kind="ClusterPolicy", name=name),
        reason=Reason.POLICY_APPLIED,
        message=f"policy {name} applied",
        success=True,
    )


async def drain(generator: EventGenerator, workers: int = 2) -> None:
    task = asyncio.create_task(generator.run(workers))
    try:
        await asyncio.wait_for(generator.join(), timeout=2)
    finally:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)


class TestQueueBound:
    @pytest.mark.asyncio
    async def test_overflow_drops_newest_and_counts(self):
        sink = RecordingSink()
        generator = EventGenerator(sink, max_queued_events=2)

        started = time.monotonic()
        accepted = generator.add(make_event("a"), make_event("b"), make_event("c"))
        elapsed = time.monotonic() - started

        assert accepted == 2
        assert generator.dropped == 1
        assert generator.size() == 2
        assert elapsed < 0.5

        await drain(generator)

        assert sorted(e.regarding.name for e in sink.events) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_capacity_frees_up_after_drain(self):
        sink = RecordingSink()
        generator = EventGenerator(sink, max_queued_events=1)

        generator.add(make_event("a"))
        await drain(generator)
        accepted = generator.add(make_event("b"))

        assert accepted == 1
        assert generator.dropped == 0

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            EventGenerator(RecordingSink(), max_queued_events=0)


class TestWorkers:
    @pytest.mark.asyncio
    async def test_workers_forward_events_to_sink(self):
        sink = RecordingSink()
        generator = EventGenerator(sink, max_queued_events=10)

        generator.add(*(make_event(str(i)) for i in range(5)))
        await drain(generator, workers=3)

        assert sorted(e.regarding.name for e in sink.events) == ["0", "1", "2", "3", "4"]
        assert generator.emitted == 5
        assert generator.size() == 0

    @pytest.mark.asyncio
    async def test_transient_sink_failure_is_retried(self):
        sink = RecordingSink(failures=2)
        generator = EventGenerator(sink, max_queued_events=10, max_retries=3, retry_backoff=0)

        generator.add(make_event())
        await drain(generator, workers=1)

        assert sink.attempts == 3
        assert len(sink.events) == 1
        assert generator.failed == 0

    @pytest.mark.asyncio
    async def test_persistent_sink_failure_is_counted_and_worker_survives(self):
        sink = RecordingSink(failures=3)
        generator = EventGenerator(sink, max_queued_events=10, max_retries=2, retry_backoff=0)

        generator.add(make_event("lost"), make_event("kept"))
        await drain(generator, workers=1)

        assert generator.failed == 1
        assert [e.regarding.name for e in sink.events] == ["kept"]

    @pytest.mark.asyncio
    async def test_non_retryable_failure_is_not_retried(self):
        class BrokenSink(RecordingSink):
            async def emit(self, event: Event) -> None:
                self.attempts += 1
                raise ValueError("event rejected")

        sink = BrokenSink()
        generator = EventGenerator(sink, max_queued_events=10, max_retries=3, retry_backoff=0)

        generator.add(make_event())
        await drain(generator, workers=1)

        assert sink.attempts == 1
        assert generator.failed == 1


class TestHTTPSinkRetries:
    @pytest.mark.asyncio
    async def test_client_error_is_posted_once(self):
        generator = EventGenerator(
            HTTPEventSink("https://events.example.com"),
            max_queued_events=10,
            max_retries=3,
            retry_backoff=0,
        )

        with respx.mock:
            route = respx.post("https://events.example.com/events").mock(return_value=Response(400))
            generator.add(make_event())
            await drain(generator, workers=1)

        assert route.call_count == 1
        assert generator.failed == 1

    @pytest.mark.asyncio
    async def test_unavailable_collector_is_retried(self):
        generator = EventGenerator(
            HTTPEventSink("https://events.example.com"),
            max_queued_events=10,
            max_retries=3,
            retry_backoff=0,
        )

        with respx.mock:
            route = respx.post("https://events.example.com/events").mock(
                side_effect=[Response(503), Response(503), Response(202)]
            )
            generator.add(make_event())
            await drain(generator, workers=1)

        assert route.call_count == 3
        assert generator.emitted == 1
        assert generator.failed == 0
