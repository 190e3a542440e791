"""Tests for progress sinks."""
import asyncio

from facematch.domain.value_objects.events import (
    CompletedPayload,
    ProgressEvent,
    StartedPayload,
)
from facematch.domain.value_objects.matching import CompletedOutcome, MatchThresholds
from facematch.services.progress import (
    CallbackProgressSink,
    CollectingProgressSink,
    FanOutProgressSink,
    NullProgressSink,
    ProgressSink,
    QueueProgressSink,
)


def started(sequence=0):
    return ProgressEvent(
        job_id="job-1",
        sequence=sequence,
        payload=StartedPayload(profile_id="user-1", total=2, concurrency_limit=1, thresholds=MatchThresholds())
    )


def completed(sequence=1):
    return ProgressEvent(
        job_id="job-1",
        sequence=sequence,
        payload=CompletedPayload(outcome=CompletedOutcome(elapsed_seconds=0.1))
    )


def test_sinks_satisfy_protocol():
    for sink in (NullProgressSink(), CollectingProgressSink(), QueueProgressSink(),
                 CallbackProgressSink(print), FanOutProgressSink()):
        assert isinstance(sink, ProgressSink)


def test_collecting_sink_keeps_order():
    sink = CollectingProgressSink()
    sink.emit(started())
    assert sink.terminal is None
    sink.emit(completed())
    assert [e.sequence for e in sink.events] == [0, 1]
    assert sink.terminal.sequence == 1


def test_failing_callback_is_contained():
    calls = []

    def flaky(event):
        calls.append(event.sequence)
        raise ValueError("renderer closed")

    sink = CallbackProgressSink(flaky)
    sink.emit(started())
    sink.emit(completed())
    assert calls == [0, 1]


def test_fan_out_continues_past_failing_sink():
    collector = CollectingProgressSink()
    sink = FanOutProgressSink(CallbackProgressSink(lambda e: 1 / 0))
    sink.add(collector)

    sink.emit(started())
    assert len(collector.events) == 1


async def test_queue_sink_iterates_until_terminal():
    sink = QueueProgressSink()

    async def produce():
        sink.emit(started())
        await asyncio.sleep(0)
        sink.emit(completed())

    received = []

    async def consume():
        async for event in sink:
            received.append(event.kind.value)

    await asyncio.gather(consume(), produce())
    assert received == ["started", "completed"]
