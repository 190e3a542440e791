"""Sinks that receive a job's progress events."""
import asyncio
from typing import AsyncIterator, Callable, List, Optional, Protocol, runtime_checkable

from facematch.core.logging import get_logger
from facematch.domain.value_objects.events import ProgressEvent

logger = get_logger(__name__)


@runtime_checkable
class ProgressSink(Protocol):
    """Anything that accepts progress events.

    ``emit`` is called from the event loop, in publication order, and must
    not block.
    """

    def emit(self, event: ProgressEvent) -> None:
        ...


class NullProgressSink:
    """Discards every event."""

    def emit(self, event: ProgressEvent) -> None:
        pass


class CallbackProgressSink:
    """Forwards each event to a plain callback.

    A failing callback is logged and does not affect the job.
    """

    def __init__(self, callback: Callable[[ProgressEvent], None]) -> None:
        self.callback = callback

    def emit(self, event: ProgressEvent) -> None:
        try:
            self.callback(event)
        except Exception as e:
            logger.error(
                "Progress callback failed",
                job_id=event.job_id,
                kind=event.kind.value,
                error=str(e),
                exc_info=True
            )


class QueueProgressSink:
    """Buffers events in an unbounded queue for an async consumer.

    Iterating the sink yields events until (and including) the terminal one.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()
        self._closed = False

    def emit(self, event: ProgressEvent) -> None:
        self._queue.put_nowait(event)

    async def get(self) -> ProgressEvent:
        return await self._queue.get()

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        if self._closed:
            return
        while True:
            event = await self._queue.get()
            yield event
            if event.is_terminal:
                self._closed = True
                return


class CollectingProgressSink:
    """Keeps every event in memory, in order."""

    def __init__(self) -> None:
        self.events: List[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def terminal(self) -> Optional[ProgressEvent]:
        return next((e for e in reversed(self.events) if e.is_terminal), None)


class FanOutProgressSink:
    """Delivers every event to several sinks in registration order."""

    def __init__(self, *sinks: ProgressSink) -> None:
        self.sinks: List[ProgressSink] = list(sinks)

    def add(self, sink: ProgressSink) -> None:
        self.sinks.append(sink)

    def emit(self, event: ProgressEvent) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception as e:
                logger.error(
                    "Progress sink failed",
                    sink=type(sink).__name__,
                    job_id=event.job_id,
                    kind=event.kind.value,
                    error=str(e),
                    exc_info=True
                )
