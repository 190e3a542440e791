"""
Batch orchestration of face comparisons over a photo collection.

A job compares one face profile against an ordered list of photos through a
bounded pool of concurrent comparisons, classifies every outcome, and
publishes an ordered stream of progress events that ends with exactly one
terminal event (``completed``, ``cancelled`` or ``failed``).

Example:
    ```python
    orchestrator = BatchOrchestrator(comparison_client, concurrency_limit=3)
    job = orchestrator.run(profile, photos)

    async for event in job.events():
        if event.kind is EventKind.MATCH_FOUND:
            show(event.payload.match)

    outcome = await job
    ```
"""
import asyncio
import time
import uuid
from typing import AsyncIterator, Dict, Generator, List, Optional, Sequence, Set

import structlog

from facematch.core.config import settings
from facematch.core.exceptions import InvalidJobStateError, JobPreconditionError
from facematch.core.logging import get_logger
from facematch.domain.entities.photo import FaceProfileRef, PhotoRef
from facematch.domain.value_objects.events import (
    CancelledPayload,
    CompletedPayload,
    EventKind,
    EventPayload,
    FailedPayload,
    ItemSettledPayload,
    MatchFoundPayload,
    ProgressEvent,
    StartedPayload,
)
from facematch.domain.value_objects.matching import (
    CancelledOutcome,
    ComparisonOutcome,
    CompletedOutcome,
    FailedOutcome,
    ItemError,
    JobOutcome,
    JobState,
    MatchResult,
    MatchThresholds,
    MatchTier,
)
from facematch.services.cancellation import CancellationToken
from facematch.services.classifier import classify
from facematch.services.comparison_client import ComparisonClient, describe_error
from facematch.services.progress import ProgressSink

logger = get_logger(__name__)

_TRANSITIONS = {
    JobState.IDLE: frozenset({JobState.RUNNING, JobState.FAILED}),
    JobState.RUNNING: frozenset({JobState.COMPLETED, JobState.CANCELLED, JobState.FAILED}),
}


def _check_concurrency_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValueError(f"concurrency_limit must be a positive integer, got {limit!r}")
    return limit


class Job:
    """Handle on one matching job.

    A job is awaitable and resolves to its terminal outcome. ``cancel()`` may
    be called any number of times, from any thread; only the first call has
    an effect.
    """

    def __init__(
        self,
        job_id: str,
        total: int,
        token: CancellationToken,
        sink: Optional[ProgressSink] = None
    ) -> None:
        self.job_id = job_id
        self.total = total
        self.token = token
        self._sink = sink
        self._state = JobState.IDLE
        self._events: List[ProgressEvent] = []
        self._subscribers: List["asyncio.Queue[ProgressEvent]"] = []
        self._outcome: Optional[JobOutcome] = None
        self._done: "asyncio.Future[JobOutcome]" = asyncio.get_running_loop().create_future()
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def outcome(self) -> Optional[JobOutcome]:
        """Terminal outcome, or None while the job is still running."""
        return self._outcome

    @property
    def published_events(self) -> List[ProgressEvent]:
        """Events published so far, in order."""
        return list(self._events)

    def done(self) -> bool:
        return self._done.done()

    def cancel(self) -> None:
        """Ask the job to stop dispatching new comparisons."""
        self.token.request_cancel()

    async def result(self) -> JobOutcome:
        """Wait for the terminal outcome."""
        return await asyncio.shield(self._done)

    def __await__(self) -> Generator[None, None, JobOutcome]:
        return self.result().__await__()

    async def events(self) -> AsyncIterator[ProgressEvent]:
        """Iterate over the job's events from ``started`` to the terminal event.

        Every call replays the events already published, so late or multiple
        consumers all see the complete stream.
        """
        queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()
        for event in self._events:
            queue.put_nowait(event)
        if not self._terminal_published():
            self._subscribers.append(queue)
        try:
            while True:
                event = await queue.get()
                yield event
                if event.is_terminal:
                    return
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    def _terminal_published(self) -> bool:
        return bool(self._events) and self._events[-1].is_terminal

    def _transition(self, new_state: JobState) -> None:
        if new_state not in _TRANSITIONS.get(self._state, frozenset()):
            raise InvalidJobStateError(
                f"Job {self.job_id} cannot move from {self._state.value} to {new_state.value}"
            )
        self._state = new_state

    def _publish(self, payload: EventPayload) -> ProgressEvent:
        if self._terminal_published():
            raise InvalidJobStateError(f"Job {self.job_id} already published its terminal event")
        if not self._events and payload.kind not in (EventKind.STARTED, EventKind.FAILED):
            raise InvalidJobStateError(f"Job {self.job_id} must publish 'started' first")

        event = ProgressEvent(job_id=self.job_id, sequence=len(self._events), payload=payload)
        self._events.append(event)
        for queue in list(self._subscribers):
            queue.put_nowait(event)
        if self._sink is not None:
            try:
                self._sink.emit(event)
            except Exception as e:
                logger.error(
                    "Progress sink failed",
                    job_id=self.job_id,
                    kind=event.kind.value,
                    error=str(e),
                    exc_info=True
                )
        return event

    def _finish(self, state: JobState, outcome: JobOutcome, payload: EventPayload) -> None:
        self._transition(state)
        self._outcome = outcome
        self._publish(payload)
        self.token.clear_deadline()
        if not self._done.done():
            self._done.set_result(outcome)

    def __repr__(self) -> str:
        return f"Job(job_id={self.job_id!r}, state={self._state.value}, total={self.total})"


class _JobTally:
    """Aggregation state of a running job.

    Only the orchestrator's control coroutine touches it, so it needs no lock.
    """

    def __init__(self, photos: Sequence[PhotoRef]) -> None:
        self.total = len(photos)
        self.positions = {photo.id: index for index, photo in enumerate(photos)}
        self.matches: List[MatchResult] = []
        self.errors: List[ItemError] = []
        self.unmatched: List[str] = []
        self.settled_ids: Set[str] = set()
        self.dispatched = 0
        self.settled = 0

    def record(self, outcome: ComparisonOutcome, tier: MatchTier) -> Optional[MatchResult]:
        self.settled += 1
        self.settled_ids.add(outcome.photo_id)
        if outcome.failed:
            self.errors.append(ItemError(photo_id=outcome.photo_id, error=outcome.error))
            return None
        if not tier.is_match:
            self.unmatched.append(outcome.photo_id)
            return None
        match = MatchResult(photo_id=outcome.photo_id, similarity=outcome.similarity, tier=tier)
        self.matches.append(match)
        return match

    def estimate_remaining(self, elapsed: float) -> Optional[float]:
        if self.settled == 0:
            return None
        return round(elapsed / self.settled * (self.total - self.settled), 1)

    def ranked_matches(self) -> List[MatchResult]:
        return sorted(self.matches, key=lambda m: (-m.similarity, self.positions[m.photo_id]))

    def ordered_errors(self) -> List[ItemError]:
        return sorted(self.errors, key=lambda e: self.positions[e.photo_id])

    def ordered_unmatched(self) -> List[str]:
        return sorted(self.unmatched, key=self.positions.__getitem__)


class BatchOrchestrator:
    """Runs face matching jobs over photo collections.

    Comparisons are dispatched in input order, at most ``concurrency_limit``
    at a time. The cancellation token is checked before every dispatch and
    after every settle; comparisons already in flight always settle.
    """

    def __init__(
        self,
        comparison_client: ComparisonClient,
        thresholds: Optional[MatchThresholds] = None,
        concurrency_limit: Optional[int] = None
    ) -> None:
        """Initialize the orchestrator.

        Args:
            comparison_client: Adapter performing one profile/photo comparison
            thresholds: Default tier thresholds for jobs
            concurrency_limit: Default maximum of comparisons in flight per job
        """
        self.comparison_client = comparison_client
        self.thresholds = thresholds if thresholds is not None else MatchThresholds.from_settings()
        self.concurrency_limit = _check_concurrency_limit(
            concurrency_limit if concurrency_limit is not None else settings.CONCURRENCY_LIMIT
        )

    def run(
        self,
        profile: Optional[FaceProfileRef],
        photos: Optional[Sequence[PhotoRef]],
        thresholds: Optional[MatchThresholds] = None,
        concurrency_limit: Optional[int] = None,
        *,
        sink: Optional[ProgressSink] = None,
        token: Optional[CancellationToken] = None,
        job_id: Optional[str] = None
    ) -> Job:
        """Start a matching job on the running event loop.

        Args:
            profile: Face profile to look for
            photos: Photos to check, in dispatch order
            thresholds: Tier thresholds, defaults to the orchestrator's
            concurrency_limit: Comparisons in flight, defaults to the orchestrator's
            sink: Optional observer receiving every progress event
            token: Cancellation token to share with the caller
            job_id: Identifier for logs and events, generated when omitted

        Returns:
            The job. When the profile or photos are unusable it is already
            in the ``failed`` state and no comparison was made.

        Raises:
            TypeError: If thresholds is not a MatchThresholds
            ValueError: If concurrency_limit is not a positive integer
            RuntimeError: If no event loop is running
        """
        thresholds = thresholds if thresholds is not None else self.thresholds
        if not isinstance(thresholds, MatchThresholds):
            raise TypeError(f"thresholds must be MatchThresholds, got {type(thresholds).__name__}")
        limit = _check_concurrency_limit(
            concurrency_limit if concurrency_limit is not None else self.concurrency_limit
        )

        photo_list = tuple(photos) if photos is not None else ()
        job = Job(
            job_id=job_id or uuid.uuid4().hex,
            total=len(photo_list),
            token=token or CancellationToken(),
            sink=sink
        )
        log = logger.bind(job_id=job.job_id)

        try:
            self._check_preconditions(profile, photo_list)
        except JobPreconditionError as e:
            log.warning("Matching job rejected", reason=str(e))
            outcome = FailedOutcome(reason=str(e))
            job._finish(JobState.FAILED, outcome, FailedPayload(outcome=outcome))
            return job

        job._transition(JobState.RUNNING)
        job._publish(StartedPayload(
            profile_id=profile.profile_id,
            total=job.total,
            concurrency_limit=limit,
            thresholds=thresholds
        ))
        log.info(
            "Matching job started",
            profile_id=profile.profile_id,
            photos=job.total,
            concurrency_limit=limit,
            weak_threshold=thresholds.weak,
            strong_threshold=thresholds.strong
        )
        job._task = asyncio.get_running_loop().create_task(
            self._drive(job, profile, photo_list, thresholds, limit, log),
            name=f"facematch-job-{job.job_id}"
        )
        return job

    @staticmethod
    def _check_preconditions(profile: Optional[FaceProfileRef], photos: Sequence[PhotoRef]) -> None:
        if profile is None:
            raise JobPreconditionError("Face profile reference is missing")
        if not isinstance(profile, FaceProfileRef):
            raise JobPreconditionError(f"Face profile reference is malformed: {type(profile).__name__}")
        if not profile.enrollment_images:
            raise JobPreconditionError(f"Face profile {profile.profile_id} has no enrollment images")
        if not photos:
            raise JobPreconditionError("No photos supplied")

        seen = set()
        duplicates = []
        for photo in photos:
            if not isinstance(photo, PhotoRef):
                raise JobPreconditionError(f"Photo reference is malformed: {type(photo).__name__}")
            if photo.id in seen:
                duplicates.append(photo.id)
            seen.add(photo.id)
        if duplicates:
            raise JobPreconditionError(
                f"Duplicate photo ids: {', '.join(sorted(set(duplicates)))}",
                details={"duplicates": duplicates}
            )

    async def _compare(
        self,
        profile: FaceProfileRef,
        photo: PhotoRef,
        thresholds: MatchThresholds
    ) -> ComparisonOutcome:
        try:
            outcome = await self.comparison_client.compare(
                profile, photo, similarity_threshold=thresholds.weak
            )
        except Exception as e:
            logger.error("Comparison client raised", photo_id=photo.id, error=str(e), exc_info=True)
            return ComparisonOutcome.failure(photo.id, describe_error(e))

        if not isinstance(outcome, ComparisonOutcome):
            logger.error("Comparison client returned no outcome", photo_id=photo.id, returned=repr(outcome))
            return ComparisonOutcome.failure(
                photo.id, f"Comparison returned {type(outcome).__name__} instead of an outcome"
            )
        if outcome.photo_id != photo.id:
            return ComparisonOutcome.failure(
                photo.id, f"Comparison returned an outcome for photo '{outcome.photo_id}'"
            )
        return outcome

    async def _drive(
        self,
        job: Job,
        profile: FaceProfileRef,
        photos: Sequence[PhotoRef],
        thresholds: MatchThresholds,
        limit: int,
        log: structlog.stdlib.BoundLogger
    ) -> None:
        tally = _JobTally(photos)
        started_at = time.monotonic()
        in_flight: Dict["asyncio.Task[ComparisonOutcome]", PhotoRef] = {}
        cancel_observed = False

        try:
            while True:
                while len(in_flight) < limit and tally.dispatched < tally.total:
                    if job.token.is_cancelled():
                        cancel_observed = True
                        break
                    photo = photos[tally.dispatched]
                    tally.dispatched += 1
                    task = asyncio.create_task(self._compare(profile, photo, thresholds))
                    in_flight[task] = photo

                if not in_flight:
                    break

                settled, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                for task in settled:
                    self._settle(job, tally, in_flight[task], task.result(), thresholds, started_at)
                    del in_flight[task]

                if job.token.is_cancelled():
                    cancel_observed = True
        except asyncio.CancelledError:
            job.token.request_cancel("job task cancelled")
            await self._abandon(
                job, tally, in_flight, thresholds, started_at,
                reason="Comparison abandoned: job task cancelled"
            )
            self._finish_cancelled(job, tally, started_at, log)
            raise
        except Exception as e:
            log.error("Matching job crashed", error=str(e), exc_info=True)
            try:
                await self._abandon(
                    job, tally, in_flight, thresholds, started_at,
                    reason="Comparison abandoned: job failed",
                    keep_results=False
                )
            except Exception:
                log.error("Could not settle abandoned comparisons", exc_info=True)
            outcome = FailedOutcome(reason=f"Internal error: {describe_error(e)}")
            job._finish(JobState.FAILED, outcome, FailedPayload(outcome=outcome))
            return

        if cancel_observed:
            self._finish_cancelled(job, tally, started_at, log)
        else:
            self._finish_completed(job, tally, started_at, log)

    def _settle(
        self,
        job: Job,
        tally: _JobTally,
        photo: PhotoRef,
        outcome: ComparisonOutcome,
        thresholds: MatchThresholds,
        started_at: float
    ) -> None:
        tier = classify(outcome, thresholds)
        match = tally.record(outcome, tier)
        job._publish(ItemSettledPayload(
            photo_id=photo.id,
            display_name=photo.label,
            tier=tier,
            similarity=outcome.similarity,
            error=outcome.error,
            settled_count=tally.settled,
            total=tally.total,
            estimated_seconds_remaining=tally.estimate_remaining(time.monotonic() - started_at)
        ))
        if match is not None:
            job._publish(MatchFoundPayload(match=match, display_name=photo.label))

    async def _abandon(
        self,
        job: Job,
        tally: _JobTally,
        in_flight: Dict["asyncio.Task[ComparisonOutcome]", PhotoRef],
        thresholds: MatchThresholds,
        started_at: float,
        reason: str,
        keep_results: bool = True
    ) -> None:
        """Stop in-flight comparisons and settle each of them once, in input order.

        A comparison that finished cleanly keeps its result when
        ``keep_results`` is set; every other one settles as an error.
        """
        for task in in_flight:
            task.cancel()
        await asyncio.gather(*in_flight, return_exceptions=True)

        pending = sorted(in_flight.items(), key=lambda item: tally.positions[item[1].id])
        in_flight.clear()
        for task, photo in pending:
            if photo.id in tally.settled_ids:
                continue
            if keep_results and not task.cancelled() and task.exception() is None:
                outcome = task.result()
            else:
                outcome = ComparisonOutcome.failure(photo.id, reason)
            self._settle(job, tally, photo, outcome, thresholds, started_at)

    @staticmethod
    def _finish_completed(
        job: Job,
        tally: _JobTally,
        started_at: float,
        log: structlog.stdlib.BoundLogger
    ) -> None:
        matches = tally.ranked_matches()
        average = sum(m.similarity for m in matches) / len(matches) if matches else None
        outcome = CompletedOutcome(
            matches=matches,
            errors=tally.ordered_errors(),
            unmatched_photo_ids=tally.ordered_unmatched(),
            strong_count=sum(1 for m in matches if m.tier is MatchTier.STRONG),
            weak_count=sum(1 for m in matches if m.tier is MatchTier.WEAK),
            average_similarity=average,
            elapsed_seconds=time.monotonic() - started_at
        )
        job._finish(JobState.COMPLETED, outcome, CompletedPayload(outcome=outcome))
        log.info(
            "Matching job completed",
            matches=len(outcome.matches),
            strong=outcome.strong_count,
            weak=outcome.weak_count,
            errors=len(outcome.errors),
            elapsed_seconds=round(outcome.elapsed_seconds, 2)
        )

    @staticmethod
    def _finish_cancelled(
        job: Job,
        tally: _JobTally,
        started_at: float,
        log: structlog.stdlib.BoundLogger
    ) -> None:
        outcome = CancelledOutcome(
            partial_matches=tally.ranked_matches(),
            errors=tally.ordered_errors(),
            settled_count=tally.settled,
            dispatched_count=tally.dispatched,
            total=tally.total,
            elapsed_seconds=time.monotonic() - started_at
        )
        job._finish(JobState.CANCELLED, outcome, CancelledPayload(outcome=outcome))
        log.info(
            "Matching job cancelled",
            reason=job.token.reason,
            settled=outcome.settled_count,
            dispatched=outcome.dispatched_count,
            partial_matches=len(outcome.partial_matches)
        )
