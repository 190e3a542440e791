"""Value objects package."""
from .events import (
    CancelledPayload,
    CompletedPayload,
    EventKind,
    FailedPayload,
    ItemSettledPayload,
    MatchFoundPayload,
    ProgressEvent,
    StartedPayload,
)
from .matching import (
    CancelledOutcome,
    ComparisonOutcome,
    CompletedOutcome,
    FaceComparison,
    FailedOutcome,
    ItemError,
    JobOutcome,
    JobState,
    MatchResult,
    MatchThresholds,
    MatchTier,
)

__all__ = [
    "CancelledOutcome",
    "CancelledPayload",
    "ComparisonOutcome",
    "CompletedOutcome",
    "CompletedPayload",
    "EventKind",
    "FaceComparison",
    "FailedOutcome",
    "FailedPayload",
    "ItemError",
    "ItemSettledPayload",
    "JobOutcome",
    "JobState",
    "MatchFoundPayload",
    "MatchResult",
    "MatchThresholds",
    "MatchTier",
    "ProgressEvent",
    "StartedPayload",
]
