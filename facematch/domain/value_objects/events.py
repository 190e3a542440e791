"""Progress events published while a matching job runs."""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .matching import (
    CancelledOutcome,
    CompletedOutcome,
    FailedOutcome,
    MatchResult,
    MatchThresholds,
    MatchTier,
)


class EventKind(str, Enum):
    STARTED = "started"
    ITEM_SETTLED = "item_settled"
    MATCH_FOUND = "match_found"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (EventKind.COMPLETED, EventKind.CANCELLED, EventKind.FAILED)


class StartedPayload(BaseModel):
    kind: Literal[EventKind.STARTED] = EventKind.STARTED
    profile_id: str
    total: int
    concurrency_limit: int
    thresholds: MatchThresholds


class ItemSettledPayload(BaseModel):
    """Emitted exactly once per dispatched photo, whatever its outcome."""
    kind: Literal[EventKind.ITEM_SETTLED] = EventKind.ITEM_SETTLED
    photo_id: str
    display_name: str
    tier: MatchTier
    similarity: Optional[float] = None
    error: Optional[str] = None
    settled_count: int
    total: int
    estimated_seconds_remaining: Optional[float] = None


class MatchFoundPayload(BaseModel):
    kind: Literal[EventKind.MATCH_FOUND] = EventKind.MATCH_FOUND
    match: MatchResult
    display_name: str


class CompletedPayload(BaseModel):
    kind: Literal[EventKind.COMPLETED] = EventKind.COMPLETED
    outcome: CompletedOutcome


class CancelledPayload(BaseModel):
    kind: Literal[EventKind.CANCELLED] = EventKind.CANCELLED
    outcome: CancelledOutcome


class FailedPayload(BaseModel):
    kind: Literal[EventKind.FAILED] = EventKind.FAILED
    outcome: FailedOutcome


EventPayload = Annotated[
    Union[
        StartedPayload,
        ItemSettledPayload,
        MatchFoundPayload,
        CompletedPayload,
        CancelledPayload,
        FailedPayload,
    ],
    Field(discriminator="kind"),
]


class ProgressEvent(BaseModel):
    """One entry of a job's ordered progress stream."""
    model_config = ConfigDict(frozen=True)

    job_id: str = Field(..., description="Job that published the event")
    sequence: int = Field(..., ge=0, description="Position in the job's event stream")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    payload: EventPayload

    @property
    def kind(self) -> EventKind:
        return self.payload.kind

    @property
    def is_terminal(self) -> bool:
        return self.payload.kind.is_terminal
