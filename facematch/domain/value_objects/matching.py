"""Face matching value objects."""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from facematch.core.config import settings


class MatchTier(str, Enum):
    """Strength of a match, ordered none < weak < strong."""
    NONE = "none"
    WEAK = "weak"
    STRONG = "strong"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @property
    def is_match(self) -> bool:
        return self is not MatchTier.NONE


_TIER_RANK = {MatchTier.NONE: 0, MatchTier.WEAK: 1, MatchTier.STRONG: 2}


class MatchThresholds(BaseModel):
    """Similarity thresholds for the weak and strong tiers (inclusive)."""
    model_config = ConfigDict(frozen=True)

    weak: float = Field(0.6, ge=0.0, le=1.0, description="Lowest similarity counted as a weak match")
    strong: float = Field(0.8, ge=0.0, le=1.0, description="Lowest similarity counted as a strong match")

    @model_validator(mode="after")
    def check_monotonic(self) -> "MatchThresholds":
        if self.strong < self.weak:
            raise ValueError(
                f"strong threshold ({self.strong}) must be >= weak threshold ({self.weak})"
            )
        return self

    @classmethod
    def from_settings(cls) -> "MatchThresholds":
        return cls(weak=settings.WEAK_MATCH_THRESHOLD, strong=settings.STRONG_MATCH_THRESHOLD)


class FaceComparison(BaseModel):
    """Result of one call to the external comparison capability."""
    is_match: bool = Field(..., description="Whether the capability considers the faces the same person")
    similarity: float = Field(..., ge=0.0, le=1.0, description="Similarity score (0.0 to 1.0)")


class ComparisonOutcome(BaseModel):
    """Outcome of comparing a profile against one photo.

    ``similarity`` is absent exactly when the comparison failed, in which
    case ``error`` describes the failure.
    """
    model_config = ConfigDict(frozen=True)

    photo_id: str
    similarity: Optional[float] = Field(None, ge=0.0, le=1.0)
    error: Optional[str] = None
    attempts: int = Field(1, ge=1, description="Number of comparison attempts made")

    @model_validator(mode="after")
    def check_similarity_or_error(self) -> "ComparisonOutcome":
        if self.error is None and self.similarity is None:
            raise ValueError("similarity is required when the comparison did not fail")
        if self.error is not None and self.similarity is not None:
            raise ValueError("a failed comparison carries no similarity")
        return self

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def failure(cls, photo_id: str, error: str, attempts: int = 1) -> "ComparisonOutcome":
        return cls(photo_id=photo_id, error=error, attempts=attempts)


class MatchResult(BaseModel):
    """A photo whose similarity reached at least the weak tier."""
    photo_id: str = Field(..., description="Matched photo identifier")
    similarity: float = Field(..., ge=0.0, le=1.0, description="Similarity with the profile")
    tier: MatchTier = Field(..., description="Match strength, never none")


class ItemError(BaseModel):
    """A photo that could not be checked."""
    photo_id: str
    error: str


class JobState(str, Enum):
    """Lifecycle of a matching job."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.CANCELLED, JobState.FAILED)


class CompletedOutcome(BaseModel):
    """Every photo settled and cancellation was never requested."""
    state: Literal[JobState.COMPLETED] = JobState.COMPLETED
    matches: List[MatchResult] = Field(default_factory=list, description="Matches, best first")
    errors: List[ItemError] = Field(default_factory=list, description="Photos that could not be checked")
    unmatched_photo_ids: List[str] = Field(default_factory=list, description="Photos classified as none")
    strong_count: int = 0
    weak_count: int = 0
    average_similarity: Optional[float] = Field(None, description="Mean similarity of the matches")
    elapsed_seconds: float = 0.0
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CancelledOutcome(BaseModel):
    """The job was stopped; carries whatever had settled."""
    state: Literal[JobState.CANCELLED] = JobState.CANCELLED
    partial_matches: List[MatchResult] = Field(default_factory=list)
    errors: List[ItemError] = Field(default_factory=list)
    settled_count: int = 0
    dispatched_count: int = 0
    total: int = 0
    elapsed_seconds: float = 0.0
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FailedOutcome(BaseModel):
    """The job could not run at all."""
    state: Literal[JobState.FAILED] = JobState.FAILED
    reason: str
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


JobOutcome = Union[CompletedOutcome, CancelledOutcome, FailedOutcome]
