"""Face matching service for finding a user's photos in a collection."""
from typing import Optional, Sequence

from facematch.core.exceptions import ProfileNotFoundError
from facematch.core.logging import get_logger
from facematch.domain.entities.photo import PhotoRef
from facematch.domain.interfaces.storage.profile_store import FaceProfileStore
from facematch.domain.value_objects.matching import MatchThresholds
from facematch.services.cancellation import CancellationToken
from facematch.services.orchestrator import BatchOrchestrator, Job
from facematch.services.progress import ProgressSink

logger = get_logger(__name__)


class FaceMatchingService:
    """Service for finding the photos of a collection that show a user.

    This service:
    1. Looks up the user's enrolled face profile once
    2. Starts a batch matching job over the collection

    Example:
        ```python
        matcher = FaceMatchingService(profile_store, orchestrator)
        job = await matcher.find_photos("user-123", trip_photos)
        outcome = await job
        ```
    """

    def __init__(self, profile_store: FaceProfileStore, orchestrator: BatchOrchestrator) -> None:
        """Initialize the face matching service.

        Args:
            profile_store: Store holding enrolled face profiles
            orchestrator: Runs the comparisons
        """
        self.profile_store = profile_store
        self.orchestrator = orchestrator

    async def find_photos(
        self,
        user_id: str,
        photos: Sequence[PhotoRef],
        thresholds: Optional[MatchThresholds] = None,
        concurrency_limit: Optional[int] = None,
        sink: Optional[ProgressSink] = None,
        token: Optional[CancellationToken] = None
    ) -> Job:
        """Start a job matching ``user_id``'s profile against ``photos``.

        Args:
            user_id: Owner of the face profile
            photos: Collection to search
            thresholds: Tier thresholds, defaults to configuration
            concurrency_limit: Comparisons in flight, defaults to configuration
            sink: Optional progress observer
            token: Optional cancellation token shared with the caller

        Returns:
            The running job. A user without a profile gets a job that has
            already failed.
        """
        try:
            profile = await self.profile_store.get_profile(user_id)
        except ProfileNotFoundError:
            logger.warning("No face profile for user", user_id=user_id)
            profile = None

        return self.orchestrator.run(
            profile,
            photos,
            thresholds=thresholds,
            concurrency_limit=concurrency_limit,
            sink=sink,
            token=token
        )
