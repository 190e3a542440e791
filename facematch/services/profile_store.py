"""In-memory face profile store."""
from typing import Dict, Iterable, Optional

from facematch.core.exceptions import ProfileNotFoundError
from facematch.core.logging import get_logger
from facematch.domain.entities.photo import FaceProfileRef
from facematch.domain.interfaces.storage.profile_store import FaceProfileStore

logger = get_logger(__name__)


class InMemoryFaceProfileStore(FaceProfileStore):
    """Profile store backed by a dict, keyed by user id."""

    def __init__(self, profiles: Optional[Dict[str, FaceProfileRef]] = None) -> None:
        self._profiles: Dict[str, FaceProfileRef] = dict(profiles or {})

    def put(self, user_id: str, profile: FaceProfileRef) -> None:
        self._profiles[user_id] = profile

    def enroll(self, user_id: str, enrollment_images: Iterable[str]) -> FaceProfileRef:
        """Register a profile for ``user_id`` from image locators."""
        profile = FaceProfileRef(profile_id=user_id, enrollment_images=tuple(enrollment_images))
        self.put(user_id, profile)
        logger.info("Face profile enrolled", user_id=user_id, images=len(profile.enrollment_images))
        return profile

    async def get_profile(self, user_id: str) -> FaceProfileRef:
        try:
            return self._profiles[user_id]
        except KeyError:
            raise ProfileNotFoundError(
                f"No face profile found for user {user_id}",
                details={"user_id": user_id}
            ) from None
