"""Face profile store interface."""
from abc import ABC, abstractmethod

from ...entities.photo import FaceProfileRef


class FaceProfileStore(ABC):
    """Interface for looking up enrolled face profiles."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> FaceProfileRef:
        """
        Fetch the face profile enrolled for a user.

        Args:
            user_id: Owner of the profile

        Returns:
            FaceProfileRef for the user

        Raises:
            ProfileNotFoundError: If the user has no enrolled profile
        """
        pass
