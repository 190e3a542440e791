"""Pairwise face comparison interface."""
from abc import ABC, abstractmethod

from ...value_objects.matching import FaceComparison


class ComparisonCapability(ABC):
    """Interface for the external pairwise face-similarity primitive."""

    @abstractmethod
    async def compare_faces(
        self,
        source_image: bytes,
        target_image: bytes,
        similarity_threshold: float,
    ) -> FaceComparison:
        """
        Compare the face in the source image with the faces in the target image.

        Args:
            source_image: Raw bytes of the reference image (one face expected)
            target_image: Raw bytes of the image to search
            similarity_threshold: Minimum similarity (0-1) for ``is_match``

        Returns:
            FaceComparison with the best similarity found in the target image.
            A target without faces yields similarity 0.0, not an error.

        Raises:
            InvalidImageError: If either image cannot be decoded
            ImageTooLargeError: If an image exceeds the backend's size limit
            NoFaceDetectedError: If the source image has no face
            ComparisonThrottledError: If the backend is rate limiting calls
            ComparisonError: For any other backend failure
        """
        pass
