"""Image source interface."""
from abc import ABC, abstractmethod


class ImageSource(ABC):
    """Interface for resolving image locators into raw bytes."""

    @abstractmethod
    async def load(self, locator: str) -> bytes:
        """
        Resolve an image locator.

        Args:
            locator: Image location (URL, S3 URI or path)

        Returns:
            Raw image bytes

        Raises:
            ImageFetchError: If the image cannot be retrieved
            InvalidImageError: If the retrieved content is empty
        """
        pass
