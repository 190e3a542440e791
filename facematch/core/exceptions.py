"""Custom exceptions for the face matching service."""
from typing import Optional


class FaceMatchError(Exception):
    """Base exception for face matching operations."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize face matching error.

        Args:
            message: Error description
            details: Additional error context
        """
        super().__init__(message)
        self.details = details or {}


class StorageError(FaceMatchError):
    """Raised when an object cannot be read from storage."""
    pass


class ImageFetchError(FaceMatchError):
    """Raised when an image locator cannot be resolved into bytes."""
    pass


class ImageUnavailableError(ImageFetchError):
    """Raised when an image locator can never be resolved (missing object, unsupported scheme).

    Unlike its parent, retrying does not help.
    """
    pass


class InvalidImageError(FaceMatchError):
    """Raised when the provided image is invalid or cannot be processed."""
    pass


class ImageTooLargeError(FaceMatchError):
    """Raised when the image exceeds the size accepted by the comparison backend."""
    pass


class NoFaceDetectedError(FaceMatchError):
    """Raised when no face is detected in a reference image."""
    pass


class ModelLoadError(FaceMatchError):
    """Raised when the local face recognition model fails to load."""
    pass


class ComparisonError(FaceMatchError):
    """Base exception for the external face comparison capability."""
    pass


class ComparisonThrottledError(ComparisonError):
    """Raised when the comparison service rejects a call due to rate limiting."""
    pass


class ComparisonTimeoutError(ComparisonError):
    """Raised when a single comparison attempt exceeds its timeout."""
    pass


class ProfileNotFoundError(FaceMatchError):
    """Raised when no face profile is enrolled for a user."""
    pass


class JobPreconditionError(FaceMatchError):
    """Raised when a matching job cannot start because its inputs are unusable."""
    pass


class InvalidJobStateError(FaceMatchError):
    """Raised on an illegal job state transition."""
    pass


class ServiceNotInitializedError(FaceMatchError):
    """Raised when a service is requested before the container is initialized."""
    pass
