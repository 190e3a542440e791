"""Adapter that turns one profile/photo pair into a comparison outcome."""
import asyncio
from typing import List, Optional

from facematch.core.config import settings
from facematch.core.exceptions import (
    ComparisonThrottledError,
    ComparisonTimeoutError,
    ImageFetchError,
    ImageUnavailableError,
)
from facematch.core.logging import get_logger
from facematch.domain.entities.photo import FaceProfileRef, PhotoRef
from facematch.domain.interfaces.recognition.comparison import ComparisonCapability
from facematch.domain.interfaces.storage.image_source import ImageSource
from facematch.domain.value_objects.matching import ComparisonOutcome

logger = get_logger(__name__)

RETRYABLE_ERRORS = (ComparisonThrottledError, ComparisonTimeoutError, ImageFetchError)


def is_retryable(error: BaseException) -> bool:
    """Whether another attempt could succeed where this one failed."""
    return isinstance(error, RETRYABLE_ERRORS) and not isinstance(error, ImageUnavailableError)


def describe_error(error: BaseException) -> str:
    """Render an exception for an outcome's error field."""
    message = str(error)
    name = type(error).__name__
    return f"{name}: {message}" if message else name


class ComparisonClient:
    """Compares a face profile against a single photo.

    Every enrollment image of the profile is compared with the photo and the
    best similarity wins. Failures never escape ``compare``: they come back
    as a ``ComparisonOutcome`` with ``error`` set.

    Example:
        ```python
        client = ComparisonClient(RekognitionComparisonCapability(), ImageLoader(S3Service()))
        outcome = await client.compare(profile, photo)
        ```
    """

    def __init__(
        self,
        capability: ComparisonCapability,
        image_source: ImageSource,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        retry_delay: float = 0.5
    ) -> None:
        """Initialize the client.

        Args:
            capability: External pairwise comparison primitive
            image_source: Resolves image locators into bytes
            timeout: Seconds allowed per attempt (fetching and comparing)
            max_retries: Retries after a throttled, timed out or transiently failed fetch attempt
            similarity_threshold: Fixed threshold (0-1) handed to the capability,
                overriding the per-call value
            retry_delay: Seconds to wait before retrying
        """
        self.capability = capability
        self.image_source = image_source
        self.timeout = timeout if timeout is not None else settings.COMPARISON_TIMEOUT
        self.max_retries = max_retries if max_retries is not None else settings.COMPARISON_MAX_RETRIES
        if similarity_threshold is None and settings.REKOGNITION_SIMILARITY_THRESHOLD is not None:
            similarity_threshold = settings.REKOGNITION_SIMILARITY_THRESHOLD / 100.0
        self.similarity_threshold = similarity_threshold
        self.retry_delay = retry_delay

        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    async def compare(
        self,
        profile: FaceProfileRef,
        photo: PhotoRef,
        similarity_threshold: Optional[float] = None
    ) -> ComparisonOutcome:
        """Compare ``profile`` with ``photo``.

        Args:
            profile: Enrolled face profile
            photo: Photo to check
            similarity_threshold: Threshold for the capability when the client
                has no fixed one; defaults to the configured weak threshold

        Returns:
            ComparisonOutcome with a similarity, or with an error on failure
        """
        threshold = self.similarity_threshold
        if threshold is None:
            threshold = similarity_threshold if similarity_threshold is not None else settings.WEAK_MATCH_THRESHOLD

        attempts = 0
        while True:
            attempts += 1
            try:
                similarity = await asyncio.wait_for(
                    self._best_similarity(profile, photo, threshold),
                    timeout=self.timeout
                )
                logger.debug(
                    "Photo compared",
                    photo_id=photo.id,
                    similarity=similarity,
                    attempts=attempts
                )
                return ComparisonOutcome(photo_id=photo.id, similarity=similarity, attempts=attempts)
            except asyncio.TimeoutError:
                error: Exception = ComparisonTimeoutError(
                    f"Comparison timed out after {self.timeout}s"
                )
            except Exception as e:
                error = e

            if is_retryable(error) and attempts <= self.max_retries:
                logger.info(
                    "Retrying comparison",
                    photo_id=photo.id,
                    attempt=attempts,
                    error=describe_error(error)
                )
                await asyncio.sleep(self.retry_delay)
                continue

            logger.warning(
                "Comparison failed",
                photo_id=photo.id,
                attempts=attempts,
                error=describe_error(error)
            )
            return ComparisonOutcome.failure(photo.id, describe_error(error), attempts=attempts)

    async def _best_similarity(self, profile: FaceProfileRef, photo: PhotoRef, threshold: float) -> float:
        target = await self.image_source.load(photo.image_locator)

        best: Optional[float] = None
        reference_errors: List[Exception] = []
        for locator in profile.enrollment_images:
            try:
                source = await self.image_source.load(locator)
                result = await self.capability.compare_faces(source, target, threshold)
            except ComparisonThrottledError:
                raise
            except Exception as e:
                # One unusable reference does not sink the photo if another works
                logger.debug("Reference comparison failed", reference=locator, error=str(e))
                reference_errors.append(e)
                continue

            best = result.similarity if best is None else max(best, result.similarity)
            if best >= 1.0:
                break

        if best is None:
            raise reference_errors[0]
        return best
