"""
AWS Rekognition implementation of the face comparison capability.

Wraps the ``CompareFaces`` API. Similarity scores come back on a 0-100
scale and are normalized to 0-1 here.
"""
import asyncio
from contextlib import AsyncExitStack
from typing import Any, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from facematch.core.config import settings
from facematch.core.exceptions import (
    ComparisonError,
    ComparisonThrottledError,
    ImageTooLargeError,
    InvalidImageError,
    NoFaceDetectedError,
)
from facematch.core.logging import get_logger
from facematch.domain.interfaces.recognition.comparison import ComparisonCapability
from facematch.domain.value_objects.matching import FaceComparison

logger = get_logger(__name__)

THROTTLING_CODES = frozenset({
    "ThrottlingException",
    "ProvisionedThroughputExceededException",
    "LimitExceededException",
    "ServiceUnavailableException",
})
INVALID_IMAGE_CODES = frozenset({"InvalidImageFormatException", "InvalidS3ObjectException"})


class RekognitionComparisonCapability(ComparisonCapability):
    """Face comparison backed by AWS Rekognition ``CompareFaces``.

    Example:
        ```python
        async with RekognitionComparisonCapability() as rekognition:
            result = await rekognition.compare_faces(selfie, photo, 0.6)
        ```
    """

    def __init__(
        self,
        region_name: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        quality_filter: str = "AUTO",
        session: Optional[aioboto3.Session] = None
    ) -> None:
        self.region_name = region_name or settings.AWS_REGION
        self.access_key_id = access_key_id or settings.AWS_ACCESS_KEY_ID
        self.secret_access_key = secret_access_key or settings.AWS_SECRET_ACCESS_KEY
        self.quality_filter = quality_filter
        self._session = session or aioboto3.Session()
        self._exit_stack: Optional[AsyncExitStack] = None
        self._client: Any = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the Rekognition client. Safe to call more than once."""
        async with self._lock:
            if self._client is not None:
                return
            client_args = {'region_name': self.region_name or "us-east-1"}
            if self.access_key_id and self.secret_access_key:
                client_args['aws_access_key_id'] = self.access_key_id
                client_args['aws_secret_access_key'] = self.secret_access_key
            stack = AsyncExitStack()
            self._client = await stack.enter_async_context(
                self._session.client("rekognition", **client_args)
            )
            self._exit_stack = stack
            logger.debug("Initialized Rekognition client", region=self.region_name)

    async def cleanup(self) -> None:
        """Close the Rekognition client."""
        async with self._lock:
            if self._exit_stack is not None:
                await self._exit_stack.aclose()
            self._exit_stack = None
            self._client = None

    async def __aenter__(self) -> "RekognitionComparisonCapability":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cleanup()

    def _check_size(self, image: bytes, role: str) -> None:
        if not image:
            raise InvalidImageError(f"{role} image is empty")
        if len(image) > settings.MAX_IMAGE_BYTES:
            raise ImageTooLargeError(
                f"{role} image is {len(image)} bytes, limit is {settings.MAX_IMAGE_BYTES}",
                details={"size": len(image), "limit": settings.MAX_IMAGE_BYTES}
            )

    async def compare_faces(
        self,
        source_image: bytes,
        target_image: bytes,
        similarity_threshold: float,
    ) -> FaceComparison:
        """Compare the source face against every face in the target image.

        Rekognition only reports faces at or above ``SimilarityThreshold``;
        a target with no face above it is reported as similarity 0.0.
        """
        self._check_size(source_image, "Source")
        self._check_size(target_image, "Target")
        await self.initialize()

        try:
            response = await self._client.compare_faces(
                SourceImage={'Bytes': source_image},
                TargetImage={'Bytes': target_image},
                SimilarityThreshold=similarity_threshold * 100.0,
                QualityFilter=self.quality_filter,
            )
        except ClientError as e:
            raise self._translate_error(e) from e
        except BotoCoreError as e:
            raise ComparisonError(f"Rekognition request failed: {e}") from e

        face_matches = response.get('FaceMatches') or []
        best = max((match.get('Similarity', 0.0) for match in face_matches), default=0.0)
        similarity = min(max(best / 100.0, 0.0), 1.0)

        logger.debug(
            "Rekognition comparison finished",
            face_matches=len(face_matches),
            unmatched_faces=len(response.get('UnmatchedFaces') or []),
            similarity=similarity
        )
        return FaceComparison(
            is_match=bool(face_matches) and similarity >= similarity_threshold,
            similarity=similarity
        )

    @staticmethod
    def _translate_error(error: ClientError) -> Exception:
        """Map a Rekognition client error onto the service's exception types."""
        error_info = error.response.get('Error', {})
        code = error_info.get('Code', '')
        message = error_info.get('Message', str(error))
        details = {"code": code}

        if code in THROTTLING_CODES:
            logger.warning("Rekognition throttled the comparison", code=code)
            return ComparisonThrottledError(f"Rekognition throttled: {message}", details)
        if code in INVALID_IMAGE_CODES:
            return InvalidImageError(f"Invalid image: {message}", details)
        if code == "ImageTooLargeException":
            return ImageTooLargeError(f"Image too large: {message}", details)
        if code == "InvalidParameterException":
            # CompareFaces raises this when the source image holds no face
            return NoFaceDetectedError(f"No face detected in reference image: {message}", details)
        logger.error("Rekognition comparison failed", code=code, error=message)
        return ComparisonError(f"Rekognition error {code}: {message}", details)
