"""Service container for dependency injection."""
from typing import Optional

from facematch.core.config import settings
from facematch.core.exceptions import ServiceNotInitializedError
from facematch.core.logging import get_logger
from facematch.domain.interfaces.recognition.comparison import ComparisonCapability
from facematch.services.aws.rekognition import RekognitionComparisonCapability
from facematch.services.aws.s3 import S3Service
from facematch.services.comparison_client import ComparisonClient
from facematch.services.face_matching import FaceMatchingService
from facematch.services.image_loader import ImageLoader
from facematch.services.orchestrator import BatchOrchestrator
from facematch.services.profile_store import InMemoryFaceProfileStore

logger = get_logger(__name__)


def build_comparison_capability(backend: str) -> ComparisonCapability:
    """Instantiate the comparison backend named in configuration."""
    if backend == "rekognition":
        return RekognitionComparisonCapability()
    if backend == "insightface":
        # Optional dependency, only imported when selected
        from facematch.services.recognition.insight_face import InsightFaceComparisonCapability
        return InsightFaceComparisonCapability()
    raise ValueError(f"Unknown comparison backend: {backend!r}")


class ServiceContainer:
    """Container for application services.

    This container manages the lifecycle and dependencies of all services in the application.

    Example:
        ```python
        container = ServiceContainer()
        await container.initialize()

        face_matching = container.face_matching_service
        ```
    """

    def __init__(self) -> None:
        """Initialize empty container."""
        self.s3_service: Optional[S3Service] = None
        self.comparison_capability: Optional[ComparisonCapability] = None
        self.image_loader: Optional[ImageLoader] = None
        self.comparison_client: Optional[ComparisonClient] = None
        self.profile_store: Optional[InMemoryFaceProfileStore] = None
        self.orchestrator: Optional[BatchOrchestrator] = None
        self.face_matching_service: Optional[FaceMatchingService] = None

    @property
    def initialized(self) -> bool:
        return self.face_matching_service is not None

    async def initialize(self, comparison_capability: Optional[ComparisonCapability] = None) -> None:
        """Initialize all services in the correct order."""
        if self.initialized:
            return
        self.s3_service = S3Service()
        self.image_loader = ImageLoader(s3_service=self.s3_service)
        self.comparison_capability = comparison_capability or build_comparison_capability(
            settings.COMPARISON_BACKEND
        )
        self.comparison_client = ComparisonClient(
            capability=self.comparison_capability,
            image_source=self.image_loader
        )
        self.profile_store = InMemoryFaceProfileStore()
        self.orchestrator = BatchOrchestrator(comparison_client=self.comparison_client)
        self.face_matching_service = FaceMatchingService(
            profile_store=self.profile_store,
            orchestrator=self.orchestrator
        )
        logger.info("Service container initialized", backend=type(self.comparison_capability).__name__)

    def require_face_matching(self) -> FaceMatchingService:
        if self.face_matching_service is None:
            raise ServiceNotInitializedError("Face matching service not initialized")
        return self.face_matching_service

    async def cleanup(self) -> None:
        """Cleanup all services in reverse order of initialization."""
        self.face_matching_service = None
        self.orchestrator = None
        self.profile_store = None
        self.comparison_client = None

        if isinstance(self.comparison_capability, RekognitionComparisonCapability):
            await self.comparison_capability.cleanup()
        self.comparison_capability = None
        self.image_loader = None

        if self.s3_service:
            await self.s3_service.cleanup()
            self.s3_service = None


# Global container instance
container = ServiceContainer()
