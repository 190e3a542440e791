"""
InsightFace-based implementation of the face comparison capability.

Runs the comparison locally instead of calling a remote service: the largest
face of the source image is embedded and compared, by cosine similarity,
with every face found in the target image.

Example:
    ```python
    async with InsightFaceComparisonCapability() as capability:
        result = await capability.compare_faces(selfie_bytes, photo_bytes, 0.6)
    ```

Note:
    This implementation uses CPU inference by default. For GPU support,
    pass 'CUDAExecutionProvider' in ``providers``.
"""
import asyncio
from typing import Any, List, Optional, Sequence

import numpy as np
from insightface.app import FaceAnalysis
from insightface.app.common import Face as InsightFace

from facematch.core.config import settings
from facematch.core.exceptions import ModelLoadError, NoFaceDetectedError
from facematch.core.logging import get_logger
from facematch.core.utils.image import bytes_to_numpy_array, limit_pixels
from facematch.domain.entities.face import BoundingBox, Face
from facematch.domain.interfaces.recognition.comparison import ComparisonCapability
from facematch.domain.value_objects.matching import FaceComparison

logger = get_logger(__name__)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two embeddings, clamped to [0, 1]."""
    denominator = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denominator == 0.0:
        return 0.0
    return float(min(max(np.dot(a, b) / denominator, 0.0), 1.0))


class InsightFaceComparisonCapability(ComparisonCapability):
    """
    Face comparison using InsightFace embeddings.

    Attributes:
        model: InsightFace model instance for face analysis

    Performance Characteristics:
        - Detection time: ~50ms per face
        - Memory usage: ~1-2GB
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        providers: Sequence[str] = ('CPUExecutionProvider',)
    ) -> None:
        """Load the InsightFace model, or use the one given."""
        if model is None:
            try:
                model = FaceAnalysis(
                    name=settings.MODEL_PATH,
                    root=settings.MODEL_CACHE_DIR,
                    providers=list(providers)
                )
                # Detection size affects accuracy significantly
                model.prepare(ctx_id=0, det_size=(640, 640))
            except Exception as e:
                raise ModelLoadError(f"Failed to load InsightFace model {settings.MODEL_PATH}: {e}") from e
        self.model = model

    async def __aenter__(self) -> "InsightFaceComparisonCapability":
        logger.debug("Entering InsightFace comparison context")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        logger.debug("Cleaning up InsightFace comparison resources")
        self.model = None

    def _detect(self, image_bytes: bytes) -> List[Face]:
        img = limit_pixels(bytes_to_numpy_array(image_bytes), settings.MAX_IMAGE_PIXELS)
        height, width = img.shape[:2]
        faces: List[InsightFace] = self.model.get(img) or []
        return [self._convert_to_face(face, height, width) for face in faces]

    @staticmethod
    def _convert_to_face(face_data: InsightFace, height: int, width: int) -> Face:
        bbox = face_data.bbox.astype(int)
        return Face(
            bounding_box=BoundingBox(
                top=float(bbox[1] / height),
                left=float(bbox[0] / width),
                width=float((bbox[2] - bbox[0]) / width),
                height=float((bbox[3] - bbox[1]) / height)
            ),
            confidence=float(face_data.det_score),
            embedding=face_data.embedding
        )

    def _compare_sync(self, source_image: bytes, target_image: bytes) -> float:
        source_faces = [f for f in self._detect(source_image) if f.embedding is not None]
        if not source_faces:
            raise NoFaceDetectedError("No face detected in reference image")
        reference = max(source_faces, key=lambda f: f.bounding_box.area)

        target_faces = [f for f in self._detect(target_image) if f.embedding is not None]
        logger.debug("InsightFace detection finished", target_faces=len(target_faces))
        return max(
            (cosine_similarity(reference.embedding, face.embedding) for face in target_faces),
            default=0.0
        )

    async def compare_faces(
        self,
        source_image: bytes,
        target_image: bytes,
        similarity_threshold: float,
    ) -> FaceComparison:
        # Inference is CPU bound; keep it off the event loop
        similarity = await asyncio.to_thread(self._compare_sync, source_image, target_image)
        return FaceComparison(is_match=similarity >= similarity_threshold, similarity=similarity)
