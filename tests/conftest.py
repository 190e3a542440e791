"""Shared fixtures and fakes for the face matching tests."""
import asyncio
from typing import Dict, List, Optional

import pytest

from facematch.domain.entities.photo import FaceProfileRef, PhotoRef
from facematch.domain.interfaces.recognition.comparison import ComparisonCapability
from facematch.domain.interfaces.storage.image_source import ImageSource
from facematch.domain.value_objects.matching import ComparisonOutcome, FaceComparison


def make_photos(count: int, prefix: str = "photo") -> List[PhotoRef]:
    return [
        PhotoRef(
            id=f"{prefix}-{i}",
            image_locator=f"s3://trip-bucket/{prefix}-{i}.jpg",
            display_name=f"IMG_{i:04d}.jpg"
        )
        for i in range(count)
    ]


class FakeComparisonClient:
    """Instrumented stand-in for ComparisonClient.

    Records every dispatched photo and the highest number of comparisons
    that were in flight at the same time.
    """

    def __init__(
        self,
        similarities: Optional[Dict[str, float]] = None,
        default: float = 0.9,
        errors: Optional[Dict[str, str]] = None,
        raises: Optional[Dict[str, Exception]] = None,
        delay: float = 0.01,
        delays: Optional[Dict[str, float]] = None,
        gate: Optional[asyncio.Event] = None
    ) -> None:
        self.similarities = dict(similarities or {})
        self.default = default
        self.errors = dict(errors or {})
        self.raises = dict(raises or {})
        self.delay = delay
        self.delays = dict(delays or {})
        self.gate = gate
        self.dispatched: List[str] = []
        self.thresholds_seen: List[Optional[float]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def compare(
        self,
        profile: FaceProfileRef,
        photo: PhotoRef,
        similarity_threshold: Optional[float] = None
    ) -> ComparisonOutcome:
        self.dispatched.append(photo.id)
        self.thresholds_seen.append(similarity_threshold)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.delays.get(photo.id, self.delay))
            if photo.id in self.raises:
                raise self.raises[photo.id]
            if photo.id in self.errors:
                return ComparisonOutcome.failure(photo.id, self.errors[photo.id])
            return ComparisonOutcome(
                photo_id=photo.id,
                similarity=self.similarities.get(photo.id, self.default)
            )
        finally:
            self.in_flight -= 1


class FakeImageSource(ImageSource):
    """Serves image bytes from a dict; missing locators raise the given error."""

    def __init__(self, images: Optional[Dict[str, bytes]] = None, failures: Optional[Dict[str, Exception]] = None):
        self.images = dict(images or {})
        self.failures = dict(failures or {})
        self.loaded: List[str] = []

    async def load(self, locator: str) -> bytes:
        self.loaded.append(locator)
        if locator in self.failures:
            raise self.failures[locator]
        return self.images.get(locator, locator.encode("utf-8"))


class FakeCapability(ComparisonCapability):
    """Scripted comparison capability keyed by (source, target) bytes.

    ``script`` values are either a similarity or an exception; a list of
    them is consumed one call at a time.
    """

    def __init__(self, script=None, default: float = 0.0, delay: float = 0.0):
        self.script = dict(script or {})
        self.default = default
        self.delay = delay
        self.calls: List[tuple] = []

    async def compare_faces(self, source_image: bytes, target_image: bytes, similarity_threshold: float) -> FaceComparison:
        self.calls.append((source_image, target_image, similarity_threshold))
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.script.get((source_image, target_image), self.default)
        if isinstance(result, list):
            result = result.pop(0)
        if isinstance(result, Exception):
            raise result
        return FaceComparison(is_match=result >= similarity_threshold, similarity=result)


@pytest.fixture
def profile() -> FaceProfileRef:
    return FaceProfileRef(
        profile_id="user-1",
        enrollment_images=("s3://profiles/user-1/front.jpg", "s3://profiles/user-1/side.jpg")
    )


@pytest.fixture
def photos() -> List[PhotoRef]:
    return make_photos(10)


@pytest.fixture(name="make_photos")
def make_photos_fixture():
    return make_photos
