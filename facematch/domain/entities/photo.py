"""Photo and face profile references handed to a matching job."""
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field


class FaceProfileRef(BaseModel):
    """Reference to an enrolled face profile.

    The profile itself is owned by the profile store; a job only borrows the
    reference and never mutates it.
    """
    model_config = ConfigDict(frozen=True)

    profile_id: str = Field(..., min_length=1, description="Opaque profile identifier")
    enrollment_images: Tuple[str, ...] = Field(
        ...,
        min_length=1,
        description="Ordered locators of the images used to enroll the face"
    )


class PhotoRef(BaseModel):
    """A single photo from the shared collection."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Photo identifier, unique within a job")
    image_locator: str = Field(..., min_length=1, description="s3://, http(s):// or local path")
    display_name: str = Field("", description="Human readable name for progress reporting")

    @property
    def label(self) -> str:
        """Name used in logs and progress events."""
        return self.display_name or self.id
