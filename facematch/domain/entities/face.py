"""Detected face entity used by the local recognition backend."""
from typing import Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


class BoundingBox(BaseModel):
    """Face bounding box in relative (0-1) image coordinates."""
    left: float
    top: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height


class Face(BaseModel):
    """A face found in an image, with its embedding when the model produced one."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    confidence: float = Field(..., description="Detection score (0-1)")
    bounding_box: BoundingBox
    embedding: Optional[np.ndarray] = None
