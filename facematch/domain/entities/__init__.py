"""Domain entities."""
from .photo import FaceProfileRef, PhotoRef

__all__ = ["FaceProfileRef", "PhotoRef"]
