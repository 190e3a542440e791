"""Service interfaces package."""
from .recognition import ComparisonCapability
from .storage import FaceProfileStore, ImageSource

__all__ = ["ComparisonCapability", "FaceProfileStore", "ImageSource"]
