from .image_source import ImageSource
from .profile_store import FaceProfileStore

__all__ = ["FaceProfileStore", "ImageSource"]
