"""Face-match batch orchestration for shared photo collections."""

__version__ = "0.1.0"
