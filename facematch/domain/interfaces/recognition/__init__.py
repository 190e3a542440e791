from .comparison import ComparisonCapability

__all__ = ["ComparisonCapability"]
