"""Configuration settings for the face matching service."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    These settings are loaded from environment variables with the following precedence:
    1. Environment variables
    2. .env file
    3. Default values

    Attributes:
        WEAK_MATCH_THRESHOLD: Minimum similarity (0-1) for a weak match
        STRONG_MATCH_THRESHOLD: Minimum similarity (0-1) for a strong match
        CONCURRENCY_LIMIT: Maximum number of comparisons in flight per job
        COMPARISON_BACKEND: Which comparison capability to use ("rekognition" or "insightface")
        REKOGNITION_SIMILARITY_THRESHOLD: Threshold passed to CompareFaces (0-100).
            When unset the job's weak threshold is used.
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        env_nested_delimiter="__"
    )

    # Core Settings
    PROJECT_NAME: str = "Face Match Orchestrator"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    # Matching Settings
    WEAK_MATCH_THRESHOLD: float = 0.6
    STRONG_MATCH_THRESHOLD: float = 0.8
    CONCURRENCY_LIMIT: int = 3

    # Comparison Settings
    COMPARISON_BACKEND: str = "rekognition"
    COMPARISON_TIMEOUT: float = 30.0  # Seconds per attempt
    COMPARISON_MAX_RETRIES: int = 1
    REKOGNITION_SIMILARITY_THRESHOLD: Optional[float] = None

    # Image Settings
    IMAGE_FETCH_TIMEOUT: float = 20.0
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024  # Rekognition limit for inline bytes
    MAX_IMAGE_PIXELS: int = 1920 * 1080  # ~2MP (Full HD)

    # InsightFace Settings
    MODEL_CACHE_DIR: str = ".model_cache"
    MODEL_PATH: str = "buffalo_l"

    # AWS Settings
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    AWS_S3_BUCKET: str = ""

    # Optional settings with defaults
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

settings = Settings()
