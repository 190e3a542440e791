"""Resolve photo and enrollment image locators into bytes."""
import asyncio
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse

import requests

from facematch.core.config import settings
from facematch.core.exceptions import (
    ImageFetchError,
    ImageUnavailableError,
    InvalidImageError,
    StorageError,
)
from facematch.core.logging import get_logger
from facematch.domain.interfaces.storage.image_source import ImageSource
from facematch.services.aws.s3 import S3Service

logger = get_logger(__name__)

# S3 error codes that will not change on retry
PERMANENT_S3_CODES = frozenset({"NoSuchKey", "404", "NoSuchBucket", "403", "AccessDenied", "NoBucketConfigured"})
PERMANENT_HTTP_STATUSES = frozenset({400, 401, 403, 404, 410})


def parse_s3_uri(locator: str) -> Tuple[str, str]:
    """Split ``s3://bucket/key`` into bucket and key."""
    parsed = urlparse(locator)
    key = parsed.path.lstrip("/")
    if not key:
        raise ImageUnavailableError(f"S3 locator has no object key: {locator}")
    return parsed.netloc, key


class ImageLoader(ImageSource):
    """Loads images from S3, HTTP(S) or the local filesystem.

    Supported locators:
        - ``s3://bucket/key`` (bucket may be empty to use the configured one)
        - ``http://`` and ``https://`` URLs
        - local file paths, with or without a ``file://`` prefix
    """

    def __init__(
        self,
        s3_service: Optional[S3Service] = None,
        http_session: Optional[requests.Session] = None,
        timeout: Optional[float] = None
    ) -> None:
        self.s3_service = s3_service
        self.http_session = http_session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.IMAGE_FETCH_TIMEOUT

    async def load(self, locator: str) -> bytes:
        scheme = urlparse(locator).scheme.lower()
        if scheme == "s3":
            content = await self._load_s3(locator)
        elif scheme in ("http", "https"):
            content = await asyncio.to_thread(self._load_http, locator)
        elif scheme in ("", "file") or len(scheme) == 1:  # len 1: Windows drive letter
            content = await asyncio.to_thread(self._load_file, locator)
        else:
            raise ImageUnavailableError(f"Unsupported image locator scheme '{scheme}'", {"locator": locator})

        if not content:
            raise InvalidImageError(f"Image is empty: {locator}")
        return content

    async def _load_s3(self, locator: str) -> bytes:
        if self.s3_service is None:
            raise ImageUnavailableError(f"S3 is not configured, cannot load {locator}")
        bucket, key = parse_s3_uri(locator)
        try:
            return await self.s3_service.get_file(bucket, key)
        except StorageError as e:
            error_class = ImageUnavailableError if e.details.get("code") in PERMANENT_S3_CODES else ImageFetchError
            raise error_class(str(e), {"locator": locator, **e.details}) from e

    def _load_http(self, url: str) -> bytes:
        try:
            response = self.http_session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("HTTP image download failed", url=url, error=str(e))
            status = e.response.status_code if e.response is not None else None
            error_class = ImageUnavailableError if status in PERMANENT_HTTP_STATUSES else ImageFetchError
            raise error_class(f"Failed to download image: {e}", {"locator": url}) from e
        return response.content

    def _load_file(self, locator: str) -> bytes:
        path = Path(urlparse(locator).path if locator.startswith("file://") else locator)
        try:
            return path.read_bytes()
        except (FileNotFoundError, IsADirectoryError, PermissionError) as e:
            raise ImageUnavailableError(f"Cannot read image file: {e}", {"locator": locator}) from e
        except OSError as e:
            raise ImageFetchError(f"Failed to read image file: {e}", {"locator": locator}) from e
