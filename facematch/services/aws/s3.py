"""
S3 service for reading photos from object storage using aioboto3.
"""
import asyncio
from contextlib import AsyncExitStack
from typing import Any, Optional

import aioboto3
from botocore.exceptions import ClientError, NoCredentialsError

from facematch.core.config import settings
from facematch.core.exceptions import StorageError
from facematch.core.logging import get_logger

logger = get_logger(__name__)


class S3Service:
    """Service for reading objects from AWS S3 using aioboto3."""

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        region_name: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        session: Optional[aioboto3.Session] = None
    ):
        """Store configuration but do not open the client yet."""
        self.bucket_name = bucket_name or settings.AWS_S3_BUCKET
        self.region_name = region_name or settings.AWS_REGION
        self.access_key_id = access_key_id or settings.AWS_ACCESS_KEY_ID
        self.secret_access_key = secret_access_key or settings.AWS_SECRET_ACCESS_KEY
        self._session = session or aioboto3.Session()
        self._exit_stack: Optional[AsyncExitStack] = None
        self._s3_client: Any = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the S3 client. Safe to call more than once."""
        async with self._lock:
            if self._s3_client is not None:
                return

            client_args = {'region_name': self.region_name or "us-east-1"}
            if self.access_key_id and self.secret_access_key:
                logger.debug("Using explicit AWS credentials from config for aioboto3")
                client_args['aws_access_key_id'] = self.access_key_id
                client_args['aws_secret_access_key'] = self.secret_access_key
            else:
                logger.debug("Allowing aioboto3 to discover AWS credentials automatically")

            stack = AsyncExitStack()
            try:
                self._s3_client = await stack.enter_async_context(
                    self._session.client("s3", **client_args)
                )
            except NoCredentialsError as e:
                await stack.aclose()
                logger.error("Failed to initialize S3: AWS credentials not found", error=str(e))
                raise StorageError("AWS credentials not found or configured correctly.") from e
            except ClientError as e:
                await stack.aclose()
                logger.error("Failed to initialize S3 client", error=str(e))
                raise StorageError(f"Failed to initialize S3 client: {e}") from e
            self._exit_stack = stack
            logger.debug("Initialized aioboto3 S3 client", region=self.region_name)

    async def cleanup(self) -> None:
        """Close the S3 client."""
        async with self._lock:
            if self._exit_stack is not None:
                await self._exit_stack.aclose()
            self._exit_stack = None
            self._s3_client = None

    async def __aenter__(self) -> "S3Service":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cleanup()

    async def get_file(self, bucket: Optional[str], key: str) -> bytes:
        """
        Get file contents from S3 asynchronously.

        Args:
            bucket: S3 bucket name (falls back to the configured bucket)
            key: S3 object key

        Returns:
            File contents as bytes

        Raises:
            StorageError: If file cannot be retrieved (e.g., not found, access denied)
        """
        target_bucket = bucket or self.bucket_name
        if not target_bucket:
            raise StorageError(f"No bucket given for key: {key}", {"code": "NoBucketConfigured"})

        await self.initialize()
        try:
            response = await self._s3_client.get_object(Bucket=target_bucket, Key=key)
            async with response['Body'] as body:
                return await body.read()
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code in ('NoSuchKey', '404'):
                logger.warning("File not found in S3", bucket=target_bucket, key=key)
                raise StorageError(f"File not found: {key}", {"code": error_code}) from e
            if error_code == 'NoSuchBucket':
                logger.error("Attempted to get file from non-existent bucket", bucket=target_bucket)
                raise StorageError(f"Bucket not found: {target_bucket}", {"code": error_code}) from e
            if error_code in ('403', 'AccessDenied'):
                logger.error("Access denied when getting file", bucket=target_bucket, key=key)
                raise StorageError(f"Access denied for file: {key}", {"code": error_code}) from e
            logger.error("Failed to get file from S3 due to client error",
                         bucket=target_bucket, key=key, error=str(e))
            raise StorageError(
                f"Failed to retrieve file '{key}' due to S3 error: {e}", {"code": error_code}
            ) from e
