"""S3 storage backend (AWS or any S3-compatible endpoint such as MinIO)."""

import mimetypes
from contextlib import asynccontextmanager
from typing import AsyncIterator, BinaryIO, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from picture_api.core.logging_config import get_logger


logger = get_logger(__name__)

MAX_KEY_BYTES = 1024
MAX_URL_EXPIRY_SECONDS = 7 * 24 * 3600


class S3StorageBackend:
    """Pictures stored as objects in one bucket; storage references are object keys.

    `get_url` hands out presigned GET URLs, so the bucket itself can stay private.
    """

    def __init__(
        self,
        region: str,
        bucket_name: str,
        endpoint_url: Optional[str] = None,
        url_expires_in: int = 3600,
    ):
        if not 1 <= url_expires_in <= MAX_URL_EXPIRY_SECONDS:
            raise ValueError(
                f"url_expires_in must be between 1 and {MAX_URL_EXPIRY_SECONDS} seconds"
            )

        self.session = aioboto3.Session()
        self.region = region
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url
        self.url_expires_in = url_expires_in

        logger.info(
            "s3_storage_backend_initialized",
            region=region,
            bucket_name=bucket_name,
            endpoint_url=endpoint_url,
        )

    @staticmethod
    def _normalize_key(ref: str) -> str:
        """Turn a storage reference into an object key.

        Raises:
            ValueError: empty key, ".." segment, or key longer than 1024 bytes
        """
        key = (ref or "").strip().strip("/")
        if not key:
            raise ValueError("Storage reference cannot be empty")
        if ".." in key.split("/"):
            raise ValueError(f"Storage reference may not contain '..': {ref}")
        if len(key.encode("utf-8")) > MAX_KEY_BYTES:
            raise ValueError(f"S3 object key longer than {MAX_KEY_BYTES} bytes")
        return key

    def _handle_s3_error(self, exc: Exception, operation: str, key: str) -> Exception:
        """Map a boto error onto the builtin exception callers expect."""
        if isinstance(exc, ClientError):
            code = exc.response.get("Error", {}).get("Code", "Unknown")
            if code in ("NoSuchKey", "404"):
                return FileNotFoundError(f"Object not found in bucket {self.bucket_name}: {key}")
            if code == "NoSuchBucket":
                return FileNotFoundError(f"Bucket does not exist: {self.bucket_name}")
            if code in ("AccessDenied", "403"):
                return PermissionError(f"Access denied to {self.bucket_name}/{key} during {operation}")
            return RuntimeError(f"S3 {operation} of {key} failed with {code}")
        if isinstance(exc, BotoCoreError):
            return RuntimeError(f"S3 {operation} of {key} failed: {type(exc).__name__}")
        return exc

    @asynccontextmanager
    async def _client(self, operation: str, key: str) -> AsyncIterator:
        """S3 client for one call; failures are logged and translated."""
        try:
            async with self.session.client(
                "s3", region_name=self.region, endpoint_url=self.endpoint_url
            ) as s3:
                yield s3
        except (ClientError, BotoCoreError) as exc:
            logger.error(
                "s3_operation_failed",
                operation=operation,
                bucket=self.bucket_name,
                key=key,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise self._handle_s3_error(exc, operation, key) from exc

    async def save(self, file: BinaryIO, directory: str, filename: str) -> str:
        """Upload a picture file and return its object key."""
        key = self._normalize_key(f"{directory.strip('/')}/{filename}")
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"

        if hasattr(file, "seek"):
            file.seek(0)

        async with self._client("upload", key) as s3:
            await s3.upload_fileobj(
                file,
                self.bucket_name,
                key,
                ExtraArgs={"ServerSideEncryption": "AES256", "ContentType": content_type},
            )

        logger.info("s3_storage_save_success", bucket=self.bucket_name, key=key, content_type=content_type)
        return key

    async def load(self, ref: str) -> bytes:
        key = self._normalize_key(ref)
        async with self._client("download", key) as s3:
            response = await s3.get_object(Bucket=self.bucket_name, Key=key)
            return await response["Body"].read()

    async def delete(self, ref: str) -> None:
        """Delete an object. Deleting a missing key succeeds."""
        key = self._normalize_key(ref)
        async with self._client("delete", key) as s3:
            await s3.delete_object(Bucket=self.bucket_name, Key=key)
        logger.info("s3_storage_delete_success", bucket=self.bucket_name, key=key)

    async def get_url(self, ref: str) -> str:
        """Presigned GET URL valid for `url_expires_in` seconds."""
        key = self._normalize_key(ref)
        async with self._client("presign", key) as s3:
            return await s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=self.url_expires_in,
            )
