"""Local filesystem storage backend."""

import aiofiles
from pathlib import Path
from typing import BinaryIO

from picture_api.core.logging_config import get_logger


logger = get_logger(__name__)


class LocalStorageBackend:
    """Local filesystem storage implementation.

    Files live under `base_path/<directory>/<filename>` and are served by the
    application's StaticFiles mount at `url_prefix`.
    """

    def __init__(self, base_path: str, url_prefix: str = "/storage"):
        """Initialize local storage backend.

        Args:
            base_path: Root directory for file storage
            url_prefix: URL path the root directory is mounted at
        """
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")

    def _resolve(self, ref: str) -> Path:
        """Map a storage reference to a path inside base_path.

        Raises:
            ValueError: If the reference is empty or escapes base_path
        """
        ref = (ref or "").strip().strip("/")
        if not ref:
            raise ValueError("Storage reference cannot be empty")

        full_path = (self.base_path / ref).resolve()
        if not full_path.is_relative_to(self.base_path):
            raise ValueError(f"Storage reference escapes storage root: {ref}")
        return full_path

    async def save(self, file: BinaryIO, directory: str, filename: str) -> str:
        """Save file to local filesystem.

        Returns:
            str: Storage reference "directory/filename"
        """
        ref = f"{directory.strip('/')}/{filename}"
        full_path = self._resolve(ref)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug("local_storage_save_started", ref=ref, full_path=str(full_path))

        try:
            if hasattr(file, "seek"):
                file.seek(0)

            bytes_written = 0
            async with aiofiles.open(full_path, 'wb') as f:
                while chunk := file.read(8192):
                    await f.write(chunk)
                    bytes_written += len(chunk)

            logger.info("local_storage_save_success", ref=ref, bytes_written=bytes_written)
            return ref

        except Exception as exc:
            logger.error(
                "local_storage_save_failed",
                ref=ref,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise

    async def load(self, ref: str) -> bytes:
        """Load file contents from local filesystem."""
        full_path = self._resolve(ref)

        try:
            async with aiofiles.open(full_path, 'rb') as f:
                data = await f.read()

            logger.debug("local_storage_load_success", ref=ref, bytes_read=len(data))
            return data

        except FileNotFoundError:
            logger.error("local_storage_load_not_found", ref=ref, full_path=str(full_path))
            raise

    async def delete(self, ref: str) -> None:
        """Delete file from local filesystem. Missing files are only logged."""
        full_path = self._resolve(ref)

        try:
            if full_path.exists():
                full_path.unlink()
                logger.info("local_storage_delete_success", ref=ref)
            else:
                logger.warning("local_storage_delete_not_found", ref=ref, full_path=str(full_path))

        except Exception as exc:
            logger.error(
                "local_storage_delete_failed",
                ref=ref,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise

    async def get_url(self, ref: str) -> str:
        """URL path for serving via FastAPI StaticFiles."""
        return f"{self.url_prefix}/{ref.strip('/')}"
