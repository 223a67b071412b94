"""Storage backend protocol definition."""

from typing import Protocol, BinaryIO


class StorageBackend(Protocol):
    """Interface every blob store backend implements.

    A storage reference ("ref") is the string returned by `save`, of the form
    "<directory>/<filename>". It is what the database stores.
    """

    async def save(self, file: BinaryIO, directory: str, filename: str) -> str:
        """Save file to storage.

        Args:
            file: Binary file object to save
            directory: Directory (prefix) inside the store, e.g. "public/gallery"
            filename: File name inside the directory

        Returns:
            str: Storage reference
        """
        ...

    async def load(self, ref: str) -> bytes:
        """Load file contents for a storage reference."""
        ...

    async def delete(self, ref: str) -> None:
        """Delete a file. Deleting a missing file is not an error."""
        ...

    async def get_url(self, ref: str) -> str:
        """Public URL for a storage reference."""
        ...
