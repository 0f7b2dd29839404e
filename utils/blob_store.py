"""Blob store adapters for the source files behind catalog items.

Source PDFs are private: the fulfillment path only reads them, the upload path
(outside this package) writes them. Each adapter exposes the same four async
operations so the storage backend can change without touching the services.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path

import config
from exceptions.download import BlobStoreException

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """Abstract base class for blob store adapters."""

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the bytes stored under key.

        Raises:
            BlobStoreException: If the object is missing or unreadable
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def put(self, data: bytes, key: str) -> str:
        """Store data under key and return its locator."""
        pass


class LocalBlobStore(BlobStore):
    """Blob store backed by a private directory on the local filesystem.

    Keys are relative paths below the root. Keys resolving outside the root are
    rejected so a tampered storage path can never reach arbitrary files.
    """

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or config.BLOB_STORE_ROOT).resolve()

    def _resolve(self, key: str) -> Path:
        path = (self.root / key.lstrip("/")).resolve()
        if path != self.root and self.root not in path.parents:
            raise BlobStoreException(key, "key escapes the storage root")
        return path

    async def get(self, key: str) -> bytes:
        path = self._resolve(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error(f"Blob read failed for {key}: {e}")
            raise BlobStoreException(key, str(e)) from e

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._resolve(key).is_file)

    async def delete(self, key: str) -> None:
        path = self._resolve(key)
        await asyncio.to_thread(path.unlink, True)

    async def put(self, data: bytes, key: str) -> str:
        path = self._resolve(key)

        def _write():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise BlobStoreException(key, str(e)) from e
        logger.debug(f"Stored blob {key} ({len(data)} bytes)")
        return str(path)
