"""
PeakStreak Backend: Blob Store
===============================

What:  Save and delete avatar images by key, returning a public locator.
Why:   AccountService only needs "put these bytes somewhere public" and
       "remove that"; the disk layout stays out of the service.
How:   `BlobStore` is the contract; `LocalBlobStore` writes into a directory
       with async file I/O (aiofiles) and hands back `<public_url>/<key>`,
       which the app serves under the same prefix.

Security Model:
    - Keys are generated by the service (UUID + extension), never taken from
      the client. A key containing a path separator or ".." is rejected
      anyway.
    - `delete()` only accepts locators under this store's public prefix, so a
      tampered avatar_url cannot point it at an arbitrary file.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    @abstractmethod
    async def save(self, content: bytes, key: str) -> str:
        """Store `content` under `key`; return the public locator."""
        ...

    @abstractmethod
    async def delete(self, locator: str) -> None:
        """Remove the blob behind `locator`. Missing blobs are not an error."""
        ...


class LocalBlobStore(BlobStore):
    """
    Blob store on the local filesystem.

    Directory Structure:
        uploads/avatars/
        ├── 3f1c...-....png
        └── 9ab2...-....jpg

    A flat directory is enough: one file per user at most, old avatars are
    deleted on replacement.
    """

    def __init__(self, base_path: str, public_url: str):
        self.base_path = Path(base_path).resolve()
        self.public_url = public_url.rstrip("/")
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info("LocalBlobStore initialized with base_path=%s", self.base_path)

    def _path_for_key(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise ValueError(f"invalid blob key: {key!r}")
        return self.base_path / key

    def _key_for_locator(self, locator: str) -> str:
        prefix = f"{self.public_url}/"
        if not locator.startswith(prefix):
            raise ValueError(f"locator {locator!r} does not belong to this store")
        return locator[len(prefix):]

    async def save(self, content: bytes, key: str) -> str:
        path = self._path_for_key(key)
        async with aiofiles.open(path, "wb") as f:
            await f.write(content)
        logger.info("Blob stored: %s (%d bytes)", key, len(content))
        return f"{self.public_url}/{key}"

    async def delete(self, locator: str) -> None:
        path = self._path_for_key(self._key_for_locator(locator))
        try:
            await aiofiles.os.remove(path)
            logger.info("Blob deleted: %s", path.name)
        except FileNotFoundError:
            logger.debug("Blob already gone: %s", path.name)
