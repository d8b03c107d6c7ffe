"""
BlobStore - Atomic File Storage for Cache Values
================================================

Stores each value as a single file at ``path_of(root, key)``. Writes go to a
randomly named temporary file in the cache root and are renamed onto the final
path once fully written and synced, so a concurrent reader sees either the old
file or the new one, never a partial write.

All I/O is asynchronous (``aiofiles``) and may suspend at open, write, flush,
sync, rename and read boundaries.

Temporary files are named ``tmp`` followed by 10 random alphanumerics. A write
cancelled or crashed before the rename can leave one behind in the root; no
sweep reclaims them.

Usage:
    store = BlobStore("./cache")
    await store.write(b"key", b"value")
    data = await store.read(b"key")
    await store.remove(b"key")
"""

import logging
import os
import secrets
import string
from pathlib import Path
from typing import Union

import aiofiles
import aiofiles.os

from ..error_handling import BlobNotFoundError, CacheStorageError
from .paths import PathMapper

logger = logging.getLogger(__name__)

TMP_PREFIX = "tmp"
TMP_RANDOM_LEN = 10
_TMP_ALPHABET = string.ascii_letters + string.digits


def tmp_name(prefix: str = TMP_PREFIX, rand_len: int = TMP_RANDOM_LEN) -> str:
    """Random temporary filename; collisions are not retried."""
    return prefix + "".join(secrets.choice(_TMP_ALPHABET) for _ in range(rand_len))


def tmp_path_in(directory: Union[str, Path]) -> Path:
    """Randomized path inside ``directory`` usable as a temporary file."""
    return Path(directory) / tmp_name()


class BlobStore:
    """
    Filesystem blob storage keyed by raw bytes.

    Attributes:
        root: Cache root directory; temporary files are created here
        mapper: PathMapper resolving keys to blob paths under ``root``
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.mapper = PathMapper(self.root)

    def ensure_root(self) -> None:
        """Create the root directory if it does not exist."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheStorageError(
                f"Could not create cache root {self.root}: {e}",
                {"root": str(self.root)},
            ) from e
        logger.debug(f"BlobStore root ready at {self.root}")

    def path_for(self, key: bytes) -> Path:
        """Blob path for ``key``; the empty key has no file of its own."""
        if not key:
            raise CacheStorageError("The empty key does not map to a blob file")
        return self.mapper.path_of(key)

    async def write(self, key: bytes, data: bytes) -> None:
        """
        Atomically create or replace the blob for ``key``.

        Raises:
            CacheStorageError: On any filesystem failure
        """
        final_path = self.path_for(key)
        tmp_path = tmp_path_in(self.root)
        renamed = False
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
                await f.flush()
                await aiofiles.os.wrap(os.fsync)(f.fileno())

            await aiofiles.os.makedirs(final_path.parent, exist_ok=True)
            await aiofiles.os.replace(tmp_path, final_path)
            renamed = True
        except OSError as e:
            raise CacheStorageError(
                f"Failed to write blob {final_path.name}: {e}",
                {"path": str(final_path), "tmp_path": str(tmp_path)},
            ) from e
        finally:
            if not renamed:
                await self._discard_tmp(tmp_path)

        logger.debug(f"Wrote blob {final_path.name} ({len(data)} bytes)")

    async def _discard_tmp(self, tmp_path: Path) -> None:
        try:
            await aiofiles.os.remove(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temporary file {tmp_path}: {e}")

    async def read(self, key: bytes) -> bytes:
        """
        Read the full blob for ``key``.

        Raises:
            BlobNotFoundError: If no blob exists for the key
            CacheStorageError: On any other filesystem failure
        """
        path = self.path_for(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                size_hint = (await aiofiles.os.stat(path)).st_size
                buf = bytearray()
                # the reported size is only a hint; read until EOF
                chunk = await f.read(max(size_hint, 1))
                while chunk:
                    buf += chunk
                    chunk = await f.read()
        except FileNotFoundError as e:
            raise BlobNotFoundError(
                f"Blob not found: {path.name}", {"path": str(path)}
            ) from e
        except OSError as e:
            raise CacheStorageError(
                f"Failed to read blob {path.name}: {e}", {"path": str(path)}
            ) from e
        return bytes(buf)

    async def remove(self, key: bytes) -> None:
        """
        Delete the blob for ``key``.

        Raises:
            BlobNotFoundError: If no blob exists for the key
            CacheStorageError: On any other filesystem failure
        """
        path = self.path_for(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError as e:
            raise BlobNotFoundError(
                f"Blob not found: {path.name}", {"path": str(path)}
            ) from e
        except OSError as e:
            raise CacheStorageError(
                f"Failed to remove blob {path.name}: {e}", {"path": str(path)}
            ) from e
        logger.debug(f"Deleted blob: {path.name}")

    async def exists(self, key: bytes) -> bool:
        """Check whether a blob file exists for ``key``."""
        return await aiofiles.os.path.isfile(self.path_for(key))

    def __repr__(self) -> str:
        return f"BlobStore({str(self.root)!r})"
