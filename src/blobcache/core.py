"""
Disk Cache Orchestration
========================

``Cache`` stores each value as a file through :class:`BlobStore` and keeps a
metadata record per key in a :class:`MetadataIndex`. Blob I/O is async; the
metadata engine is synchronous and is called inline, so metadata calls can
block the event loop under load.

Ordering:
- write commits the blob (atomic rename) before putting the metadata record
- remove deletes the metadata record before deleting the blob

The two stores are committed independently. A crash between the steps of a
write leaves a blob without metadata; a crash between the steps of a remove
leaves a blob that ``read`` still serves while ``read_metadata`` reports it
missing. Nothing is rolled back or retried.

Usage:
    async with Cache("./cache") as cache:
        await cache.write(b"MY_KEY", b"Hello World")
        data = await cache.read(b"MY_KEY")
        meta = cache.read_metadata(b"MY_KEY")
        assert meta.size == 11
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

from .config import CacheConfig
from .error_handling import CacheError, cache_operation_context
from .metadata import Metadata, decode_metadata, encode_metadata
from .storage.backends import MetadataIndex, create_metadata_index
from .storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

KeyLike = Union[bytes, bytearray, memoryview, str]
TrackingErrorHandler = Callable[[bytes, Exception], None]


def _as_key(key: KeyLike) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8")
    return _as_bytes(key, "keys")


def _as_value(value) -> bytes:
    return _as_bytes(value, "values")


def _as_bytes(obj, what: str) -> bytes:
    # bytes(5) would silently build five zero bytes
    try:
        return memoryview(obj).tobytes()
    except TypeError as e:
        raise TypeError(
            f"Cache {what} must be bytes-like, got {type(obj).__name__}"
        ) from e


class Cache:
    """
    Disk-resident key/value cache.

    The cache exclusively owns its root directory and its metadata index from
    construction until :meth:`close`.
    """

    def __init__(
        self,
        cache_dir_or_config: Optional[Union[str, Path, CacheConfig]] = None,
        metadata_index: Optional[MetadataIndex] = None,
        on_tracking_error: Optional[TrackingErrorHandler] = None,
    ):
        """
        Open a cache.

        Args:
            cache_dir_or_config: Cache directory path or CacheConfig object (uses defaults if None)
            metadata_index: Optional index instance; the cache takes ownership and closes it
            on_tracking_error: Called with (key, error) when an access-tracking update fails
        """
        if isinstance(cache_dir_or_config, (str, Path)):
            self.config = CacheConfig(cache_dir=str(cache_dir_or_config))
        elif isinstance(cache_dir_or_config, CacheConfig):
            self.config = cache_dir_or_config
        elif cache_dir_or_config is None:
            self.config = CacheConfig()
        else:
            raise TypeError(
                f"Expected str, Path, or CacheConfig, got {type(cache_dir_or_config)}"
            )

        self.cache_dir = Path(self.config.cache_dir)
        self.blobs = BlobStore(self.cache_dir)
        self.blobs.ensure_root()

        if metadata_index is not None:
            self.index = metadata_index
            actual_backend = "custom"
        else:
            self.index = create_metadata_index(
                self.config.metadata_backend,
                self.config.index_path,
                db_file=self.config.sqlite_db_file,
            )
            actual_backend = self.config.metadata_backend

        self.on_tracking_error = on_tracking_error
        self._tracked_reads = 0
        self._tracking_failures = 0
        self._closed = False

        logger.info(
            f"Cache opened: {self.cache_dir} (index: {actual_backend}, "
            f"track_access: {self.track_access})"
        )

    @property
    def track_access(self) -> bool:
        return self.config.track_access

    def _check_open(self):
        if self._closed:
            raise CacheError("Cache is closed", {"cache_dir": str(self.cache_dir)})

    async def write(self, key: KeyLike, value: bytes) -> None:
        """
        Create or fully replace the entry for ``key``.

        The new metadata record starts with ``hits == 0`` and both timestamps
        set to now; access history of a previous value is not kept.

        Raises:
            CacheStorageError: If the blob could not be written; metadata is untouched
            CacheBackendError: If the metadata record could not be stored
        """
        self._check_open()
        key = _as_key(key)
        value = _as_value(value)
        with cache_operation_context("write", key=key.hex(), size=len(value)):
            await self.blobs.write(key, value)
            meta = Metadata.new(value)
            self.index.put(key, encode_metadata(meta))

    async def read(self, key: KeyLike) -> bytes:
        """
        Read the value for ``key``.

        With access tracking enabled, a successful read also bumps the
        record's ``hits`` and ``last_accessed``. That update is best effort:
        its failure is logged and reported to ``on_tracking_error``, never
        raised.

        Raises:
            BlobNotFoundError: If no value is stored for the key
            CacheStorageError: On any other filesystem failure
        """
        self._check_open()
        key = _as_key(key)
        with cache_operation_context("read", key=key.hex()):
            data = await self.blobs.read(key)

        if self.track_access:
            self._track_access(key)
        return data

    def _track_access(self, key: bytes) -> Optional[Metadata]:
        try:
            meta = decode_metadata(self.index.get(key)).touched()
            self.index.put(key, encode_metadata(meta))
        except Exception as e:
            self._tracking_failures += 1
            logger.warning(f"Access tracking update failed for {key.hex()}: {e}")
            if self.on_tracking_error is not None:
                try:
                    self.on_tracking_error(key, e)
                except Exception:
                    logger.exception(f"on_tracking_error handler failed for {key.hex()}")
            return None
        self._tracked_reads += 1
        return meta

    def read_metadata(self, key: KeyLike) -> Metadata:
        """
        Look up the metadata record for ``key`` without side effects.

        Raises:
            MetadataNotFoundError: If the index has no record for the key
            CacheCorruptionError: If the stored record cannot be decoded
            CacheBackendError: If the index fails
        """
        self._check_open()
        return decode_metadata(self.index.get(_as_key(key)))

    async def remove(self, key: KeyLike) -> Metadata:
        """
        Remove the entry for ``key`` and return its last metadata record.

        The metadata record is deleted first, then the blob. If the record is
        missing nothing is deleted.

        Raises:
            MetadataNotFoundError: If the index has no record for the key
            BlobNotFoundError: If the record was deleted but no blob existed
            CacheStorageError: If the blob could not be deleted
        """
        self._check_open()
        key = _as_key(key)
        with cache_operation_context("remove", key=key.hex()):
            meta = decode_metadata(self.index.get(key))
            self.index.delete(key)
            await self.blobs.remove(key)
        return meta

    def metadata_iter(self) -> Iterator[Tuple[bytes, Metadata]]:
        """
        Lazily yield ``(key, metadata)`` for every record in the index.

        A record that fails to decode raises CacheCorruptionError when it is
        reached; earlier items have already been yielded.

        Raises:
            CacheError: Immediately, if the cache is closed
        """
        self._check_open()
        return self._iter_records()

    def _iter_records(self) -> Iterator[Tuple[bytes, Metadata]]:
        for key, raw in self.index.iterate():
            yield key, decode_metadata(raw)

    async def contains(self, key: KeyLike) -> bool:
        """Check whether a blob is stored for ``key``."""
        self._check_open()
        return await self.blobs.exists(_as_key(key))

    async def verify(self, key: KeyLike) -> bool:
        """
        Explicitly check the stored blob against its metadata record.

        Does not count as a tracked read.

        Raises:
            MetadataNotFoundError / BlobNotFoundError: If either half is missing
        """
        self._check_open()
        key = _as_key(key)
        meta = self.read_metadata(key)
        data = await self.blobs.read(key)
        ok = meta.size == len(data) and meta.check_integrity_of(data)
        if not ok:
            logger.warning(f"Integrity check failed for {key.hex()}")
        return ok

    @staticmethod
    def check_integrity_of(record: Metadata, data: bytes) -> bool:
        """True iff ``data`` matches the digest in ``record``."""
        return record.check_integrity_of(data)

    def get_stats(self) -> Dict[str, Any]:
        """Entry count and access-tracking counters for this instance."""
        self._check_open()
        return {
            "cache_dir": str(self.cache_dir),
            "entries": len(self.index),
            "track_access": self.track_access,
            "tracked_reads": self._tracked_reads,
            "tracking_failures": self._tracking_failures,
        }

    def close(self) -> None:
        """Release the metadata index. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.index.close()
        logger.info(f"Cache closed: {self.cache_dir}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"Cache({str(self.cache_dir)!r}, track_access={self.track_access})"
