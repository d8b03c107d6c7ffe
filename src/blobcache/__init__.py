"""
blobcache - async disk-resident key/value cache for large values.

Keys are arbitrary bytes; each value is stored as its own file, written
atomically (temp file + rename) into a sharded directory tree. A small
metadata record per key (size, timestamps, hit count, MD5 integrity digest)
lives in an embedded index (SQLite by default).

Key Features:
- Asynchronous blob reads and writes (aiofiles)
- Readers never observe partial writes
- Optional access tracking (hit counts, last access time)
- Explicit integrity verification against the write-time digest
- Pluggable metadata index backends

Quick Start:
    >>> from blobcache import CacheBuilder
    >>>
    >>> cache = CacheBuilder("./cache").build()
    >>> await cache.write(b"MY_KEY", b"Hello World")
    >>> await cache.read(b"MY_KEY")
    b'Hello World'
    >>> cache.read_metadata(b"MY_KEY").size
    11
"""

from .config import CacheBuilder, CacheConfig
from .core import Cache
from .error_handling import (
    BlobNotFoundError,
    CacheBackendError,
    CacheConfigurationError,
    CacheCorruptionError,
    CacheError,
    CacheMetadataError,
    CacheStorageError,
    EntryNotFoundError,
    MetadataNotFoundError,
)
from .metadata import Metadata, check_integrity_of
from .storage.backends import (
    InMemoryIndex,
    MetadataIndex,
    SqliteIndex,
    register_metadata_index,
)

__version__ = "0.4.1"

__all__ = [
    # Core classes
    "Cache",
    "CacheBuilder",
    "CacheConfig",
    "Metadata",
    "check_integrity_of",
    # Metadata indexes
    "MetadataIndex",
    "SqliteIndex",
    "InMemoryIndex",
    "register_metadata_index",
    # Errors
    "CacheError",
    "CacheConfigurationError",
    "CacheStorageError",
    "EntryNotFoundError",
    "BlobNotFoundError",
    "MetadataNotFoundError",
    "CacheMetadataError",
    "CacheCorruptionError",
    "CacheBackendError",
    # Version info
    "__version__",
]
