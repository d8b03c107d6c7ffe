"""
Storage Layer
=============

Low-level storage infrastructure used by the cache:
- PathMapper: deterministic, sharded key to file path mapping
- BlobStore: atomic async file writes, reads and deletes
- Metadata indexes: pluggable embedded key-value engines (SQLite, memory)

Usage:
    from blobcache.storage import BlobStore, SqliteIndex

    store = BlobStore("./cache")
    index = SqliteIndex("./cache/index/metadata.db")
"""

from .backends import (
    InMemoryIndex,
    MetadataIndex,
    SqliteIndex,
    create_metadata_index,
    get_metadata_index,
    list_metadata_indexes,
    register_metadata_index,
    unregister_metadata_index,
)
from .blob_store import BlobStore, tmp_path_in
from .paths import PathMapper, path_of

__all__ = [
    # Blob storage
    "BlobStore",
    "PathMapper",
    "path_of",
    "tmp_path_in",
    # Metadata indexes
    "MetadataIndex",
    "SqliteIndex",
    "InMemoryIndex",
    "create_metadata_index",
    "get_metadata_index",
    "list_metadata_indexes",
    "register_metadata_index",
    "unregister_metadata_index",
]
