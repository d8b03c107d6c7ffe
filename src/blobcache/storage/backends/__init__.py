"""
Metadata Index Backends
=======================

Pluggable embedded key-value engines for cache metadata.

Built-in indexes:
- SqliteIndex: SQLite database through SQLAlchemy (default, persistent)
- InMemoryIndex: dictionary in process memory (testing, ephemeral caches)

Registry APIs:
- register_metadata_index(), unregister_metadata_index()
- get_metadata_index(), list_metadata_indexes()
- create_metadata_index(): used by the cache to open its index under a root

Usage:
    from blobcache.storage.backends import (
        MetadataIndex,
        register_metadata_index,
        get_metadata_index,
    )

    class LmdbIndex(MetadataIndex):
        ...

    register_metadata_index("lmdb", LmdbIndex)
    index = get_metadata_index("lmdb", path="./cache/index")
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Type, Union

from .base import MetadataIndex
from .memory_index import InMemoryIndex
from .sqlite_index import SqliteIndex

logger = logging.getLogger(__name__)


# Registry storage
_metadata_index_registry: Dict[str, Type[MetadataIndex]] = {}
_builtin_metadata_indexes = {"sqlite", "memory"}


def _initialize_builtin_indexes():
    """Initialize registry with built-in indexes."""
    _metadata_index_registry["sqlite"] = SqliteIndex
    _metadata_index_registry["memory"] = InMemoryIndex


# Initialize on module load
_initialize_builtin_indexes()


def register_metadata_index(
    name: str, index_class: Type[MetadataIndex], force: bool = False
) -> None:
    """
    Register a custom metadata index.

    Args:
        name: Unique name for the index (e.g., "lmdb", "rocksdb")
        index_class: Class that implements the MetadataIndex interface
        force: If True, overwrite existing registration

    Raises:
        ValueError: If name already registered and force=False
        ValueError: If index_class doesn't inherit from MetadataIndex
    """
    if not isinstance(index_class, type):
        raise ValueError(f"index_class must be a class, got {type(index_class)}")

    if not issubclass(index_class, MetadataIndex):
        raise ValueError(
            f"Index class {index_class.__name__} must inherit from MetadataIndex"
        )

    if name in _metadata_index_registry and not force:
        raise ValueError(
            f"Metadata index '{name}' already registered. "
            f"Use force=True to overwrite or unregister_metadata_index() first."
        )

    _metadata_index_registry[name] = index_class
    logger.info(f"Registered metadata index '{name}' ({index_class.__name__})")


def unregister_metadata_index(name: str) -> bool:
    """
    Unregister a metadata index.

    Returns:
        True if the index was unregistered, False if not found
    """
    if name in _metadata_index_registry:
        del _metadata_index_registry[name]
        logger.info(f"Unregistered metadata index '{name}'")
        return True

    logger.warning(f"Metadata index '{name}' not found for unregistration")
    return False


def get_metadata_index(name: str, **options) -> MetadataIndex:
    """
    Get a metadata index instance by name.

    Args:
        name: Name of the registered index
        **options: Index-specific configuration options

    Raises:
        ValueError: If the name is not registered or the options don't fit
    """
    if name not in _metadata_index_registry:
        available = list(_metadata_index_registry.keys())
        raise ValueError(
            f"Unknown metadata index: '{name}'. Available indexes: {available}"
        )

    index_class = _metadata_index_registry[name]

    try:
        return index_class(**options)
    except TypeError as e:
        raise ValueError(
            f"Failed to create metadata index '{name}' with options {options}: {e}"
        )


def list_metadata_indexes() -> List[Dict[str, Any]]:
    """
    List all registered metadata indexes, built-ins first.

    Returns:
        List of dictionaries with keys ``name``, ``class`` and ``is_builtin``
    """
    builtins = sorted(n for n in _metadata_index_registry if n in _builtin_metadata_indexes)
    custom = sorted(n for n in _metadata_index_registry if n not in _builtin_metadata_indexes)
    return [
        {
            "name": name,
            "class": _metadata_index_registry[name].__name__,
            "is_builtin": name in _builtin_metadata_indexes,
        }
        for name in builtins + custom
    ]


def create_metadata_index(
    backend: str, index_dir: Union[str, Path], db_file: str = "metadata.db"
) -> MetadataIndex:
    """
    Open the metadata index a cache keeps under ``index_dir``.

    "sqlite" stores its database at ``index_dir / db_file``; "memory" ignores
    the directory. Custom indexes receive ``path=index_dir``.
    """
    if backend == "sqlite":
        return get_metadata_index(backend, db_file=Path(index_dir) / db_file)
    if backend == "memory":
        return get_metadata_index(backend)
    return get_metadata_index(backend, path=Path(index_dir))


__all__ = [
    "MetadataIndex",
    "SqliteIndex",
    "InMemoryIndex",
    "register_metadata_index",
    "unregister_metadata_index",
    "get_metadata_index",
    "list_metadata_indexes",
    "create_metadata_index",
]
