"""
Configuration Management for blobcache
======================================

``CacheConfig`` holds everything needed to open a cache; ``CacheBuilder``
offers the same options as a fluent builder.

    cache = CacheBuilder("./cache").track_access(True).build()
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Union

from .error_handling import CacheConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = "./cache"


@dataclass
class CacheConfig:
    """Configuration for one cache instance."""

    cache_dir: str = DEFAULT_CACHE_DIR
    track_access: bool = False  # reads bump hits and last_accessed
    metadata_backend: str = "sqlite"  # any name in the metadata index registry
    index_dir: str = "index"  # relative to cache_dir
    sqlite_db_file: str = "metadata.db"

    def __post_init__(self):
        """Validate cache configuration."""
        self.cache_dir = str(self.cache_dir)
        if not self.cache_dir:
            raise ValueError("cache_dir must not be empty")

        if not self.metadata_backend:
            raise ValueError("metadata_backend must not be empty")

        if not self.index_dir or Path(self.index_dir).is_absolute():
            raise ValueError("index_dir must be a non-empty relative path")

        if not self.sqlite_db_file:
            raise ValueError("sqlite_db_file must not be empty")

        logger.debug(
            f"Cache configured: dir={self.cache_dir}, backend={self.metadata_backend}, "
            f"track_access={self.track_access}"
        )

    @property
    def index_path(self) -> Path:
        return Path(self.cache_dir) / self.index_dir


class CacheBuilder:
    """
    Builder for :class:`blobcache.core.Cache`.

    The path supplied is the base directory of the cache; ``CacheBuilder()``
    uses ``./cache``.
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_CACHE_DIR):
        self._config = CacheConfig(cache_dir=str(path))

    def track_access(self, enabled: bool = True) -> "CacheBuilder":
        """Enable or disable hit counting and last-access updates on reads."""
        self._config = replace(self._config, track_access=bool(enabled))
        return self

    def metadata_backend(self, name: str) -> "CacheBuilder":
        """Select the metadata index by registry name."""
        try:
            self._config = replace(self._config, metadata_backend=name)
        except ValueError as e:
            raise CacheConfigurationError(str(e), {"metadata_backend": name}) from e
        return self

    @property
    def config(self) -> CacheConfig:
        return self._config

    def build(self):
        """Open the configured cache."""
        # Import here to avoid circular imports
        from .core import Cache

        return Cache(self._config)

    def __repr__(self) -> str:
        return f"CacheBuilder({self._config!r})"
