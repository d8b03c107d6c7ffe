"""
Abstract Base Class for Metadata Indexes
========================================

Defines the capability every embedded key-value engine must provide to hold
cache metadata: get, put, delete and iterate raw bytes by key.
"""

from abc import ABC, abstractmethod
from typing import Iterator, Tuple


class MetadataIndex(ABC):
    """
    Abstract base class for cache metadata indexes.

    Values are opaque encoded records; the index never interprets them.
    Implementations rely on their engine's own concurrency control and add
    no locking of their own beyond what the engine requires.

    Errors:
        MetadataNotFoundError: ``get``/``delete`` on an absent key
        CacheBackendError: any engine failure unrelated to key presence
    """

    @abstractmethod
    def get(self, key: bytes) -> bytes:
        """
        Fetch the record stored for ``key``.

        Raises:
            MetadataNotFoundError: If the key is absent.
        """
        pass

    @abstractmethod
    def put(self, key: bytes, value: bytes) -> None:
        """Store ``value`` for ``key``, silently replacing any previous value."""
        pass

    @abstractmethod
    def delete(self, key: bytes) -> None:
        """
        Remove the record for ``key``.

        Raises:
            MetadataNotFoundError: If the key is absent.
        """
        pass

    @abstractmethod
    def iterate(self) -> Iterator[Tuple[bytes, bytes]]:
        """Lazily yield every ``(key, value)`` pair in the index."""
        pass

    def __len__(self) -> int:
        return sum(1 for _ in self.iterate())

    def close(self) -> None:
        """
        Release engine resources.

        Default implementation does nothing. Override in indexes that hold
        connections or file handles.
        """
        pass

    def __enter__(self):
        """Support context manager protocol."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Ensure resources are cleaned up."""
        self.close()
        return False
