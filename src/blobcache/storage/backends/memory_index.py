"""In-process metadata index, for tests and caches that need no persistence."""

import logging
import threading
from typing import Dict, Iterator, Tuple

from ...error_handling import MetadataNotFoundError
from .base import MetadataIndex

logger = logging.getLogger(__name__)


class InMemoryIndex(MetadataIndex):
    """
    Dictionary-backed metadata index.

    Records are lost when the index is closed or garbage collected.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._entries: Dict[bytes, bytes] = {}
        logger.debug("InMemoryIndex initialized")

    def get(self, key: bytes) -> bytes:
        try:
            return self._entries[key]
        except KeyError:
            raise MetadataNotFoundError(
                "Metadata not found", {"key": key.hex()}
            ) from None

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._entries[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            if self._entries.pop(key, None) is None:
                raise MetadataNotFoundError("Metadata not found", {"key": key.hex()})

    def iterate(self) -> Iterator[Tuple[bytes, bytes]]:
        with self._lock:
            snapshot = sorted(self._entries.items())
        yield from snapshot

    def __len__(self) -> int:
        return len(self._entries)

    def close(self) -> None:
        with self._lock:
            self._entries.clear()
