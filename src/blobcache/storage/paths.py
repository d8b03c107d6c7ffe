"""
Key to path mapping for blob files.

Blobs live at ``root/<shard1>/<shard2>/<hex(key)>``. The two shard segments
are the first two bytes of the key in hex; a segment the key is too short to
fill becomes ``"__"``. The filename is always the full hex of the key, so
sharding only affects directory fan-out and two distinct keys never share a
path.

    >>> path_of(Path("/cache"), b"\\xaa\\xbb\\xcc")
    PosixPath('/cache/aa/bb/aabbcc')
    >>> path_of(Path("/cache"), b"\\xaa")
    PosixPath('/cache/__/__/aa')
"""

from pathlib import Path
from typing import Tuple, Union

SHARD_PLACEHOLDER = "__"
SHARD_WIDTH = 2
SHARD_LEVELS = 2


def shard_segments(hex_key: str) -> Tuple[str, ...]:
    """Directory segments for an already hex-encoded key."""
    segments = []
    for start in range(0, SHARD_LEVELS * SHARD_WIDTH, SHARD_WIDTH):
        end = start + SHARD_WIDTH
        # a segment is only used when more hex follows it
        segments.append(
            SHARD_PLACEHOLDER if end >= len(hex_key) else hex_key[start:end]
        )
    return tuple(segments)


def path_of(root: Union[str, Path], key: bytes) -> Path:
    """Deterministic blob path for ``key`` under ``root``."""
    hex_key = bytes(key).hex()
    return Path(root).joinpath(*shard_segments(hex_key), hex_key)


class PathMapper:
    """Binds a cache root to :func:`path_of`."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def path_of(self, key: bytes) -> Path:
        return path_of(self.root, key)

    def __repr__(self) -> str:
        return f"PathMapper({str(self.root)!r})"
