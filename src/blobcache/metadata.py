"""
Cache Entry Metadata
====================

Every cached blob has a small metadata record stored in the metadata index:

- size: byte length of the blob at the last write
- last_modified: milliseconds since the epoch of the last write (0 = unset)
- last_accessed: milliseconds since the epoch of the last tracked read
  (equal to last_modified unless access tracking is enabled)
- hits: number of tracked reads since the last write
- integrity: 16-byte MD5 digest of the blob written

Records are stored as BSON documents. Integers are written as signed 64-bit
slots and read back as unsigned, and the digest is a binary field with the
MD5 subtype, so the encoding is the same on every platform.

Usage:
    from blobcache.metadata import Metadata

    meta = Metadata.new(b"Hello World")
    raw = meta.serialize()
    assert Metadata.deserialize(raw) == meta
    assert meta.check_integrity_of(b"Hello World")
"""

import hashlib
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Optional

import bson
from bson.binary import MD5_SUBTYPE, Binary
from bson.errors import BSONError
from bson.int64 import Int64

from .error_handling import CacheCorruptionError

logger = logging.getLogger(__name__)

MD5_LEN = 16
_U64_MASK = 0xFFFF_FFFF_FFFF_FFFF
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

NUMERIC_FIELDS = ("size", "last_modified", "last_accessed", "hits")


def now_millis() -> int:
    """Milliseconds from the epoch to now, 0 if the clock is before the epoch."""
    return max(time.time_ns() // 1_000_000, 0)


def compute_integrity(data: bytes) -> bytes:
    """MD5 digest of ``data``; used only for explicit verification."""
    return hashlib.md5(data).digest()


def _millis_to_datetime(millis: int) -> Optional[datetime]:
    if millis == 0:
        return None
    return _EPOCH + timedelta(milliseconds=millis)


def _as_signed(value: int) -> int:
    value &= _U64_MASK
    return value - (1 << 64) if value >= (1 << 63) else value


@dataclass(frozen=True)
class Metadata:
    """Metadata record for one cache entry."""

    size: int
    last_modified: int
    last_accessed: int
    hits: int
    integrity: bytes

    @classmethod
    def new(cls, data: bytes, now: Optional[int] = None) -> "Metadata":
        """Fresh record for a write of ``data``: hits reset, both timestamps now."""
        stamp = now_millis() if now is None else now
        return cls(
            size=len(data),
            last_modified=stamp,
            last_accessed=stamp,
            hits=0,
            integrity=compute_integrity(data),
        )

    def touched(self, now: Optional[int] = None) -> "Metadata":
        """Copy of this record after one tracked read."""
        return replace(
            self,
            hits=(self.hits + 1) & _U64_MASK,
            last_accessed=now_millis() if now is None else now,
        )

    @property
    def last_modified_at(self) -> Optional[datetime]:
        """Last write time as an aware UTC datetime, None when unset."""
        return _millis_to_datetime(self.last_modified)

    @property
    def last_accessed_at(self) -> Optional[datetime]:
        """Last tracked read time as an aware UTC datetime, None when unset.

        Same as ``last_modified_at`` unless access tracking is enabled.
        """
        return _millis_to_datetime(self.last_accessed)

    def check_integrity_of(self, data: bytes) -> bool:
        """True iff ``data`` hashes to the digest recorded at write time."""
        return compute_integrity(data) == self.integrity

    def serialize(self) -> bytes:
        return encode_metadata(self)

    @classmethod
    def deserialize(cls, buf: bytes) -> "Metadata":
        return decode_metadata(buf)


def check_integrity_of(record: Metadata, data: bytes) -> bool:
    """Module-level form of :meth:`Metadata.check_integrity_of`."""
    return record.check_integrity_of(data)


def encode_metadata(meta: Metadata) -> bytes:
    """Encode a record as a BSON document."""
    doc = {name: Int64(_as_signed(getattr(meta, name))) for name in NUMERIC_FIELDS}
    doc["integrity"] = Binary(bytes(meta.integrity), MD5_SUBTYPE)
    return bson.encode(doc)


def decode_metadata(buf: bytes) -> Metadata:
    """
    Decode a BSON document produced by :func:`encode_metadata`.

    Raises:
        CacheCorruptionError: If the document is malformed, a field is missing
            or has the wrong type, or the integrity digest has the wrong
            subtype or length. ``field`` names the offending field.
    """
    try:
        doc = bson.decode(bytes(buf))
    except (BSONError, TypeError, ValueError) as e:
        raise CacheCorruptionError(
            f"Malformed metadata document: {e}", context={"length": len(buf)}
        ) from e

    values = {}
    for name in NUMERIC_FIELDS:
        value = doc.get(name)
        # BSON int32 and bool decode as plain int / bool, never Int64
        if not isinstance(value, Int64):
            raise CacheCorruptionError(
                f"Metadata field '{name}' is missing or not a 64-bit integer",
                field=name,
            )
        values[name] = value & _U64_MASK

    integrity = doc.get("integrity")
    if not isinstance(integrity, Binary):
        if isinstance(integrity, bytes):
            # plain bytes decode from the generic binary subtype
            raise CacheCorruptionError(
                "expected MD5 binary subtype", field="integrity"
            )
        raise CacheCorruptionError(
            "Metadata field 'integrity' is missing or not binary", field="integrity"
        )
    if integrity.subtype != MD5_SUBTYPE:
        raise CacheCorruptionError("expected MD5 binary subtype", field="integrity")
    if len(integrity) != MD5_LEN:
        raise CacheCorruptionError(
            f"integrity must contain {MD5_LEN} bytes", field="integrity"
        )

    return Metadata(integrity=bytes(integrity), **values)
