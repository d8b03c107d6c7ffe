"""
SQLite Metadata Index
=====================

Embedded metadata engine built on SQLite through SQLAlchemy. A single table
maps raw key bytes to encoded metadata records:

    metadata_index(cache_key BLOB PRIMARY KEY, record BLOB NOT NULL)

Calls are synchronous; the cache invokes them inline from its async
operations.
"""

import logging
import threading
from pathlib import Path
from typing import Iterator, Tuple, Union

from sqlalchemy import Column, LargeBinary, create_engine, delete, event, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ...error_handling import CacheBackendError, MetadataNotFoundError, with_error_handling
from .base import MetadataIndex

logger = logging.getLogger(__name__)

Base = declarative_base()

ITERATE_BATCH_SIZE = 512


class IndexRecord(Base):
    """SQLAlchemy model for one metadata record."""

    __tablename__ = "metadata_index"

    cache_key = Column(LargeBinary, primary_key=True)
    record = Column(LargeBinary, nullable=False)


class SqliteIndex(MetadataIndex):
    """SQLite database-based metadata index using SQLAlchemy."""

    def __init__(self, db_file: Union[str, Path] = ":memory:", echo: bool = False):
        """
        Open (creating if needed) the index database.

        Args:
            db_file: Path to the SQLite database file, or ":memory:"
            echo: Whether to echo SQL statements (for debugging)
        """
        self.db_file = str(db_file)
        in_memory = self.db_file == ":memory:"
        if not in_memory:
            Path(self.db_file).parent.mkdir(parents=True, exist_ok=True)

        engine_options = {
            "echo": echo,
            "connect_args": {
                "check_same_thread": False,  # Allow multi-threading
                "timeout": 30,  # Wait on database locks
            },
        }
        if in_memory:
            # every pooled connection would otherwise see its own empty database
            engine_options["poolclass"] = StaticPool
        else:
            engine_options["pool_pre_ping"] = True

        try:
            self.engine = create_engine(f"sqlite:///{self.db_file}", **engine_options)

            @event.listens_for(self.engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                """Set SQLite pragmas for concurrent readers."""
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.execute("PRAGMA busy_timeout=30000")
                cursor.close()

            self.SessionLocal = sessionmaker(
                autocommit=False, autoflush=False, bind=self.engine
            )
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise CacheBackendError(
                f"Could not open metadata index: {e}", {"db_file": self.db_file}
            ) from e

        # SQLite allows one writer at a time; serialize our own writers
        self._write_lock = threading.Lock()
        self._closed = False
        logger.info(f"SQLite metadata index opened: {self.db_file}")

    @with_error_handling(CacheBackendError)
    def get(self, key: bytes) -> bytes:
        with self.SessionLocal() as session:
            value = session.execute(
                select(IndexRecord.record).where(IndexRecord.cache_key == key)
            ).scalar_one_or_none()
        if value is None:
            raise MetadataNotFoundError("Metadata not found", {"key": key.hex()})
        return bytes(value)

    @with_error_handling(CacheBackendError)
    def put(self, key: bytes, value: bytes) -> None:
        with self._write_lock, self.SessionLocal() as session:
            session.execute(
                text(
                    "INSERT OR REPLACE INTO metadata_index (cache_key, record) "
                    "VALUES (:cache_key, :record)"
                ),
                {"cache_key": bytes(key), "record": bytes(value)},
            )
            session.commit()

    @with_error_handling(CacheBackendError)
    def delete(self, key: bytes) -> None:
        with self._write_lock, self.SessionLocal() as session:
            result = session.execute(
                delete(IndexRecord).where(IndexRecord.cache_key == key)
            )
            deleted = result.rowcount
            session.commit()
        if deleted == 0:
            raise MetadataNotFoundError("Metadata not found", {"key": key.hex()})

    def iterate(self) -> Iterator[Tuple[bytes, bytes]]:
        """
        Yield every record ordered by key.

        Rows are fetched in batches with keyset pagination, each batch in its
        own short session, so records written during iteration after the
        current position may or may not be seen.
        """
        last_key = None
        while True:
            stmt = select(IndexRecord.cache_key, IndexRecord.record).order_by(
                IndexRecord.cache_key
            )
            if last_key is not None:
                stmt = stmt.where(IndexRecord.cache_key > last_key)
            try:
                with self.SessionLocal() as session:
                    rows = session.execute(stmt.limit(ITERATE_BATCH_SIZE)).all()
            except SQLAlchemyError as e:
                raise CacheBackendError(
                    f"Failed to iterate metadata index: {e}", {"db_file": self.db_file}
                ) from e

            for key, value in rows:
                yield bytes(key), bytes(value)
            if len(rows) < ITERATE_BATCH_SIZE:
                return
            last_key = rows[-1][0]

    @with_error_handling(CacheBackendError)
    def __len__(self) -> int:
        with self.SessionLocal() as session:
            return session.execute(text("SELECT COUNT(*) FROM metadata_index")).scalar_one()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.engine.dispose()
        logger.info(f"SQLite metadata index closed: {self.db_file}")
