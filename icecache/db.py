"""DuckDB cache store: schema DDL, one session per store, thread-safe helpers."""
from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional

import duckdb

from icecache.errors import (
    DuplicatePathError,
    StoreInitError,
    StoreUnavailableError,
    StoreWriteError,
)
from icecache.models import ContentRecord, FileRecord

logger = logging.getLogger("icecache.db")

MEMORY = ":memory:"

# contents.file_id -> files.id is enforced by CacheStore rather than a
# REFERENCES clause: DuckDB cannot cascade deletes.
SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS file_id_seq START 1;

CREATE TABLE IF NOT EXISTS files (
    id          BIGINT      PRIMARY KEY DEFAULT nextval('file_id_seq'),
    path        TEXT        NOT NULL UNIQUE,
    digest      TEXT        NOT NULL,
    updated_at  TIMESTAMP   NOT NULL,
    size_bytes  BIGINT,
    verified_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS contents (
    id          TEXT        PRIMARY KEY,
    file_id     BIGINT      NOT NULL,
    name        TEXT        NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_contents_file ON contents(file_id);
"""

_FILE_COLUMNS = "id, path, digest, updated_at, size_bytes, verified_at"


def _split_statements(sql: str) -> list[str]:
    """Split SQL on semicolons, preserving statement integrity."""
    return [s.strip() for s in sql.split(";") if s.strip()]


def _row_to_file(row: tuple) -> FileRecord:
    return FileRecord(
        id=row[0],
        path=row[1],
        digest=row[2],
        updated_at=row[3],
        size_bytes=row[4],
        verified_at=row[5],
    )


class CacheStore:
    """
    One durable session over the cache database.

    Writes are staged in a transaction opened by the first write and become
    durable on commit(). Reads on the same store see staged writes; other
    sessions only see committed ones.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._lock = threading.RLock()
        self._in_tx = False
        try:
            if db_path != MEMORY:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn: duckdb.DuckDBPyConnection | None = duckdb.connect(db_path)
            for stmt in _split_statements(SCHEMA_SQL):
                self._conn.execute(stmt)
            self._run_migrations()
        except (OSError, duckdb.Error) as e:
            raise StoreInitError(f"cannot open cache store at {db_path}: {e}") from e
        logger.debug("opened cache store %s", db_path)

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            if self._in_tx:
                logger.warning("closing %s with uncommitted changes; rolling back", self.db_path)
                self.rollback()
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "CacheStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _run_migrations(self) -> None:
        """Add columns to existing databases that predate the current schema."""
        existing = {
            row[0]
            for row in self._conn.execute(
                "SELECT column_name FROM information_schema.columns WHERE table_name = 'files'"
            ).fetchall()
        }
        for col, ddl in [
            ("size_bytes", "ALTER TABLE files ADD COLUMN size_bytes BIGINT"),
            ("verified_at", "ALTER TABLE files ADD COLUMN verified_at TIMESTAMP"),
        ]:
            if col not in existing:
                self._conn.execute(ddl)

    # -- low-level helpers --------------------------------------------------

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise StoreUnavailableError(f"cache store {self.db_path} is closed")
        return self._conn

    def _query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        """Execute a SELECT and return all rows under the store lock."""
        with self._lock:
            conn = self._connection()
            try:
                if params:
                    result = conn.execute(sql, params)
                else:
                    result = conn.execute(sql)
                return result.fetchall()
            except duckdb.ConnectionException as e:
                raise StoreUnavailableError(str(e)) from e

    def _query_one(self, sql: str, params: list[Any] | None = None) -> tuple | None:
        rows = self._query(sql, params)
        return rows[0] if rows else None

    def _write(self, sql: str, params: list[Any]) -> None:
        """Execute a write inside the pending transaction, opening it if needed."""
        with self._lock:
            conn = self._connection()
            try:
                if not self._in_tx:
                    conn.begin()
                    self._in_tx = True
                conn.execute(sql, params)
            except duckdb.ConnectionException as e:
                raise StoreUnavailableError(str(e)) from e
            except duckdb.Error as e:
                self.rollback()
                raise StoreWriteError(str(e), rolled_back=True) from e

    # -- files --------------------------------------------------------------

    def find_by_path(self, path: str) -> Optional[FileRecord]:
        """Return the record for path, or None if the path is not tracked."""
        row = self._query_one(
            f"SELECT {_FILE_COLUMNS} FROM files WHERE path = ?", [path]
        )
        return _row_to_file(row) if row else None

    def insert(
        self,
        path: str,
        digest: str,
        updated_at: datetime,
        size_bytes: int | None = None,
        verified_at: datetime | None = None,
    ) -> FileRecord:
        """Create a record for a path seen for the first time."""
        with self._lock:
            if self.find_by_path(path) is not None:
                raise DuplicatePathError(f"{path} is already tracked")
            row = self._query_one("SELECT nextval('file_id_seq')")
            file_id = row[0]
            self._write(
                "INSERT INTO files (id, path, digest, updated_at, size_bytes, verified_at)"
                " VALUES (?, ?, ?, ?, ?, ?)",
                [file_id, path, digest, updated_at, size_bytes, verified_at],
            )
        return FileRecord(
            id=file_id,
            path=path,
            digest=digest,
            updated_at=updated_at,
            size_bytes=size_bytes,
            verified_at=verified_at,
        )

    def update_digest(
        self,
        record: FileRecord,
        digest: str,
        updated_at: datetime,
        size_bytes: int | None = None,
        verified_at: datetime | None = None,
    ) -> FileRecord:
        """Store a new digest for an existing record."""
        self._write(
            "UPDATE files SET digest = ?, updated_at = ?, size_bytes = ?, verified_at = ? WHERE id = ?",
            [digest, updated_at, size_bytes, verified_at, record.id],
        )
        return record.model_copy(
            update={
                "digest": digest,
                "updated_at": updated_at,
                "size_bytes": size_bytes,
                "verified_at": verified_at,
            }
        )

    def delete_file(self, record: FileRecord) -> None:
        """Delete a file record together with every content record it owns."""
        with self._lock:
            self._write("DELETE FROM contents WHERE file_id = ?", [record.id])
            self._write("DELETE FROM files WHERE id = ?", [record.id])

    def count_files(self) -> int:
        row = self._query_one("SELECT COUNT(*) FROM files")
        return row[0] if row else 0

    def latest_update(self) -> Optional[datetime]:
        row = self._query_one("SELECT MAX(updated_at) FROM files")
        return row[0] if row else None

    def iter_files(self, prefix: str | None = None) -> Iterator[FileRecord]:
        """Yield stored records, optionally only those whose path starts with prefix."""
        if prefix is None:
            rows = self._query(f"SELECT {_FILE_COLUMNS} FROM files ORDER BY path")
        else:
            rows = self._query(
                f"SELECT {_FILE_COLUMNS} FROM files WHERE starts_with(path, ?) ORDER BY path",
                [prefix],
            )
        for row in rows:
            yield _row_to_file(row)

    # -- contents -----------------------------------------------------------

    def add_content(self, record: FileRecord, name: str) -> ContentRecord:
        """Attach a named entry to a tracked container."""
        with self._lock:
            if self._query_one("SELECT 1 FROM files WHERE id = ?", [record.id]) is None:
                raise StoreWriteError(f"file id {record.id} ({record.path}) is not tracked")
            content = ContentRecord(id=uuid.uuid4().hex, file_id=record.id, name=name)
            self._write(
                "INSERT INTO contents (id, file_id, name) VALUES (?, ?, ?)",
                [content.id, content.file_id, content.name],
            )
        return content

    def contents_for(self, record: FileRecord) -> list[ContentRecord]:
        rows = self._query(
            "SELECT id, file_id, name FROM contents WHERE file_id = ? ORDER BY name",
            [record.id],
        )
        return [ContentRecord(id=r[0], file_id=r[1], name=r[2]) for r in rows]

    # -- transactions -------------------------------------------------------

    @property
    def has_pending(self) -> bool:
        return self._in_tx

    def commit(self) -> None:
        """Make every staged write durable. No-op when nothing is pending."""
        with self._lock:
            if not self._in_tx:
                return
            conn = self._connection()
            try:
                conn.commit()
            except duckdb.ConnectionException as e:
                raise StoreUnavailableError(str(e)) from e
            except duckdb.Error as e:
                self.rollback()
                raise StoreWriteError(f"commit failed: {e}", rolled_back=True) from e
            finally:
                self._in_tx = False

    def rollback(self) -> None:
        """Discard every staged write."""
        with self._lock:
            if not self._in_tx:
                return
            self._in_tx = False
            if self._conn is None:
                return
            try:
                self._conn.rollback()
            except duckdb.Error as e:
                logger.error("rollback failed on %s: %s", self.db_path, e)
