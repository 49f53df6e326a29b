"""SHA-256 content digests and the stat-based rehash short-circuit."""
from __future__ import annotations

import hashlib
import os
from datetime import datetime, timedelta
from typing import Optional

from icecache.models import FileRecord


_CHUNK_SIZE = 8 * 1024 * 1024  # 8 MB default
_EPOCH = datetime(1970, 1, 1)

# Coarsest mtime granularity we expect to meet (FAT). A file modified this
# close to the pass that hashed it may change again without its mtime moving.
RACY_WINDOW = timedelta(seconds=2)

DIGEST_LENGTH = hashlib.sha256().digest_size * 2  # 64 hex chars


def hash_bytes(buffer: bytes) -> str:
    """Return the uppercase SHA-256 hex digest of buffer."""
    return hashlib.sha256(buffer).hexdigest().upper()


def hash_file(path: str, chunk_size: int = _CHUNK_SIZE) -> Optional[str]:
    """
    Compute the uppercase SHA-256 hex digest of a file without loading it whole.
    Returns None on PermissionError or OSError (caller should log).
    """
    h = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                h.update(chunk)
        return h.hexdigest().upper()
    except PermissionError:
        return None
    except OSError:
        return None


def mtime_to_datetime(st_mtime_ns: int) -> datetime:
    """
    Convert a stat mtime in nanoseconds to a naive UTC datetime.
    Integer arithmetic only, so equal mtimes always give equal datetimes.
    """
    return _EPOCH + timedelta(microseconds=st_mtime_ns // 1000)


def needs_rehash(
    stat_result: os.stat_result,
    record: Optional[FileRecord],
) -> bool:
    """
    Return True if the file needs to be (re)read and hashed.
    record is the stored FileRecord, or None if the path is not cached.
    """
    if record is None:
        return True
    if record.size_bytes is None:
        return True
    if is_racily_clean(record):
        return True
    current_mtime = mtime_to_datetime(stat_result.st_mtime_ns)
    # If mtime or size changed, rehash
    return current_mtime != record.updated_at or stat_result.st_size != record.size_bytes


def is_racily_clean(record: FileRecord) -> bool:
    """
    True when the stored mtime is too close to the pass that hashed the file
    for a matching stat to prove the bytes are the same.
    """
    if record.verified_at is None:
        return False
    return record.updated_at >= record.verified_at - RACY_WINDOW
