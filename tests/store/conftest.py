"""
Fixtures and helpers shared by store and scan tests.

Each test gets a fresh DuckDB store: in-memory for plain store tests, or a
file under tmp_path when the test needs to reopen it.
"""
import os
from datetime import datetime

import pytest

from icecache.db import MEMORY, CacheStore
from icecache.signature import ICE_MAGIC

# Stable timestamps used across fixture data (naive UTC, as stored)
T0 = datetime(2025, 1, 15, 10, 0, 0)
T1 = datetime(2025, 1, 16, 10, 0, 0)

# Fixed fake SHA-256 digests (64 uppercase hex chars each)
DIGEST_A = "A" * 64
DIGEST_B = "B" * 64

# Distinct, whole-second mtimes in nanoseconds
MTIME_1 = 1_700_000_000 * 10**9
MTIME_2 = 1_700_000_500 * 10**9


@pytest.fixture
def store():
    """A clean in-memory cache store."""
    s = CacheStore(MEMORY)
    yield s
    s.close()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "state" / "cache.duckdb")


def write_ice(path, payload: bytes = b"X", mtime_ns: int | None = MTIME_1) -> str:
    """Write a valid ICE container with the given payload and pin its mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(ICE_MAGIC + payload)
    if mtime_ns is not None:
        os.utime(path, ns=(mtime_ns, mtime_ns))
    return str(path)


def write_plain(path, content: bytes = b"not a container") -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return str(path)


@pytest.fixture
def root(tmp_path):
    """Scan root with symlinks resolved, matching the paths the store records."""
    return tmp_path.resolve()
