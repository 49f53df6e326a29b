import sys

from icecache.config import get_db_path
from icecache.db import CacheStore
from icecache.errors import StoreInitError


def resolve_db_path(args) -> str:
    """Return the store path: --db flag > ICECACHE_DB_PATH / config > default."""
    return getattr(args, "db", None) or get_db_path()


def open_store(args) -> CacheStore:
    """Open the cache store or exit with a readable message."""
    db_path = resolve_db_path(args)
    try:
        return CacheStore(db_path)
    except StoreInitError as e:
        print(f"icecache: {e}", file=sys.stderr)
        sys.exit(1)


def get_version() -> str:
    try:
        from importlib.metadata import version
        return version("icecache")
    except Exception:
        return "unknown"
