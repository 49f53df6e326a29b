"""icecache hash — print the digest of individual files."""

from __future__ import annotations

import sys

from icecache.config import get_scan_config
from icecache.hash_utils import hash_file
from icecache.signature import HEADER_SIZE, is_ice_file


def _read_header(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read(HEADER_SIZE)


def cmd_hash(args) -> None:
    chunk_size = get_scan_config().get("chunk_size_mb", 8) * 1024 * 1024
    failed = False
    for path in args.paths:
        digest = hash_file(path, chunk_size=chunk_size)
        if digest is None:
            print(f"icecache: cannot read {path}", file=sys.stderr)
            failed = True
            continue
        try:
            kind = "ice" if is_ice_file(_read_header(path)) else "---"
        except OSError as e:
            print(f"icecache: cannot read {path}: {e}", file=sys.stderr)
            failed = True
            continue
        print(f"{digest}  {kind}  {path}")
    if failed:
        sys.exit(1)
