"""Path exclusion rules applied before any file is opened."""

from __future__ import annotations

import os
from typing import Iterable

# ---------------------------------------------------------------------------
# Excluded directory names (any segment below the scan root, case-insensitive)
# ---------------------------------------------------------------------------
EXCLUDED_DIR_NAMES: frozenset[str] = frozenset(
    [
        # Game launcher / patcher working areas
        "backup",
        "_backup",
        "patch_temp",
        "download",
        # VCS
        ".git",
        ".svn",
        ".hg",
        # Python tooling
        "__pycache__",
        # Caches
        ".cache",
        # macOS system
        ".Trash",
        ".Spotlight-V100",
        ".fseventsd",
        "__MACOSX",
        # Windows
        "$RECYCLE.BIN",
        "System Volume Information",
    ]
)

# ---------------------------------------------------------------------------
# Excluded filenames (exact, case-insensitive)
# ---------------------------------------------------------------------------
EXCLUDED_FILENAMES: frozenset[str] = frozenset(
    """
    .ds_store thumbs.db desktop.ini
    """.split()
)

# ---------------------------------------------------------------------------
# Excluded extensions (lowercase, no dot)
# ---------------------------------------------------------------------------
EXCLUDED_EXTENSIONS: frozenset[str] = frozenset(
    """
    tmp temp swp lock lck pid
    part crdownload
    """.split()
)


def _normalize(path: str) -> str:
    """Lexical normalization only: no stat, no symlink resolution."""
    return os.path.normcase(os.path.normpath(path)).replace("\\", "/")


def _extension(filename: str) -> str:
    dot_idx = filename.rfind(".")
    if dot_idx <= 0 or dot_idx == len(filename) - 1:
        return ""
    return filename[dot_idx + 1:].lower()


def is_excluded_file(filename: str) -> bool:
    """
    Return True if this filename must never be read, wherever it lives.
    """
    if filename.lower() in EXCLUDED_FILENAMES:
        return True
    return _extension(filename) in EXCLUDED_EXTENSIONS


def is_excluded_path(
    path: str,
    root: str,
    excluded_dirs: Iterable[str] = EXCLUDED_DIR_NAMES,
) -> bool:
    """
    Return True if path must be skipped by a scan of root.

    Purely textual: the path is excluded when it is not strictly below root,
    when any directory segment between root and the file is on the deny-list,
    or when the filename itself is excluded.
    """
    path_norm = _normalize(path)
    root_norm = _normalize(root).rstrip("/")

    if not path_norm.startswith(root_norm + "/"):
        return True

    rel = path_norm[len(root_norm) + 1:]
    if not rel:
        return True

    *dir_parts, filename = rel.split("/")
    denied = {name.lower() for name in excluded_dirs}
    if any(part.lower() in denied for part in dir_parts):
        return True

    return is_excluded_file(filename)
