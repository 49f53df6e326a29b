"""icecache contents — index entries inside containers (not available yet)."""

from __future__ import annotations

import sys

from icecache.errors import ContentScanNotImplementedError
from icecache.scan import ScanOrchestrator


def cmd_contents(args) -> None:
    # No store is opened: there is nothing to write until contents can be parsed
    try:
        ScanOrchestrator.scan_contents(getattr(args, "path", "."))
    except ContentScanNotImplementedError as e:
        print(f"icecache: {e}", file=sys.stderr)
        sys.exit(2)
