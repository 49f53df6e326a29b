"""icecache scan — walk a directory and reconcile its ICE containers with the cache."""

from __future__ import annotations

import os
import sys

from icecache.commands import open_store
from icecache.config import get_scan_config
from icecache.errors import IceCacheError
from icecache.exclusions import EXCLUDED_DIR_NAMES
from icecache.models import ScanSummary
from icecache.scan import ScanOrchestrator


def _format_duration(seconds: float) -> str:
    s = int(seconds)
    h, rem = divmod(s, 3600)
    m, sec = divmod(rem, 60)
    if h:
        return f"{h}:{m:02d}:{sec:02d}"
    return f"{m}:{sec:02d}"


def _print_summary(summary: ScanSummary) -> None:
    elapsed = 0.0
    if summary.finished_at is not None:
        elapsed = (summary.finished_at - summary.started_at).total_seconds()
    status = "cancelled" if summary.cancelled else "complete"
    print(
        f"Scan {status}: {summary.root}"
        f" | {summary.inserted:,} new"
        f" | {summary.updated:,} changed"
        f" | {summary.unchanged:,} unchanged"
        f" | {summary.skipped:,} skipped"
        f" | {summary.failed_count:,} failed"
        + (f" | {summary.pruned:,} pruned" if summary.pruned else "")
        + f" | {_format_duration(elapsed)} elapsed",
        file=sys.stderr,
    )
    for failure in summary.failed:
        print(f"  {failure.path}: {failure.cause}", file=sys.stderr)


def build_orchestrator(store, args) -> ScanOrchestrator:
    cfg = get_scan_config()
    return ScanOrchestrator(
        store,
        excluded_dirs=EXCLUDED_DIR_NAMES | frozenset(cfg.get("excluded_dirs", [])),
        commit_batch_size=cfg.get("commit_batch_size", 500),
        stat_short_circuit=cfg.get("stat_short_circuit", True),
        prune_missing=getattr(args, "prune", False) or cfg.get("prune_missing", False),
    )


def cmd_scan(args) -> None:
    raw_root = getattr(args, "path", None) or get_scan_config().get("root") or "."
    root = os.path.realpath(os.path.expanduser(raw_root))
    force = getattr(args, "force", False)

    with open_store(args) as store:
        orchestrator = build_orchestrator(store, args)
        future = orchestrator.submit(root, force=force)
        try:
            try:
                summary = future.result()
            except KeyboardInterrupt:
                # Let the current file finish so nothing is half-written
                print("\nicecache: stopping after the current file...", file=sys.stderr)
                orchestrator.cancel()
                summary = future.result()
                _print_summary(summary)
                sys.exit(130)
        except IceCacheError as e:
            print(f"icecache: {e}", file=sys.stderr)
            sys.exit(1)
        finally:
            orchestrator.shutdown()

    _print_summary(summary)
    if summary.has_failures:
        sys.exit(1)
