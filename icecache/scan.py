"""Scan orchestration: walk a root, fingerprint ICE containers, reconcile the cache."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Iterable, NoReturn, Optional

from icecache.db import CacheStore
from icecache.errors import (
    ContentScanNotImplementedError,
    InvalidRootError,
    ScanInProgressError,
    StoreWriteError,
)
from icecache.exclusions import EXCLUDED_DIR_NAMES, is_excluded_path
from icecache.hash_utils import hash_bytes, mtime_to_datetime, needs_rehash
from icecache.models import ScanFailure, ScanSummary
from icecache.signature import is_ice_file

logger = logging.getLogger("icecache.scan")

# Per-path outcomes
INSERTED = "inserted"
UPDATED = "updated"
UNCHANGED = "unchanged"
SKIPPED = "skipped"
FAILED = "failed"


class ScanOrchestrator:
    """
    Reconcile the ICE containers under a root directory against a CacheStore.

    Files are processed strictly one at a time. Only one scan may run against
    the orchestrator's store at any moment; a second caller gets
    ScanInProgressError instead of interleaving writes.
    """

    def __init__(
        self,
        store: CacheStore,
        *,
        excluded_dirs: Iterable[str] = EXCLUDED_DIR_NAMES,
        commit_batch_size: int = 500,
        stat_short_circuit: bool = True,
        prune_missing: bool = False,
    ) -> None:
        self.store = store
        self.excluded_dirs = frozenset(excluded_dirs)
        self.commit_batch_size = max(1, commit_batch_size)
        self.stat_short_circuit = stat_short_circuit
        self.prune_missing = prune_missing
        self._scan_lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._executor: ThreadPoolExecutor | None = None

    # -- public API ---------------------------------------------------------

    def scan_directory(
        self,
        root: str,
        force: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanSummary:
        """
        Run one scan pass over root and return its summary.

        force disables the stat short-circuit so every container is read and
        hashed again. cancel_event (or cancel()) is checked between files;
        a cancelled pass commits what it fully resolved and returns early.
        """
        if not self._scan_lock.acquire(blocking=False):
            raise ScanInProgressError(f"a scan is already running on {self.store.db_path}")
        try:
            return self._scan(root, force, cancel_event or self._cancel_event)
        finally:
            self._cancel_event.clear()
            self._scan_lock.release()

    @staticmethod
    def scan_contents(target: str) -> NoReturn:
        """Index the entries inside the containers under target. Not available yet."""
        raise ContentScanNotImplementedError(
            f"scanning container contents is not implemented (target: {target})"
        )

    def submit(self, root: str, force: bool = False) -> "Future[ScanSummary]":
        """Run scan_directory on the background scan thread."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="icecache-scan"
            )
        return self._executor.submit(self.scan_directory, root, force)

    def cancel(self) -> None:
        """Ask the running (or next queued) scan to stop after the current file."""
        self._cancel_event.set()

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # -- scan pass ----------------------------------------------------------

    def _scan(self, root: str, force: bool, cancel_event: threading.Event) -> ScanSummary:
        root = os.path.realpath(os.path.expanduser(root))
        if not os.path.isdir(root):
            raise InvalidRootError(f"scan root is not a directory: {root}")

        summary = ScanSummary(
            root=root, force=force, started_at=datetime.now(timezone.utc)
        )
        # Written but not yet committed: (path, outcome)
        pending: list[tuple[str, str]] = []
        observed: set[str] = set()

        logger.info("scan started: %s (force=%s)", root, force)

        for path in self._walk(root, summary):
            if cancel_event.is_set():
                summary.cancelled = True
                logger.info("scan cancelled after %d files", self._resolved(summary))
                break

            outcome, written = self._process(path, root, force, summary, pending)
            if outcome in (INSERTED, UPDATED, UNCHANGED):
                observed.add(path)
            if written:
                pending.append((path, outcome))
                if len(pending) >= self.commit_batch_size:
                    self._flush(summary, pending)
            else:
                self._count(summary, outcome)

        self._flush(summary, pending)

        if self.prune_missing and not summary.cancelled:
            self._prune(root, observed, summary)

        summary.finished_at = datetime.now(timezone.utc)
        logger.info(
            "scan finished: %s inserted=%d updated=%d unchanged=%d skipped=%d failed=%d pruned=%d",
            root,
            summary.inserted,
            summary.updated,
            summary.unchanged,
            summary.skipped,
            summary.failed_count,
            summary.pruned,
        )
        return summary

    def _walk(self, root: str, summary: ScanSummary):
        def _onerror(e: OSError) -> None:
            logger.warning("cannot read directory %s: %s", e.filename, e.strerror)
            summary.failed.append(
                ScanFailure(path=str(e.filename or root), cause=f"cannot read directory: {e.strerror}")
            )

        denied = {name.lower() for name in self.excluded_dirs}

        for dirpath, dirnames, filenames in os.walk(root, onerror=_onerror, followlinks=False):
            # Prune excluded directories in place; each counts once as skipped
            kept = []
            for d in sorted(dirnames):
                if d.lower() in denied:
                    logger.debug("[excluded dir]  %s", os.path.join(dirpath, d))
                    summary.skipped += 1
                    continue
                kept.append(d)
            dirnames[:] = kept

            for filename in sorted(filenames):
                path = os.path.join(dirpath, filename)
                if os.path.islink(path):
                    logger.debug("[symlink]       %s", path)
                    summary.skipped += 1
                    continue
                yield path

    def _process(
        self,
        path: str,
        root: str,
        force: bool,
        summary: ScanSummary,
        pending: list[tuple[str, str]],
    ) -> tuple[str, bool]:
        """Resolve one path. Returns (outcome, wrote_to_store)."""
        if is_excluded_path(path, root, self.excluded_dirs):
            logger.debug("[excluded]      %s", path)
            return SKIPPED, False

        try:
            stat_result = os.stat(path)
            record = self.store.find_by_path(path)

            if (
                record is not None
                and self.stat_short_circuit
                and not force
                and not needs_rehash(stat_result, record)
            ):
                logger.debug("[cached]        %s", path)
                return UNCHANGED, False

            with open(path, "rb") as f:
                buffer = f.read()
        except OSError as e:
            logger.warning("cannot read %s: %s", path, e)
            summary.failed.append(ScanFailure(path=path, cause=str(e)))
            return FAILED, False

        if not is_ice_file(buffer):
            logger.debug("[not ice]       %s", path)
            return SKIPPED, False

        digest = hash_bytes(buffer)
        mtime = mtime_to_datetime(stat_result.st_mtime_ns)
        size = stat_result.st_size
        verified_at = summary.started_at.replace(tzinfo=None)

        try:
            if record is None:
                self.store.insert(path, digest, mtime, size, verified_at)
                logger.debug("[new]           %s %s", digest, path)
                return INSERTED, True
            if record.digest == digest:
                logger.debug("[unchanged]     %s", path)
                return UNCHANGED, False
            self.store.update_digest(record, digest, mtime, size, verified_at)
            logger.debug("[changed]       %s -> %s %s", record.digest, digest, path)
            return UPDATED, True
        except StoreWriteError as e:
            self._fail_write(path, e, summary, pending)
            return FAILED, False

    # -- bookkeeping --------------------------------------------------------

    @staticmethod
    def _count(summary: ScanSummary, outcome: str) -> None:
        if outcome == INSERTED:
            summary.inserted += 1
        elif outcome == UPDATED:
            summary.updated += 1
        elif outcome == UNCHANGED:
            summary.unchanged += 1
        elif outcome == SKIPPED:
            summary.skipped += 1
        # FAILED entries are appended to summary.failed where they happen

    @staticmethod
    def _resolved(summary: ScanSummary) -> int:
        return (
            summary.inserted
            + summary.updated
            + summary.unchanged
            + summary.skipped
            + summary.failed_count
        )

    def _flush(self, summary: ScanSummary, pending: list[tuple[str, str]]) -> None:
        """Commit the pending batch; counts only land once the batch is durable."""
        if not pending:
            return
        try:
            self.store.commit()
        except StoreWriteError as e:
            logger.error("commit of %d records failed: %s", len(pending), e)
            for path, _ in pending:
                summary.failed.append(ScanFailure(path=path, cause=f"not committed: {e}"))
        else:
            for _, outcome in pending:
                self._count(summary, outcome)
        pending.clear()

    @staticmethod
    def _fail_write(
        path: str,
        error: StoreWriteError,
        summary: ScanSummary,
        pending: list[tuple[str, str]],
    ) -> None:
        logger.error("store write failed for %s: %s", path, error)
        summary.failed.append(ScanFailure(path=path, cause=f"store write failed: {error}"))
        if error.rolled_back:
            # The whole uncommitted batch went with it
            for lost_path, _ in pending:
                summary.failed.append(
                    ScanFailure(path=lost_path, cause=f"rolled back: {error}")
                )
            pending.clear()

    def _prune(self, root: str, observed: set[str], summary: ScanSummary) -> None:
        """Delete records for files that no longer exist under root."""
        prefix = root if root.endswith(os.sep) else root + os.sep
        stale = [
            record
            for record in self.store.iter_files(prefix=prefix)
            if record.path not in observed and not os.path.lexists(record.path)
        ]
        if not stale:
            return
        try:
            for record in stale:
                self.store.delete_file(record)
                logger.debug("[pruned]        %s", record.path)
            self.store.commit()
        except StoreWriteError as e:
            logger.error("pruning %d stale records failed: %s", len(stale), e)
            summary.failed.append(ScanFailure(path=root, cause=f"prune failed: {e}"))
            return
        summary.pruned = len(stale)
