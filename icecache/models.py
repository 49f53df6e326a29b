"""Pydantic models for cache records and scan results."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------

class FileRecord(BaseModel):
    id: int
    path: str
    digest: str
    updated_at: datetime
    size_bytes: Optional[int] = None
    # Start of the scan pass that last wrote this row (naive UTC)
    verified_at: Optional[datetime] = None


class ContentRecord(BaseModel):
    id: str
    file_id: int
    name: str


# ---------------------------------------------------------------------------
# Scan results
# ---------------------------------------------------------------------------

class ScanFailure(BaseModel):
    path: str
    cause: str


class ScanSummary(BaseModel):
    root: str
    force: bool = False
    started_at: datetime
    finished_at: Optional[datetime] = None
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    pruned: int = 0
    failed: list[ScanFailure] = []
    cancelled: bool = False

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)
