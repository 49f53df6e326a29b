"""Exception hierarchy for the content-identity cache."""
from __future__ import annotations


class IceCacheError(Exception):
    """Base class for every error raised by icecache."""


class InvalidRootError(IceCacheError):
    """Raised when the scan root does not exist or is not a directory."""


class StoreError(IceCacheError):
    """Base class for cache store failures."""


class StoreInitError(StoreError):
    """The backing database could not be created or opened. Fatal."""


class StoreUnavailableError(StoreError):
    """The store session is closed or unusable. Fatal for the running scan."""


class StoreWriteError(StoreError):
    """A single insert/update/commit failed.

    rolled_back is True when the store had to discard its pending
    transaction, i.e. every uncommitted write since the last commit is gone.
    """

    def __init__(self, message: str, *, rolled_back: bool = False) -> None:
        super().__init__(message)
        self.rolled_back = rolled_back


class DuplicatePathError(StoreWriteError):
    """Raised by insert() when a record for the path already exists."""


class ScanInProgressError(IceCacheError):
    """Raised when a scan is started while another one holds the store."""


class ContentScanNotImplementedError(IceCacheError, NotImplementedError):
    """Scanning container-internal entries is not available yet."""


class ConfigError(IceCacheError):
    """The config file exists but is not valid TOML, or a section is not a table."""
