"""ICE container signature detection."""
from __future__ import annotations

# Every ICE archive starts with the ASCII tag "ICE" followed by a NUL byte.
ICE_MAGIC = b"ICE\x00"
HEADER_SIZE = len(ICE_MAGIC)


def is_ice_file(buffer) -> bool:
    """
    Return True if buffer starts with the ICE container header.
    Short, empty or non-bytes input is reported as "not a container", never
    as an error, so a truncated file cannot abort a scan.
    """
    if not isinstance(buffer, (bytes, bytearray, memoryview)):
        return False
    if len(buffer) < HEADER_SIZE:
        return False
    return bytes(buffer[:HEADER_SIZE]) == ICE_MAGIC
