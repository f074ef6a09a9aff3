"""Exceptions raised by the region container."""

from __future__ import annotations


class RegionError(Exception):
    """Base class for region file errors."""


class RegionFormatError(RegionError, ValueError):
    """The file is not a structurally valid region file."""


class RegionStateError(RegionError, RuntimeError):
    """The operation is not valid in the container's current state."""


class ChunkTooLargeError(RegionError, ValueError):
    """A serialized chunk does not fit in the maximum encodable sector count."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"chunk payload is {length:,} bytes, limit is {limit:,}")
        self.length = length
        self.limit = limit
