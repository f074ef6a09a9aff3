"""regionfile — read, edit and repack 32x32 sector-allocated region files."""

from regionfile.chunks import Chunk, ChunkSlot
from regionfile.errors import ChunkTooLargeError, RegionError, RegionFormatError, RegionStateError
from regionfile.header import ChunkLocation, slot_index
from regionfile.region import ChunkChange, ProbeResult, RegionFile

__all__ = [
    "Chunk",
    "ChunkChange",
    "ChunkLocation",
    "ChunkSlot",
    "ChunkTooLargeError",
    "ProbeResult",
    "RegionError",
    "RegionFile",
    "RegionFormatError",
    "RegionStateError",
    "slot_index",
]
