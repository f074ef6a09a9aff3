"""Header table layout: coordinate lookup and location/timestamp entries."""

from __future__ import annotations

import math
from dataclasses import dataclass

from regionfile.errors import ChunkTooLargeError

SECTOR_SIZE = 4096
TABLE_SIZE = 4096
HEADER_SIZE = 2 * TABLE_SIZE  # locations + timestamps
GRID_WIDTH = 32
ENTRY_SIZE = 4
MAX_SECTORS = 255
MAX_SECTOR_INDEX = 2**24 - 1


@dataclass(frozen=True)
class ChunkLocation:
    """Decoded location entry, in bytes."""

    offset: int
    size: int

    @property
    def is_empty(self) -> bool:
        return self.size == 0

    @property
    def sector_count(self) -> int:
        return self.size // SECTOR_SIZE


def slot_index(x: int, z: int) -> int:
    """Byte offset of the (x, z) entry in either header table."""
    return (x % GRID_WIDTH + (z % GRID_WIDTH) * GRID_WIDTH) * ENTRY_SIZE


def decode_location(table: bytes | bytearray, index: int) -> ChunkLocation:
    """Decode the location entry at ``index``.

    Byte 0 holds the allocated sector count, bytes 1-3 the big-endian
    sector index of the payload. An all-zero entry is an empty slot.
    """
    size = table[index] * SECTOR_SIZE
    offset = int.from_bytes(table[index + 1 : index + 4], "big") * SECTOR_SIZE
    return ChunkLocation(offset=offset, size=size)


def encode_location(table: bytearray, index: int, offset: int, sector_count: int) -> None:
    """Write a location entry in place. ``offset`` is in bytes and sector aligned."""
    if not 0 <= sector_count <= MAX_SECTORS:
        raise ChunkTooLargeError(sector_count * SECTOR_SIZE, MAX_SECTORS * SECTOR_SIZE)
    sector_index = (offset // SECTOR_SIZE) & MAX_SECTOR_INDEX
    table[index] = sector_count
    table[index + 1 : index + 4] = sector_index.to_bytes(3, "big")


def decode_timestamp(table: bytes | bytearray, index: int) -> int:
    return int.from_bytes(table[index : index + ENTRY_SIZE], "big")


def encode_timestamp(table: bytearray, index: int, seconds: int) -> None:
    table[index : index + ENTRY_SIZE] = (seconds & 0xFFFFFFFF).to_bytes(ENTRY_SIZE, "big")


def sectors_for(length: int) -> int:
    """Number of sectors needed to hold ``length`` bytes.

    Raises ChunkTooLargeError past MAX_SECTORS; the size byte cannot hold more.
    """
    sectors = math.ceil(length / SECTOR_SIZE)
    if sectors > MAX_SECTORS:
        raise ChunkTooLargeError(length, MAX_SECTORS * SECTOR_SIZE)
    return sectors


def align(offset: int) -> int:
    """Round ``offset`` up to the next sector boundary."""
    return math.ceil(offset / SECTOR_SIZE) * SECTOR_SIZE
