"""Save engine: lay out every chunk, then rewrite the region file in one pass.

Saving happens in two phases. ``plan_layout`` serializes every chunk and
computes both header tables, producing an ordered list of pending writes.
``write_layout`` then writes the tables followed by the payloads. No byte
reaches the disk until every header entry is known.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from regionfile.chunks.base import ChunkSlot
from regionfile.header import (
    GRID_WIDTH,
    HEADER_SIZE,
    align,
    encode_location,
    encode_timestamp,
    sectors_for,
    slot_index,
)

logger = logging.getLogger(__name__)

Grid = Sequence[Sequence["ChunkSlot | None"]]


@dataclass(frozen=True)
class PendingWrite:
    """Payload bytes to place at ``offset`` once the headers are written."""

    offset: int
    data: bytes
    chunk: ChunkSlot

    @property
    def padded_length(self) -> int:
        return align(len(self.data))


@dataclass
class SaveLayout:
    """Result of planning a save: final header tables plus payload writes."""

    locations: bytearray
    timestamps: bytearray
    writes: list[PendingWrite] = field(default_factory=list)
    dropped: list[ChunkSlot] = field(default_factory=list)
    end: int = HEADER_SIZE


def can_write(chunk: ChunkSlot | None) -> bool:
    return chunk is not None and not chunk.is_corrupt


def plan_layout(
    grid: Grid,
    locations: bytes | bytearray,
    timestamps: bytes | bytearray,
    now: int | None = None,
) -> SaveLayout:
    """Assign a fresh sector-aligned offset to every writable chunk.

    ``grid`` is indexed ``grid[x][z]``. The input tables are copied, not
    modified, so a failure here (e.g. ChunkTooLargeError) leaves the caller's
    state untouched. Chunks are packed in header order (z outer, x inner)
    starting right after the header tables. Corrupt chunks get an all-zero
    entry, but the cursor still moves past their bytes. Loaded chunks get
    ``now`` as their timestamp; unloaded ones keep the old one.
    """
    if now is None:
        now = int(time.time())
    layout = SaveLayout(locations=bytearray(locations), timestamps=bytearray(timestamps))
    cursor = HEADER_SIZE

    for z in range(GRID_WIDTH):
        for x in range(GRID_WIDTH):
            chunk = grid[x][z]
            index = slot_index(x, z)
            data = chunk.serialize() if chunk is not None else b""
            sectors = sectors_for(len(data))

            if can_write(chunk):
                encode_location(layout.locations, index, cursor, sectors)
                layout.writes.append(PendingWrite(offset=cursor, data=data, chunk=chunk))
            else:
                encode_location(layout.locations, index, 0, 0)
                if chunk is not None:
                    logger.warning("Dropping corrupt chunk (%d, %d) (%d bytes) from save", x, z, len(data))
                    layout.dropped.append(chunk)

            if chunk is not None and chunk.is_loaded:
                encode_timestamp(layout.timestamps, index, now)

            cursor = align(cursor + len(data))

    layout.end = cursor
    return layout


def write_layout(path: str | Path, layout: SaveLayout) -> None:
    """Write a planned layout to ``path``.

    The file is built next to ``path`` and moved over it once complete, so
    an interrupted save leaves the previous contents in place.
    """
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with open(tmp_path, "wb") as f:
            f.write(layout.locations)
            f.write(layout.timestamps)
            for write in layout.writes:
                f.seek(write.offset)
                f.write(write.data)
                f.write(bytes(write.padded_length - len(write.data)))
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.debug("Wrote %d chunks to %s (%d bytes)", len(layout.writes), path, layout.end)
