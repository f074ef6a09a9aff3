"""RegionFile: a 32x32 grid of lazily loaded chunks backed by one file."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from regionfile.chunks.anvil import Chunk
from regionfile.chunks.base import ChunkSlot
from regionfile.errors import RegionFormatError, RegionStateError
from regionfile.header import (
    GRID_WIDTH,
    HEADER_SIZE,
    TABLE_SIZE,
    align,
    decode_location,
    decode_timestamp,
    slot_index,
)
from regionfile.repack import plan_layout, write_layout

logger = logging.getLogger(__name__)

ADDED = "added"
REMOVED = "removed"


@dataclass(frozen=True)
class ChunkChange:
    """Published to subscribers after a chunk is added or removed."""

    kind: str
    x: int
    z: int


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of RegionFile.try_open: either a region or the reason there isn't one."""

    region: RegionFile | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.region is not None


class RegionFile:
    """A region file: two 4096-byte header tables followed by chunk payloads.

    Chunks are wrapped lazily on open; only the first one is decoded, to
    check that the file really is a region. Adding and removing chunks only
    touches the in-memory grid until ``save()`` rewrites the whole file.

    Not thread-safe. ``save()`` closes and reopens the backing file, so it
    must not run while chunks are being loaded.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._chunks: list[list[ChunkSlot | None]] = [[None] * GRID_WIDTH for _ in range(GRID_WIDTH)]
        self._chunk_count = 0
        self._has_chunk_changes = False
        self._listeners: list[Callable[[ChunkChange], None]] = []
        self._stream: BinaryIO | None = None
        self._path = Path(path) if path is not None else None
        self._locations = bytearray(TABLE_SIZE)
        self._timestamps = bytearray(TABLE_SIZE)
        if self._path is not None:
            self._stream = open(self._path, "rb")
            try:
                self._read_header(self._stream)
            except BaseException:
                self.close()
                raise

    # -- construction ----------------------------------------------------------

    @classmethod
    def open(cls, path: str | Path) -> RegionFile:
        return cls(path)

    @classmethod
    def empty(cls) -> RegionFile:
        """An in-memory region with no chunks and no backing file."""
        return cls()

    @classmethod
    def try_open(cls, path: str | Path) -> ProbeResult:
        """Open ``path`` if it is a region file; report why not otherwise."""
        try:
            return ProbeResult(region=cls(path))
        except Exception as e:
            logger.debug("%s is not a region file: %s", path, e)
            return ProbeResult(error=e)

    def _read_header(self, stream: BinaryIO) -> None:
        header = stream.read(HEADER_SIZE)
        if len(header) < HEADER_SIZE:
            raise RegionFormatError(
                f"Invalid region file, it is {len(header)} bytes long but the header tables need {HEADER_SIZE}"
            )
        self._locations[:] = header[:TABLE_SIZE]
        self._timestamps[:] = header[TABLE_SIZE:]
        file_length = os.fstat(stream.fileno()).st_size

        for z in range(GRID_WIDTH):
            for x in range(GRID_WIDTH):
                location = decode_location(self._locations, slot_index(x, z))
                if location.is_empty:
                    continue
                if location.offset < HEADER_SIZE:
                    raise RegionFormatError(
                        f"Invalid region file, thinks there's a chunk at ({x}, {z}) at position "
                        f"{location.offset} but the header tables are there"
                    )
                if location.offset > file_length:
                    raise RegionFormatError(
                        f"Invalid region file, thinks there's a {location.size}-long chunk at ({x}, {z}) "
                        f"at position {location.offset} but file is only {file_length} long"
                    )
                chunk = Chunk(self, x, z, location.offset, location.size)
                self._chunks[x][z] = chunk
                self._chunk_count += 1
                if self._chunk_count == 1:
                    chunk.load()
                    if chunk.is_corrupt:
                        raise RegionFormatError(f"Invalid region file, chunk at ({x}, {z}) could not be decoded")

        if self._chunk_count == 0:
            raise RegionFormatError("Region doesn't contain any chunks")
        logger.debug("Opened %s with %d chunks", self._path, self._chunk_count)

    # -- state -----------------------------------------------------------------

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    @property
    def can_save(self) -> bool:
        return self._path is not None

    @property
    def has_chunk_changes(self) -> bool:
        """True after an add or remove that hasn't been saved yet."""
        return self._has_chunk_changes

    @property
    def has_unsaved_changes(self) -> bool:
        # Not cached: chunks can become dirty without the region knowing.
        return self._has_chunk_changes or any(
            chunk is not None and chunk.has_unsaved_changes for chunk in self.all_chunks()
        )

    def __len__(self) -> int:
        return self._chunk_count

    def __repr__(self) -> str:
        return f"RegionFile(path={str(self._path) if self._path else None!r}, chunks={self._chunk_count})"

    # -- queries ---------------------------------------------------------------

    @staticmethod
    def _check_coords(x: int, z: int) -> None:
        if not (0 <= x < GRID_WIDTH and 0 <= z < GRID_WIDTH):
            raise IndexError(f"chunk coordinates ({x}, {z}) are outside the {GRID_WIDTH}x{GRID_WIDTH} grid")

    def get_chunk(self, x: int, z: int) -> ChunkSlot | None:
        self._check_coords(x, z)
        return self._chunks[x][z]

    def all_chunks(self) -> Iterator[ChunkSlot | None]:
        """Every grid entry, empty ones included, x outer and z inner."""
        for column in self._chunks:
            yield from column

    def available_coords(self, start_x: int = 0, start_z: int = 0) -> Iterator[tuple[int, int]]:
        """Empty coordinates from (start_x, start_z) onwards, x outer and z inner."""
        for x in range(start_x, GRID_WIDTH):
            for z in range(start_z if x == start_x else 0, GRID_WIDTH):
                if self._chunks[x][z] is None:
                    yield x, z

    def timestamp(self, x: int, z: int) -> int:
        """Last-save time recorded for (x, z), in Unix seconds."""
        self._check_coords(x, z)
        return decode_timestamp(self._timestamps, slot_index(x, z))

    def read_bytes(self, offset: int, size: int) -> bytes:
        """Read ``size`` bytes at ``offset`` from the backing file."""
        if self._stream is None:
            raise RegionStateError("region has no open backing file")
        self._stream.seek(offset)
        return self._stream.read(size)

    # -- mutation --------------------------------------------------------------

    def subscribe(self, callback: Callable[[ChunkChange], None]) -> Callable[[], None]:
        """Call ``callback`` after every add/remove. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, change: ChunkChange) -> None:
        for callback in list(self._listeners):
            callback(change)

    def remove_chunk(self, x: int, z: int) -> None:
        self._check_coords(x, z)
        chunk = self._chunks[x][z]
        if chunk is None:
            return
        chunk.detach()
        self._chunks[x][z] = None
        self._chunk_count -= 1
        self._has_chunk_changes = True
        logger.debug("Removed chunk (%d, %d)", x, z)
        self._emit(ChunkChange(REMOVED, x, z))

    def add_chunk(self, chunk: ChunkSlot) -> None:
        """Place ``chunk`` at its own coordinates, taking it from its old region if any."""
        x, z = chunk.x, chunk.z
        self._check_coords(x, z)
        if self._chunks[x][z] is not None:
            raise RegionStateError(f"There is already a chunk at coordinates {x}, {z}")
        owner = chunk.region
        if owner is not None and owner.get_chunk(x, z) is chunk:
            owner.remove_chunk(x, z)
        else:
            # raises RegionStateError if the chunk's bytes can no longer be read
            chunk.detach()
        self._chunks[x][z] = chunk
        chunk.region = self
        self._chunk_count += 1
        self._has_chunk_changes = True
        logger.debug("Added chunk (%d, %d)", x, z)
        self._emit(ChunkChange(ADDED, x, z))

    # -- persistence -----------------------------------------------------------

    def save(self) -> None:
        """Rewrite the backing file with every writable chunk packed from the header onwards.

        Corrupt chunks are left out. Raises RegionStateError for a region
        without a backing file; use ``save_as`` for those.
        """
        if self._path is None:
            raise RegionStateError("region has no backing file, use save_as()")
        layout = plan_layout(self._chunks, self._locations, self._timestamps)

        previous = Path(self._stream.name) if self._stream is not None else None
        self.close()
        try:
            write_layout(self._path, layout)
        except BaseException:
            if previous is not None and previous.exists():
                self._stream = open(previous, "rb")
            raise

        self._locations[:] = layout.locations
        self._timestamps[:] = layout.timestamps
        for write in layout.writes:
            write.chunk.relocate(write.offset, align(len(write.data)))
            write.chunk.mark_saved()
        for chunk in layout.dropped:
            chunk.relocate(0, 0)
        self._has_chunk_changes = False
        self._stream = open(self._path, "rb")
        logger.debug("Saved %d chunks to %s", len(layout.writes), self._path)

    def save_as(self, path: str | Path) -> None:
        previous, self._path = self._path, Path(path)
        try:
            self.save()
        except BaseException:
            self._path = previous
            raise

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def __enter__(self) -> RegionFile:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
