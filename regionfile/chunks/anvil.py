"""Chunk slots stored as length-prefixed, compressed frames."""

from __future__ import annotations

import gzip
import logging
import weakref
import zlib
from typing import TYPE_CHECKING

from regionfile.chunks.base import ChunkSlot
from regionfile.errors import RegionStateError

if TYPE_CHECKING:
    from regionfile.region import RegionFile

logger = logging.getLogger(__name__)

GZIP = 1
ZLIB = 2
UNCOMPRESSED = 3
EXTERNAL_FLAG = 0x80

DEFAULT_COMPRESSION = ZLIB

FRAME_HEADER_SIZE = 5  # 4-byte length + compression id


class ChunkDecodeError(Exception):
    """A stored frame could not be decoded. Never escapes Chunk.load()."""


def encode_payload(data: bytes, compression: int = DEFAULT_COMPRESSION) -> bytes:
    """Wrap ``data`` in a ``[length][compression id][body]`` frame."""
    if compression == GZIP:
        body = gzip.compress(data)
    elif compression == ZLIB:
        body = zlib.compress(data)
    elif compression == UNCOMPRESSED:
        body = bytes(data)
    else:
        raise ValueError(f"unsupported compression id {compression}")
    return (len(body) + 1).to_bytes(4, "big") + bytes([compression]) + body


def frame_length(raw: bytes) -> int | None:
    """Total frame length declared by ``raw``, or None if it can't be trusted."""
    if len(raw) < FRAME_HEADER_SIZE:
        return None
    length = int.from_bytes(raw[:4], "big")
    if length < 1 or 4 + length > len(raw):
        return None
    return 4 + length


def decode_payload(raw: bytes) -> tuple[int, bytes]:
    """Return ``(compression, data)`` for a stored frame."""
    end = frame_length(raw)
    if end is None:
        raise ChunkDecodeError("truncated or malformed frame header")
    compression = raw[4]
    if compression & EXTERNAL_FLAG:
        raise ChunkDecodeError("payload is stored in an external file")
    body = raw[FRAME_HEADER_SIZE:end]
    try:
        if compression == GZIP:
            return compression, gzip.decompress(body)
        if compression == ZLIB:
            return compression, zlib.decompress(body)
        if compression == UNCOMPRESSED:
            return compression, body
    except (OSError, EOFError, zlib.error) as e:
        raise ChunkDecodeError(f"compression id {compression}: {e}") from e
    raise ChunkDecodeError(f"unknown compression id {compression}")


class Chunk(ChunkSlot):
    """Chunk whose payload is read lazily from its region's backing file.

    Until ``load()`` runs the stored frame is passed through untouched on
    save. Once loaded, the decompressed bytes are available as ``data``;
    assigning ``data`` marks the chunk dirty and it is re-encoded on save.
    """

    def __init__(
        self,
        region: RegionFile | None,
        x: int,
        z: int,
        offset: int = 0,
        size: int = 0,
    ) -> None:
        super().__init__(x, z, offset, size)
        self.region = region
        # region whose file the offset and size refer to
        self._source_ref: weakref.ref[RegionFile] | None = None if region is None else weakref.ref(region)
        self._raw: bytes | None = None
        self._data: bytes | None = None
        self._compression = DEFAULT_COMPRESSION
        self._loaded = False
        self._corrupt = False
        self._dirty = False

    @classmethod
    def from_data(cls, x: int, z: int, data: bytes, compression: int = DEFAULT_COMPRESSION) -> Chunk:
        """Build a detached, loaded chunk from decompressed bytes."""
        chunk = cls(None, x, z)
        chunk._compression = compression
        chunk._data = bytes(data)
        chunk._loaded = True
        chunk._dirty = True
        return chunk

    # -- flags -----------------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_corrupt(self) -> bool:
        return self._corrupt

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    # -- payload ---------------------------------------------------------------

    @property
    def compression(self) -> int:
        return self._compression

    @compression.setter
    def compression(self, value: int) -> None:
        if value not in (GZIP, ZLIB, UNCOMPRESSED):
            raise ValueError(f"unsupported compression id {value}")
        self.load()
        if self._corrupt:
            raise RegionStateError(f"chunk ({self.x}, {self.z}) is corrupt, set its data first")
        self._compression = value
        self._raw = None
        self._dirty = True

    @property
    def data(self) -> bytes | None:
        """Decompressed payload, or None if the chunk is corrupt."""
        self.load()
        return self._data

    @data.setter
    def data(self, value: bytes) -> None:
        self._data = bytes(value)
        self._raw = None
        self._loaded = True
        self._corrupt = False
        self._dirty = True

    def _read_raw(self) -> bytes:
        if self._raw is not None:
            return self._raw
        source = self._source_ref() if self._source_ref is not None else None
        if source is None:
            raise RegionStateError(f"chunk ({self.x}, {self.z}) has no data and the region it was stored in is gone")
        raw = source.read_bytes(self.offset, self.size)
        end = frame_length(raw)
        self._raw = raw[:end] if end is not None else raw
        return self._raw

    def load(self) -> None:
        if self._loaded or self._corrupt:
            return
        raw = self._read_raw()
        try:
            self._compression, self._data = decode_payload(raw)
        except ChunkDecodeError as e:
            logger.debug("Chunk (%d, %d) is corrupt: %s", self.x, self.z, e)
            self._corrupt = True
            return
        self._loaded = True

    def serialize(self) -> bytes:
        if self._raw is not None:
            return self._raw
        if self._loaded and self._data is not None:
            return encode_payload(self._data, self._compression)
        return self._read_raw()

    # -- lifecycle -------------------------------------------------------------

    def detach(self) -> None:
        # Keep the stored frame; the old region's file is no longer ours to read.
        if self._raw is None and not self._loaded and not self._corrupt:
            self._read_raw()
            self._source_ref = None
        super().detach()

    def relocate(self, offset: int, size: int) -> None:
        super().relocate(offset, size)
        region = self.region
        self._source_ref = None if region is None else weakref.ref(region)

    def mark_saved(self) -> None:
        self._dirty = False
