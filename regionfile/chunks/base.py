"""Abstract chunk slot interface consumed by the region container."""

from __future__ import annotations

import weakref
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from regionfile.region import RegionFile


class ChunkSlot(ABC):
    """One payload addressed by grid coordinates inside a region.

    The container never looks inside the payload. It only asks for the
    serialized bytes and the loaded/corrupt/dirty flags. The owning region
    is held through a weak reference and is ``None`` while detached.
    """

    def __init__(self, x: int, z: int, offset: int = 0, size: int = 0) -> None:
        self.x = x
        self.z = z
        self.offset = offset
        self.size = size
        self._region_ref: weakref.ref[RegionFile] | None = None

    @property
    def coords(self) -> tuple[int, int]:
        return self.x, self.z

    @property
    def region(self) -> RegionFile | None:
        if self._region_ref is None:
            return None
        return self._region_ref()

    @region.setter
    def region(self, region: RegionFile | None) -> None:
        self._region_ref = None if region is None else weakref.ref(region)

    @abstractmethod
    def load(self) -> None:
        """Materialize the payload. Decode failures set ``is_corrupt``."""
        ...

    @abstractmethod
    def serialize(self) -> bytes:
        """Return the bytes to store for this chunk."""
        ...

    @property
    @abstractmethod
    def is_loaded(self) -> bool: ...

    @property
    @abstractmethod
    def is_corrupt(self) -> bool: ...

    @property
    @abstractmethod
    def has_unsaved_changes(self) -> bool: ...

    def detach(self) -> None:
        """Called by the owning region right before the slot is removed."""
        self.region = None

    def relocate(self, offset: int, size: int) -> None:
        """Record where the last save put this chunk."""
        self.offset = offset
        self.size = size

    def mark_saved(self) -> None:
        """Called after the chunk's bytes were written by a save."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(x={self.x}, z={self.z}, offset={self.offset}, size={self.size})"
