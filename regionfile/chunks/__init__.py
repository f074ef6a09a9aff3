"""Chunk slot implementations."""

from regionfile.chunks.anvil import Chunk
from regionfile.chunks.base import ChunkSlot

__all__ = ["Chunk", "ChunkSlot"]
