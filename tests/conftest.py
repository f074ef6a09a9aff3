"""Shared fixtures: region files assembled byte by byte."""

import math

import pytest

from regionfile.chunks.anvil import encode_payload

SECTOR = 4096


def region_bytes(entries, total_size=None):
    """Build a region file.

    ``entries`` is a list of ``(x, z, sector_index, frame, timestamp)``.
    """
    size = 2 * SECTOR
    for _, _, sector, frame, _ in entries:
        size = max(size, (sector + math.ceil(len(frame) / SECTOR)) * SECTOR)
    data = bytearray(total_size if total_size is not None else size)
    for x, z, sector, frame, timestamp in entries:
        idx = (x + z * 32) * 4
        count = math.ceil(len(frame) / SECTOR)
        data[idx : idx + 4] = bytes([count]) + sector.to_bytes(3, "big")
        data[SECTOR + idx : SECTOR + idx + 4] = timestamp.to_bytes(4, "big")
        data[sector * SECTOR : sector * SECTOR + len(frame)] = frame
    return bytes(data)


@pytest.fixture
def build_region(tmp_path):
    """Factory writing ``region_bytes(entries)`` to a file and returning its path."""

    def build(entries, name="r.0.0.mca", total_size=None):
        path = tmp_path / name
        path.write_bytes(region_bytes(entries, total_size))
        return path

    return build


@pytest.fixture
def frame():
    """Encode a payload the way chunks store it."""
    return encode_payload
