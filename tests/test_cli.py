"""Tests for the regionfile command line."""

import pytest

from regionfile import Chunk, RegionFile
from regionfile.cli import main


@pytest.fixture
def region_path(tmp_path):
    region = RegionFile.empty()
    region.add_chunk(Chunk.from_data(0, 0, b"first"))
    region.add_chunk(Chunk.from_data(3, 1, b"second" * 1000))
    path = tmp_path / "r.0.0.mca"
    region.save_as(path)
    region.close()
    return path


def test_info(region_path, capsys):
    main(["info", str(region_path)])
    out = capsys.readouterr().out
    assert "Chunks:       2" in out
    assert "Sectors used: 2" in out


def test_list(region_path, capsys):
    main(["list", str(region_path)])
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert lines[0].startswith(" 0  0  offset=8192")
    assert lines[1].startswith(" 3  1")


def test_free(region_path, capsys):
    main(["free", str(region_path), "--limit", "3"])
    assert capsys.readouterr().out.splitlines() == ["0 1", "0 2", "0 3"]


def test_probe(region_path, tmp_path, capsys):
    junk = tmp_path / "junk.bin"
    junk.write_bytes(bytes(100))
    main(["probe", str(region_path), str(junk)])
    out = capsys.readouterr().out
    assert f"{region_path}: region (2 chunks)" in out
    assert f"{junk}: not a region" in out


def test_repack_output(region_path, tmp_path, capsys):
    out_path = tmp_path / "packed.mca"
    main(["repack", str(region_path), "--output", str(out_path), "--drop-corrupt"])
    assert "Repacked 2 chunks" in capsys.readouterr().out
    with RegionFile(out_path) as region:
        assert region.get_chunk(3, 1).data == b"second" * 1000


def test_no_command(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 1
