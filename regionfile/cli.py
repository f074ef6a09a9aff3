"""CLI entry point for regionfile."""

from __future__ import annotations

import argparse
import itertools
import logging
import sys
from datetime import datetime, timezone

from regionfile.header import SECTOR_SIZE
from regionfile.region import RegionFile

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s | %(message)s"


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _format_time(seconds: int) -> str:
    if seconds == 0:
        return "-"
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def cmd_info(args: argparse.Namespace) -> None:
    with RegionFile(args.path) as region:
        sectors = sum(chunk.size for chunk in region.all_chunks() if chunk is not None) // SECTOR_SIZE
        size = region.path.stat().st_size
        print(f"Path:         {region.path}")
        print(f"File size:    {size:,} bytes")
        print(f"Chunks:       {region.chunk_count}")
        print(f"Sectors used: {sectors:,}")


def cmd_list(args: argparse.Namespace) -> None:
    with RegionFile(args.path) as region:
        for chunk in region.all_chunks():
            if chunk is None:
                continue
            print(
                f"{chunk.x:>2} {chunk.z:>2}  offset={chunk.offset:<9} size={chunk.size:<7} "
                f"saved={_format_time(region.timestamp(chunk.x, chunk.z))}"
            )


def cmd_free(args: argparse.Namespace) -> None:
    with RegionFile(args.path) as region:
        coords = region.available_coords(args.start_x, args.start_z)
        for x, z in itertools.islice(coords, args.limit):
            print(f"{x} {z}")


def cmd_probe(args: argparse.Namespace) -> None:
    for path in args.paths:
        result = RegionFile.try_open(path)
        if result.ok:
            print(f"{path}: region ({result.region.chunk_count} chunks)")
            result.region.close()
        else:
            print(f"{path}: not a region ({result.error})")


def cmd_repack(args: argparse.Namespace) -> None:
    with RegionFile(args.path) as region:
        before = region.path.stat().st_size
        if args.drop_corrupt:
            for chunk in region.all_chunks():
                if chunk is not None:
                    chunk.load()
        if args.output:
            region.save_as(args.output)
        else:
            region.save()
        after = region.path.stat().st_size
        print(f"Repacked {region.chunk_count} chunks → {region.path} ({before:,} → {after:,} bytes)")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="regionfile",
        description="Inspect and repack region files.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr")
    sub = parser.add_subparsers(dest="command")

    p_info = sub.add_parser("info", help="Show a summary of a region file")
    p_info.add_argument("path", help="Path to region file")

    p_list = sub.add_parser("list", help="List every chunk with its location")
    p_list.add_argument("path", help="Path to region file")

    p_free = sub.add_parser("free", help="List empty chunk coordinates")
    p_free.add_argument("path", help="Path to region file")
    p_free.add_argument("--start-x", type=int, default=0, help="First x coordinate to scan (default: 0)")
    p_free.add_argument("--start-z", type=int, default=0, help="First z coordinate on the first row (default: 0)")
    p_free.add_argument("--limit", type=int, default=None, help="Stop after this many coordinates")

    p_probe = sub.add_parser("probe", help="Check whether files are region files")
    p_probe.add_argument("paths", nargs="+", help="Files to check")

    p_repack = sub.add_parser("repack", help="Rewrite a region file without gaps between chunks")
    p_repack.add_argument("path", help="Path to region file")
    p_repack.add_argument("--output", "-o", help="Write to this path instead of in place")
    p_repack.add_argument(
        "--drop-corrupt", action="store_true", help="Decode every chunk first and leave out the ones that fail"
    )

    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    if args.command == "info":
        cmd_info(args)
    elif args.command == "list":
        cmd_list(args)
    elif args.command == "free":
        cmd_free(args)
    elif args.command == "probe":
        cmd_probe(args)
    elif args.command == "repack":
        cmd_repack(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
