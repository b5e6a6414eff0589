"""Command line line-of-sight query against a saved cell file.

Usage:
    heightmap-los --cells cells.json --catalog catalog.json --grid-size 100 \\
        --from 50,50,1 --to 950,450,1
    heightmap-los ... --flatten            # one merged region list
    heightmap-los ... --include-no-height  # also test no-height terrain
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .catalog_io import load_catalog, load_settings
from .errors import HeightMapError
from .grid import SquareGrid
from .height_map import HeightMap
from .persistence import JsonFileSink
from .types import Canvas


def _parse_point(text: str) -> tuple[float, float, float]:
    parts = text.split(",")
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(
            f"expected X,Y,H but got {text!r}"
        )
    try:
        x, y, h = (float(p) for p in parts)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    return (x, y, h)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="heightmap-los",
        description="Compute terrain line of sight between two points",
    )
    parser.add_argument(
        "--cells", required=True, help="JSON file of cell assignments"
    )
    parser.add_argument(
        "--catalog", required=True, help="JSON terrain catalog file"
    )
    parser.add_argument(
        "--grid-size",
        type=float,
        default=100.0,
        help="Square grid cell size in pixels (default: 100)",
    )
    parser.add_argument(
        "--canvas",
        type=float,
        nargs=2,
        metavar=("WIDTH", "HEIGHT"),
        default=(10000.0, 10000.0),
        help="Canvas size in pixels (default: 10000 10000)",
    )
    parser.add_argument(
        "--from",
        dest="p1",
        type=_parse_point,
        required=True,
        help="Ray start as X,Y,H",
    )
    parser.add_argument(
        "--to",
        dest="p2",
        type=_parse_point,
        required=True,
        help="Ray end as X,Y,H",
    )
    parser.add_argument(
        "--include-no-height",
        action="store_true",
        help="Also intersect terrain types without height",
    )
    parser.add_argument(
        "--flatten",
        action="store_true",
        help="Merge per-shape regions into one ray-ordered list",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        height_map = HeightMap(
            grid=SquareGrid(args.grid_size),
            catalog=load_catalog(args.catalog),
            sink=JsonFileSink(args.cells),
            canvas=Canvas(*args.canvas),
            settings=load_settings(args.catalog),
        )
        results = height_map.line_of_sight(
            args.p1, args.p2, include_no_height_terrain=args.include_no_height
        )
    except HeightMapError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.flatten:
        output = [r.to_dict() for r in HeightMap.flatten_regions(results)]
    else:
        output = [r.to_dict() for r in results]
    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
