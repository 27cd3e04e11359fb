#!/usr/bin/env python3
"""
campusnav - Indoor campus routing and turn-by-turn directions

Usage:
    python -m campusnav DATASET [options]

Options:
    --from ROOM          Starting room (id or name), waypoint id, or X,Y position
    --to ROOM            Destination room (id or name) or waypoint id
    --rooms QUERY        List rooms whose name or id contains QUERY
    --validate           Check the dataset and print its statistics
    --playback FILE      Follow the route using a recorded position trace
    --calibration FILE   GPS corners of the floor plan (JSON), for GPS traces
    --speed FACTOR       Playback speed multiplier (default: 1.0)
    --width PX           Natural width of the floor-plan image
    --height PX          Natural height of the floor-plan image
    --feet-per-pixel F   Floor-plan scale
    --algorithm NAME     Pathfinding algorithm: astar or bfs
    --json               Print the route as JSON
    --log FILE           Append log lines to FILE
    --verbose            Echo log lines to stdout
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from .app import Navigator
from .directions import ScaleCalibration
from .errors import ImportFormatError, InputValidationError, NavigationError
from .logger import Logger
from .normalizer import GeoCalibration, ImageFrame
from .pathfinder import ALGORITHMS
from .positioning import PositionPlayback


def resolve_endpoint(navigator: Navigator, value: str):
    """Room id, waypoint id, unique room name match, or an "x,y" position"""
    graph = navigator.graph
    if value in graph.rooms or value in graph.waypoints:
        return value

    if "," in value:
        try:
            x, y = (float(part) for part in value.split(","))
        except ValueError:
            pass
        else:
            return (x, y)

    matches = graph.search_rooms(value)
    exact = [r for r in matches if r.name.lower() == value.strip().lower()]
    if len(exact) == 1:
        return exact[0].id
    if len(matches) == 1:
        return matches[0].id
    if not matches:
        raise InputValidationError(f"No room matches {value!r}")
    names = ", ".join(f"{r.name} ({r.id})" for r in matches)
    raise InputValidationError(f"{value!r} matches several rooms: {names}")


def load_calibration(path: str) -> GeoCalibration:
    """Read GPS corners, either as four corners or a north/south/east/west box"""
    try:
        with open(path) as f:
            data = json.load(f)
        if "north" in data:
            return GeoCalibration.from_bounds(
                float(data["north"]), float(data["south"]),
                float(data["east"]), float(data["west"]),
            )
        return GeoCalibration.from_dict(data)
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise ImportFormatError(f"Cannot read calibration {path}: {e}") from e


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="campusnav - Indoor campus routing and turn-by-turn directions"
    )
    parser.add_argument("dataset", metavar="DATASET",
                        help="Navigation dataset JSON file")
    parser.add_argument("--from", dest="start", metavar="ROOM",
                        help="Starting room, waypoint, or X,Y normalized position")
    parser.add_argument("--to", dest="end", metavar="ROOM",
                        help="Destination room or waypoint")
    parser.add_argument("--rooms", metavar="QUERY",
                        help="List rooms matching QUERY and exit")
    parser.add_argument("--validate", action="store_true",
                        help="Validate the dataset, print statistics and exit")
    parser.add_argument("--playback", metavar="FILE",
                        help="Follow the route using a recorded position trace")
    parser.add_argument("--calibration", metavar="FILE",
                        help="GPS corners of the floor plan, used to place GPS samples")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--width", type=float, default=1000,
                        help="Natural floor-plan width in pixels (default: 1000)")
    parser.add_argument("--height", type=float, default=1000,
                        help="Natural floor-plan height in pixels (default: 1000)")
    parser.add_argument("--feet-per-pixel", type=float, metavar="F",
                        help="Floor-plan scale in feet per pixel")
    parser.add_argument("--algorithm", choices=ALGORITHMS,
                        help="Pathfinding algorithm (default: astar)")
    parser.add_argument("--json", action="store_true",
                        help="Print the route as JSON")
    parser.add_argument("--log", metavar="FILE",
                        help="Append log lines to FILE")
    parser.add_argument("--verbose", action="store_true",
                        help="Echo log lines to stdout")

    args = parser.parse_args(argv)

    # Route endpoints come as a pair
    if not (args.validate or args.rooms is not None) and (args.start is None or args.end is None):
        parser.error("--from and --to are required unless --rooms or --validate is given")

    if args.playback and not Path(args.playback).exists():
        print(f"Playback file not found: {args.playback}", file=sys.stderr)
        return 1

    logger = Logger(args.log, echo=args.verbose)
    try:
        scale = ScaleCalibration(args.feet_per_pixel) if args.feet_per_pixel else None
        calibration = load_calibration(args.calibration) if args.calibration else None
        navigator = Navigator(
            ImageFrame(args.width, args.height),
            scale=scale,
            calibration=calibration,
            algorithm=args.algorithm,
            logger=logger,
        )
        stats = navigator.load(args.dataset)

        if args.validate:
            print(f"Waypoints: {stats['waypoints']}")
            print(f"Rooms: {stats['rooms']}")
            print(f"Paths: {stats['paths']}")
            print(f"Connected components: {stats['components']}")
            if stats["components"] > 1:
                print("Warning: some waypoints cannot reach each other")
            return 0

        if args.rooms is not None:
            for room in navigator.graph.search_rooms(args.rooms):
                print(f"{room.id}\t{room.name}")
            return 0

        route = navigator.navigate(
            resolve_endpoint(navigator, args.start),
            resolve_endpoint(navigator, args.end),
        )

        if args.json:
            print(json.dumps(route.to_dict(), indent=2))
        elif not route.directions:
            print(f"You are already at {route.destination.name}.")
        else:
            for i, line in enumerate(route.directions[:-1], start=1):
                print(f"{i}. {line}")
            print(route.directions[-1])

        if args.playback:
            navigator.set_position_source(PositionPlayback(args.playback, args.speed))
            navigator.run()
            print("Arrived." if navigator.arrived else "Did not reach the destination.")
        return 0

    except NavigationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        logger.close()


if __name__ == "__main__":
    sys.exit(main())
