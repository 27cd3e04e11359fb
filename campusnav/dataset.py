"""Import and export of navigation datasets (JSON documents).

Document layout::

    {
      "version": "1.0",
      "coordinateSystem": "normalized",
      "waypoints": [{"id", "name", "x", "y", "kind"}],
      "rooms": [{"id", "name", "x", "y"}],
      "paths": [{"id", "waypointA", "waypointB", "roomB"}]
    }

Documents without a coordinateSystem marker come from older editors that
stored absolute image pixels; they are migrated to normalized space on
load, which needs the natural image size.
"""

import json
from typing import Optional

from .config import CONFIG
from .errors import ImportFormatError, InputValidationError, UnmappedLocationError
from .graph import NavigationGraph
from .models import Path, Room, Waypoint
from .normalizer import ImageFrame, migrate_legacy_point

SECTIONS = ("waypoints", "rooms", "paths")


def _point_fields(entry: dict) -> dict:
    """Accept both x/y and the older coordinates: [x, y] form"""
    if "x" not in entry and "coordinates" in entry:
        coords = entry["coordinates"]
        if not isinstance(coords, (list, tuple)) or len(coords) != 2:
            raise ImportFormatError(f"Entry {entry.get('id')!r} has malformed coordinates")
        entry = dict(entry, x=coords[0], y=coords[1])
    return entry


def _path_fields(entry: dict) -> dict:
    """Accept the older from/to path form"""
    if "waypointA" not in entry and "from" in entry:
        entry = dict(entry, waypointA=entry["from"], waypointB=entry.get("to"))
    return entry


def validate_dataset(data) -> dict:
    """Check the shape of a dataset document.

    Raises:
        ImportFormatError: If a section is missing or not a list, or an
            entry lacks its required fields.
    """
    if not isinstance(data, dict):
        raise ImportFormatError("Navigation data must be a JSON object")

    for section in SECTIONS:
        if not isinstance(data.get(section), list):
            raise ImportFormatError(f"Invalid navigation data format: missing '{section}' list")

    for section in ("waypoints", "rooms"):
        for entry in data[section]:
            if not isinstance(entry, dict) or "id" not in entry:
                raise ImportFormatError(f"Every entry in '{section}' needs an id")
            entry = _point_fields(entry)
            try:
                float(entry["x"])
                float(entry["y"])
            except (KeyError, TypeError, ValueError):
                raise ImportFormatError(f"Entry {entry['id']!r} in '{section}' has no usable x/y")

    for entry in data["paths"]:
        if not isinstance(entry, dict) or "id" not in entry:
            raise ImportFormatError("Every entry in 'paths' needs an id")
        entry = _path_fields(entry)
        if entry.get("waypointA") is None:
            raise ImportFormatError(f"Path {entry['id']!r} has no waypointA")
        if (entry.get("waypointB") is None) == (entry.get("roomB") is None):
            raise ImportFormatError(f"Path {entry['id']!r} needs exactly one of waypointB or roomB")

    return data


def build_graph(data: dict, frame: Optional[ImageFrame] = None) -> NavigationGraph:
    """Build a fresh graph from a validated document.

    Raises:
        ImportFormatError: If the document is malformed or inconsistent.
        UnmappedLocationError: If a legacy pixel document has no frame to
            migrate against.
    """
    validate_dataset(data)
    legacy = data.get("coordinateSystem") is None
    if legacy and frame is None:
        raise UnmappedLocationError(
            "Dataset uses legacy pixel coordinates; the floor plan size is needed to convert them"
        )

    def place(entry: dict) -> dict:
        entry = _point_fields(entry)
        if legacy:
            x, y = migrate_legacy_point(float(entry["x"]), float(entry["y"]), frame)
            entry = dict(entry, x=x, y=y)
        return entry

    graph = NavigationGraph()
    try:
        for entry in data["waypoints"]:
            graph.add_waypoint(Waypoint.from_dict(place(entry)))
        for entry in data["rooms"]:
            graph.add_room(Room.from_dict(place(entry)))
        for entry in data["paths"]:
            path = Path.from_dict(_path_fields(entry))
            graph.add_path(path.waypoint_a, path.waypoint_b, path.room_b, path_id=path.id)
    except InputValidationError as e:
        raise ImportFormatError(f"Invalid navigation data: {e}") from e
    return graph


def load_dataset_file(path: str) -> dict:
    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"{path} is not valid JSON: {e}") from e
    except OSError as e:
        raise ImportFormatError(f"Cannot read {path}: {e}") from e


def import_dataset(path: str, graph: NavigationGraph,
                   frame: Optional[ImageFrame] = None) -> dict:
    """Load a dataset file into an existing graph.

    The new graph is fully built before anything is swapped in, so on any
    error the current graph is left exactly as it was. Returns the graph
    stats after import.
    """
    fresh = build_graph(load_dataset_file(path), frame)
    graph.replace_with(fresh)
    return graph.stats()


def dump_dataset(graph: NavigationGraph) -> dict:
    """Serialize a graph to a dataset document"""
    return {
        "version": CONFIG["dataset_version"],
        "coordinateSystem": CONFIG["coordinate_system"],
        "waypoints": [w.to_dict() for w in graph.waypoints.values()],
        "rooms": [r.to_dict() for r in graph.rooms.values()],
        "paths": [p.to_dict() for p in graph.paths.values()],
    }


def export_dataset(graph: NavigationGraph, path: str):
    with open(path, "w") as f:
        json.dump(dump_dataset(graph), f, indent=2)
