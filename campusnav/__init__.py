"""campusnav - Indoor campus routing and turn-by-turn directions."""

from .config import CONFIG
from .errors import (
    NavigationError,
    InputValidationError,
    NoPathFoundError,
    UnmappedLocationError,
    ImportFormatError,
    LocationUnavailableError,
)
from .models import (
    Waypoint,
    Room,
    Path,
    RoutePoint,
    PositionSample,
    Route,
    WiFiNetwork,
    WiFiFingerprint,
)
from .logger import Logger
from .geo import (
    haversine_distance,
    image_bearing,
    bearing_to_compass,
    relative_direction,
    point_to_segment_distance,
    retry_with_backoff,
)
from .normalizer import (
    ImageFrame,
    DisplayFrame,
    GeoCalibration,
    normalize,
    denormalize,
    migrate_legacy_point,
)
from .graph import NavigationGraph, GraphSnapshot
from .pathfinder import PathFinder, astar, bfs, path_cost
from .planner import RoutePlanner, compose_route
from .directions import ScaleCalibration, describe_route, generate_directions
from .monitor import OffRouteMonitor, TrackingTask, is_on_route, route_deviation
from .positioning import (
    GPSProvider,
    IPGeolocationProvider,
    WiFiFingerprintProvider,
    ManualProvider,
    PositionRecorder,
    PositionPlayback,
    HybridPositioning,
)
from .dataset import validate_dataset, build_graph, import_dataset, export_dataset, dump_dataset
from .store import NavigationStore
from .app import Navigator
from .__main__ import main

__all__ = [
    "CONFIG",
    "NavigationError",
    "InputValidationError",
    "NoPathFoundError",
    "UnmappedLocationError",
    "ImportFormatError",
    "LocationUnavailableError",
    "Waypoint",
    "Room",
    "Path",
    "RoutePoint",
    "PositionSample",
    "Route",
    "WiFiNetwork",
    "WiFiFingerprint",
    "Logger",
    "haversine_distance",
    "image_bearing",
    "bearing_to_compass",
    "relative_direction",
    "point_to_segment_distance",
    "retry_with_backoff",
    "ImageFrame",
    "DisplayFrame",
    "GeoCalibration",
    "normalize",
    "denormalize",
    "migrate_legacy_point",
    "NavigationGraph",
    "GraphSnapshot",
    "PathFinder",
    "astar",
    "bfs",
    "path_cost",
    "RoutePlanner",
    "compose_route",
    "ScaleCalibration",
    "describe_route",
    "generate_directions",
    "OffRouteMonitor",
    "TrackingTask",
    "is_on_route",
    "route_deviation",
    "GPSProvider",
    "IPGeolocationProvider",
    "WiFiFingerprintProvider",
    "ManualProvider",
    "PositionRecorder",
    "PositionPlayback",
    "HybridPositioning",
    "validate_dataset",
    "build_graph",
    "import_dataset",
    "export_dataset",
    "dump_dataset",
    "NavigationStore",
    "Navigator",
    "main",
]
