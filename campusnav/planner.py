"""Route planning: anchoring, search and composition of the walked polyline."""

import math
from typing import Optional, Union

from .config import CONFIG
from .directions import ScaleCalibration, describe_route, generate_directions
from .errors import InputValidationError, NavigationError, NoPathFoundError
from .graph import NavigationGraph
from .logger import Logger
from .models import Room, Route, RoutePoint, Waypoint
from .normalizer import ImageFrame
from .pathfinder import PathFinder

Endpoint = Union[Room, Waypoint, RoutePoint, str, tuple]


def _coincides(point: RoutePoint, anchor: Waypoint) -> bool:
    """True when a point is its anchor, or sits exactly on it"""
    if point.id == anchor.id:
        return True
    eps = CONFIG["coincide_epsilon"]
    return math.isclose(point.x, anchor.x, abs_tol=eps) and math.isclose(point.y, anchor.y, abs_tol=eps)


def compose_route(start_point: RoutePoint, start_anchor: Waypoint,
                  path_nodes: list[Waypoint],
                  end_point: RoutePoint, end_anchor: Waypoint) -> list[RoutePoint]:
    """Stitch the start point, the waypoint path and the destination together.

    The start point is left out when it is (or sits exactly on) its anchor.
    The destination is always the last point and is tagged "destination";
    when it is the anchor itself the final path node takes the tag instead.

    Raises:
        NoPathFoundError: If path_nodes is empty. A straight line between the
            endpoints is never substituted for a missing path.
    """
    if not path_nodes:
        raise NoPathFoundError(
            f"No route available from {start_point.name} to {end_point.name}"
        )

    points: list[RoutePoint] = []
    if not _coincides(start_point, start_anchor):
        points.append(start_point)

    points.extend(RoutePoint.from_waypoint(w) for w in path_nodes)

    if end_point.id == end_anchor.id:
        points[-1] = points[-1].as_destination()
    else:
        points.append(end_point.as_destination())
    return points


class RoutePlanner:
    """Plans routes between selected endpoints and keeps the active route current"""

    def __init__(self, graph: NavigationGraph, frame: ImageFrame,
                 scale: Optional[ScaleCalibration] = None,
                 finder: Optional[PathFinder] = None,
                 logger: Optional[Logger] = None):
        self.graph = graph
        self.frame = frame
        self.scale = scale or ScaleCalibration.default()
        self.logger = logger or Logger(echo=False)
        self.finder = finder or PathFinder(graph, logger=self.logger)
        self.start: Optional[RoutePoint] = None
        self.end: Optional[RoutePoint] = None
        self.route: Optional[Route] = None
        self.last_error: Optional[NavigationError] = None
        self._request_seq = 0
        self._applied_seq = 0
        self.graph.subscribe(self._on_graph_change)

    # -- endpoint selection -------------------------------------------------

    def as_point(self, value: Endpoint) -> RoutePoint:
        """Turn a room, waypoint, id or (x, y) position into a route point"""
        if isinstance(value, RoutePoint):
            return value
        if isinstance(value, Room):
            return RoutePoint.from_room(value)
        if isinstance(value, Waypoint):
            return RoutePoint.from_waypoint(value)
        if isinstance(value, tuple):
            return RoutePoint.current_location(*value)
        if value in self.graph.rooms:
            return RoutePoint.from_room(self.graph.rooms[value])
        if value in self.graph.waypoints:
            return RoutePoint.from_waypoint(self.graph.waypoints[value])
        raise InputValidationError(f"Unknown room or waypoint {value!r}")

    def set_start(self, value: Endpoint):
        self.start = self.as_point(value)

    def set_end(self, value: Endpoint):
        self.end = self.as_point(value)

    def select_room(self, room_id: str) -> Optional[str]:
        """Click-to-select flow: first pick is the start, second the destination.

        Returns "start" or "end" for the role assigned, None if ignored.
        """
        room = self.graph.get_room(room_id)
        if self.start is None:
            self.start = RoutePoint.from_room(room)
            return "start"
        if self.end is None and room.id != self.start.id:
            self.end = RoutePoint.from_room(room)
            return "end"
        return None

    def clear(self):
        self.start = None
        self.end = None
        self.route = None
        self.last_error = None

    # -- route calculation ----------------------------------------------------

    def begin_request(self) -> int:
        """Allocate a sequence number for a new route request"""
        self._request_seq += 1
        return self._request_seq

    def apply_route(self, sequence: int, route: Route) -> bool:
        """Make a route active unless a newer request has already been applied"""
        if sequence <= self._applied_seq:
            self.logger.log("Discarded stale route", {
                "sequence": sequence, "applied": self._applied_seq,
            })
            return False
        self._applied_seq = sequence
        self.route = route
        self.last_error = None
        return True

    def build_route(self, start: RoutePoint, end: RoutePoint, sequence: int = 0) -> Route:
        """Resolve anchors, search and compose; does not change planner state.

        Anchoring and search both read one snapshot, so an edit made while
        the route is built cannot be half seen.
        """
        snapshot = self.graph.snapshot()
        start_anchor = self.finder.resolve_anchor(start, snapshot)
        end_anchor = self.finder.resolve_anchor(end, snapshot)
        path_nodes = self.finder.find_path(start_anchor, end_anchor, snapshot)
        points = compose_route(start, start_anchor, path_nodes, end, end_anchor)

        directions = generate_directions(points, self.frame, self.scale)
        distance = sum(step.feet for step in describe_route(points, self.frame, self.scale))
        return Route(points=points, directions=directions,
                     distance_feet=distance, sequence=sequence)

    def calculate_route(self, start: Optional[Endpoint] = None,
                        end: Optional[Endpoint] = None) -> Route:
        """Calculate and activate the route between the given (or selected) endpoints"""
        with self.graph.lock:
            if start is not None:
                self.set_start(start)
            if end is not None:
                self.set_end(end)
            if self.start is None or self.end is None:
                raise InputValidationError("Select both a starting point and a destination")

            sequence = self.begin_request()
            try:
                route = self.build_route(self.start, self.end, sequence)
            except NavigationError as e:
                self.last_error = e
                self.logger.log("Route calculation failed", {
                    "start": self.start.id, "end": self.end.id, "error": str(e),
                })
                raise

            self.apply_route(sequence, route)
            self.logger.log("Route calculated", {
                "start": self.start.id,
                "end": self.end.id,
                "points": len(route.points),
                "distance_feet": round(route.distance_feet, 1),
            })
            return route

    def recompute_from(self, position: tuple[float, float]) -> Optional[Route]:
        """Re-plan from a live position after leaving the route.

        When no path exists the previous route stays active but is marked
        unreliable, and None is returned.
        """
        with self.graph.lock:
            if self.end is None:
                return None
            try:
                return self.calculate_route(start=tuple(position))
            except NavigationError as e:
                if self.route is not None:
                    self.route.reliable = False
                self.logger.log("Recalculation failed; keeping previous route", {"error": str(e)})
                return None

    def close(self):
        """Stop following graph edits"""
        self.graph.unsubscribe(self._on_graph_change)

    def _drop_missing_rooms(self, room_ids):
        for role in ("start", "end"):
            point = getattr(self, role)
            if point is not None and point.kind in ("room", "destination") and point.id in room_ids:
                setattr(self, role, None)
                self.route = None

    def _on_graph_change(self, event: str, data: dict):
        if event == "room_removed":
            self._drop_missing_rooms({data["room"]})
        elif event == "replaced":
            selected = {p.id for p in (self.start, self.end)
                        if p is not None and p.kind in ("room", "destination")}
            self._drop_missing_rooms(selected - set(self.graph.rooms))

        if self.start is None or self.end is None:
            return
        if self.route is None and self.last_error is None and event != "replaced":
            return

        # Regenerate against the graph as it is after the edit
        try:
            self.calculate_route()
        except NavigationError:
            self.route = None
